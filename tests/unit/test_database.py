"""Tests for database module."""

import pytest
import tempfile
from pathlib import Path

import aiosqlite

from prefrec.persistence.database import (
    init_database,
    get_db_connection,
    check_database_health,
)


@pytest.mark.asyncio
async def test_init_database_creates_file():
    """Database initialization creates the database file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "nested" / "test.db"

        assert not db_path.exists()

        await init_database(db_path)

        assert db_path.exists()


@pytest.mark.asyncio
async def test_init_database_creates_tables():
    """Database initialization creates all required tables."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        await init_database(db_path)

        async with aiosqlite.connect(db_path) as db:
            cursor = await db.execute(
                "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
            )
            tables = [row[0] for row in await cursor.fetchall()]

        assert "preferences" in tables
        assert "correlations" in tables
        assert "user_profiles" in tables
        assert "user_preferences" in tables


@pytest.mark.asyncio
async def test_init_database_is_idempotent():
    """Re-initializing keeps existing rows."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        await init_database(db_path)

        async with aiosqlite.connect(db_path) as db:
            await db.execute(
                "INSERT INTO user_profiles (user_id) VALUES ('reader-1')"
            )
            await db.commit()

        await init_database(db_path)

        async with aiosqlite.connect(db_path) as db:
            cursor = await db.execute("SELECT COUNT(*) FROM user_profiles")
            assert (await cursor.fetchone())[0] == 1


@pytest.mark.asyncio
async def test_get_db_connection(test_db):
    """get_db_connection returns a usable connection."""
    db = await get_db_connection()
    try:
        cursor = await db.execute("SELECT 1")
        row = await cursor.fetchone()
        assert row[0] == 1
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_check_database_health(test_db):
    """Health check reports a healthy, empty database."""
    health = await check_database_health()

    assert health["status"] == "healthy"
    assert health["preference_count"] == 0
    assert health["integrity"] == "ok"
