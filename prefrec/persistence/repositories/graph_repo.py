"""
Repository for correlation graph persistence.

Handles CRUD operations on the preferences and correlations tables.
Uses aiosqlite for async SQLite access.

No business logic - that belongs in the recommendation and propagation services.
"""

from typing import AsyncIterator, Dict, List, Optional, Sequence

import aiosqlite
import structlog

from prefrec.core.exceptions import (
    ConfigurationError,
    GraphStorageError,
    InvalidUpdateRequestError,
    MutationAlreadyAppliedError,
)
from prefrec.domain.models import (
    Preference,
    PreferenceCategory,
    PreferenceKey,
    UpdateAction,
    UpdateRequest,
    UserProfile,
)
from prefrec.persistence.idempotency import build_idempotency_flag

log = structlog.get_logger(__name__)

# Keeps IN (...) lists under SQLite's bound-parameter limit
_MAX_IN_PARAMS = 500


class SQLitePreferenceGraph:
    """
    Repository for preferences and their outgoing correlations.

    Provides CRUD operations on SQLite tables:
    - preferences: One row per preference, keyed '<CATEGORY>~~<id>'
    - correlations: One row per directed edge
    """

    def __init__(self, db: aiosqlite.Connection):
        """
        Initialize graph repository.

        Args:
            db: aiosqlite connection (from FastAPI dependency)
        """
        self.db = db
        self.db.row_factory = aiosqlite.Row

    # ==================== READ OPERATIONS ====================

    async def get_preference(self, key: PreferenceKey) -> Optional[Preference]:
        """
        Get a preference by identity.

        Args:
            key: Preference identity

        Returns:
            Preference with its correlations, or None if not found
        """
        try:
            cursor = await self.db.execute(
                "SELECT * FROM preferences WHERE preference_key = ?",
                (key.to_storage_key(),),
            )
            row = await cursor.fetchone()
            if not row:
                return None
            correlations = await self._load_correlations([row["preference_key"]])
        except aiosqlite.Error as e:
            raise GraphStorageError(f"Failed to read preference {key}: {e}") from e

        return self._row_to_preference(row, correlations.get(row["preference_key"], {}))

    async def batch_get_preferences(
        self, category: PreferenceCategory, batch_size: int
    ) -> AsyncIterator[List[Preference]]:
        """
        Stream all preferences in a category, batch_size at a time.

        Pages by preference_id so each preference is read exactly once,
        in ascending id order.

        Args:
            category: Category to scan
            batch_size: Maximum preferences per batch

        Yields:
            Lists of preferences with their correlations

        Raises:
            ConfigurationError: If batch_size < 1
            GraphStorageError: If a page cannot be read
        """
        if batch_size < 1:
            raise ConfigurationError(f"batch_size must be >= 1, got {batch_size}")

        category = PreferenceCategory(category)
        last_id = ""
        while True:
            try:
                cursor = await self.db.execute(
                    """
                    SELECT * FROM preferences
                    WHERE category = ? AND preference_id > ?
                    ORDER BY preference_id
                    LIMIT ?
                    """,
                    (category.value, last_id, batch_size),
                )
                rows = await cursor.fetchall()
                if not rows:
                    return
                correlations = await self._load_correlations(
                    [row["preference_key"] for row in rows]
                )
            except aiosqlite.Error as e:
                log.error(
                    "preference_scan_failed",
                    category=category.value,
                    after_id=last_id,
                    error=str(e),
                )
                raise GraphStorageError(
                    f"Scan of {category.value} failed after {last_id!r}: {e}"
                ) from e

            yield [
                self._row_to_preference(row, correlations.get(row["preference_key"], {}))
                for row in rows
            ]

            if len(rows) < batch_size:
                return
            last_id = rows[-1]["preference_id"]

    # ==================== WRITE OPERATIONS ====================

    async def put_preference(self, preference: Preference) -> Preference:
        """
        Store a preference, overwriting popularity and the full edge set.

        The idempotency fingerprint is cleared.
        """
        storage_key = preference.key.to_storage_key()
        try:
            await self.db.execute(
                """
                INSERT INTO preferences (
                    preference_key, preference_id, category, popularity, last_modified_by
                ) VALUES (?, ?, ?, ?, NULL)
                ON CONFLICT (preference_key) DO UPDATE SET
                    popularity = excluded.popularity,
                    last_modified_by = NULL,
                    updated_at = datetime('now')
                """,
                (
                    storage_key,
                    preference.id,
                    preference.category.value,
                    preference.popularity,
                ),
            )
            await self.db.execute(
                "DELETE FROM correlations WHERE source_key = ?", (storage_key,)
            )
            await self.db.executemany(
                """
                INSERT INTO correlations (source_key, destination_key, weight)
                VALUES (?, ?, ?)
                """,
                [
                    (storage_key, destination.to_storage_key(), weight)
                    for destination, weight in preference.correlations.items()
                ],
            )
            await self.db.commit()
        except aiosqlite.Error as e:
            await self.db.rollback()
            raise GraphStorageError(f"Failed to write preference {preference.key}: {e}") from e

        log.info(
            "preference_stored",
            preference_key=storage_key,
            popularity=preference.popularity,
            correlation_count=len(preference.correlations),
        )
        return preference.copy()

    async def delete_preference(self, key: PreferenceKey) -> bool:
        """Delete a preference and its outgoing edges. Returns True if it existed."""
        storage_key = key.to_storage_key()
        try:
            await self.db.execute(
                "DELETE FROM correlations WHERE source_key = ?", (storage_key,)
            )
            cursor = await self.db.execute(
                "DELETE FROM preferences WHERE preference_key = ?", (storage_key,)
            )
            await self.db.commit()
        except aiosqlite.Error as e:
            await self.db.rollback()
            raise GraphStorageError(f"Failed to delete preference {key}: {e}") from e

        deleted = cursor.rowcount > 0
        if deleted:
            log.info("preference_deleted", preference_key=storage_key)
        return deleted

    async def update_preference(
        self,
        request: UpdateRequest,
        user: UserProfile,
        action: UpdateAction,
    ) -> Preference:
        """
        Apply an update request as one conditional transaction.

        BEGIN IMMEDIATE takes the write lock before the fingerprint is read,
        so the compare and the swap cannot interleave with another writer.

        Args:
            request: Popularity and correlation deltas for one preference
            user: User whose action caused the update
            action: Increment or decrement

        Returns:
            The target preference after the update

        Raises:
            MutationAlreadyAppliedError: If the stored fingerprint matches
            InvalidUpdateRequestError: If the popularity would drop below 0
            GraphStorageError: On any SQLite failure
        """
        target = request.target.key
        storage_key = target.to_storage_key()
        fingerprint = build_idempotency_flag(user, request, action)

        try:
            await self.db.execute("BEGIN IMMEDIATE")
        except aiosqlite.Error as e:
            raise GraphStorageError(f"Failed to lock preference {target}: {e}") from e

        try:
            await self._apply_update(request, storage_key, fingerprint)
        except (MutationAlreadyAppliedError, InvalidUpdateRequestError):
            await self.db.rollback()
            raise
        except aiosqlite.Error as e:
            await self.db.rollback()
            raise GraphStorageError(f"Failed to update preference {target}: {e}") from e

        try:
            await self.db.commit()
        except aiosqlite.Error as e:
            raise GraphStorageError(f"Failed to commit update to {target}: {e}") from e

        log.debug(
            "preference_updated",
            preference_key=storage_key,
            user_id=user.id,
            popularity_delta=request.popularity_delta,
            correlation_updates=len(request.correlation_updates),
        )

        updated = await self.get_preference(target)
        if updated is None:
            raise GraphStorageError(
                f"Update failed: preference {storage_key} not found after commit"
            )
        return updated

    async def _apply_update(
        self, request: UpdateRequest, storage_key: str, fingerprint: str
    ) -> None:
        cursor = await self.db.execute(
            "SELECT popularity, last_modified_by FROM preferences WHERE preference_key = ?",
            (storage_key,),
        )
        row = await cursor.fetchone()

        if row is not None and row["last_modified_by"] == fingerprint:
            raise MutationAlreadyAppliedError(
                f"Update to {storage_key} was already applied", fingerprint=fingerprint
            )

        popularity = (row["popularity"] if row is not None else 0) + request.popularity_delta
        if popularity < 0:
            raise InvalidUpdateRequestError(
                f"Update to {storage_key} would leave popularity at {popularity}"
            )

        target = request.target
        if row is None:
            await self.db.execute(
                """
                INSERT INTO preferences (
                    preference_key, preference_id, category, popularity, last_modified_by
                ) VALUES (?, ?, ?, ?, ?)
                """,
                (
                    storage_key,
                    target.id,
                    target.category.value,
                    request.popularity_delta,
                    fingerprint,
                ),
            )
        else:
            await self.db.execute(
                """
                UPDATE preferences
                SET popularity = popularity + ?,
                    last_modified_by = ?,
                    updated_at = datetime('now')
                WHERE preference_key = ?
                """,
                (request.popularity_delta, fingerprint, storage_key),
            )

        # Zero-weight edges are kept so later readers see the decrement
        await self.db.executemany(
            """
            INSERT INTO correlations (source_key, destination_key, weight)
            VALUES (?, ?, ?)
            ON CONFLICT (source_key, destination_key) DO UPDATE SET
                weight = weight + excluded.weight
            """,
            [
                (storage_key, destination.to_storage_key(), update.delta)
                for destination, update in request.correlation_updates.items()
            ],
        )

    # ==================== HELPERS ====================

    async def _load_correlations(
        self, source_keys: Sequence[str]
    ) -> Dict[str, Dict[PreferenceKey, int]]:
        """Load outgoing edges for the given sources, keyed by source storage key."""
        edges: Dict[str, Dict[PreferenceKey, int]] = {}
        for start in range(0, len(source_keys), _MAX_IN_PARAMS):
            chunk = source_keys[start : start + _MAX_IN_PARAMS]
            placeholders = ",".join("?" for _ in chunk)
            cursor = await self.db.execute(
                f"""
                SELECT source_key, destination_key, weight FROM correlations
                WHERE source_key IN ({placeholders})
                """,
                tuple(chunk),
            )
            for row in await cursor.fetchall():
                destination = PreferenceKey.from_storage_key(row["destination_key"])
                edges.setdefault(row["source_key"], {})[destination] = row["weight"]
        return edges

    def _row_to_preference(
        self, row: aiosqlite.Row, correlations: Dict[PreferenceKey, int]
    ) -> Preference:
        """Convert a database row to a Preference model."""
        return Preference(
            id=row["preference_id"],
            category=PreferenceCategory(row["category"]),
            popularity=row["popularity"],
            correlations=correlations,
        )
