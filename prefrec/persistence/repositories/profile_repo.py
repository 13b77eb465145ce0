"""
Repository for user profile persistence.

Profiles are stored as a user_profiles row plus one user_preferences row per
held snapshot. A snapshot's correlations are serialized as a JSON object
keyed by destination storage key.
"""

import json
from typing import Optional

import aiosqlite
import structlog

from prefrec.core.exceptions import GraphStorageError
from prefrec.domain.models import (
    Preference,
    PreferenceCategory,
    PreferenceKey,
    UserProfile,
)

log = structlog.get_logger(__name__)


class SQLiteUserProfileStore:
    """Repository for user profiles and their preference snapshots."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db
        self.db.row_factory = aiosqlite.Row

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        """
        Load a profile with all held snapshots.

        Returns:
            UserProfile, or None if not found
        """
        try:
            cursor = await self.db.execute(
                "SELECT user_id FROM user_profiles WHERE user_id = ?", (user_id,)
            )
            if not await cursor.fetchone():
                return None

            cursor = await self.db.execute(
                """
                SELECT * FROM user_preferences
                WHERE user_id = ?
                ORDER BY category, preference_id
                """,
                (user_id,),
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise GraphStorageError(f"Failed to read profile {user_id}: {e}") from e

        profile = UserProfile(user_id)
        for row in rows:
            profile.add_preference(self._row_to_snapshot(row))
        return profile

    async def write_profile(self, profile: UserProfile) -> UserProfile:
        """
        Persist a profile, replacing every stored snapshot with the given ones.

        Returns:
            The profile as written
        """
        snapshots = [
            preference
            for held in profile.preferences.values()
            for preference in held
        ]
        try:
            await self.db.execute(
                """
                INSERT INTO user_profiles (user_id) VALUES (?)
                ON CONFLICT (user_id) DO UPDATE SET updated_at = datetime('now')
                """,
                (profile.id,),
            )
            await self.db.execute(
                "DELETE FROM user_preferences WHERE user_id = ?", (profile.id,)
            )
            await self.db.executemany(
                """
                INSERT INTO user_preferences (
                    user_id, preference_key, preference_id, category,
                    popularity, correlations
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        profile.id,
                        snapshot.key.to_storage_key(),
                        snapshot.id,
                        snapshot.category.value,
                        snapshot.popularity,
                        json.dumps(
                            {
                                destination.to_storage_key(): weight
                                for destination, weight in snapshot.correlations.items()
                            }
                        ),
                    )
                    for snapshot in snapshots
                ],
            )
            await self.db.commit()
        except aiosqlite.Error as e:
            await self.db.rollback()
            raise GraphStorageError(f"Failed to write profile {profile.id}: {e}") from e

        log.info("profile_written", user_id=profile.id, preference_count=len(snapshots))
        return profile

    async def delete_profile(self, user_id: str) -> bool:
        """Delete a profile and its snapshots. Returns True if it existed."""
        try:
            await self.db.execute(
                "DELETE FROM user_preferences WHERE user_id = ?", (user_id,)
            )
            cursor = await self.db.execute(
                "DELETE FROM user_profiles WHERE user_id = ?", (user_id,)
            )
            await self.db.commit()
        except aiosqlite.Error as e:
            await self.db.rollback()
            raise GraphStorageError(f"Failed to delete profile {user_id}: {e}") from e
        return cursor.rowcount > 0

    def _row_to_snapshot(self, row: aiosqlite.Row) -> Preference:
        """Convert a user_preferences row to a Preference snapshot."""
        correlations = json.loads(row["correlations"]) if row["correlations"] else {}
        return Preference(
            id=row["preference_id"],
            category=PreferenceCategory(row["category"]),
            popularity=row["popularity"],
            correlations={
                PreferenceKey.from_storage_key(destination): weight
                for destination, weight in correlations.items()
            },
        )
