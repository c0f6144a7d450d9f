"""
Preference Store - per-user notification preference matrix.

A missing record reads as all-enabled and is NOT written back on read.
Updates merge the provided flags; concurrent sessions are last-write-wins.
"""

from app.config.firebase import get_db
from app.models.notification import NotificationPreferences, NotificationPreferencesUpdate
from firebase_admin import firestore
from typing import Optional
import asyncio
import logging

logger = logging.getLogger(__name__)

PREFERENCES_COLLECTION = "notification_preferences"


class PreferenceStore:

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        if self._db is None:
            self._db = get_db()
        return self._db

    async def get(self, user_id: str) -> NotificationPreferences:
        doc_ref = self.db.collection(PREFERENCES_COLLECTION).document(user_id)
        loop = asyncio.get_event_loop()
        snapshot = await loop.run_in_executor(None, doc_ref.get)

        if not snapshot.exists:
            return NotificationPreferences()
        return NotificationPreferences(**(snapshot.to_dict() or {}))

    async def update(self, user_id: str, update: NotificationPreferencesUpdate) -> NotificationPreferences:
        changes = update.model_dump(exclude_none=True)
        payload = {
            "user_id": user_id,
            **changes,
            "updated_at": firestore.SERVER_TIMESTAMP,
        }
        doc_ref = self.db.collection(PREFERENCES_COLLECTION).document(user_id)
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, lambda: doc_ref.set(payload, merge=True))
        logger.info(f"Notification preferences updated for {user_id}: {sorted(changes)}")
        return await self.get(user_id)


# Global store instance
_preference_store: Optional[PreferenceStore] = None


def get_preference_store() -> PreferenceStore:
    """Get or create PreferenceStore singleton."""
    global _preference_store
    if _preference_store is None:
        _preference_store = PreferenceStore()
    return _preference_store
