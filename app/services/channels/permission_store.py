"""
Push permission snapshots per user, as reported by the client after its
permission prompt.
"""

from app.config.firebase import get_db
from app.models.notification import ChannelContext, PushPermission
from firebase_admin import firestore
from typing import Optional
import asyncio
import logging

logger = logging.getLogger(__name__)

PUSH_PERMISSIONS_COLLECTION = "push_permissions"


class PushPermissionStore:

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        if self._db is None:
            self._db = get_db()
        return self._db

    async def get_context(self, user_id: str) -> ChannelContext:
        """Build the channel context for a user; unknown users are in the `default` state."""
        doc_ref = self.db.collection(PUSH_PERMISSIONS_COLLECTION).document(user_id)
        loop = asyncio.get_event_loop()
        snapshot = await loop.run_in_executor(None, doc_ref.get)
        if not snapshot.exists:
            return ChannelContext(user_id=user_id)

        data = snapshot.to_dict() or {}
        try:
            permission = PushPermission(data.get("permission", PushPermission.DEFAULT.value))
        except ValueError:
            permission = PushPermission.DEFAULT
        return ChannelContext(
            user_id=user_id,
            push_permission=permission,
            device_token=data.get("device_token"),
        )

    async def save(self, user_id: str, permission: PushPermission, device_token: Optional[str] = None) -> None:
        payload = {
            "user_id": user_id,
            "permission": permission.value,
            "device_token": device_token,
            "updated_at": firestore.SERVER_TIMESTAMP,
        }
        doc_ref = self.db.collection(PUSH_PERMISSIONS_COLLECTION).document(user_id)
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, doc_ref.set, payload)
        logger.info(f"Push permission for {user_id} recorded as {permission.value}")


_permission_store: Optional[PushPermissionStore] = None


def get_permission_store() -> PushPermissionStore:
    global _permission_store
    if _permission_store is None:
        _permission_store = PushPermissionStore()
    return _permission_store
