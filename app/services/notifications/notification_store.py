"""
Notification Store - Firestore persistence for in-app notification records.

Records are written once by the dispatcher and afterwards only have their
`read` flag flipped to True. Deletion is user housekeeping and lives
elsewhere.
"""

from app.config.firebase import get_db
from app.core.settings import settings
from app.models.notification import ChangeType, Notification, NotificationChange, NotificationType
from app.services.notifications.change_feed import NotificationChangeStream
from app.utils.firestore_helpers import chunked, where_filter
from firebase_admin import firestore
from datetime import datetime, timezone
from typing import List, Optional
import asyncio
import logging

logger = logging.getLogger(__name__)

NOTIFICATIONS_COLLECTION = "notifications"
BATCH_LIMIT = 500

_SNAPSHOT_CHANGE_TYPES = {
    "ADDED": ChangeType.INSERT,
    "MODIFIED": ChangeType.UPDATE,
}


class NotificationStore:
    """Async facade over the `notifications` collection."""

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        if self._db is None:
            self._db = get_db()
        return self._db

    @property
    def collection(self):
        return self.db.collection(NOTIFICATIONS_COLLECTION)

    async def create(
        self,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        report_id: Optional[str] = None,
    ) -> Notification:
        doc_ref = self.collection.document()
        notification = Notification(
            id=doc_ref.id,
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            read=False,
            created_at=datetime.now(timezone.utc),
            report_id=report_id,
        )
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, doc_ref.set, notification.to_firestore())
        return notification

    async def list_recent(self, user_id: str, limit: Optional[int] = None) -> List[Notification]:
        limit = limit or settings.NOTIFICATION_FEED_LIMIT

        def _query() -> List[Notification]:
            query = (
                where_filter(self.collection, "user_id", "==", user_id)
                .order_by("created_at", direction=firestore.Query.DESCENDING)
                .limit(limit)
            )
            return [Notification.from_firestore(doc.id, doc.to_dict()) for doc in query.stream()]

        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, _query)

    async def get(self, notification_id: str) -> Optional[Notification]:
        doc_ref = self.collection.document(notification_id)
        loop = asyncio.get_event_loop()
        snapshot = await loop.run_in_executor(None, doc_ref.get)
        if not snapshot.exists:
            return None
        return Notification.from_firestore(snapshot.id, snapshot.to_dict())

    async def list_unread_ids(self, user_id: str) -> List[str]:
        def _query() -> List[str]:
            query = where_filter(where_filter(self.collection, "user_id", "==", user_id), "read", "==", False)
            return [doc.id for doc in query.stream()]

        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, _query)

    async def unread_count(self, user_id: str) -> int:
        def _count() -> int:
            query = where_filter(where_filter(self.collection, "user_id", "==", user_id), "read", "==", False)
            results = query.count().get()
            return int(results[0][0].value) if results else 0

        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, _count)

    async def mark_read(self, notification_id: str) -> None:
        # Flipping True -> True is a harmless no-op, so concurrent sessions need no locking.
        doc_ref = self.collection.document(notification_id)
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, doc_ref.update, {"read": True})

    async def mark_many_read(self, notification_ids: List[str]) -> None:
        if not notification_ids:
            return

        def _commit() -> None:
            for ids in chunked(list(notification_ids), BATCH_LIMIT):
                batch = self.db.batch()
                for notification_id in ids:
                    batch.update(self.collection.document(notification_id), {"read": True})
                batch.commit()

        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, _commit)

    async def subscribe(self, user_id: str, limit: Optional[int] = None) -> NotificationChangeStream:
        """
        Subscribe to inserts/updates of one user's recent notifications.

        The first snapshot replays the current window as inserts; consumers
        treat an insert for a known id as an update.
        """
        stream = NotificationChangeStream()
        query = (
            where_filter(self.collection, "user_id", "==", user_id)
            .order_by("created_at", direction=firestore.Query.DESCENDING)
            .limit(limit or settings.NOTIFICATION_FEED_LIMIT)
        )

        def on_snapshot(doc_snapshots, changes, read_time):
            for change in changes:
                change_type = _SNAPSHOT_CHANGE_TYPES.get(change.type.name)
                if change_type is None:
                    continue
                try:
                    notification = Notification.from_firestore(change.document.id, change.document.to_dict())
                except Exception as e:
                    logger.warning(f"⚠️ Skipping unreadable notification {change.document.id}: {e}")
                    continue
                stream.publish(NotificationChange(type=change_type, notification=notification))

        watch = query.on_snapshot(on_snapshot)
        stream.set_on_close(watch.unsubscribe)
        logger.info(f"Subscribed to notification feed for user {user_id}")
        return stream


# Global store instance
_notification_store: Optional[NotificationStore] = None


def get_notification_store() -> NotificationStore:
    """Get or create NotificationStore singleton."""
    global _notification_store
    if _notification_store is None:
        _notification_store = NotificationStore()
    return _notification_store
