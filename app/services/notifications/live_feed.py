"""
Live Feed Subscriber - in-memory projection of one user's notification feed.

Keeps a newest-first list and an unread counter in step with the durable
store by folding over the user-scoped change-feed. The counter always equals
the number of in-memory records with read=False.

The read flag is monotonic (False -> True only), so duplicate mark-as-read
calls from several sessions converge without conflict resolution.
"""

from app.models.notification import ChangeType, Notification, NotificationChange
from app.services.notifications.change_feed import NotificationChangeStream
from app.services.notifications.notification_store import NotificationStore, get_notification_store
from typing import Callable, Dict, List, Optional
import asyncio
import logging

logger = logging.getLogger(__name__)


class LiveFeedSubscriber:
    """
    One session's live notification feed.

    Usage:
        feed = LiveFeedSubscriber(user_id)
        await feed.start()
        ...
        await feed.mark_as_read(notification_id)
        await feed.close()
    """

    def __init__(
        self,
        user_id: str,
        store: Optional[NotificationStore] = None,
        on_change: Optional[Callable[["LiveFeedSubscriber"], None]] = None,
    ):
        self.user_id = user_id
        self.store = store or get_notification_store()
        self.on_change = on_change
        self._notifications: List[Notification] = []
        self._unread_count = 0
        self._stream: Optional[NotificationChangeStream] = None
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def notifications(self) -> List[Notification]:
        return list(self._notifications)

    @property
    def unread_count(self) -> int:
        return self._unread_count

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        """Subscribe first, then load the recent window; overlapping records are deduplicated by id."""
        if self._task is not None or self._closed:
            return

        self._stream = await self.store.subscribe(self.user_id)
        try:
            recent = await self.store.list_recent(self.user_id)
        except Exception as e:
            logger.warning(f"⚠️ Initial notification load failed for {self.user_id}: {e}")
            recent = []

        for notification in recent:
            self._upsert(notification)
        self._notify_listener()

        self._task = asyncio.ensure_future(self._consume(self._stream))

    async def _consume(self, stream: NotificationChangeStream) -> None:
        async for change in stream:
            if self._closed:
                break
            self.apply(change)

    def apply(self, change: NotificationChange) -> None:
        """Fold one change-feed event into local state. Ignored after close."""
        if self._closed:
            return
        if change.notification.user_id != self.user_id:
            return

        # An insert for a known id (snapshot replay, duplicate delivery) is an update.
        if change.type not in (ChangeType.INSERT, ChangeType.UPDATE):
            return
        self._upsert(change.notification)
        self._notify_listener()

    def _upsert(self, incoming: Notification) -> None:
        index = self._index_of(incoming.id)

        if index is None:
            self._insert_sorted(incoming)
            if not incoming.read:
                self._unread_count += 1
            return

        current = self._notifications[index]
        if current.read and not incoming.read:
            # Monotonic read flag: never revert a record to unread.
            incoming = incoming.model_copy(update={"read": True})
        if not current.read and incoming.read:
            self._decrement()
        self._notifications[index] = incoming

    def _insert_sorted(self, notification: Notification) -> None:
        # Newest first by the record's own timestamp; arrival order is irrelevant.
        position = len(self._notifications)
        for i, existing in enumerate(self._notifications):
            if notification.created_at > existing.created_at:
                position = i
                break
        self._notifications.insert(position, notification)

    def _index_of(self, notification_id: str) -> Optional[int]:
        for i, notification in enumerate(self._notifications):
            if notification.id == notification_id:
                return i
        return None

    def _decrement(self) -> None:
        self._unread_count = max(0, self._unread_count - 1)

    def _notify_listener(self) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change(self)
        except Exception as e:
            logger.warning(f"⚠️ Live feed listener failed for {self.user_id}: {e}")

    async def mark_as_read(self, notification_id: str) -> bool:
        """
        Mark one notification read, locally first, then durably.

        Returns True if the local record flipped. Ids outside this user's
        feed are ignored and never written. A failed durable write is logged
        and not rolled back.
        """
        index = self._index_of(notification_id)
        if index is None:
            logger.warning(f"⚠️ Ignoring mark-as-read for {notification_id}: not in {self.user_id}'s feed")
            return False

        current = self._notifications[index]
        if current.read:
            return False
        self._notifications[index] = current.model_copy(update={"read": True})
        self._decrement()
        self._notify_listener()

        try:
            await self.store.mark_read(notification_id)
        except Exception as e:
            logger.warning(f"⚠️ Failed to persist read state for {notification_id}: {e}")
        return True

    async def mark_all_as_read(self) -> int:
        """Mark every unread in-memory record read. Returns how many flipped."""
        unread_ids = [n.id for n in self._notifications if not n.read]
        if not unread_ids:
            return 0

        self._notifications = [
            n if n.read else n.model_copy(update={"read": True}) for n in self._notifications
        ]
        self._unread_count = 0
        self._notify_listener()

        try:
            await self.store.mark_many_read(unread_ids)
        except Exception as e:
            logger.warning(f"⚠️ Failed to persist read state for {len(unread_ids)} notifications: {e}")
        return len(unread_ids)

    async def close(self) -> None:
        """Unsubscribe and stop folding events. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        if self._stream is not None:
            self._stream.close()
        if self._task is not None:
            try:
                await self._task
            except Exception as e:
                logger.debug(f"Live feed consumer ended with error: {e}")
        logger.info(f"Live feed closed for {self.user_id}")

    def snapshot(self) -> Dict:
        return {
            "notifications": [n.model_dump(mode="json") for n in self._notifications],
            "unread_count": self._unread_count,
        }
