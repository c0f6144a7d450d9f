import asyncio
import itertools
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from app.models.notification import (
    ChangeType,
    ChannelContext,
    Notification,
    NotificationChange,
    NotificationPreferences,
    NotificationPreferencesUpdate,
    NotificationType,
    PushPermission,
)
from app.services.notifications.change_feed import NotificationChangeStream


class InMemoryNotificationStore:
    """Notification store double with a working change-feed."""

    def __init__(self):
        self.records: Dict[str, Notification] = {}
        self.streams: Dict[str, List[NotificationChangeStream]] = {}
        self.fail_writes = False
        self.mark_read_calls: List[str] = []
        self.call_log: List[str] = []
        self._ids = itertools.count(1)
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def _next_timestamp(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def seed(self, user_id: str, read: bool = False, created_at: Optional[datetime] = None) -> Notification:
        notification = Notification(
            id=f"n{next(self._ids)}",
            user_id=user_id,
            type=NotificationType.STATUS_CHANGE,
            title="Report Status Updated",
            message="seeded",
            read=read,
            created_at=created_at or self._next_timestamp(),
        )
        self.records[notification.id] = notification
        return notification

    def _publish(self, change_type: ChangeType, notification: Notification) -> None:
        for stream in self.streams.get(notification.user_id, []):
            stream.publish(NotificationChange(type=change_type, notification=notification))

    async def create(self, user_id, notification_type, title, message, report_id=None) -> Notification:
        self.call_log.append("create")
        if self.fail_writes:
            raise RuntimeError("firestore unavailable")
        notification = Notification(
            id=f"n{next(self._ids)}",
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            created_at=self._next_timestamp(),
            report_id=report_id,
        )
        self.records[notification.id] = notification
        self._publish(ChangeType.INSERT, notification)
        return notification

    async def get(self, notification_id: str) -> Optional[Notification]:
        return self.records.get(notification_id)

    async def list_recent(self, user_id: str, limit: Optional[int] = None) -> List[Notification]:
        mine = [n for n in self.records.values() if n.user_id == user_id]
        mine.sort(key=lambda n: n.created_at, reverse=True)
        return mine[: limit or 50]

    async def list_unread_ids(self, user_id: str) -> List[str]:
        return [n.id for n in self.records.values() if n.user_id == user_id and not n.read]

    async def unread_count(self, user_id: str) -> int:
        return len(await self.list_unread_ids(user_id))

    async def mark_read(self, notification_id: str) -> None:
        self.mark_read_calls.append(notification_id)
        if self.fail_writes:
            raise RuntimeError("firestore unavailable")
        current = self.records[notification_id]
        if current.read:
            # Firestore emits no change when the document content is unchanged
            return
        updated = current.model_copy(update={"read": True})
        self.records[notification_id] = updated
        self._publish(ChangeType.UPDATE, updated)

    async def mark_many_read(self, notification_ids: List[str]) -> None:
        if self.fail_writes:
            raise RuntimeError("firestore unavailable")
        for notification_id in notification_ids:
            await self.mark_read(notification_id)

    async def subscribe(self, user_id: str, limit: Optional[int] = None) -> NotificationChangeStream:
        stream = NotificationChangeStream()
        self.streams.setdefault(user_id, []).append(stream)
        stream.set_on_close(lambda: self.streams[user_id].remove(stream))
        return stream


class InMemoryPreferenceStore:

    def __init__(self, preferences: Optional[Dict[str, NotificationPreferences]] = None):
        self.preferences = preferences or {}
        self.fail_reads = False

    async def get(self, user_id: str) -> NotificationPreferences:
        if self.fail_reads:
            raise RuntimeError("firestore unavailable")
        return self.preferences.get(user_id, NotificationPreferences())

    async def update(self, user_id: str, update: NotificationPreferencesUpdate) -> NotificationPreferences:
        current = self.preferences.get(user_id, NotificationPreferences())
        merged = current.model_copy(update=update.model_dump(exclude_none=True))
        self.preferences[user_id] = merged
        return merged


class InMemoryPermissionStore:

    def __init__(self):
        self.contexts: Dict[str, ChannelContext] = {}

    async def get_context(self, user_id: str) -> ChannelContext:
        return self.contexts.get(user_id, ChannelContext(user_id=user_id))

    async def save(self, user_id: str, permission: PushPermission, device_token: Optional[str] = None) -> None:
        self.contexts[user_id] = ChannelContext(
            user_id=user_id, push_permission=permission, device_token=device_token
        )


async def settle(rounds: int = 10) -> None:
    """Let queued change-feed events reach their consumers."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def notification_store():
    return InMemoryNotificationStore()


@pytest.fixture
def preference_store():
    return InMemoryPreferenceStore()


@pytest.fixture
def permission_store():
    return InMemoryPermissionStore()


@pytest.fixture
def make_preferences():
    """Build a preference store pre-loaded with {user_id: NotificationPreferences}."""
    return InMemoryPreferenceStore


@pytest.fixture(name="settle")
def settle_fixture():
    return settle
