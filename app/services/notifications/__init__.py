"""
Notification dispatch and live feed.

- dispatcher: event -> one stored record + best-effort push/email
- live_feed: per-session projection of the feed with an unread counter
"""

from app.services.notifications.change_feed import NotificationChangeStream
from app.services.notifications.dispatcher import (
    DispatchOutcome,
    NotificationDispatcher,
    dispatch,
    get_dispatcher,
    render_event,
)
from app.services.notifications.live_feed import LiveFeedSubscriber
from app.services.notifications.notification_store import NotificationStore, get_notification_store
from app.services.notifications.preference_store import PreferenceStore, get_preference_store

__all__ = [
    "DispatchOutcome",
    "LiveFeedSubscriber",
    "NotificationChangeStream",
    "NotificationDispatcher",
    "NotificationStore",
    "PreferenceStore",
    "dispatch",
    "get_dispatcher",
    "get_notification_store",
    "get_preference_store",
    "render_event",
]
