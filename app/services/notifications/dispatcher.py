"""
Notification Dispatcher - fans one domain event out to the recipient.

Flow per event:
1. Load preferences (all-enabled defaults when missing or unreadable)
2. Render title/message from the event variant
3. Write exactly one in-app Notification (never gated by preferences)
4. Fire push and email concurrently, each only if its flags allow it

Dispatch is fire-and-forget for the triggering operation: it never raises.
"""

from app.models.notification import (
    Channel,
    ChannelContext,
    NewCommentEvent,
    NotificationPreferences,
    NotificationType,
    StatusChangeEvent,
)
from app.services.channels.email_adapter import EmailChannelAdapter, get_email_adapter
from app.services.channels.email_templates import EmailTemplateData
from app.services.channels.permission_store import PushPermissionStore, get_permission_store
from app.services.channels.push_adapter import PushChannelAdapter, get_push_adapter
from app.services.notifications.notification_store import NotificationStore, get_notification_store
from app.services.notifications.preference_store import PreferenceStore, get_preference_store
from dataclasses import dataclass, field
from typing import List, Optional
import asyncio
import logging

logger = logging.getLogger(__name__)

COMMENT_PREVIEW_CHARS = 100


@dataclass(frozen=True)
class RenderedEvent:
    notification_type: NotificationType
    title: str
    message: str
    push_body: str
    push_tag: str
    email_data: EmailTemplateData


@dataclass
class DispatchOutcome:
    notification_id: Optional[str] = None
    channels_attempted: List[Channel] = field(default_factory=list)
    channels_failed: List[Channel] = field(default_factory=list)


def render_event(event) -> RenderedEvent:
    """Map each event variant to its notification text. Unknown variants raise TypeError."""
    if isinstance(event, StatusChangeEvent):
        message = f'Your report "{event.report_title}" is now {event.new_status}'
        return RenderedEvent(
            notification_type=NotificationType.STATUS_CHANGE,
            title="Report Status Updated",
            message=message,
            push_body=message,
            push_tag=f"report-{event.report_id}",
            email_data=EmailTemplateData(
                kind=NotificationType.STATUS_CHANGE.value,
                report_id=event.report_id,
                report_title=event.report_title,
                new_status=event.new_status,
            ),
        )

    if isinstance(event, NewCommentEvent):
        excerpt = event.comment_text[:COMMENT_PREVIEW_CHARS]
        if len(event.comment_text) > COMMENT_PREVIEW_CHARS:
            excerpt += "..."
        return RenderedEvent(
            notification_type=NotificationType.NEW_COMMENT,
            title="New Comment on Your Report",
            message=f'{event.commenter_name} commented on "{event.report_title}"',
            push_body=f"{event.commenter_name}: {excerpt}",
            push_tag=f"comment-{event.report_id}",
            email_data=EmailTemplateData(
                kind=NotificationType.NEW_COMMENT.value,
                report_id=event.report_id,
                report_title=event.report_title,
                commenter_name=event.commenter_name,
                comment_excerpt=excerpt,
            ),
        )

    raise TypeError(f"Unsupported notification event: {type(event).__name__}")


class NotificationDispatcher:

    def __init__(
        self,
        preference_store: Optional[PreferenceStore] = None,
        notification_store: Optional[NotificationStore] = None,
        permission_store: Optional[PushPermissionStore] = None,
        push_adapter: Optional[PushChannelAdapter] = None,
        email_adapter: Optional[EmailChannelAdapter] = None,
    ):
        self.preference_store = preference_store or get_preference_store()
        self.notification_store = notification_store or get_notification_store()
        self.permission_store = permission_store or get_permission_store()
        self.push_adapter = push_adapter or get_push_adapter()
        self.email_adapter = email_adapter or get_email_adapter()

    async def dispatch(self, event, recipient_id: str) -> DispatchOutcome:
        outcome = DispatchOutcome()

        try:
            rendered = render_event(event)
        except TypeError as e:
            logger.error(f"❌ Dropping notification for {recipient_id}: {e}")
            return outcome

        preferences = await self._load_preferences(recipient_id)

        # The in-app record is written first and regardless of channel toggles.
        try:
            notification = await self.notification_store.create(
                user_id=recipient_id,
                notification_type=rendered.notification_type,
                title=rendered.title,
                message=rendered.message,
                report_id=event.report_id,
            )
            outcome.notification_id = notification.id
        except Exception as e:
            logger.error(f"❌ Failed to store notification for {recipient_id}: {e}", exc_info=True)

        channels = [
            channel for channel in (Channel.PUSH, Channel.EMAIL)
            if preferences.allows(channel, rendered.notification_type)
        ]
        if not channels:
            return outcome

        context = await self._load_context(recipient_id)
        tasks = [self._deliver(channel, context, rendered) for channel in channels]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        for channel, result in zip(channels, results):
            outcome.channels_attempted.append(channel)
            if isinstance(result, BaseException) or result is False:
                outcome.channels_failed.append(channel)
                if isinstance(result, BaseException):
                    logger.warning(f"⚠️ {channel.value} channel failed for {recipient_id}: {result}")

        logger.info(
            f"🔔 Dispatched {rendered.notification_type.value} to {recipient_id}: "
            f"record={outcome.notification_id}, channels={[c.value for c in outcome.channels_attempted]}, "
            f"failed={[c.value for c in outcome.channels_failed]}"
        )
        return outcome

    async def _deliver(self, channel: Channel, context: ChannelContext, rendered: RenderedEvent):
        if channel == Channel.PUSH:
            return await self.push_adapter.notify(context, rendered.title, rendered.push_body, rendered.push_tag)
        return await self.email_adapter.notify(context, rendered.email_data)

    async def _load_preferences(self, recipient_id: str) -> NotificationPreferences:
        try:
            return await self.preference_store.get(recipient_id)
        except Exception as e:
            logger.warning(f"⚠️ Could not load preferences for {recipient_id}, using defaults: {e}")
            return NotificationPreferences()

    async def _load_context(self, recipient_id: str) -> ChannelContext:
        try:
            return await self.permission_store.get_context(recipient_id)
        except Exception as e:
            logger.warning(f"⚠️ Could not load push permission for {recipient_id}: {e}")
            return ChannelContext(user_id=recipient_id)


# Global dispatcher instance
_dispatcher: Optional[NotificationDispatcher] = None


def get_dispatcher() -> NotificationDispatcher:
    """Get or create NotificationDispatcher singleton."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher()
    return _dispatcher


async def dispatch(event, recipient_id: str) -> DispatchOutcome:
    """Main entry point for report-update and comment-creation logic."""
    return await get_dispatcher().dispatch(event, recipient_id)
