"""
Push Channel Adapter.

Sends a native web-push notification through Firebase Cloud Messaging when
the user granted permission, otherwise falls back to an in-process toast.
A dispatched event is never silently suppressed: only the surface changes.

Permission acquisition is a separate, explicit step (`request_permission`),
never triggered from `notify`: prompts raised outside a user gesture are
routinely auto-denied by browsers.
"""

from app.core.settings import settings
from app.models.notification import ChannelContext, PushPermission, PushPermissionUpdate, Toast
from app.services.channels.permission_store import PushPermissionStore, get_permission_store
from app.services.channels.toast import ToastQueue, get_toast_queue
from firebase_admin import messaging
from typing import Awaitable, Callable, Optional
import asyncio
import logging

logger = logging.getLogger(__name__)

SURFACE_NATIVE = "native"
SURFACE_TOAST = "toast"

NOTIFICATION_ICON = "/favicon.ico"


class PushChannelAdapter:

    def __init__(
        self,
        permission_store: Optional[PushPermissionStore] = None,
        toast_queue: Optional[ToastQueue] = None,
        sender: Optional[Callable[[messaging.Message], str]] = None,
        auto_dismiss_seconds: Optional[int] = None,
        ttl_seconds: Optional[int] = None,
    ):
        self.permission_store = permission_store or get_permission_store()
        self.toast_queue = toast_queue or get_toast_queue()
        self.sender = sender or messaging.send
        self.auto_dismiss_seconds = auto_dismiss_seconds or settings.PUSH_AUTO_DISMISS_SECONDS
        self.ttl_seconds = ttl_seconds or settings.PUSH_TTL_SECONDS

    async def notify(self, context: ChannelContext, title: str, body: str, tag: Optional[str] = None) -> str:
        """
        Deliver one push notification.

        Returns the surface used ("native" or "toast"). Never raises.
        """
        if context.push_permission == PushPermission.GRANTED and context.device_token:
            try:
                message = self.build_message(context.device_token, title, body, tag)
                loop = asyncio.get_event_loop()
                message_id = await loop.run_in_executor(None, self.sender, message)
                logger.info(f"📲 Push sent to {context.user_id} ({tag}): {message_id}")
                return SURFACE_NATIVE
            except Exception as e:
                logger.warning(f"⚠️ Push delivery failed for {context.user_id}, showing toast instead: {e}")

        self.toast_queue.push(context.user_id, Toast(title=title, body=body, tag=tag))
        return SURFACE_TOAST

    def build_message(self, device_token: str, title: str, body: str, tag: Optional[str]) -> messaging.Message:
        """
        Web-push message that coalesces by `tag` and auto-dismisses.

        The service worker closes the notification after `auto_dismiss_ms`;
        TTL only bounds how long FCM keeps an undelivered message.
        """
        auto_dismiss_ms = str(self.auto_dismiss_seconds * 1000)
        return messaging.Message(
            token=device_token,
            data={"tag": tag or "", "auto_dismiss_ms": auto_dismiss_ms},
            webpush=messaging.WebpushConfig(
                headers={"TTL": str(self.ttl_seconds), "Urgency": "normal"},
                notification=messaging.WebpushNotification(
                    title=title,
                    body=body,
                    icon=NOTIFICATION_ICON,
                    badge=NOTIFICATION_ICON,
                    tag=tag,
                    renotify=bool(tag),
                    require_interaction=False,
                ),
            ),
        )

    async def request_permission(
        self,
        context: ChannelContext,
        prompt: Callable[[], Awaitable[PushPermissionUpdate]],
    ) -> bool:
        """
        Acquire push permission once per session.

        Reads the stored state first: granted short-circuits, denied is final
        and is never re-prompted, default awaits `prompt` and stores the answer.
        """
        stored = await self.permission_store.get_context(context.user_id)

        if stored.push_permission == PushPermission.GRANTED:
            return True
        if stored.push_permission == PushPermission.DENIED:
            logger.info(f"Push permission previously denied by {context.user_id}; not prompting again")
            return False

        outcome = await prompt()
        if outcome.permission == PushPermission.DEFAULT:
            # Prompt dismissed without an answer
            return False

        await self.permission_store.save(context.user_id, outcome.permission, outcome.device_token)
        return outcome.permission == PushPermission.GRANTED


_push_adapter: Optional[PushChannelAdapter] = None


def get_push_adapter() -> PushChannelAdapter:
    global _push_adapter
    if _push_adapter is None:
        _push_adapter = PushChannelAdapter()
    return _push_adapter
