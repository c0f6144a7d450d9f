"""
Notification delivery channels (push and email).

Adapters are best-effort: each catches and logs its own failures.
"""

from app.services.channels.email_adapter import EmailChannelAdapter, get_email_adapter
from app.services.channels.email_templates import EmailTemplateData, render_email
from app.services.channels.permission_store import PushPermissionStore, get_permission_store
from app.services.channels.push_adapter import PushChannelAdapter, get_push_adapter
from app.services.channels.toast import ToastQueue, get_toast_queue

__all__ = [
    "EmailChannelAdapter",
    "EmailTemplateData",
    "PushChannelAdapter",
    "PushPermissionStore",
    "ToastQueue",
    "get_email_adapter",
    "get_permission_store",
    "get_push_adapter",
    "get_toast_queue",
    "render_email",
]
