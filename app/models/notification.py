"""
Pydantic models for notifications, preferences and notification events.
"""

from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import Annotated, Literal, Optional, Union
from enum import Enum


class NotificationType(str, Enum):
    STATUS_CHANGE = "status_change"
    NEW_COMMENT = "new_comment"
    SYSTEM = "system"


class PushPermission(str, Enum):
    """Three-state platform notification permission."""
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


class Channel(str, Enum):
    PUSH = "push"
    EMAIL = "email"


class Notification(BaseModel):
    """Persisted in-app notification record."""
    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    read: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    report_id: Optional[str] = None

    def to_firestore(self) -> dict:
        data = self.model_dump(exclude={"id"})
        data["type"] = self.type.value
        return data

    @classmethod
    def from_firestore(cls, doc_id: str, data: dict) -> "Notification":
        return cls(id=doc_id, **{k: v for k, v in data.items() if k != "id"})


class NotificationPreferences(BaseModel):
    """
    Per-user channel x event matrix plus master channel flags.
    Every flag defaults to True so a missing record means "notify me everywhere".
    """
    email_enabled: bool = True
    push_enabled: bool = True
    email_on_status_change: bool = True
    email_on_comment: bool = True
    push_on_status_change: bool = True
    push_on_comment: bool = True
    updated_at: Optional[datetime] = None

    def allows(self, channel: Channel, notification_type: NotificationType) -> bool:
        if notification_type == NotificationType.STATUS_CHANGE:
            suffix = "status_change"
        elif notification_type == NotificationType.NEW_COMMENT:
            suffix = "comment"
        else:
            return False
        return getattr(self, f"{channel.value}_enabled") and getattr(self, f"{channel.value}_on_{suffix}")


class NotificationPreferencesUpdate(BaseModel):
    """Partial update; only provided flags are written."""
    email_enabled: Optional[bool] = None
    push_enabled: Optional[bool] = None
    email_on_status_change: Optional[bool] = None
    email_on_comment: Optional[bool] = None
    push_on_status_change: Optional[bool] = None
    push_on_comment: Optional[bool] = None


class StatusChangeEvent(BaseModel):
    kind: Literal["status_change"] = "status_change"
    report_id: str
    report_title: str
    old_status: str
    new_status: str


class NewCommentEvent(BaseModel):
    kind: Literal["new_comment"] = "new_comment"
    report_id: str
    report_title: str
    commenter_name: str
    comment_text: str


NotificationEvent = Annotated[
    Union[StatusChangeEvent, NewCommentEvent],
    Field(discriminator="kind"),
]


class DispatchRequest(BaseModel):
    """Body of POST /notifications/dispatch."""
    recipient_id: str
    event: NotificationEvent

    class Config:
        json_schema_extra = {
            "example": {
                "recipient_id": "user-123",
                "event": {
                    "kind": "status_change",
                    "report_id": "r-12",
                    "report_title": "Pothole #12",
                    "old_status": "open",
                    "new_status": "resolved",
                },
            }
        }


class ChannelContext(BaseModel):
    """Explicit per-call context handed to channel adapters."""
    user_id: str
    push_permission: PushPermission = PushPermission.DEFAULT
    device_token: Optional[str] = None


class PushPermissionUpdate(BaseModel):
    """Outcome of the client-side permission prompt."""
    permission: PushPermission
    device_token: Optional[str] = None


class Toast(BaseModel):
    """Ephemeral in-process notice shown when native push is unavailable."""
    title: str
    body: str
    tag: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationFeed(BaseModel):
    notifications: list[Notification]
    unread_count: int


class ChangeType(str, Enum):
    INSERT = "insert"
    UPDATE = "update"


class NotificationChange(BaseModel):
    """One change-feed event on the notifications collection."""
    type: ChangeType
    notification: Notification
