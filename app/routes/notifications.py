"""
Notification endpoints - in-app feed, read state, preferences, push
permission and the live feed WebSocket.
"""

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from app.models.notification import (
    ChannelContext,
    DispatchRequest,
    NotificationFeed,
    NotificationPreferences,
    NotificationPreferencesUpdate,
    PushPermissionUpdate,
)
from app.services.channels import get_push_adapter, get_toast_queue
from app.services.notifications import (
    LiveFeedSubscriber,
    get_dispatcher,
    get_notification_store,
    get_preference_store,
)
from app.utils.security import get_current_user_id, get_websocket_user_id, mask_user_id
from typing import Optional
import asyncio
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationFeed)
async def get_feed(user_id: str = Depends(get_current_user_id)):
    """Most recent notifications (newest first) with the unread count."""
    store = get_notification_store()
    try:
        notifications = await store.list_recent(user_id)
        unread = await store.unread_count(user_id)
    except Exception as e:
        logger.error(f"Failed to load notifications for {mask_user_id(user_id)}: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail=f"Failed to load notifications: {str(e)}")
    return NotificationFeed(notifications=notifications, unread_count=unread)


@router.get("/unread-count")
async def get_unread_count(user_id: str = Depends(get_current_user_id)):
    try:
        return {"unread_count": await get_notification_store().unread_count(user_id)}
    except Exception as e:
        logger.warning(f"⚠️ Unread count failed for {mask_user_id(user_id)}: {e}")
        return {"unread_count": 0}


@router.get("/preferences", response_model=NotificationPreferences)
async def get_preferences(user_id: str = Depends(get_current_user_id)):
    try:
        return await get_preference_store().get(user_id)
    except Exception as e:
        raise HTTPException(status_code=503, detail=f"Failed to load preferences: {str(e)}")


@router.put("/preferences", response_model=NotificationPreferences)
async def update_preferences(
    update: NotificationPreferencesUpdate,
    user_id: str = Depends(get_current_user_id),
):
    """Partial update of the caller's preferences (last write wins)."""
    try:
        return await get_preference_store().update(user_id, update)
    except Exception as e:
        logger.error(f"Failed to update preferences for {mask_user_id(user_id)}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to update preferences: {str(e)}")


@router.post("/push-permission")
async def record_push_permission(
    outcome: PushPermissionUpdate,
    user_id: str = Depends(get_current_user_id),
):
    """
    Record the result of the browser permission prompt.

    A previously denied permission stays denied.
    """
    async def prompt() -> PushPermissionUpdate:
        return outcome

    granted = await get_push_adapter().request_permission(ChannelContext(user_id=user_id), prompt)
    return {"granted": granted}


@router.get("/toasts")
async def drain_toasts(user_id: str = Depends(get_current_user_id)):
    """Pending in-app toasts for the caller; each toast is returned once."""
    return {"toasts": [toast.model_dump(mode="json") for toast in get_toast_queue().drain(user_id)]}


@router.post("/read-all")
async def mark_all_read(user_id: str = Depends(get_current_user_id)):
    store = get_notification_store()
    try:
        unread_ids = await store.list_unread_ids(user_id)
        await store.mark_many_read(unread_ids)
    except Exception as e:
        logger.error(f"Failed to mark all read for {mask_user_id(user_id)}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to mark notifications as read: {str(e)}")
    return {"marked": len(unread_ids)}


@router.post("/dispatch", status_code=status.HTTP_202_ACCEPTED)
async def dispatch_event(request: DispatchRequest):
    """
    Internal hook for report-update and comment-creation logic.

    Always accepted: delivery problems are logged, not returned as errors.
    """
    outcome = await get_dispatcher().dispatch(request.event, request.recipient_id)
    return {
        "notification_id": outcome.notification_id,
        "channels_attempted": [c.value for c in outcome.channels_attempted],
        "channels_failed": [c.value for c in outcome.channels_failed],
    }


@router.post("/{notification_id}/read")
async def mark_read(notification_id: str, user_id: str = Depends(get_current_user_id)):
    store = get_notification_store()
    notification = await store.get(notification_id)
    if notification is None or notification.user_id != user_id:
        raise HTTPException(status_code=404, detail="Notification not found")

    if not notification.read:
        await store.mark_read(notification_id)
    return {"id": notification_id, "read": True}


@router.websocket("/live")
async def live_feed(websocket: WebSocket, user_id: Optional[str] = Depends(get_websocket_user_id)):
    """
    Live feed session for the user named in the X-User-Id handshake header.

    Server -> client: {"notifications": [...], "unread_count": n} after every change.
    Client -> server: {"action": "mark_as_read", "id": "..."} or {"action": "mark_all_as_read"}.
    """
    if user_id is None:
        return

    await websocket.accept()
    updates: asyncio.Queue = asyncio.Queue()
    feed = LiveFeedSubscriber(user_id, on_change=lambda f: updates.put_nowait(f.snapshot()))
    sender: Optional[asyncio.Task] = None

    async def pump() -> None:
        while True:
            await websocket.send_json(await updates.get())

    try:
        await feed.start()
        sender = asyncio.ensure_future(pump())
        logger.info(f"Live feed connected for {mask_user_id(user_id)}")

        while True:
            message = await websocket.receive_json()
            action = message.get("action")
            if action == "mark_as_read" and message.get("id"):
                await feed.mark_as_read(message["id"])
            elif action == "mark_all_as_read":
                await feed.mark_all_as_read()
            else:
                logger.debug(f"Ignoring unknown live feed action: {action}")
    except WebSocketDisconnect:
        logger.info(f"Live feed disconnected for {mask_user_id(user_id)}")
    except Exception as e:
        logger.error(f"❌ Live feed failed for {mask_user_id(user_id)}: {e}", exc_info=True)
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
    finally:
        if sender is not None:
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"Live feed sender stopped with error: {e}")
        await feed.close()
