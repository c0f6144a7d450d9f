"""
Request identity helpers.

Authentication lives in front of this service; the gateway forwards the
authenticated user's id in the X-User-Id header.
"""

from fastapi import Header, HTTPException, WebSocket, status
from typing import Optional
import logging

logger = logging.getLogger(__name__)


async def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """FastAPI dependency returning the caller's user id."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return x_user_id.strip()


def mask_user_id(user_id: Optional[str]) -> Optional[str]:
    """Shorten a user id for log lines: abcdef123456 -> abcd…3456"""
    if not user_id:
        return None
    if len(user_id) <= 8:
        return user_id
    return f"{user_id[:4]}…{user_id[-4:]}"


async def get_websocket_user_id(websocket: WebSocket, x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    """
    WebSocket variant of get_current_user_id.

    Closes the handshake with 1008 (policy violation) and returns None when
    the X-User-Id header is missing.
    """
    if not x_user_id or not x_user_id.strip():
        logger.warning("⚠️ Live feed handshake rejected: missing X-User-Id header")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None
    return x_user_id.strip()
