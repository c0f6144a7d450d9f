"""
Health check endpoints.

`/health` is the liveness check; `/health/db` touches the collections the
notification pipeline depends on; `/health/components` reports how each
outbound integration is configured without calling it.
"""

from fastapi import APIRouter, HTTPException
from app.config.firebase import firebase_app_initialized, get_db
from app.core.settings import settings
from app.services.notifications.notification_store import NOTIFICATIONS_COLLECTION
from app.services.notifications.preference_store import PREFERENCES_COLLECTION
from datetime import datetime, timezone
import asyncio
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("")
async def health_check():
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "classifier_configured": bool(settings.GEMINI_API_KEY),
        "email_mode": "function" if settings.EMAIL_FUNCTION_URL else "simulated",
        "timestamp": _now(),
    }


@router.get("/db")
async def database_health():
    """
    Firestore connectivity check.
    Reads at most one document from each collection the dispatcher writes to.
    """
    def _sample():
        db = get_db()
        return {
            name: len(db.collection(name).limit(1).get())
            for name in (NOTIFICATIONS_COLLECTION, PREFERENCES_COLLECTION)
        }

    try:
        loop = asyncio.get_event_loop()
        sampled = await loop.run_in_executor(None, _sample)
    except Exception as e:
        logger.warning(f"⚠️ Firestore health check failed: {e}")
        raise HTTPException(status_code=503, detail=f"Database connection failed: {str(e)}")

    return {"status": "healthy", "database": "firestore", "connected": True, "sampled": sampled, "timestamp": _now()}


@router.get("/components")
async def components_health():
    return {
        "classifier": {
            "configured": bool(settings.GEMINI_API_KEY),
            "model": settings.GEMINI_PINNED_MODEL or "catalog",
            "fallback_model": settings.GEMINI_DEFAULT_MODEL,
            "timeout_seconds": settings.AI_TIMEOUT_SECONDS,
        },
        "push": {
            "native_available": firebase_app_initialized(),
            "auto_dismiss_seconds": settings.PUSH_AUTO_DISMISS_SECONDS,
        },
        "email": {"mode": "function" if settings.EMAIL_FUNCTION_URL else "simulated"},
        "timestamp": _now(),
    }
