"""
In-process toast queue.

Fallback surface for the push channel when native notifications are not
permitted. Toasts are ephemeral: kept in memory per user, bounded, and
drained by the client.
"""

from app.core.settings import settings
from app.models.notification import Toast
from collections import defaultdict, deque
from typing import Deque, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class ToastQueue:

    def __init__(self, max_per_user: Optional[int] = None):
        self.max_per_user = max_per_user or settings.TOAST_QUEUE_SIZE
        self._toasts: Dict[str, Deque[Toast]] = defaultdict(lambda: deque(maxlen=self.max_per_user))

    def push(self, user_id: str, toast: Toast) -> None:
        queue = self._toasts[user_id]
        # Same tag replaces the pending toast so updates to one report coalesce
        if toast.tag:
            for existing in list(queue):
                if existing.tag == toast.tag:
                    queue.remove(existing)
        queue.append(toast)
        logger.debug(f"Toast queued for {user_id}: {toast.title}")

    def drain(self, user_id: str) -> List[Toast]:
        queue = self._toasts.pop(user_id, None)
        return list(queue) if queue else []

    def pending(self, user_id: str) -> int:
        return len(self._toasts.get(user_id, ()))


_toast_queue: Optional[ToastQueue] = None


def get_toast_queue() -> ToastQueue:
    global _toast_queue
    if _toast_queue is None:
        _toast_queue = ToastQueue()
    return _toast_queue
