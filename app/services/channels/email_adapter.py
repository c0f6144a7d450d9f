"""
Email Channel Adapter.

Delegates to an outbound mail function (EMAIL_FUNCTION_URL). Without one
configured the send is simulated and logged. Failures are caught and
logged here and never reach the dispatcher's caller.
"""

from app.config.firebase import get_db
from app.core.settings import settings
from app.models.notification import ChannelContext
from app.services.channels.email_templates import EmailTemplateData, render_email
from typing import Optional
import asyncio
import logging

import requests

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"
SEND_TIMEOUT_SECONDS = 5.0


class EmailChannelAdapter:

    def __init__(self, db=None, function_url: Optional[str] = None, sender_address: Optional[str] = None):
        self._db = db
        self.function_url = function_url if function_url is not None else settings.EMAIL_FUNCTION_URL
        self.sender_address = sender_address or settings.EMAIL_SENDER

    @property
    def db(self):
        if self._db is None:
            self._db = get_db()
        return self._db

    async def notify(self, context: ChannelContext, template_data: EmailTemplateData) -> bool:
        """
        Send one notification email. Returns True when handed off, False otherwise.
        Never raises.
        """
        try:
            loop = asyncio.get_event_loop()
            recipient = await loop.run_in_executor(None, self._lookup_email, context.user_id)
            if not recipient:
                logger.info(f"No email address on file for {context.user_id}; skipping email")
                return False

            subject, html = render_email(template_data)
            await loop.run_in_executor(None, self._deliver, recipient, subject, html)
            return True
        except Exception as e:
            logger.warning(f"⚠️ Email notification failed for {context.user_id}: {e}")
            return False

    def _lookup_email(self, user_id: str) -> Optional[str]:
        snapshot = self.db.collection(USERS_COLLECTION).document(user_id).get()
        if not snapshot.exists:
            return None
        return (snapshot.to_dict() or {}).get("email")

    def _deliver(self, recipient: str, subject: str, html: str) -> None:
        if not self.function_url:
            logger.info(f"📧 [SIMULATED] Email to {recipient} | Subject: {subject}")
            return

        response = requests.post(
            self.function_url,
            json={"from": self.sender_address, "to": recipient, "subject": subject, "html": html},
            timeout=SEND_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        logger.info(f"📧 Email sent to {recipient} | Subject: {subject}")


_email_adapter: Optional[EmailChannelAdapter] = None


def get_email_adapter() -> EmailChannelAdapter:
    global _email_adapter
    if _email_adapter is None:
        _email_adapter = EmailChannelAdapter()
    return _email_adapter
