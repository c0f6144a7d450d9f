"""
Classification Service - entry point used by the issue submission flow.

Wraps the Gemini classifier and attaches routing decisions to reports.
The fallback table is NOT applied here: callers receive
ClassificationUnavailable and offer `departments_for` explicitly.
"""

from app.config.firebase import get_db
from app.models.classification import ClassificationRequest, ClassificationResult
from app.services.classifier.base import ClassificationAlreadyAttached, ClassificationUnavailable
from app.services.classifier.gemini_classifier import GeminiClassifier
from google.api_core.exceptions import AlreadyExists
from typing import Optional
import asyncio
import logging

logger = logging.getLogger(__name__)

CLASSIFICATIONS_COLLECTION = "report_classifications"


class ClassificationService:
    """Classify issues and attach the result to a report exactly once."""

    def __init__(self, classifier: Optional[GeminiClassifier] = None, db=None):
        self.classifier = classifier or GeminiClassifier()
        self._db = db

    @property
    def db(self):
        if self._db is None:
            self._db = get_db()
        return self._db

    async def classify(self, request: ClassificationRequest) -> ClassificationResult:
        try:
            return await self.classifier.classify(request)
        except ClassificationUnavailable as e:
            logger.warning(f"⚠️ Classification unavailable ({type(e).__name__}): {e.detail}")
            raise

    async def attach(self, report_id: str, result: ClassificationResult) -> ClassificationResult:
        """
        Store the routing decision for a report.

        Uses create semantics: a second attach for the same report raises
        ClassificationAlreadyAttached instead of overwriting.
        """
        doc_ref = self.db.collection(CLASSIFICATIONS_COLLECTION).document(report_id)
        loop = asyncio.get_event_loop()
        try:
            await loop.run_in_executor(None, doc_ref.create, result.to_firestore())
        except AlreadyExists:
            raise ClassificationAlreadyAttached(report_id)

        logger.info(f"✅ Classification attached to report {report_id}")
        return result

    async def classify_and_attach(self, report_id: str, request: ClassificationRequest) -> ClassificationResult:
        result = await self.classify(request)
        return await self.attach(report_id, result)


# Global service instance (singleton)
_classification_service: Optional[ClassificationService] = None


def get_classification_service() -> ClassificationService:
    """Get or create ClassificationService singleton."""
    global _classification_service
    if _classification_service is None:
        _classification_service = ClassificationService()
    return _classification_service
