"""
Classifier base interfaces.

Defines the failure taxonomy of a classification call and the model
resolver strategy used to pick a servable Gemini model at call time.
"""

from abc import ABC, abstractmethod
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class ClassificationUnavailable(Exception):
    """
    Raised when a routing decision cannot be produced automatically.

    Callers are expected to fall back to the department table
    (`departments_for`) instead of blocking the submission.
    """

    user_message = (
        "Automatic classification is unavailable right now. "
        "Please choose a category and department manually."
    )

    def __init__(self, detail: str = "", user_message: Optional[str] = None):
        super().__init__(detail or self.user_message)
        self.detail = detail
        if user_message:
            self.user_message = user_message


class ClassifierNotConfigured(ClassificationUnavailable):
    """No inference credential configured; no network call is attempted."""

    user_message = "AI classifier is not configured. Please select a department manually."


class ClassificationTransportError(ClassificationUnavailable):
    """Network or HTTP failure talking to the inference service."""


class MalformedClassificationResponse(ClassificationUnavailable):
    """The model answered, but not with a usable structured object."""


class ContentFilteredError(ClassificationUnavailable):
    """The inference service declined to answer for safety-policy reasons."""

    user_message = (
        "The description was blocked by the AI safety filters. "
        "Please rephrase it and try again."
    )


class ClassificationAlreadyAttached(Exception):
    """A report already carries a routing decision; results are never overwritten."""

    def __init__(self, report_id: str):
        super().__init__(f"Report {report_id} already has a classification")
        self.report_id = report_id


class ModelResolver(ABC):
    """
    Picks the model identifier used for one classification call.

    Implementations MUST NOT raise: when discovery fails they return a
    last-known-good default.
    """

    @abstractmethod
    async def resolve(self) -> str:
        raise NotImplementedError


class StaticModelResolver(ModelResolver):
    """Always returns the same model id (pinned deployments and tests)."""

    def __init__(self, model_name: str):
        self.model_name = model_name

    async def resolve(self) -> str:
        return self.model_name
