"""
Issue classification and routing.

Turns a description (plus optional photo) into category, department,
priority and confidence. Failures raise ClassificationUnavailable; the
department table is the caller's recovery path.
"""

from app.services.classifier.base import (
    ClassificationAlreadyAttached,
    ClassificationTransportError,
    ClassificationUnavailable,
    ClassifierNotConfigured,
    ContentFilteredError,
    MalformedClassificationResponse,
    ModelResolver,
    StaticModelResolver,
)
from app.services.classifier.departments import departments_for
from app.services.classifier.gemini_classifier import GeminiClassifier
from app.services.classifier.model_resolver import CatalogModelResolver
from app.services.classifier.registry import ClassificationService, get_classification_service

__all__ = [
    "CatalogModelResolver",
    "ClassificationAlreadyAttached",
    "ClassificationService",
    "ClassificationTransportError",
    "ClassificationUnavailable",
    "ClassifierNotConfigured",
    "ContentFilteredError",
    "GeminiClassifier",
    "MalformedClassificationResponse",
    "ModelResolver",
    "StaticModelResolver",
    "departments_for",
    "get_classification_service",
]
