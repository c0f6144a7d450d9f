"""
Pydantic models for issue classification and routing.
"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone
from typing import Optional, Union
from enum import Enum


class IssueCategory(str, Enum):
    """Closed set of categories an issue can be routed under."""
    INFRASTRUCTURE = "Infrastructure"
    SAFETY = "Safety"
    ENVIRONMENT = "Environment"
    TRANSPORTATION = "Transportation"
    PUBLIC_SERVICES = "Public Services"
    UTILITIES = "Utilities"
    PARKS_AND_RECREATION = "Parks & Recreation"


class IssuePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ClassificationRequest(BaseModel):
    """
    Input to one classification call.

    `image` may be raw bytes or a base64 string (a `data:` URL prefix is allowed).
    """
    model_config = ConfigDict(frozen=True)

    description: str = Field(..., min_length=1, description="Free-text issue description")
    image: Optional[Union[bytes, str]] = Field(None, description="Optional photo of the issue")
    image_mime_type: str = Field(default="image/jpeg")

    @property
    def has_image(self) -> bool:
        return bool(self.image)


class ClassificationResult(BaseModel):
    """
    Routing decision produced for a submitted issue.
    Immutable once created; re-classification produces a new result.
    """
    model_config = ConfigDict(frozen=True)

    category: IssueCategory
    department: str
    priority: IssuePriority
    confidence: int = Field(..., ge=0, le=100)
    reasoning: str
    model: Optional[str] = Field(None, description="Model id that produced the result")
    classified_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_firestore(self) -> dict:
        return {
            "category": self.category.value,
            "department": self.department,
            "priority": self.priority.value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "model": self.model,
            "classified_at": self.classified_at,
        }


class ClassifyIssueRequest(BaseModel):
    """Body of POST /classification."""
    description: str = Field(..., min_length=1, max_length=2000)
    image_base64: Optional[str] = Field(None, description="Base64 image or data URL")
    image_mime_type: str = Field(default="image/jpeg")

    class Config:
        json_schema_extra = {
            "example": {
                "description": "Large pothole on Main St, car almost flipped",
                "image_base64": None,
            }
        }

    def to_request(self) -> ClassificationRequest:
        return ClassificationRequest(
            description=self.description,
            image=self.image_base64,
            image_mime_type=self.image_mime_type,
        )


class DepartmentsResponse(BaseModel):
    category: str
    departments: list
