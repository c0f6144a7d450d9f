"""
Classification endpoints - AI routing suggestions for new issues.

When the classifier is unavailable the response carries the category list
so the form can fall back to the department table instead of blocking
submission.
"""

from fastapi import APIRouter, HTTPException, Query, status

from app.models.classification import (
    ClassificationResult,
    ClassifyIssueRequest,
    DepartmentsResponse,
    IssueCategory,
)
from app.services.classifier import (
    ClassificationAlreadyAttached,
    ClassificationUnavailable,
    ContentFilteredError,
    departments_for,
    get_classification_service,
)
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/classification", tags=["Classification"])


def _unavailable(exc: ClassificationUnavailable) -> HTTPException:
    if isinstance(exc, ContentFilteredError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": "content_filtered", "message": exc.user_message},
        )
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={
            "error": "classification_unavailable",
            "message": exc.user_message,
            "categories": [category.value for category in IssueCategory],
            "fallback_departments": departments_for(IssueCategory.INFRASTRUCTURE),
        },
    )


@router.post("", response_model=ClassificationResult)
async def classify_issue(body: ClassifyIssueRequest):
    """
    Suggest category, department, priority and confidence for an issue.

    503 when the AI service is unconfigured/unreachable/garbled,
    422 when the description was blocked by safety filters.
    """
    try:
        return await get_classification_service().classify(body.to_request())
    except ClassificationUnavailable as e:
        raise _unavailable(e)


@router.get("/departments", response_model=DepartmentsResponse)
async def list_departments(category: str = Query(..., description="Issue category")):
    """Candidate departments for a category (generic list for unknown ones)."""
    return DepartmentsResponse(category=category, departments=departments_for(category))


@router.post("/reports/{report_id}", response_model=ClassificationResult, status_code=status.HTTP_201_CREATED)
async def classify_report(report_id: str, body: ClassifyIssueRequest):
    """
    Classify an issue and attach the routing decision to its report.

    A report is classified at most once; a second call returns 409.
    """
    service = get_classification_service()
    try:
        return await service.classify_and_attach(report_id, body.to_request())
    except ClassificationUnavailable as e:
        raise _unavailable(e)
    except ClassificationAlreadyAttached as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except Exception as e:
        logger.error(f"❌ Failed to attach classification to {report_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to store classification: {str(e)}",
        )
