import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import requests

from app.models.classification import (
    ClassificationRequest,
    IssueCategory,
    IssuePriority,
)
from app.services.classifier.base import (
    ClassificationTransportError,
    ClassificationUnavailable,
    ClassifierNotConfigured,
    ContentFilteredError,
    MalformedClassificationResponse,
    StaticModelResolver,
)
from app.services.classifier.departments import departments_for
from app.services.classifier.gemini_classifier import (
    DEFAULT_CONFIDENCE,
    DEFAULT_REASONING,
    GeminiClassifier,
)

POST = "app.services.classifier.gemini_classifier.requests.post"


def make_classifier(api_key="test-key", resolver=None):
    return GeminiClassifier(
        api_key=api_key,
        resolver=resolver or StaticModelResolver("gemini-test"),
        base_url="https://example.test/v1beta",
        timeout_seconds=2,
    )


def gemini_response(text=None, payload=None, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.text = "upstream error"
    if payload is None:
        payload = {"candidates": [{"content": {"parts": [{"text": text}]}, "finishReason": "STOP"}]}
    response.json.return_value = payload
    return response


@pytest.mark.asyncio
async def test_pothole_report_is_routed():
    answer = (
        "Here is the classification:\n```json\n"
        + json.dumps({
            "category": "Safety",
            "department": "Traffic Police",
            "priority": "high",
            "confidence": 92,
            "reasoning": "Road hazard that nearly caused an accident",
        })
        + "\n```"
    )
    request = ClassificationRequest(description="large pothole on Main St, car almost flipped")

    with patch(POST, return_value=gemini_response(answer)) as mock_post:
        result = await make_classifier().classify(request)

    assert result.category in (IssueCategory.INFRASTRUCTURE, IssueCategory.SAFETY)
    assert result.priority in (IssuePriority.HIGH, IssuePriority.MEDIUM)
    assert 0 <= result.confidence <= 100
    assert result.department == "Traffic Police"
    assert result.model == "gemini-test"

    args, kwargs = mock_post.call_args
    assert args[0] == "https://example.test/v1beta/models/gemini-test:generateContent"
    assert kwargs["params"] == {"key": "test-key"}
    assert kwargs["timeout"] == 2
    parts = kwargs["json"]["contents"][0]["parts"]
    assert len(parts) == 1
    assert "large pothole on Main St" in parts[0]["text"]
    assert "No image provided." in parts[0]["text"]


@pytest.mark.asyncio
async def test_server_error_is_unavailable_and_table_still_answers():
    request = ClassificationRequest(description="Broken streetlight")

    with patch(POST, return_value=gemini_response(status_code=500)):
        with pytest.raises(ClassificationUnavailable) as exc_info:
            await make_classifier().classify(request)

    assert isinstance(exc_info.value, ClassificationTransportError)
    assert departments_for("Infrastructure") == [
        "Public Works",
        "Roads & Highways",
        "Building Department",
        "Engineering",
    ]


@pytest.mark.asyncio
async def test_network_failure_is_transport_error():
    with patch(POST, side_effect=requests.Timeout("slow")):
        with pytest.raises(ClassificationTransportError):
            await make_classifier().classify(ClassificationRequest(description="Flooded underpass"))


@pytest.mark.asyncio
async def test_missing_key_fails_without_network():
    resolver = MagicMock()
    resolver.resolve = AsyncMock(return_value="gemini-test")

    with patch(POST) as mock_post:
        with pytest.raises(ClassifierNotConfigured):
            await make_classifier(api_key="", resolver=resolver).classify(
                ClassificationRequest(description="Overflowing bins")
            )

    mock_post.assert_not_called()
    resolver.resolve.assert_not_called()


@pytest.mark.asyncio
async def test_resolver_consulted_once_per_call():
    resolver = MagicMock()
    resolver.resolve = AsyncMock(return_value="gemini-rotated")
    answer = json.dumps({"category": "Utilities", "priority": "low"})

    with patch(POST, return_value=gemini_response(answer)) as mock_post:
        classifier = make_classifier(resolver=resolver)
        await classifier.classify(ClassificationRequest(description="Water leak"))
        await classifier.classify(ClassificationRequest(description="Gas smell"))

    assert resolver.resolve.await_count == 2
    assert "gemini-rotated:generateContent" in mock_post.call_args[0][0]


@pytest.mark.asyncio
async def test_image_is_sent_inline():
    request = ClassificationRequest(
        description="Graffiti on the library wall",
        image="data:image/png;base64,iVBORw0KGgo=",
        image_mime_type="image/png",
    )
    answer = json.dumps({"category": "Public Services"})

    with patch(POST, return_value=gemini_response(answer)) as mock_post:
        await make_classifier().classify(request)

    parts = mock_post.call_args.kwargs["json"]["contents"][0]["parts"]
    assert parts[1] == {"inline_data": {"mime_type": "image/png", "data": "iVBORw0KGgo="}}
    assert "An image is provided" in parts[0]["text"]


def test_raw_image_bytes_are_base64_encoded():
    request = ClassificationRequest(description="Fallen tree", image=b"\x89PNG")
    body = make_classifier().build_request_body(request)

    assert body["contents"][0]["parts"][1]["inline_data"]["data"] == "iVBORw=="


@pytest.mark.asyncio
async def test_answer_without_json_is_malformed():
    with patch(POST, return_value=gemini_response("I cannot classify this issue.")):
        with pytest.raises(MalformedClassificationResponse):
            await make_classifier().classify(ClassificationRequest(description="???"))


@pytest.mark.asyncio
async def test_empty_candidates_are_malformed():
    with patch(POST, return_value=gemini_response(payload={"candidates": []})):
        with pytest.raises(MalformedClassificationResponse):
            await make_classifier().classify(ClassificationRequest(description="Noise at night"))


@pytest.mark.asyncio
async def test_blocked_prompt_is_content_filtered():
    payload = {"promptFeedback": {"blockReason": "SAFETY"}}

    with patch(POST, return_value=gemini_response(payload=payload)):
        with pytest.raises(ContentFilteredError) as exc_info:
            await make_classifier().classify(ClassificationRequest(description="..."))

    assert "rephrase" in exc_info.value.user_message


def test_blocked_candidate_is_content_filtered():
    payload = {"candidates": [{"finishReason": "SAFETY", "content": {"parts": []}}]}

    with pytest.raises(ContentFilteredError):
        GeminiClassifier.extract_text(payload)


def test_first_json_object_wins():
    text = 'Answer: {"category": "Environment"} and also {"category": "Safety"}'
    assert GeminiClassifier.extract_json_object(text) == {"category": "Environment"}


def test_unbalanced_brace_before_object_is_skipped():
    text = 'note {not json here\n{"priority": "low"}'
    assert GeminiClassifier.extract_json_object(text) == {"priority": "low"}


def test_absent_fields_get_defaults():
    result = GeminiClassifier.validate({}, "gemini-test")

    assert result.category == IssueCategory.INFRASTRUCTURE
    assert result.department == "Public Works"
    assert result.priority == IssuePriority.MEDIUM
    assert result.confidence == DEFAULT_CONFIDENCE
    assert result.reasoning == DEFAULT_REASONING


def test_absent_department_uses_category_primary():
    result = GeminiClassifier.validate({"category": "Environment"})
    assert result.department == "Sanitation Department"


def test_department_outside_category_is_replaced():
    result = GeminiClassifier.validate({"category": "Parks and Recreation", "department": "Fire Department"})

    assert result.category == IssueCategory.PARKS_AND_RECREATION
    assert result.department == "Parks Department"


def test_enum_values_are_matched_case_insensitively():
    result = GeminiClassifier.validate({"category": "public services", "priority": "HIGH"})

    assert result.category == IssueCategory.PUBLIC_SERVICES
    assert result.priority == IssuePriority.HIGH


@pytest.mark.parametrize("parsed", [
    {"category": "Weather"},
    {"priority": "urgent"},
    {"confidence": "very sure"},
    {"category": 7},
])
def test_out_of_domain_values_are_rejected(parsed):
    with pytest.raises(MalformedClassificationResponse):
        GeminiClassifier.validate(parsed)


@pytest.mark.parametrize("raw,expected", [
    (150, 100),
    (-5, 0),
    (0.85, 85),
    ("64%", 64),
    (72.6, 73),
])
def test_confidence_is_normalized(raw, expected):
    assert GeminiClassifier.validate({"confidence": raw}).confidence == expected
