"""
Gemini Classifier - routes a citizen issue to category, department and priority.

One catalog lookup plus one generateContent call per invocation. No retries:
the caller decides whether to retry the whole submission, and falls back to
the department table when this raises ClassificationUnavailable.
"""

from app.core.settings import settings
from app.models.classification import (
    ClassificationRequest,
    ClassificationResult,
    IssueCategory,
    IssuePriority,
)
from app.services.classifier.base import (
    ClassificationTransportError,
    ClassifierNotConfigured,
    ContentFilteredError,
    MalformedClassificationResponse,
    ModelResolver,
)
from app.services.classifier.departments import departments_for, match_department
from app.services.classifier.model_resolver import get_model_resolver
from typing import Any, Dict, Optional
import asyncio
import base64
import json
import logging

import requests

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = IssueCategory.INFRASTRUCTURE
DEFAULT_PRIORITY = IssuePriority.MEDIUM
DEFAULT_CONFIDENCE = 75
DEFAULT_REASONING = "Classified based on description and image analysis"

BLOCKED_FINISH_REASONS = {"SAFETY", "BLOCKLIST", "PROHIBITED_CONTENT", "SPII"}


class GeminiClassifier:
    """
    Classification client backed by the Gemini REST API.

    Requires GEMINI_API_KEY. The model resolver is injectable so tests can
    pin a model without touching the catalog.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        resolver: Optional[ModelResolver] = None,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.resolver = resolver or get_model_resolver()
        self.base_url = (base_url or settings.GEMINI_API_BASE_URL).rstrip("/")
        self.timeout_seconds = timeout_seconds or settings.AI_TIMEOUT_SECONDS

    def is_enabled(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    async def classify(self, request: ClassificationRequest) -> ClassificationResult:
        """
        Classify one issue.

        Raises:
            ClassifierNotConfigured: no API key, nothing was sent
            ClassificationTransportError: network/HTTP failure
            ContentFilteredError: blocked by safety filters
            MalformedClassificationResponse: no usable JSON object in the answer
        """
        if not self.is_enabled():
            raise ClassifierNotConfigured("GEMINI_API_KEY is not set")

        model_name = await self.resolver.resolve()
        body = self.build_request_body(request)

        loop = asyncio.get_event_loop()
        data = await loop.run_in_executor(None, self._call_gemini_api, model_name, body)

        text = self.extract_text(data)
        parsed = self.extract_json_object(text)
        result = self.validate(parsed, model_name)

        logger.info(
            f"✅ Issue classified: {result.category.value} / {result.department} "
            f"({result.priority.value}, {result.confidence}%) using {model_name}"
        )
        return result

    def build_prompt(self, request: ClassificationRequest) -> str:
        categories = ", ".join(category.value for category in IssueCategory)
        image_note = "An image is provided showing the issue." if request.has_image else "No image provided."
        return f"""You are an AI classifier for a civic issue reporting system. Analyze the following issue and determine:

1. CATEGORY: Choose ONE from: {categories}
2. DEPARTMENT: Choose the specific government department that should handle this (e.g., Public Works, Sanitation Department, Traffic Police, Electricity Board, Water Authority, Parks Department)
3. PRIORITY: Assess as low, medium, or high based on urgency and public safety impact
4. CONFIDENCE: Your confidence level (0-100)
5. REASONING: Brief explanation of your classification

Issue Description: "{request.description}"

{image_note}

Respond with exactly ONE JSON object in this format and nothing else:
{{
  "category": "category name",
  "department": "department name",
  "priority": "low/medium/high",
  "confidence": 85,
  "reasoning": "brief explanation"
}}"""

    def build_request_body(self, request: ClassificationRequest) -> Dict[str, Any]:
        parts = [{"text": self.build_prompt(request)}]
        if request.has_image:
            parts.append({
                "inline_data": {
                    "mime_type": request.image_mime_type,
                    "data": encode_image(request.image),
                }
            })
        return {"contents": [{"parts": parts}]}

    def _call_gemini_api(self, model_name: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/models/{model_name}:generateContent"
        try:
            response = requests.post(
                url,
                params={"key": self.api_key},
                json=body,
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as e:
            raise ClassificationTransportError(f"Gemini request failed: {e}")

        if response.status_code != 200:
            raise ClassificationTransportError(
                f"Classification API Error: {response.status_code}: {response.text[:200]}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise MalformedClassificationResponse(f"Gemini returned a non-JSON body: {e}")

    @staticmethod
    def extract_text(data: Dict[str, Any]) -> str:
        """Return the first candidate's first text part, surfacing safety blocks."""
        if not isinstance(data, dict):
            raise MalformedClassificationResponse("Gemini response is not an object")

        block_reason = (data.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            raise ContentFilteredError(f"Prompt blocked: {block_reason}")

        candidates = data.get("candidates") or []
        if not candidates:
            raise MalformedClassificationResponse("Gemini response has no candidates")

        first = candidates[0] or {}
        if first.get("finishReason") in BLOCKED_FINISH_REASONS:
            raise ContentFilteredError(f"Candidate blocked: {first.get('finishReason')}")

        parts = (first.get("content") or {}).get("parts") or [{}]
        text = parts[0].get("text") if isinstance(parts[0], dict) else None
        if not text or not text.strip():
            raise MalformedClassificationResponse("Gemini response has no text")
        return text

    @staticmethod
    def extract_json_object(text: str) -> Dict[str, Any]:
        """
        Parse the first brace-delimited JSON object in `text`.

        The model may wrap the object in prose or markdown code fences.
        """
        decoder = json.JSONDecoder()
        start = text.find("{")
        while start != -1:
            try:
                value, _ = decoder.raw_decode(text, start)
            except json.JSONDecodeError:
                start = text.find("{", start + 1)
                continue
            if isinstance(value, dict):
                return value
            start = text.find("{", start + 1)

        logger.debug(f"Unparseable classification text: {text[:200]}")
        raise MalformedClassificationResponse("Invalid classification response format")

    @staticmethod
    def validate(parsed: Dict[str, Any], model_name: Optional[str] = None) -> ClassificationResult:
        """
        Normalize a parsed object into a ClassificationResult.

        Absent fields get documented defaults; present but out-of-domain
        category/priority/confidence values raise.
        """
        category = _parse_enum(parsed.get("category"), IssueCategory, DEFAULT_CATEGORY, "category")
        priority = _parse_enum(parsed.get("priority"), IssuePriority, DEFAULT_PRIORITY, "priority")
        confidence = _parse_confidence(parsed.get("confidence"))

        department = parsed.get("department")
        if _is_absent(department) or not isinstance(department, str):
            department = departments_for(category)[0]
        else:
            department = match_department(category, department)

        reasoning = parsed.get("reasoning")
        if _is_absent(reasoning):
            reasoning = DEFAULT_REASONING

        return ClassificationResult(
            category=category,
            department=department,
            priority=priority,
            confidence=confidence,
            reasoning=str(reasoning).strip(),
            model=model_name,
        )


def encode_image(image) -> str:
    """Base64 payload for inline_data; strips a `data:<mime>;base64,` prefix."""
    if isinstance(image, (bytes, bytearray)):
        return base64.b64encode(bytes(image)).decode("ascii")
    if "base64," in image:
        return image.split("base64,", 1)[1]
    return image


def _is_absent(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _parse_enum(value: Any, enum_cls, default, field: str):
    if _is_absent(value):
        return default
    if not isinstance(value, str):
        raise MalformedClassificationResponse(f"{field} must be a string, got {value!r}")

    wanted = value.strip().casefold().replace(" and ", " & ")
    for member in enum_cls:
        if member.value.casefold() == wanted:
            return member
    raise MalformedClassificationResponse(f"Unknown {field}: {value!r}")


def _parse_confidence(value: Any) -> int:
    if _is_absent(value):
        return DEFAULT_CONFIDENCE
    if isinstance(value, bool):
        raise MalformedClassificationResponse(f"confidence must be numeric, got {value!r}")

    try:
        number = float(str(value).strip().rstrip("%")) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        raise MalformedClassificationResponse(f"confidence must be numeric, got {value!r}")

    # 0.85 style answers
    if 0 < number < 1:
        number *= 100
    return int(round(max(0.0, min(100.0, number))))
