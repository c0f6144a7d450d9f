"""
Gemini model endpoint resolver.

Model ids rotate on the upstream service; hard-coding one breaks silently
when it is retired. The catalog is queried once per classification call and
never cached across calls.
"""

import asyncio
import logging
from typing import Dict, List, Optional

import requests

from app.core.settings import settings
from app.services.classifier.base import ModelResolver, StaticModelResolver

logger = logging.getLogger(__name__)

REQUIRED_METHOD = "generateContent"


class CatalogModelResolver(ModelResolver):
    """
    Resolves a servable model from the Gemini models catalog.

    Keeps models declaring `generateContent` support whose name contains
    "gemini" and picks the first. Falls back to `default_model` on any
    failure or empty match.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        default_model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.base_url = (base_url or settings.GEMINI_API_BASE_URL).rstrip("/")
        self.default_model = default_model or settings.GEMINI_DEFAULT_MODEL
        self.timeout_seconds = timeout_seconds or settings.AI_TIMEOUT_SECONDS

    async def resolve(self) -> str:
        loop = asyncio.get_event_loop()
        try:
            models = await loop.run_in_executor(None, self._fetch_catalog)
        except Exception as e:
            logger.warning(f"⚠️ Model catalog lookup failed, using {self.default_model}: {e}")
            return self.default_model

        selected = self.select_model(models)
        if selected is None:
            logger.warning(f"⚠️ No generateContent-capable Gemini model in catalog, using {self.default_model}")
            return self.default_model

        logger.info(f"Resolved classification model: {selected}")
        return selected

    def _fetch_catalog(self) -> List[Dict]:
        response = requests.get(
            f"{self.base_url}/models",
            params={"key": self.api_key},
            timeout=self.timeout_seconds,
        )
        if response.status_code != 200:
            raise RuntimeError(f"Model catalog returned status {response.status_code}")

        models = response.json().get("models") or []
        if not isinstance(models, list):
            raise ValueError("Model catalog 'models' is not a list")
        return models

    @staticmethod
    def select_model(models: List[Dict]) -> Optional[str]:
        for model in models:
            if not isinstance(model, dict):
                continue
            name = model.get("name") or ""
            methods = model.get("supportedGenerationMethods") or []
            if REQUIRED_METHOD in methods and "gemini" in name:
                return name[len("models/"):] if name.startswith("models/") else name
        return None


def get_model_resolver() -> ModelResolver:
    """Pinned model when configured, catalog discovery otherwise."""
    if settings.GEMINI_PINNED_MODEL:
        return StaticModelResolver(settings.GEMINI_PINNED_MODEL)
    return CatalogModelResolver()
