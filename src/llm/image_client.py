import asyncio
import logging
import os
from typing import Optional

from pydantic import ValidationError

from llm.providers.base import ProviderConfigError, VisionProvider
from llm.schemas import ChatCompletion, ImageReference
from mission_control.results import ErrorKind, OperationResult

logger = logging.getLogger(__name__)

DESCRIBE_PROMPT = "What's in this image?"
UNAUTHORIZED_MESSAGE = "Invalid or missing Mistral API key. Please check your MISTRAL_API_KEY."


def build_provider() -> VisionProvider:
    """Pick the vision backend from LLM_PROVIDER (mistral | mock)."""
    name = os.getenv("LLM_PROVIDER", "mistral").strip().lower()
    if name == "mock":
        from llm.providers.mock_provider import MockProvider

        return MockProvider()
    from llm.providers.mistral_provider import MistralProvider

    return MistralProvider()


def _is_unauthorized(exc: Exception) -> bool:
    text = str(exc)
    return "401" in text or "unauthorized" in text.lower()


class ImageDescriptionClient:
    """Turns an image into a free-text description via a vision model.

    The provider is built lazily on first use so that a missing API key is
    reported as a configuration error on the call, not at import time.
    """

    def __init__(self, provider: Optional[VisionProvider] = None, prompt: str = DESCRIBE_PROMPT):
        self._provider = provider
        self.prompt = prompt

    def describe(self, image: ImageReference) -> OperationResult[str]:
        try:
            provider = self._provider or build_provider()
        except ProviderConfigError as e:
            logger.error(f"Vision provider not configured: {e}")
            return OperationResult.failure(ErrorKind.CONFIGURATION, str(e))
        self._provider = provider

        logger.info(
            f"Describing image from {'inline upload' if image.is_inline else image.source_label}"
        )
        try:
            raw = provider.describe(prompt=self.prompt, image_url=image.url)
        except Exception as e:
            if _is_unauthorized(e):
                logger.error("Vision endpoint rejected the API key")
                return OperationResult.failure(ErrorKind.UNAUTHORIZED_CREDENTIAL, UNAUTHORIZED_MESSAGE)
            logger.error(f"Error analyzing image: {e}")
            return OperationResult.failure(ErrorKind.INFERENCE, str(e))

        try:
            text = ChatCompletion.model_validate(raw).first_text()
        except ValidationError as e:
            logger.error(f"Malformed vision response: {e}")
            text = ""

        if not text:
            return OperationResult.failure(
                ErrorKind.INFERENCE_RESPONSE, "No description returned for image"
            )
        return OperationResult.success(text)

    def describe_bytes(
        self, data: bytes, mime_type: str = "image/jpeg", name: Optional[str] = None
    ) -> OperationResult[str]:
        return self.describe(ImageReference.from_bytes(data, mime_type, name))

    def describe_url(self, url: str) -> OperationResult[str]:
        return self.describe(ImageReference.from_url(url))

    async def adescribe(self, image: ImageReference) -> OperationResult[str]:
        # providers use blocking httpx; keep them off the event loop
        return await asyncio.to_thread(self.describe, image)
