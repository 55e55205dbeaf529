"""Client for the external image generation model."""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

import requests
from pydantic import BaseModel, Field

from headshot_common.core.config_service import GenerationSection
from headshot_common.utils.utils import get_logger

logger = get_logger()


class ImageGenerationRequest(BaseModel):
    prompt: str
    images: list[str] = Field(..., description="Reference image URLs")
    n: int = 6
    size: str = "1024x1024"
    quality: str = "high"


class ImageGenerationError(Exception):
    pass


class ImageGenerator(Protocol):
    async def generate(self, request: ImageGenerationRequest) -> list[str]:
        """Return the URLs of the generated images."""
        ...


class HttpImageGenerator:
    """Posts generation requests to an HTTP endpoint. The blocking call runs in a worker thread."""

    def __init__(self, config: GenerationSection) -> None:
        self.config = config

    async def generate(self, request: ImageGenerationRequest) -> list[str]:
        if not self.config.endpoint_url:
            raise ImageGenerationError("Image generation endpoint is not configured")
        return await asyncio.to_thread(self._post, request)

    def _post(self, request: ImageGenerationRequest) -> list[str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"

        logger.info("Requesting image generation", n=request.n, size=request.size, references=len(request.images))
        try:
            response = requests.post(self.config.endpoint_url, json=request.model_dump(), headers=headers, timeout=self.config.timeout_seconds)
            response.raise_for_status()
            body: dict[str, Any] = response.json()
        except (requests.RequestException, ValueError) as e:
            raise ImageGenerationError(f"Image generation request failed: {e}") from e

        urls = [item["url"] for item in body.get("data", []) if isinstance(item, dict) and item.get("url")]
        if not urls:
            raise ImageGenerationError("Image generation returned no images")
        return urls
