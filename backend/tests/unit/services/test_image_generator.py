"""Unit tests for HttpImageGenerator."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from headshot_api.services.image_generator import HttpImageGenerator, ImageGenerationError, ImageGenerationRequest
from headshot_common.core.config_service import GenerationSection

CONFIG = GenerationSection(endpoint_url="https://images.example.com/v1/edits", api_key="img-key", timeout_seconds=5)
REQUEST = ImageGenerationRequest(prompt="Professional headshot portrait", images=["https://a/1.jpg"])


class TestHttpImageGenerator:
    @pytest.mark.asyncio
    async def test_posts_request_and_returns_urls(self) -> None:
        response = MagicMock()
        response.json.return_value = {"data": [{"url": "https://cdn/1.png"}, {"url": "https://cdn/2.png"}, {"b64_json": "..."}]}

        with patch("headshot_api.services.image_generator.requests.post", return_value=response) as post:
            urls = await HttpImageGenerator(CONFIG).generate(REQUEST)

        assert urls == ["https://cdn/1.png", "https://cdn/2.png"]
        post.assert_called_once()
        assert post.call_args.args[0] == CONFIG.endpoint_url
        assert post.call_args.kwargs["json"] == {
            "prompt": "Professional headshot portrait",
            "images": ["https://a/1.jpg"],
            "n": 6,
            "size": "1024x1024",
            "quality": "high",
        }
        assert post.call_args.kwargs["headers"]["Authorization"] == "Bearer img-key"
        assert post.call_args.kwargs["timeout"] == 5

    @pytest.mark.asyncio
    async def test_http_error(self) -> None:
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("502 Bad Gateway")

        with patch("headshot_api.services.image_generator.requests.post", return_value=response):
            with pytest.raises(ImageGenerationError):
                await HttpImageGenerator(CONFIG).generate(REQUEST)

    @pytest.mark.asyncio
    async def test_not_configured(self) -> None:
        with pytest.raises(ImageGenerationError):
            await HttpImageGenerator(GenerationSection()).generate(REQUEST)
