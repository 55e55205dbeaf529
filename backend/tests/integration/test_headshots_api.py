"""Headshot generation and gallery endpoints with the image model mocked."""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from headshot_api.service_container import Services
from headshot_api.services.image_generator import ImageGenerationError

USER = "gallery-user"
EMAIL = "gallery@example.com"
GENERATE = {"style": "professional", "background": "office", "referenceUrls": ["https://uploads.example.com/me.jpg"]}


@pytest.fixture
def image_generator(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    generator = MagicMock()
    generator.generate = AsyncMock(return_value=[f"https://cdn.example.com/{i}.png" for i in range(6)])
    monkeypatch.setattr(Services.instance().generation_service, "image_generator", generator)
    return generator


class TestHeadshotsApi:
    @pytest.mark.asyncio
    async def test_generate_spends_bonus_then_runs_out(
        self, api_client: httpx.AsyncClient, auth_headers: Callable[..., dict[str, str]], image_generator: MagicMock
    ) -> None:
        headers = auth_headers(USER, EMAIL)

        first = await api_client.post("/api/v1/headshots/generate", json=GENERATE, headers=headers)
        second = await api_client.post("/api/v1/headshots/generate", json=GENERATE, headers=headers)
        gallery = await api_client.get("/api/v1/headshots", headers=headers)

        assert first.status_code == 200
        assert first.json()["creditsUsed"] == 6
        assert first.json()["balance"] == 0
        assert len(first.json()["headshots"]) == 6
        assert second.status_code == 402
        assert second.json()["code"] == "insufficient_credits"
        assert image_generator.generate.await_count == 1
        assert len(gallery.json()["headshots"]) == 6

    @pytest.mark.asyncio
    async def test_failed_generation_refunds(
        self, api_client: httpx.AsyncClient, auth_headers: Callable[..., dict[str, str]], image_generator: MagicMock
    ) -> None:
        headers = auth_headers(USER, EMAIL)
        image_generator.generate.side_effect = ImageGenerationError("upstream 500")

        response = await api_client.post("/api/v1/headshots/generate", json=GENERATE, headers=headers)
        balance = await api_client.get("/api/v1/credits/balance", headers=headers)

        assert response.status_code == 502
        assert response.json()["scope"] == "generation"
        assert balance.json()["credits"] == 6

    @pytest.mark.asyncio
    async def test_toggle_favorite(
        self, api_client: httpx.AsyncClient, auth_headers: Callable[..., dict[str, str]], image_generator: MagicMock
    ) -> None:
        headers = auth_headers(USER, EMAIL)
        generated = await api_client.post("/api/v1/headshots/generate", json=GENERATE, headers=headers)
        headshot_id = generated.json()["headshots"][0]["id"]

        on = await api_client.post(f"/api/v1/headshots/{headshot_id}/favorite", headers=headers)
        favorites = await api_client.get("/api/v1/headshots", params={"favorites_only": "true"}, headers=headers)
        off = await api_client.post(f"/api/v1/headshots/{headshot_id}/favorite", headers=headers)
        missing = await api_client.post("/api/v1/headshots/headshot_nope/favorite", headers=headers)
        other_user = await api_client.post(f"/api/v1/headshots/{headshot_id}/favorite", headers=auth_headers("intruder", "x@example.com"))

        assert on.json()["isFavorite"] is True
        assert [h["id"] for h in favorites.json()["headshots"]] == [headshot_id]
        assert off.json()["isFavorite"] is False
        assert missing.status_code == 404
        assert other_user.status_code == 404
