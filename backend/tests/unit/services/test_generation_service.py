"""Unit tests for GenerationService credit handling."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from headshot_api.services.generation_service import GenerationService, build_prompt
from headshot_api.services.image_generator import ImageGenerationError, ImageGenerationRequest
from headshot_common.core.app_error import AppException, Errors
from headshot_common.core.config_service import GenerationSection
from headshot_common.ids import HeadshotId, ReservationId, UserId
from headshot_db.models.reservation import ReservationStatus
from headshot_db.schemas.headshot import HeadshotCreate, HeadshotResponse
from headshot_db.schemas.reservation import CreditReservationResponse

USER = UserId("gen-user")
RESERVATION = CreditReservationResponse(id=ReservationId("reservation_1"), user_id=USER, amount=6, reason="generation", status=ReservationStatus.HELD)


def _headshots(objs_in: list[HeadshotCreate]) -> list[HeadshotResponse]:
    return [HeadshotResponse(**obj.model_dump(), created_at=None) for obj in objs_in]


@pytest.fixture
def ledger() -> MagicMock:
    ledger = MagicMock()
    ledger.consume = AsyncMock(return_value=RESERVATION)
    ledger.refund = AsyncMock(return_value=6)
    ledger.commit_reservation_in_transaction = AsyncMock()
    return ledger


@pytest.fixture
def headshot_dao() -> MagicMock:
    dao = MagicMock()
    dao.create_many = AsyncMock(side_effect=lambda _db, objs_in: _headshots(objs_in))
    return dao


@pytest.fixture
def db() -> MagicMock:
    session = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


def make_service(ledger: MagicMock, headshot_dao: MagicMock, generator: AsyncMock) -> GenerationService:
    image_generator = MagicMock()
    image_generator.generate = generator
    return GenerationService(ledger=ledger, headshot_dao=headshot_dao, image_generator=image_generator, config=GenerationSection())


class TestGenerate:
    @pytest.mark.asyncio
    async def test_successful_batch_commits_reservation(self, ledger: MagicMock, headshot_dao: MagicMock, db: MagicMock) -> None:
        urls = [f"https://cdn.example.com/{i}.png" for i in range(6)]
        generator = AsyncMock(return_value=urls)
        service = make_service(ledger, headshot_dao, generator)

        headshots = await service.generate(db, USER, "professional", "studio", ["https://a/1.jpg", "https://a/2.jpg", "https://a/3.jpg", "https://a/4.jpg"])

        ledger.consume.assert_awaited_once_with(db, USER, 6, reason="generation:professional:studio")
        request: ImageGenerationRequest = generator.await_args.args[0]
        assert request.images == ["https://a/1.jpg", "https://a/2.jpg", "https://a/3.jpg"]
        assert (request.n, request.size, request.quality) == (6, "1024x1024", "high")
        assert request.prompt == build_prompt("professional", "studio")
        assert [h.image_url for h in headshots] == urls
        assert all(h.credits_used == 6 and h.style == "professional" and h.background == "studio" for h in headshots)
        assert headshots[0].id.startswith("headshot_") and headshots[0].id.endswith("_0")
        ledger.commit_reservation_in_transaction.assert_awaited_once_with(db, RESERVATION.id)
        ledger.refund.assert_not_awaited()
        db.commit.assert_awaited()

    @pytest.mark.asyncio
    async def test_generator_failure_refunds(self, ledger: MagicMock, headshot_dao: MagicMock, db: MagicMock) -> None:
        service = make_service(ledger, headshot_dao, AsyncMock(side_effect=ImageGenerationError("model timed out")))

        with pytest.raises(AppException) as exc_info:
            await service.generate(db, USER, "creative", "gradient", ["https://a/1.jpg"])

        assert Errors.Generation.FAILED.is_(exc_info.value)
        ledger.refund.assert_awaited_once_with(db, RESERVATION.id)
        headshot_dao.create_many.assert_not_awaited()
        ledger.commit_reservation_in_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_output_refunds(self, ledger: MagicMock, headshot_dao: MagicMock, db: MagicMock) -> None:
        service = make_service(ledger, headshot_dao, AsyncMock(return_value=[]))

        with pytest.raises(AppException) as exc_info:
            await service.generate(db, USER, "creative", "office", ["https://a/1.jpg"])

        assert Errors.Generation.FAILED.is_(exc_info.value)
        ledger.refund.assert_awaited_once_with(db, RESERVATION.id)

    @pytest.mark.asyncio
    async def test_storage_failure_refunds(self, ledger: MagicMock, headshot_dao: MagicMock, db: MagicMock) -> None:
        headshot_dao.create_many = AsyncMock(side_effect=Errors.Store.UNAVAILABLE.create())
        service = make_service(ledger, headshot_dao, AsyncMock(return_value=["https://cdn.example.com/0.png"]))

        with pytest.raises(AppException) as exc_info:
            await service.generate(db, USER, "professional", "studio", ["https://a/1.jpg"])

        assert Errors.Store.UNAVAILABLE.is_(exc_info.value)
        db.rollback.assert_awaited()
        ledger.commit_reservation_in_transaction.assert_not_awaited()
        ledger.refund.assert_awaited_once_with(db, RESERVATION.id)

    @pytest.mark.asyncio
    async def test_commit_failure_refunds(self, ledger: MagicMock, headshot_dao: MagicMock, db: MagicMock) -> None:
        ledger.commit_reservation_in_transaction.side_effect = OperationalError("UPDATE credit_reservations", {}, Exception("database is locked"))
        service = make_service(ledger, headshot_dao, AsyncMock(return_value=["https://cdn.example.com/0.png"]))

        with pytest.raises(AppException) as exc_info:
            await service.generate(db, USER, "professional", "studio", ["https://a/1.jpg"])

        assert Errors.Store.UNAVAILABLE.is_(exc_info.value)
        db.commit.assert_not_awaited()
        ledger.refund.assert_awaited_once_with(db, RESERVATION.id)

    @pytest.mark.asyncio
    async def test_insufficient_credits_skips_generation(self, ledger: MagicMock, headshot_dao: MagicMock, db: MagicMock) -> None:
        ledger.consume.side_effect = Errors.Credits.INSUFFICIENT_CREDITS.create()
        generator = AsyncMock()
        service = make_service(ledger, headshot_dao, generator)

        with pytest.raises(AppException) as exc_info:
            await service.generate(db, USER, "professional", "office", ["https://a/1.jpg"])

        assert Errors.Credits.INSUFFICIENT_CREDITS.is_(exc_info.value)
        generator.assert_not_awaited()
        ledger.refund.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("style", "background", "references"),
        [
            ("professional", "office", []),
            ("professional", "office", ["  "]),
            ("casual-friday", "office", ["https://a/1.jpg"]),
            ("professional", "beach", ["https://a/1.jpg"]),
        ],
    )
    async def test_invalid_input_consumes_nothing(
        self, ledger: MagicMock, headshot_dao: MagicMock, db: MagicMock, style: str, background: str, references: list[str]
    ) -> None:
        service = make_service(ledger, headshot_dao, AsyncMock())

        with pytest.raises(AppException) as exc_info:
            await service.generate(db, USER, style, background, references)

        assert Errors.Generic.INVALID_INPUT.is_(exc_info.value)
        ledger.consume.assert_not_awaited()


class TestFavorites:
    @pytest.mark.asyncio
    async def test_toggle_unknown_headshot(self, ledger: MagicMock, headshot_dao: MagicMock, db: MagicMock) -> None:
        headshot_dao.toggle_favorite = AsyncMock(return_value=None)
        service = make_service(ledger, headshot_dao, AsyncMock())

        with pytest.raises(AppException) as exc_info:
            await service.toggle_favorite(db, USER, HeadshotId("headshot_missing"))

        assert Errors.Generation.NOT_FOUND.is_(exc_info.value)


def test_prompt_template() -> None:
    assert build_prompt("business-casual", "outdoor") == (
        "Professional headshot portrait, business casual attire, smart casual clothing, professional but relaxed, "
        "natural outdoor background, soft natural lighting, high quality photography, professional lighting, "
        "sharp focus, 8k resolution, studio quality"
    )
