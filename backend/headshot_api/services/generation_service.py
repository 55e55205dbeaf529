"""Headshot generation: pays for a batch with credits, refunding them when the model fails."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from headshot_common.core.app_error import AppException, Errors
from headshot_common.core.config_service import GenerationSection
from headshot_common.db.db_utils import use_session
from headshot_common.ids import HeadshotId, UserId, new_headshot_ids
from headshot_common.utils.utils import get_logger
from headshot_db.crud.headshot import HeadshotDAO
from headshot_db.schemas.headshot import HeadshotCreate, HeadshotResponse

from .credit_ledger_service import CreditLedgerService
from .image_generator import ImageGenerationRequest, ImageGenerator

logger = get_logger()

STYLE_PROMPTS: dict[str, str] = {
    "professional": "professional business attire, formal suit, corporate headshot",
    "business-casual": "business casual attire, smart casual clothing, professional but relaxed",
    "creative": "creative professional style, modern artistic look, contemporary fashion",
}

BACKGROUND_PROMPTS: dict[str, str] = {
    "office": "professional office background, corporate environment",
    "studio": "clean studio background, neutral backdrop, professional lighting",
    "outdoor": "natural outdoor background, soft natural lighting",
    "gradient": "modern gradient background, contemporary studio setting",
}


def build_prompt(style: str, background: str) -> str:
    return (
        f"Professional headshot portrait, {STYLE_PROMPTS[style]}, {BACKGROUND_PROMPTS[background]}, "
        "high quality photography, professional lighting, sharp focus, 8k resolution, studio quality"
    )


class GenerationService:
    def __init__(
        self,
        ledger: CreditLedgerService,
        headshot_dao: HeadshotDAO,
        image_generator: ImageGenerator,
        config: GenerationSection,
    ) -> None:
        self.ledger = ledger
        self.headshot_dao = headshot_dao
        self.image_generator = image_generator
        self.config = config

    async def generate(self, db: AsyncSession, user_id: UserId, style: str, background: str, reference_urls: list[str]) -> list[HeadshotResponse]:
        """Generate one batch of headshots.

        Credits are reserved before the model is called. If the call fails the
        reservation is refunded and ``Errors.Generation.FAILED`` is raised. A
        failure while storing the results is refunded too and re-raised as is.
        A cancelled request leaves the reservation held.
        """
        references = [url for url in reference_urls if url.strip()]
        if not references:
            raise Errors.Generic.INVALID_INPUT.create("At least one reference image is required")
        if style not in STYLE_PROMPTS:
            raise Errors.Generic.INVALID_INPUT.create(f"Unknown style: {style}", details={"allowed": sorted(STYLE_PROMPTS)})
        if background not in BACKGROUND_PROMPTS:
            raise Errors.Generic.INVALID_INPUT.create(f"Unknown background: {background}", details={"allowed": sorted(BACKGROUND_PROMPTS)})

        cost = self.config.credits_per_batch
        reservation = await self.ledger.consume(db, user_id, cost, reason=f"generation:{style}:{background}")

        request = ImageGenerationRequest(
            prompt=build_prompt(style, background),
            images=references[: self.config.max_reference_images],
            n=self.config.images_per_batch,
            size=self.config.image_size,
            quality=self.config.quality,
        )
        try:
            urls = await self.image_generator.generate(request)
            if not urls:
                raise Errors.Generation.FAILED.create("Image generation returned no images")
        except Exception as e:
            logger.exception("Image generation failed, refunding credits", user_id=user_id, reservation_id=reservation.id)
            await self.ledger.refund(db, reservation.id)
            if isinstance(e, AppException) and Errors.Generation.FAILED.is_(e):
                raise
            raise Errors.Generation.FAILED.create(details={"reservation_id": reservation.id}) from e

        ids = new_headshot_ids(len(urls))
        try:
            async with use_session(db):
                headshots = await self.headshot_dao.create_many(
                    db,
                    [
                        HeadshotCreate(id=headshot_id, user_id=user_id, image_url=url, style=style, background=background, credits_used=cost)
                        for headshot_id, url in zip(ids, urls, strict=True)
                    ],
                )
                await self.ledger.commit_reservation_in_transaction(db, reservation.id)
        except Exception:
            logger.exception("Storing headshots failed, refunding credits", user_id=user_id, reservation_id=reservation.id)
            await self.ledger.refund(db, reservation.id)
            raise

        logger.info("Generated headshots", user_id=user_id, count=len(headshots), reservation_id=reservation.id)
        return headshots

    async def list_headshots(self, db: AsyncSession, user_id: UserId, favorites_only: bool = False) -> list[HeadshotResponse]:
        async with use_session(db):
            return await self.headshot_dao.list_for_user(db, user_id, favorites_only=favorites_only)

    async def toggle_favorite(self, db: AsyncSession, user_id: UserId, headshot_id: HeadshotId) -> HeadshotResponse:
        async with use_session(db):
            headshot = await self.headshot_dao.toggle_favorite(db, user_id, headshot_id)
        if headshot is None:
            raise Errors.Generation.NOT_FOUND.create(details={"headshot_id": headshot_id})
        return headshot
