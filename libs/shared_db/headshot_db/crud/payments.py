"""DAO for purchase operations."""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from headshot_common.ids import PurchaseId, UserId
from headshot_common.utils.utils import get_logger
from headshot_db.models.payments import Purchase, PurchaseStatus
from headshot_db.schemas.payments import PurchaseCreate, PurchaseResponse

logger = get_logger(__name__)


class PurchaseDAO:
    """Purchases keyed by Stripe checkout session id (and payment intent id once known).

    The unique constraints on both ids are what make crediting idempotent.
    """

    async def insert_if_absent(self, db: AsyncSession, *, obj_in: PurchaseCreate) -> PurchaseResponse | None:
        """Insert a purchase unless its session id (or payment intent id) was seen before.
        Returns the created purchase, or None (after rolling back) if duplicate.
        """
        purchase = Purchase(**obj_in.model_dump())
        try:
            db.add(purchase)
            await db.flush()
        except IntegrityError:
            logger.info("Duplicate purchase for stripe session, skipping", stripe_session_id=obj_in.stripe_session_id)
            await db.rollback()
            return None
        await db.refresh(purchase)
        return PurchaseResponse.model_validate(purchase)

    async def get(self, db: AsyncSession, id: PurchaseId) -> PurchaseResponse | None:
        result = await db.execute(select(Purchase).where(Purchase.id == id))
        row = result.scalar_one_or_none()
        return PurchaseResponse.model_validate(row) if row else None

    async def get_by_session_id(self, db: AsyncSession, *, stripe_session_id: str) -> PurchaseResponse | None:
        result = await db.execute(select(Purchase).where(Purchase.stripe_session_id == stripe_session_id))
        row = result.scalar_one_or_none()
        return PurchaseResponse.model_validate(row) if row else None

    async def get_by_payment_intent_id(self, db: AsyncSession, *, payment_intent_id: str) -> PurchaseResponse | None:
        result = await db.execute(select(Purchase).where(Purchase.stripe_payment_intent_id == payment_intent_id))
        row = result.scalar_one_or_none()
        return PurchaseResponse.model_validate(row) if row else None

    async def complete_if_pending(
        self,
        db: AsyncSession,
        *,
        stripe_session_id: str,
        payment_intent_id: str | None,
        amount_paid: int,
    ) -> bool:
        """Conditional ``pending -> completed`` transition. True only for the caller that performed it."""
        values: dict[str, object] = {"status": PurchaseStatus.COMPLETED, "amount_paid": amount_paid}
        if payment_intent_id:
            values["stripe_payment_intent_id"] = payment_intent_id
        result = await db.execute(
            update(Purchase)
            .where(Purchase.stripe_session_id == stripe_session_id, Purchase.status == PurchaseStatus.PENDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0  # type: ignore[attr-defined]

    async def update_status(self, db: AsyncSession, id: PurchaseId, status: PurchaseStatus) -> bool:
        result = await db.execute(update(Purchase).where(Purchase.id == id).values(status=status).execution_options(synchronize_session=False))
        return result.rowcount > 0  # type: ignore[attr-defined]

    async def list_for_user(self, db: AsyncSession, user_id: UserId, *, limit: int = 100) -> list[PurchaseResponse]:
        """Newest first."""
        result = await db.execute(
            select(Purchase).where(Purchase.user_id == user_id).order_by(Purchase.created_at.desc(), Purchase.id.desc()).limit(limit)
        )
        return [PurchaseResponse.model_validate(row) for row in result.scalars().all()]
