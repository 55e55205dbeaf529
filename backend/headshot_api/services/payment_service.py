"""Payment service to perform idempotent credit grants keyed by Stripe ids."""

from __future__ import annotations

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from headshot_common.core.app_error import Errors
from headshot_common.db.db_utils import use_session
from headshot_common.ids import UserId, new_purchase_id
from headshot_common.utils.utils import get_logger
from headshot_db.crud.payments import PurchaseDAO
from headshot_db.models.payments import PurchaseStatus
from headshot_db.schemas.payments import PurchaseCreate, PurchaseResponse

from .credit_ledger_service import CreditLedgerService

logger = get_logger(__name__)


class CreditPurchaseResult(BaseModel):
    credited: bool
    credits_added: int
    new_balance: int
    purchase: PurchaseResponse | None = None


class PaymentService:
    def __init__(self, purchase_dao: PurchaseDAO, ledger: CreditLedgerService) -> None:
        self.purchase_dao = purchase_dao
        self.ledger = ledger

    async def credit_purchase_once(
        self,
        db: AsyncSession,
        *,
        user_id: UserId,
        stripe_session_id: str,
        payment_intent_id: str | None,
        credits: int,
        amount_paid: int,
    ) -> CreditPurchaseResult:
        """Credit a paid checkout session exactly once.

        A pending purchase recorded at checkout creation is moved to completed with a
        conditional update; without one, a completed purchase is inserted and the unique
        constraints on the session and payment intent ids reject duplicates. The purchase
        write and the grant commit together.

        credited=False when the session (or its payment intent) was already credited.
        """
        async with use_session(db):
            transitioned = await self.purchase_dao.complete_if_pending(
                db,
                stripe_session_id=stripe_session_id,
                payment_intent_id=payment_intent_id,
                amount_paid=amount_paid,
            )
            if transitioned:
                new_balance = await self.ledger.grant_in_transaction(db, user_id, credits)
                purchase = await self.purchase_dao.get_by_session_id(db, stripe_session_id=stripe_session_id)
            else:
                existing = await self._find_existing(db, stripe_session_id, payment_intent_id)
                if existing is not None:
                    return await self._already_processed(db, user_id, existing)
                purchase = await self.purchase_dao.insert_if_absent(
                    db,
                    obj_in=PurchaseCreate(
                        id=new_purchase_id(),
                        user_id=user_id,
                        stripe_session_id=stripe_session_id,
                        stripe_payment_intent_id=payment_intent_id,
                        credits_purchased=credits,
                        amount_paid=amount_paid,
                        status=PurchaseStatus.COMPLETED,
                    ),
                )
                if purchase is None:
                    # Lost the insert race to a concurrent delivery
                    existing = await self._find_existing(db, stripe_session_id, payment_intent_id)
                    if existing is None:
                        raise Errors.Billing.RECONCILIATION_FAILED.create(details={"stripe_session_id": stripe_session_id})
                    return await self._already_processed(db, user_id, existing)
                new_balance = await self.ledger.grant_in_transaction(db, user_id, credits)

        logger.info(
            "Credited purchase",
            user_id=user_id,
            stripe_session_id=stripe_session_id,
            credits=credits,
            amount_paid=amount_paid,
            new_balance=new_balance,
        )
        return CreditPurchaseResult(credited=True, credits_added=credits, new_balance=new_balance, purchase=purchase)

    async def _find_existing(self, db: AsyncSession, stripe_session_id: str, payment_intent_id: str | None) -> PurchaseResponse | None:
        existing = await self.purchase_dao.get_by_session_id(db, stripe_session_id=stripe_session_id)
        if existing is None and payment_intent_id:
            existing = await self.purchase_dao.get_by_payment_intent_id(db, payment_intent_id=payment_intent_id)
        return existing

    async def _already_processed(self, db: AsyncSession, user_id: UserId, existing: PurchaseResponse) -> CreditPurchaseResult:
        if existing.status != PurchaseStatus.COMPLETED:
            raise Errors.Billing.RECONCILIATION_FAILED.create(
                f"Purchase is {existing.status}, cannot complete",
                details={"purchase_id": existing.id, "status": existing.status},
            )
        logger.info("Purchase already processed, skipping grant", purchase_id=existing.id, stripe_session_id=existing.stripe_session_id)
        balance = await self.ledger.user_dao.get_balance(db, user_id)
        if balance is None:
            raise Errors.Credits.NOT_FOUND.create(details={"user_id": user_id})
        return CreditPurchaseResult(credited=False, credits_added=0, new_balance=balance, purchase=existing)

    async def mark_failed(self, db: AsyncSession, stripe_session_id: str) -> bool:
        """Mark a still-pending purchase failed (expired session). False when nothing was pending."""
        async with use_session(db):
            purchase = await self.purchase_dao.get_by_session_id(db, stripe_session_id=stripe_session_id)
            if purchase is None or purchase.status != PurchaseStatus.PENDING:
                return False
            updated = await self.purchase_dao.update_status(db, purchase.id, PurchaseStatus.FAILED)
        if updated:
            logger.info("Marked purchase failed", purchase_id=purchase.id, stripe_session_id=stripe_session_id)
        return updated

    async def record_pending(
        self,
        db: AsyncSession,
        *,
        user_id: UserId,
        stripe_session_id: str,
        credits: int,
        amount_paid: int,
    ) -> PurchaseResponse | None:
        async with use_session(db):
            return await self.purchase_dao.insert_if_absent(
                db,
                obj_in=PurchaseCreate(
                    id=new_purchase_id(),
                    user_id=user_id,
                    stripe_session_id=stripe_session_id,
                    credits_purchased=credits,
                    amount_paid=amount_paid,
                    status=PurchaseStatus.PENDING,
                ),
            )

    async def list_purchases(self, db: AsyncSession, user_id: UserId) -> list[PurchaseResponse]:
        async with use_session(db):
            return await self.purchase_dao.list_for_user(db, user_id)
