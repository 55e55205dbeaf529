"""CheckoutService encapsulates all Stripe Checkout interactions.
Reads configuration from ConfigService and exposes the pack catalog, checkout session
creation and reconciliation of paid sessions.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, cast

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from headshot_api.schemas.billing import (
    CheckoutSessionResult,
    CreditPack,
    ReconcileResult,
    ReconcileStatus,
    StripeCheckoutSession,
    StripeSessionStatus,
)
from headshot_common.core.app_error import AppException, Errors
from headshot_common.core.config_service import ConfigService
from headshot_common.ids import UserId
from headshot_common.utils.utils import get_logger

from .payment_service import PaymentService

logger = get_logger()


def stripe_object_to_dict(obj: Any) -> dict[str, Any]:
    """StripeObject is a dict on older SDKs and exposes ``to_dict`` on newer ones."""
    if isinstance(obj, dict):
        return cast("dict[str, Any]", obj)
    return cast("dict[str, Any]", obj.to_dict())


class CheckoutService:
    def __init__(self, config: ConfigService, payment_service: PaymentService) -> None:
        self.config = config
        self.payment_service = payment_service
        api_key = self.config.stripe.api_key
        self.webhook_secret = str(self.config.stripe.webhook_secret or "")
        self.success_url = str(self.config.stripe.success_url or "")
        self.cancel_url = str(self.config.stripe.cancel_url or "")

        # Strict config validation
        if not api_key:
            logger.error("Stripe API key is missing in configuration")
            raise Errors.Billing.NOT_CONFIGURED.create("Stripe API key is not set in config")
        if not self.webhook_secret:
            logger.error("Stripe webhook secret is missing in configuration")
            raise Errors.Billing.NOT_CONFIGURED.create("Stripe webhook_secret is not set in config")

        stripe.api_key = str(api_key)

        self._packs = self._load_packs()

    def _packs_path(self) -> Path:
        return Path(__file__).resolve().parent.parent / "config" / "credit_packs.json"

    def _load_packs(self) -> list[CreditPack]:
        path = self._packs_path()
        data = json.loads(path.read_text())
        return [CreditPack.model_validate(p) for p in data.get("packs", [])]

    def get_packs(self) -> list[CreditPack]:
        return list(self._packs)

    def get_pack(self, pack_id: str) -> CreditPack:
        for pack in self._packs:
            if pack.id == pack_id:
                return pack
        raise Errors.Billing.INVALID_PACK.create(f"Unknown credit pack: {pack_id}", details={"pack_id": pack_id})

    def _success_url_with_session(self) -> str:
        separator = "&" if "?" in self.success_url else "?"
        return f"{self.success_url}{separator}session_id={{CHECKOUT_SESSION_ID}}&redirect=dashboard"

    async def create_checkout_session(
        self,
        db: AsyncSession,
        *,
        user_id: UserId,
        credits: int,
        amount: int,
        user_email: str,
    ) -> CheckoutSessionResult:
        """Create a one-off Stripe Checkout session for ``credits`` at ``amount`` whole dollars.

        A pending purchase keyed by the session id is recorded so reconciliation can
        complete it later.
        """
        if credits <= 0 or amount <= 0:
            raise Errors.Generic.INVALID_INPUT.create("Credits and amount must be positive", details={"credits": credits, "amount": amount})

        logger.info("Creating Stripe Checkout Session", user_id=user_id, credits=credits, amount=amount)

        try:
            session = stripe.checkout.Session.create(
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": "usd",
                            "product_data": {
                                "name": f"{credits} AI Headshot Credits",
                                "description": f"Generate {credits} professional AI headshots",
                            },
                            "unit_amount": amount * 100,
                        },
                        "quantity": 1,
                    }
                ],
                mode="payment",
                success_url=self._success_url_with_session(),
                cancel_url=self.cancel_url,
                customer_email=user_email,
                metadata={
                    "user_id": str(user_id),
                    "credits": str(credits),
                    "amount": str(amount),
                    "package_name": f"{credits} Credits Package",
                    "user_email": user_email,
                },
                allow_promotion_codes=True,
            )
        except stripe.AuthenticationError as e:
            logger.exception("Stripe authentication error")
            raise Errors.Billing.CHECKOUT_CREATION_FAILED.create("Stripe authentication failed", retryable=False) from e
        except stripe.InvalidRequestError as e:
            logger.exception("Stripe invalid request")
            raise Errors.Billing.CHECKOUT_CREATION_FAILED.create("Invalid Stripe request", retryable=False) from e
        except stripe.RateLimitError as e:
            logger.exception("Stripe rate limit exceeded")
            raise Errors.Billing.CHECKOUT_CREATION_FAILED.create("Stripe rate limit exceeded") from e
        except stripe.APIConnectionError as e:
            logger.exception("Stripe API connection error")
            raise Errors.Billing.CHECKOUT_CREATION_FAILED.create("Stripe API connection error") from e
        except stripe.StripeError as e:
            logger.exception("Stripe error")
            raise Errors.Billing.CHECKOUT_CREATION_FAILED.create() from e

        if not session.url:
            raise Errors.Billing.CHECKOUT_CREATION_FAILED.create("Stripe returned a session without a checkout URL")

        await self.payment_service.record_pending(
            db,
            user_id=user_id,
            stripe_session_id=session.id,
            credits=credits,
            amount_paid=amount * 100,
        )
        logger.info("Created Stripe Checkout Session", user_id=user_id, session_id=session.id)
        return CheckoutSessionResult(session_id=session.id, url=session.url)

    def retrieve_session(self, session_id: str) -> StripeCheckoutSession:
        try:
            raw = stripe.checkout.Session.retrieve(session_id)
        except stripe.StripeError as e:
            logger.exception("Failed to retrieve Stripe session", session_id=session_id)
            raise Errors.Billing.RECONCILIATION_FAILED.create("Could not retrieve checkout session", details={"session_id": session_id}) from e
        return StripeCheckoutSession.model_validate(stripe_object_to_dict(raw))

    async def reconcile(self, db: AsyncSession, session_id: str, *, expected_user_id: UserId | None = None) -> ReconcileResult:
        """Verify a checkout session with Stripe and credit it if paid. Safe to call repeatedly."""
        session = self.retrieve_session(session_id)
        if not session.is_paid:
            if str(session.status) == StripeSessionStatus.EXPIRED.value:
                await self.payment_service.mark_failed(db, session_id)
            logger.info("Checkout session not paid", session_id=session_id, payment_status=str(session.payment_status))
            return ReconcileResult(status=ReconcileStatus.NOT_PAID, session_id=session_id, payment_status=str(session.payment_status))

        user_id = session.metadata.user_id
        credits = session.metadata.credits
        if not user_id or not credits or credits <= 0:
            logger.warning("Paid session missing metadata for crediting", session_id=session_id, metadata=session.metadata.model_dump())
            raise Errors.Billing.MISSING_METADATA.create(details={"session_id": session_id})
        if expected_user_id is not None and user_id != expected_user_id:
            raise Errors.Billing.SESSION_FORBIDDEN.create(details={"session_id": session_id})

        return await self.complete_paid_session(db, session, UserId(user_id), credits)

    async def complete_paid_session(self, db: AsyncSession, session: StripeCheckoutSession, user_id: UserId, credits: int) -> ReconcileResult:
        """Credit a paid session through the idempotent purchase path."""
        amount_paid = session.amount_total
        if amount_paid is None:
            amount_paid = (session.metadata.amount or 0) * 100

        try:
            result = await self.payment_service.credit_purchase_once(
                db,
                user_id=user_id,
                stripe_session_id=session.id,
                payment_intent_id=session.payment_intent,
                credits=credits,
                amount_paid=amount_paid,
            )
        except AppException as e:
            if Errors.Store.UNAVAILABLE.is_(e):
                raise Errors.Billing.RECONCILIATION_FAILED.create("Database error", details={"session_id": session.id}) from e
            raise

        return ReconcileResult(
            status=ReconcileStatus.RECONCILED,
            session_id=session.id,
            credited=result.credited,
            credits_added=result.credits_added,
            new_balance=result.new_balance,
            payment_status=str(session.payment_status),
        )
