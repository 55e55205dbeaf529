"""Stripe webhook verification and event dispatch."""

from __future__ import annotations

import stripe
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from headshot_api.schemas.billing import StripeCheckoutSession, StripeEvent, StripeEventType, WebhookResponse
from headshot_common.core.app_error import Errors
from headshot_common.core.request_context import RequestContext
from headshot_common.utils.msgspec import SerializationError, decode_json
from headshot_common.utils.utils import get_logger

from .checkout_service import CheckoutService
from .user_service import UserService

logger = get_logger()

MSG_CREDITS_ADDED = "Credits added successfully"
MSG_ALREADY_PROCESSED = "Purchase already processed"
MSG_AWAITING_PAYMENT = "Payment not completed yet"


class WebhookService:
    """Verifies Stripe deliveries and reconciles completed checkouts.

    Verification fails closed: nothing in the body is acted on unless the signature
    checks out against the configured webhook secret.
    """

    def __init__(self, checkout_service: CheckoutService, user_service: UserService) -> None:
        self.checkout_service = checkout_service
        self.user_service = user_service

    def verify(self, payload: bytes, signature: str | None) -> StripeEvent:
        if not signature:
            raise Errors.Billing.MISSING_SIGNATURE.create()
        try:
            stripe.Webhook.construct_event(  # pyright: ignore[reportUnknownMemberType]
                payload=payload,
                sig_header=signature,
                secret=self.checkout_service.webhook_secret,
            )
        except (stripe.SignatureVerificationError, ValueError) as e:
            logger.warning("Stripe webhook signature verification failed", error=str(e))
            raise Errors.Billing.SIGNATURE_INVALID.create() from e

        try:
            return StripeEvent.model_validate(decode_json(payload))
        except (ValidationError, SerializationError) as e:
            raise Errors.Billing.SIGNATURE_INVALID.create("Invalid webhook payload") from e

    async def handle(self, db: AsyncSession, payload: bytes, signature: str | None) -> WebhookResponse:
        event = self.verify(payload, signature)
        ctx = RequestContext.get_or_none()
        if ctx is not None:
            ctx.stripe_event_id = event.id
        logger.info("Received Stripe event", event_id=event.id, event_type=event.type)

        match event.type:
            case StripeEventType.CHECKOUT_SESSION_COMPLETED | StripeEventType.CHECKOUT_SESSION_ASYNC_PAYMENT_SUCCEEDED:
                return await self._checkout_completed(db, event)
            case StripeEventType.PAYMENT_INTENT_SUCCEEDED:
                logger.info("Payment intent succeeded", payment_intent_id=event.data.object.get("id"))
                return WebhookResponse(message="Payment success logged")
            case StripeEventType.PAYMENT_INTENT_FAILED:
                logger.warning("Payment intent failed", payment_intent_id=event.data.object.get("id"))
                return WebhookResponse(message="Payment failure logged")
            case StripeEventType.INVOICE_PAYMENT_SUCCEEDED:
                logger.info("Invoice payment succeeded", invoice_id=event.data.object.get("id"))
                return WebhookResponse(message="Invoice payment logged")
            case _:
                logger.info("Ignoring unhandled Stripe event", event_type=event.type)
                return WebhookResponse()

    async def _checkout_completed(self, db: AsyncSession, event: StripeEvent) -> WebhookResponse:
        try:
            session = StripeCheckoutSession.model_validate(event.data.object)
        except ValidationError as e:
            raise Errors.Billing.MISSING_METADATA.create(details={"event_id": event.id}) from e

        credits = session.metadata.credits
        emails = session.candidate_emails()
        if not credits or credits <= 0:
            logger.warning("Completed session has no credits in metadata", session_id=session.id)
            raise Errors.Billing.MISSING_METADATA.create(details={"session_id": session.id})
        if not session.metadata.user_id and not emails:
            logger.warning("Completed session has no user reference", session_id=session.id)
            raise Errors.Billing.MISSING_METADATA.create(details={"session_id": session.id})

        user = await self.user_service.resolve_payer(db, session.metadata.user_id, emails)
        if user is None:
            logger.warning("No user matches completed session", session_id=session.id, user_id=session.metadata.user_id)
            raise Errors.Billing.USER_NOT_FOUND.create(details={"session_id": session.id})

        if not session.is_paid:
            # Delayed payment methods complete the session before the money arrives
            logger.info("Completed session is not paid yet, not crediting", session_id=session.id, payment_status=session.payment_status)
            return WebhookResponse(message=MSG_AWAITING_PAYMENT, user_id=user.id)

        result = await self.checkout_service.complete_paid_session(db, session, user.id, credits)
        return WebhookResponse(
            success=True,
            message=MSG_CREDITS_ADDED if result.credited else MSG_ALREADY_PROCESSED,
            user_id=user.id,
            credits_added=result.credits_added,
            new_balance=result.new_balance,
        )
