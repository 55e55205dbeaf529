"""Billing routes for Stripe credit purchases."""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from headshot_api.dependencies import (
    get_checkout_service,
    get_config_service,
    get_current_user,
    get_db,
    get_ledger,
    get_services,
)
from headshot_api.schemas.billing import (
    CheckoutSessionResult,
    CreateCheckoutSessionRequest,
    ListPacksResponse,
    SuccessPageResponse,
)
from headshot_api.service_container import Services
from headshot_api.services.checkout_service import CheckoutService
from headshot_api.services.credit_ledger_service import CreditLedgerService
from headshot_api.services.webhook_service import WebhookService
from headshot_common.core.app_error import AppException, Errors
from headshot_common.core.config_service import ConfigService
from headshot_common.utils.utils import get_logger
from headshot_db.schemas.user import UserResponse

router = APIRouter(prefix="/billing", tags=["billing"])
logger = get_logger()

WEBHOOK_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Stripe-Signature",
}
ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


@router.get("/packs", response_model=ListPacksResponse)
async def list_packs(checkout_service: Annotated[CheckoutService, Depends(get_checkout_service)]) -> ListPacksResponse:
    return ListPacksResponse(packs=checkout_service.get_packs())


@router.post("/checkout-session", response_model=CheckoutSessionResult)
async def create_checkout_session(
    req: CreateCheckoutSessionRequest,
    user: Annotated[UserResponse, Depends(get_current_user)],
    checkout_service: Annotated[CheckoutService, Depends(get_checkout_service)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CheckoutSessionResult:
    pack = checkout_service.get_pack(req.pack_id)
    return await checkout_service.create_checkout_session(
        db,
        user_id=user.id,
        credits=pack.credits,
        amount=pack.price,
        user_email=user.email,
    )


@router.get("/success", response_model=SuccessPageResponse)
async def verify_success(
    user: Annotated[UserResponse, Depends(get_current_user)],
    checkout_service: Annotated[CheckoutService, Depends(get_checkout_service)],
    ledger: Annotated[CreditLedgerService, Depends(get_ledger)],
    config: Annotated[ConfigService, Depends(get_config_service)],
    db: Annotated[AsyncSession, Depends(get_db)],
    session_id: str | None = None,
) -> Response:
    """Verify a checkout session after Stripe redirects back (fallback when the webhook is late)."""
    if not session_id or not session_id.strip():
        return RedirectResponse(url=config.stripe.cancel_url, status_code=303)

    result = await checkout_service.reconcile(db, session_id.strip(), expected_user_id=user.id)
    balance = result.new_balance if result.new_balance is not None else await ledger.get_balance(db, user.id)
    body = SuccessPageResponse(
        status=result.status,
        session_id=result.session_id,
        credited=result.credited,
        credits_added=result.credits_added,
        balance=balance,
    )
    return JSONResponse(content=body.to_dict(mode="json"))


@router.api_route("/webhook", methods=ALL_METHODS, include_in_schema=False)
@router.api_route("/webhook/{subpath:path}", methods=ALL_METHODS, include_in_schema=False)
async def stripe_webhook(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    services: Annotated[Services, Depends(get_services)],
    stripe_signature: Annotated[str | None, Header(alias="Stripe-Signature")] = None,
) -> Response:
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=WEBHOOK_CORS_HEADERS)
    if request.method != "POST":
        return PlainTextResponse("Method not allowed", status_code=405)

    payload = await request.body()
    try:
        # Resolved here rather than via Depends so configuration errors become plain-text 500s
        webhook_service: WebhookService = services.webhook_service
        response = await webhook_service.handle(db, payload, stripe_signature)
    except AppException as e:
        status_code = e.http_status or 500
        if status_code >= 500:
            logger.exception("Webhook processing failed", code=e.details.code)
            message = "Database error" if Errors.Store.UNAVAILABLE.is_(e) else e.details.message
            return PlainTextResponse(message, status_code=500)
        logger.warning("Webhook rejected", code=e.details.code, status_code=status_code)
        return PlainTextResponse(e.details.message, status_code=status_code)
    except Exception:
        logger.exception("Unexpected webhook error")
        return PlainTextResponse("Webhook error", status_code=500)

    return JSONResponse(content=response.to_dict(mode="json"))
