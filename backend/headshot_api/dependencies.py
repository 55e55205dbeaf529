from collections.abc import AsyncGenerator

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from headshot_api.service_container import Services
from headshot_api.services.auth_session import AuthSession, CreditBootstrapListener
from headshot_api.services.checkout_service import CheckoutService
from headshot_api.services.credit_ledger_service import CreditLedgerService
from headshot_api.services.generation_service import GenerationService
from headshot_api.services.payment_service import PaymentService
from headshot_api.services.webhook_service import WebhookService
from headshot_common.core.app_error import Errors
from headshot_common.core.config_service import ConfigService
from headshot_common.core.request_context import RequestContext
from headshot_db.db import AsyncSessionLocal
from headshot_db.schemas.user import UserResponse


# Security scheme
optional_security = HTTPBearer(auto_error=False)


def get_services() -> Services:
    return Services.instance()


def get_request_context() -> RequestContext:
    return RequestContext.get()


async def get_db() -> AsyncGenerator[AsyncSession]:
    """Dependency for async database session.

    Services commit their own units of work; anything left pending is rolled back.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


def get_config_service(services: Services = Depends(get_services)) -> ConfigService:
    return services.config_service


def get_ledger(services: Services = Depends(get_services)) -> CreditLedgerService:
    """Dependency for CreditLedgerService instance."""
    return services.ledger


def get_payment_service(services: Services = Depends(get_services)) -> PaymentService:
    """Dependency for PaymentService instance."""
    return services.payment_service


def get_checkout_service(services: Services = Depends(get_services)) -> CheckoutService:
    """Dependency for CheckoutService instance. Fails with a 500 when Stripe is not configured."""
    return services.checkout_service


def get_webhook_service(services: Services = Depends(get_services)) -> WebhookService:
    return services.webhook_service


def get_generation_service(services: Services = Depends(get_services)) -> GenerationService:
    return services.generation_service


async def get_auth_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_security),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> AuthSession:
    """Build the request's auth session from the bearer token and sign in.

    Signing in bootstraps the user's credits, so a first request creates the
    ledger row with the sign-up bonus.
    """
    if credentials is None:
        raise Errors.Auth.NOT_SIGNED_IN.create("Missing bearer token")

    identity = services.jwt_validator.validate_token(credentials.credentials)

    session = AuthSession()
    session.subscribe(CreditBootstrapListener(services.ledger, db))
    await session.sign_in(identity)

    ctx = RequestContext.get_or_none()
    if ctx is not None:
        ctx.user_id = identity.user_id
    return session


async def get_current_user(
    auth_session: AuthSession = Depends(get_auth_session),
    db: AsyncSession = Depends(get_db),
    ledger: CreditLedgerService = Depends(get_ledger),
) -> UserResponse:
    """Dependency to get current user from database.
    Returns UserResponse (Pydantic model) instead of SQLAlchemy model.
    """
    return await ledger.get_user(db, auth_session.identity.user_id)
