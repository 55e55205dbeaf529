"""Credit balance and purchase history routes."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from headshot_api.dependencies import get_current_user, get_db, get_payment_service
from headshot_api.schemas.credits import BalanceResponse, PurchaseHistoryResponse
from headshot_api.services.payment_service import PaymentService
from headshot_db.schemas.user import UserResponse

credits_router = APIRouter(prefix="/credits")


@credits_router.get("/balance")
async def get_balance(current_user: Annotated[UserResponse, Depends(get_current_user)]) -> BalanceResponse:
    return BalanceResponse(user_id=current_user.id, credits=current_user.credits)


@credits_router.get("/purchases")
async def list_purchases(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[UserResponse, Depends(get_current_user)],
    payment_service: Annotated[PaymentService, Depends(get_payment_service)],
) -> PurchaseHistoryResponse:
    """Purchases of the current user, newest first."""
    return PurchaseHistoryResponse(purchases=await payment_service.list_purchases(db, current_user.id))
