"""Headshot generation and gallery routes."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from headshot_api.dependencies import get_current_user, get_db, get_generation_service, get_ledger
from headshot_api.schemas.headshots import GenerateHeadshotsRequest, GenerateHeadshotsResponse, HeadshotListResponse
from headshot_api.services.credit_ledger_service import CreditLedgerService
from headshot_api.services.generation_service import GenerationService
from headshot_common.ids import HeadshotId
from headshot_db.schemas.headshot import HeadshotResponse
from headshot_db.schemas.user import UserResponse


headshots_router = APIRouter(prefix="/headshots")


@headshots_router.post("/generate")
async def generate_headshots(
    req: GenerateHeadshotsRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[UserResponse, Depends(get_current_user)],
    generation_service: Annotated[GenerationService, Depends(get_generation_service)],
    ledger: Annotated[CreditLedgerService, Depends(get_ledger)],
) -> GenerateHeadshotsResponse:
    headshots = await generation_service.generate(db, current_user.id, req.style, req.background, req.reference_urls)
    return GenerateHeadshotsResponse(
        headshots=headshots,
        credits_used=generation_service.config.credits_per_batch,
        balance=await ledger.get_balance(db, current_user.id),
    )


@headshots_router.get("")
async def list_headshots(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[UserResponse, Depends(get_current_user)],
    generation_service: Annotated[GenerationService, Depends(get_generation_service)],
    favorites_only: bool = False,
) -> HeadshotListResponse:
    return HeadshotListResponse(headshots=await generation_service.list_headshots(db, current_user.id, favorites_only=favorites_only))


@headshots_router.post("/{headshot_id}/favorite")
async def toggle_favorite(
    headshot_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[UserResponse, Depends(get_current_user)],
    generation_service: Annotated[GenerationService, Depends(get_generation_service)],
) -> HeadshotResponse:
    return await generation_service.toggle_favorite(db, current_user.id, HeadshotId(headshot_id))
