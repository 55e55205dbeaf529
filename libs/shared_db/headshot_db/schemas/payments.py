"""Pydantic schemas for purchases."""

from __future__ import annotations

from datetime import datetime

from pydantic import ConfigDict

from headshot_common.ids import PurchaseId, UserId
from headshot_common.utils.json_model import JsonModel
from headshot_db.models.payments import PurchaseStatus


class PurchaseCreate(JsonModel):
    id: PurchaseId
    user_id: UserId
    stripe_session_id: str
    stripe_payment_intent_id: str | None = None
    credits_purchased: int
    amount_paid: int
    status: PurchaseStatus = PurchaseStatus.PENDING


class PurchaseResponse(JsonModel):
    id: PurchaseId
    user_id: UserId
    stripe_session_id: str
    stripe_payment_intent_id: str | None = None
    credits_purchased: int
    amount_paid: int
    status: PurchaseStatus
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)
