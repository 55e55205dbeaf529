from __future__ import annotations

from datetime import datetime

from pydantic import ConfigDict

from headshot_common.ids import ReservationId, UserId
from headshot_common.utils.json_model import JsonModel
from headshot_db.models.reservation import ReservationStatus


class CreditReservationResponse(JsonModel):
    id: ReservationId
    user_id: UserId
    amount: int
    reason: str
    status: ReservationStatus
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)
