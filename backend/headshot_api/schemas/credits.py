"""Credit balance and purchase history schemas."""

from pydantic import Field

from headshot_common.ids import UserId
from headshot_common.utils.json_model import JsonModel
from headshot_db.schemas.payments import PurchaseResponse


class BalanceResponse(JsonModel):
    user_id: UserId
    credits: int = Field(..., ge=0)


class PurchaseHistoryResponse(JsonModel):
    purchases: list[PurchaseResponse]
