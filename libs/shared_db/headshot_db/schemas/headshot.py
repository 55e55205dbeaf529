from __future__ import annotations

from datetime import datetime

from pydantic import ConfigDict

from headshot_common.ids import HeadshotId, UserId
from headshot_common.utils.json_model import JsonModel


class HeadshotCreate(JsonModel):
    id: HeadshotId
    user_id: UserId
    image_url: str
    style: str
    background: str
    credits_used: int
    is_favorite: bool = False


class HeadshotResponse(JsonModel):
    id: HeadshotId
    user_id: UserId
    image_url: str
    style: str
    background: str
    is_favorite: bool
    credits_used: int
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)
