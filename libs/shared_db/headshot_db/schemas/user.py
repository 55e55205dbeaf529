"""User schemas for shared database operations."""

from datetime import datetime

from pydantic import ConfigDict

from headshot_common.ids import UserId
from headshot_common.utils.json_model import JsonModel


class UserCreate(JsonModel):
    id: UserId
    email: str
    display_name: str | None = None
    credits: int = 0


class UserResponse(JsonModel):
    id: UserId
    email: str
    display_name: str | None = None
    credits: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)
