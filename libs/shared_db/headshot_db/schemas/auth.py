"""Authentication schemas."""

from pydantic import BaseModel

from headshot_common.ids import UserId
from headshot_common.utils.json_model import JsonModel


class AuthIdentity(BaseModel):
    """The identity a validated bearer token speaks for."""

    user_id: UserId
    email: str
    display_name: str | None = None


class UserInfo(JsonModel):
    """Signed-in user as returned to the client (camelCase JSON via JsonModel)"""

    id: UserId
    email: str
    display_name: str | None = None
    credits: int
