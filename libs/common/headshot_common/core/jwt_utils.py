"""JWT utilities for bearer token validation."""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError
from jose import jwt as jose_jwt

from headshot_common.core.app_error import Errors
from headshot_common.core.config_service import AuthSection
from headshot_common.ids import UserId
from headshot_common.utils.utils import get_logger
from headshot_db.schemas.auth import AuthIdentity

logger = get_logger(__name__)


class JWTValidator:
    """Validates identity-provider access tokens signed with a shared secret.

    The ``sub`` claim is the user id, ``email`` and the optional ``name`` claim
    describe the identity.
    """

    def __init__(self, config: AuthSection) -> None:
        self._secret = config.jwt_secret
        self._algorithm = config.jwt_algorithm
        self._audience = config.jwt_audience or None

    def validate_token(self, token: str) -> AuthIdentity:
        if not self._secret:
            raise Errors.Auth.INVALID_TOKEN.create("Token validation is not configured")

        try:
            payload: dict[str, Any] = jose_jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                audience=self._audience,
                options={"verify_aud": self._audience is not None, "verify_exp": True},
            )
        except JWTError as e:
            logger.warning("JWT validation failed", error=str(e))
            raise Errors.Auth.INVALID_TOKEN.create(cause=e) from e

        user_sub = payload.get("sub")
        email = payload.get("email")
        if not user_sub or not email:
            raise Errors.Auth.INVALID_TOKEN.create("Token is missing the 'sub' or 'email' claim")

        metadata = payload.get("user_metadata") or {}
        display_name = payload.get("name") or metadata.get("display_name") or metadata.get("full_name")
        return AuthIdentity(user_id=UserId(str(user_sub)), email=str(email), display_name=display_name)


def create_access_token(
    identity: AuthIdentity,
    config: AuthSection,
    expires_delta: timedelta = timedelta(hours=2),
) -> str:
    """Create a token the validator accepts (local development and tests)."""
    claims: dict[str, Any] = {
        "sub": identity.user_id,
        "email": identity.email,
        "exp": int((datetime.now(UTC) + expires_delta).timestamp()),
    }
    if identity.display_name:
        claims["name"] = identity.display_name
    if config.jwt_audience:
        claims["aud"] = config.jwt_audience
    return jose_jwt.encode(claims, config.jwt_secret, algorithm=config.jwt_algorithm)
