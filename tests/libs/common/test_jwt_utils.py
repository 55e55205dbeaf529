"""Tests for JWTValidator."""

from datetime import timedelta

import pytest
from jose import jwt

from headshot_common.core.app_error import AppException, Errors
from headshot_common.core.config_service import AuthSection
from headshot_common.core.jwt_utils import JWTValidator, create_access_token
from headshot_common.ids import UserId
from headshot_db.schemas.auth import AuthIdentity

CONFIG = AuthSection(jwt_secret="unit-secret")
IDENTITY = AuthIdentity(user_id=UserId("jwt-user"), email="jwt@example.com", display_name="Jay")


class TestJWTValidator:
    def test_round_trip(self) -> None:
        token = create_access_token(IDENTITY, CONFIG)

        assert JWTValidator(CONFIG).validate_token(token) == IDENTITY

    def test_display_name_from_user_metadata(self) -> None:
        token = jwt.encode(
            {"sub": "jwt-user", "email": "jwt@example.com", "user_metadata": {"full_name": "Jay Doe"}},
            "unit-secret",
            algorithm="HS256",
        )

        assert JWTValidator(CONFIG).validate_token(token).display_name == "Jay Doe"

    def test_expired_token(self) -> None:
        token = create_access_token(IDENTITY, CONFIG, expires_delta=timedelta(seconds=-10))

        with pytest.raises(AppException) as exc_info:
            JWTValidator(CONFIG).validate_token(token)
        assert Errors.Auth.INVALID_TOKEN.is_(exc_info.value)

    def test_wrong_secret(self) -> None:
        token = create_access_token(IDENTITY, AuthSection(jwt_secret="other-secret"))

        with pytest.raises(AppException) as exc_info:
            JWTValidator(CONFIG).validate_token(token)
        assert Errors.Auth.INVALID_TOKEN.is_(exc_info.value)

    def test_missing_email_claim(self) -> None:
        token = jwt.encode({"sub": "jwt-user"}, "unit-secret", algorithm="HS256")

        with pytest.raises(AppException) as exc_info:
            JWTValidator(CONFIG).validate_token(token)
        assert exc_info.value.http_status == 401

    def test_audience_is_enforced_when_configured(self) -> None:
        config = AuthSection(jwt_secret="unit-secret", jwt_audience="authenticated")
        good = create_access_token(IDENTITY, config)
        bad = create_access_token(IDENTITY, CONFIG)

        assert JWTValidator(config).validate_token(good).user_id == IDENTITY.user_id
        with pytest.raises(AppException):
            JWTValidator(config).validate_token(bad)
