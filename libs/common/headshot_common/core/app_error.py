from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from headshot_common.utils.json_model import JsonModel


class ErrorDetails(JsonModel):
    scope: str
    code: str
    message: str
    details: dict[str, Any] | None = None


class ErrorConfig(JsonModel):
    scope: str
    code: str
    default_message: str
    http_status: int | None = None
    retryable: bool = False

    def create(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        http_status: int | None = None,
        cause: BaseException | None = None,
        retryable: bool | None = None,
    ) -> AppException:
        msg = message if message is not None else self.default_message
        http = http_status if http_status is not None else self.http_status
        retry = self.retryable if retryable is None else retryable

        # An AppException cause keeps its own identity, only the message is prefixed
        if isinstance(cause, AppException):
            scope = cause.details.scope
            code = cause.details.code
            http = cause.http_status
            retry = cause.retryable
            if details and cause.details.details:
                details = {**cause.details.details, **details}
            elif cause.details.details:
                details = cause.details.details
            if cause.details.message:
                msg = f"{msg}: {cause.details.message}" if msg else cause.details.message
        else:
            scope = self.scope
            code = self.code

        app_error = AppError(
            details=ErrorDetails(scope=scope, code=code, message=msg, details=details),
            http_status=http,
            cause=cause,
            retryable=retry,
        )
        return AppException(app_error)

    def is_(self, error: BaseException) -> bool:
        return AppException.is_(error, self)


class Errors:
    class Generic:
        INVALID_INPUT = ErrorConfig(scope="generic", code="invalid_input", default_message="Invalid input", http_status=400)
        ACCESS_DENIED = ErrorConfig(scope="generic", code="access_denied", default_message="Access denied", http_status=403)
        INTERNAL_ERROR = ErrorConfig(scope="generic", code="internal_error", default_message="Internal error", http_status=500)

    class Auth:
        INVALID_TOKEN = ErrorConfig(scope="auth", code="invalid_token", default_message="Invalid authentication token", http_status=401)
        NOT_SIGNED_IN = ErrorConfig(scope="auth", code="not_signed_in", default_message="No signed-in user", http_status=401)

    class Credits:
        NOT_FOUND = ErrorConfig(scope="credits", code="not_found", default_message="User not found", http_status=404)
        INSUFFICIENT_CREDITS = ErrorConfig(scope="credits", code="insufficient_credits", default_message="Insufficient credits", http_status=402)
        INVALID_AMOUNT = ErrorConfig(scope="credits", code="invalid_amount", default_message="Credit amount must be positive", http_status=400)
        RESERVATION_NOT_FOUND = ErrorConfig(scope="credits", code="reservation_not_found", default_message="Credit reservation not found", http_status=404)

    class Billing:
        SIGNATURE_INVALID = ErrorConfig(
            scope="billing", code="signature_invalid", default_message="Webhook signature verification failed", http_status=400
        )
        MISSING_SIGNATURE = ErrorConfig(scope="billing", code="missing_signature", default_message="Missing Stripe signature", http_status=400)
        MISSING_METADATA = ErrorConfig(scope="billing", code="missing_metadata", default_message="Missing required session data", http_status=400)
        USER_NOT_FOUND = ErrorConfig(scope="billing", code="user_not_found", default_message="User not found", http_status=404)
        INVALID_PACK = ErrorConfig(scope="billing", code="invalid_pack", default_message="Unknown credit pack", http_status=400)
        SESSION_FORBIDDEN = ErrorConfig(
            scope="billing", code="session_forbidden", default_message="Checkout session does not belong to this user", http_status=403
        )
        CHECKOUT_CREATION_FAILED = ErrorConfig(
            scope="billing", code="checkout_creation_failed", default_message="Failed to create checkout session", http_status=502, retryable=True
        )
        RECONCILIATION_FAILED = ErrorConfig(
            scope="billing", code="reconciliation_failed", default_message="Failed to reconcile checkout session", http_status=502, retryable=True
        )
        NOT_CONFIGURED = ErrorConfig(scope="billing", code="not_configured", default_message="Stripe is not configured", http_status=500)

    class Store:
        UNAVAILABLE = ErrorConfig(scope="store", code="unavailable", default_message="Database error", http_status=503, retryable=True)

    class Generation:
        FAILED = ErrorConfig(scope="generation", code="failed", default_message="Failed to generate headshots", http_status=502, retryable=True)
        NOT_FOUND = ErrorConfig(scope="generation", code="not_found", default_message="Headshot not found", http_status=404)


class AppError(BaseModel):
    model_config = {"arbitrary_types_allowed": True}

    details: ErrorDetails = Field(..., description="Error details")
    http_status: int | None = Field(default=None, description="HTTP status code")
    retryable: bool = Field(default=False, description="Whether the error is retryable")
    cause: BaseException | None = Field(default=None, description="Underlying cause")

    def __init__(
        self,
        details: ErrorDetails,
        http_status: int | None = None,
        cause: BaseException | None = None,
        retryable: bool = False,
        **data: Any,
    ) -> None:
        computed_retryable = retryable and (cause is None or should_retry_exception(cause))
        super().__init__(details=details, http_status=http_status, retryable=computed_retryable, cause=cause, **data)


class AppException(Exception):
    """Exception wrapper for AppError that can be raised."""

    def __init__(self, app_error: AppError) -> None:
        self.app_error = app_error
        super().__init__(app_error.details.message)

    @property
    def details(self) -> ErrorDetails:
        return self.app_error.details

    @property
    def http_status(self) -> int | None:
        return self.app_error.http_status

    @property
    def retryable(self) -> bool:
        return self.app_error.retryable

    @property
    def cause(self) -> BaseException | None:
        return self.app_error.cause

    @staticmethod
    def is_(error: BaseException, error_config: ErrorConfig) -> bool:
        return isinstance(error, AppException) and error.details.scope == error_config.scope and error.details.code == error_config.code


def should_retry_exception(exception: BaseException) -> bool:
    if isinstance(exception, AppException):
        return exception.retryable
    return True
