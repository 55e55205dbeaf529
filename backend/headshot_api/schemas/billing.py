"""Billing-related Pydantic schemas (Stripe)."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from headshot_common.ids import UserId
from headshot_common.utils.json_model import JsonModel


class CreditPack(JsonModel):
    id: str
    name: str
    credits: int = Field(..., gt=0)
    price: int = Field(..., gt=0, description="Price in whole US dollars")
    popular: bool = False
    features: list[str] = Field(default_factory=list)


class ListPacksResponse(JsonModel):
    packs: list[CreditPack]


class CreateCheckoutSessionRequest(JsonModel):
    pack_id: str = Field(..., description="ID of the credit pack to purchase")


class CheckoutSessionResult(JsonModel):
    session_id: str
    url: str


class ReconcileStatus(StrEnum):
    RECONCILED = "reconciled"
    NOT_PAID = "not_paid"


class ReconcileResult(JsonModel):
    """Outcome of verifying a checkout session with Stripe."""

    status: ReconcileStatus
    session_id: str
    credited: bool = False
    credits_added: int = 0
    new_balance: int | None = None
    payment_status: str | None = None


class StripePaymentStatus(StrEnum):
    PAID = "paid"
    UNPAID = "unpaid"
    NO_PAYMENT_REQUIRED = "no_payment_required"


class StripeSessionStatus(StrEnum):
    OPEN = "open"
    COMPLETE = "complete"
    EXPIRED = "expired"


class StripeMetadata(BaseModel):
    """Checkout metadata as written at session creation. Stripe returns every value as a string."""

    user_id: str | None = None
    credits: int | None = None
    amount: int | None = None
    package_name: str | None = None
    user_email: str | None = None

    @field_validator("user_id", "user_email", "package_name", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("credits", "amount", mode="before")
    @classmethod
    def _parse_int(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None


class StripeCustomerDetails(BaseModel):
    email: str | None = None


class StripeCheckoutSession(BaseModel):
    id: str
    url: str | None = None
    payment_status: StripePaymentStatus | str = StripePaymentStatus.UNPAID
    status: StripeSessionStatus | str | None = None
    payment_intent: str | None = None
    amount_total: int | None = None
    customer_email: str | None = None
    customer_details: StripeCustomerDetails | None = None
    metadata: StripeMetadata = Field(default_factory=StripeMetadata)

    @field_validator("payment_intent", mode="before")
    @classmethod
    def _expandable_id(cls, value: Any) -> Any:
        # Expanded payment intents come back as objects
        if isinstance(value, dict):
            return value.get("id")
        return value

    @field_validator("metadata", mode="before")
    @classmethod
    def _null_metadata(cls, value: Any) -> Any:
        return value if value is not None else {}

    @property
    def is_paid(self) -> bool:
        return str(self.payment_status) == StripePaymentStatus.PAID.value

    def candidate_emails(self) -> list[str]:
        """Payer emails in lookup order, without blanks or repeats."""
        emails: list[str] = []
        for email in (self.customer_details.email if self.customer_details else None, self.metadata.user_email, self.customer_email):
            if email and email.strip() and email.strip() not in emails:
                emails.append(email.strip())
        return emails


class StripeEventData(BaseModel):
    object: dict[str, Any] = Field(default_factory=dict)


class StripeEvent(BaseModel):
    id: str
    type: str
    data: StripeEventData = Field(default_factory=StripeEventData)


class StripeEventType(StrEnum):
    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
    CHECKOUT_SESSION_ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"
    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"


class WebhookResponse(JsonModel):
    """Acknowledgement returned to Stripe."""

    received: bool = True
    success: bool | None = None
    message: str | None = None
    user_id: UserId | None = None
    credits_added: int | None = None
    new_balance: int | None = None


class SuccessPageResponse(JsonModel):
    status: ReconcileStatus
    session_id: str
    credited: bool
    credits_added: int
    balance: int
