"""Payment-related database models.
A purchase row per checkout session is the idempotency key that keeps Stripe payments from being credited twice.
"""

from __future__ import annotations

from enum import StrEnum

from sqlalchemy import Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from headshot_common.db.db_utils import enum_values
from headshot_common.ids import PurchaseId, UserId
from headshot_db.db import Base


class PurchaseStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class Purchase(Base):
    __tablename__ = "purchases"

    id: Mapped[PurchaseId] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[UserId] = mapped_column(String(128), ForeignKey("users.id"), nullable=False, index=True)

    stripe_session_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    stripe_payment_intent_id: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)

    credits_purchased: Mapped[int] = mapped_column(Integer, nullable=False)
    # Integer cents
    amount_paid: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[PurchaseStatus] = mapped_column(
        Enum(PurchaseStatus, native_enum=False, values_callable=enum_values, length=32),
        nullable=False,
        default=PurchaseStatus.PENDING,
    )
