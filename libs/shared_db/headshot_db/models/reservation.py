from __future__ import annotations

from enum import StrEnum

from sqlalchemy import Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from headshot_common.db.db_utils import enum_values
from headshot_common.ids import ReservationId, UserId
from headshot_db.db import Base


class ReservationStatus(StrEnum):
    HELD = "held"
    COMMITTED = "committed"
    REFUNDED = "refunded"


class CreditReservation(Base):
    """Credits taken from a balance for one unit of work, so they can be given back if the work fails."""

    __tablename__ = "credit_reservations"

    id: Mapped[ReservationId] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[UserId] = mapped_column(String(128), ForeignKey("users.id"), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(ReservationStatus, native_enum=False, values_callable=enum_values, length=32),
        nullable=False,
        default=ReservationStatus.HELD,
    )
