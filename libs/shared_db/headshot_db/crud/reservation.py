from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from headshot_common.ids import ReservationId, UserId
from headshot_db.models.reservation import CreditReservation, ReservationStatus
from headshot_db.schemas.reservation import CreditReservationResponse


class CreditReservationDAO:
    async def create(
        self,
        db: AsyncSession,
        *,
        id: ReservationId,
        user_id: UserId,
        amount: int,
        reason: str,
    ) -> CreditReservationResponse:
        reservation = CreditReservation(id=id, user_id=user_id, amount=amount, reason=reason, status=ReservationStatus.HELD)
        db.add(reservation)
        await db.flush()
        await db.refresh(reservation)
        return CreditReservationResponse.model_validate(reservation)

    async def get(self, db: AsyncSession, id: ReservationId) -> CreditReservationResponse | None:
        result = await db.execute(select(CreditReservation).where(CreditReservation.id == id))
        row = result.scalar_one_or_none()
        return CreditReservationResponse.model_validate(row) if row else None

    async def transition(
        self,
        db: AsyncSession,
        id: ReservationId,
        *,
        from_status: ReservationStatus,
        to_status: ReservationStatus,
    ) -> bool:
        """Conditional status change; False if the reservation was not in ``from_status``."""
        result = await db.execute(
            update(CreditReservation)
            .where(CreditReservation.id == id, CreditReservation.status == from_status)
            .values(status=to_status)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0  # type: ignore[attr-defined]
