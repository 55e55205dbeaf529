"""Credit ledger: balances, sign-up bonus, consumption with reservations, grants and refunds."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from headshot_common.core.app_error import Errors
from headshot_common.db.db_utils import use_session
from headshot_common.ids import ReservationId, UserId, new_reservation_id
from headshot_common.utils.utils import get_logger
from headshot_db.crud.reservation import CreditReservationDAO
from headshot_db.crud.user import UserDAO
from headshot_db.models.reservation import ReservationStatus
from headshot_db.schemas.reservation import CreditReservationResponse
from headshot_db.schemas.user import UserCreate, UserResponse

logger = get_logger()

SIGN_UP_BONUS_CREDITS = 6


class CreditLedgerService:
    """Owns every change to a user's credit balance.

    Each public operation runs in its own transaction on the session it is given,
    except ``grant_in_transaction`` which joins the caller's transaction so a grant
    can commit together with the purchase that justifies it.
    """

    def __init__(self, user_dao: UserDAO, reservation_dao: CreditReservationDAO, sign_up_bonus: int = SIGN_UP_BONUS_CREDITS) -> None:
        self.user_dao = user_dao
        self.reservation_dao = reservation_dao
        self.sign_up_bonus = sign_up_bonus

    async def get_balance(self, db: AsyncSession, user_id: UserId) -> int:
        async with use_session(db):
            balance = await self.user_dao.get_balance(db, user_id)
        if balance is None:
            raise Errors.Credits.NOT_FOUND.create(details={"user_id": user_id})
        return balance

    async def get_user(self, db: AsyncSession, user_id: UserId) -> UserResponse:
        async with use_session(db):
            user = await self.user_dao.get(db, user_id)
        if user is None:
            raise Errors.Credits.NOT_FOUND.create(details={"user_id": user_id})
        return user

    async def initialize(self, db: AsyncSession, user_id: UserId, email: str, display_name: str | None = None) -> UserResponse:
        """Create the user with the sign-up bonus on first sight; return the stored user otherwise.

        Concurrent first calls race on the primary key: exactly one insert wins and the
        others read the winner's row, so the bonus is granted once.
        """
        async with use_session(db):
            existing = await self.user_dao.get(db, user_id)
        if existing is not None:
            return existing

        async with use_session(db):
            created = await self.user_dao.insert_if_absent(
                db,
                obj_in=UserCreate(id=user_id, email=email, display_name=display_name or email.split("@")[0], credits=self.sign_up_bonus),
            )
        if created is not None:
            logger.info("Initialized user with sign-up bonus", user_id=user_id, credits=self.sign_up_bonus)
            return created

        return await self.get_user(db, user_id)

    async def consume(self, db: AsyncSession, user_id: UserId, amount: int, reason: str = "generation") -> CreditReservationResponse:
        """Take ``amount`` credits if the balance covers them, leaving the balance untouched otherwise.

        Returns a held reservation that can later be committed or refunded.
        """
        self._check_amount(amount)
        async with use_session(db):
            new_balance = await self.user_dao.try_debit(db, user_id, amount)
            if new_balance is None:
                # Nothing was written; tell a missing user apart from a short balance
                balance = await self.user_dao.get_balance(db, user_id)
                if balance is None:
                    raise Errors.Credits.NOT_FOUND.create(details={"user_id": user_id})
                raise Errors.Credits.INSUFFICIENT_CREDITS.create(
                    f"Insufficient credits: {amount} required, {balance} available",
                    details={"required": amount, "available": balance},
                )
            reservation = await self.reservation_dao.create(db, id=new_reservation_id(), user_id=user_id, amount=amount, reason=reason)

        logger.info("Consumed credits", user_id=user_id, amount=amount, new_balance=new_balance, reservation_id=reservation.id)
        return reservation

    async def grant(self, db: AsyncSession, user_id: UserId, amount: int) -> int:
        """Add credits. Not idempotent by itself: callers dedupe (see ``PaymentService``)."""
        async with use_session(db):
            new_balance = await self.grant_in_transaction(db, user_id, amount)
        logger.info("Granted credits", user_id=user_id, amount=amount, new_balance=new_balance)
        return new_balance

    async def grant_in_transaction(self, db: AsyncSession, user_id: UserId, amount: int) -> int:
        """``grant`` without committing; the caller's transaction decides."""
        self._check_amount(amount)
        new_balance = await self.user_dao.credit(db, user_id, amount)
        if new_balance is None:
            raise Errors.Credits.NOT_FOUND.create(details={"user_id": user_id})
        return new_balance

    async def commit_reservation(self, db: AsyncSession, reservation_id: ReservationId) -> None:
        async with use_session(db):
            await self.commit_reservation_in_transaction(db, reservation_id)

    async def commit_reservation_in_transaction(self, db: AsyncSession, reservation_id: ReservationId) -> None:
        """Mark the reserved credits as spent for good. No-op unless the reservation is held."""
        committed = await self.reservation_dao.transition(db, reservation_id, from_status=ReservationStatus.HELD, to_status=ReservationStatus.COMMITTED)
        if not committed:
            logger.warning("Reservation was not held, not committing", reservation_id=reservation_id)

    async def refund(self, db: AsyncSession, reservation_id: ReservationId) -> int:
        """Give held credits back. Idempotent: only the first refund of a reservation grants.

        Returns the user's balance after the call.
        """
        async with use_session(db):
            reservation = await self.reservation_dao.get(db, reservation_id)
            if reservation is None:
                raise Errors.Credits.RESERVATION_NOT_FOUND.create(details={"reservation_id": reservation_id})

            refunded = await self.reservation_dao.transition(db, reservation_id, from_status=ReservationStatus.HELD, to_status=ReservationStatus.REFUNDED)
            if refunded:
                balance = await self.grant_in_transaction(db, reservation.user_id, reservation.amount)
            else:
                balance = await self.user_dao.get_balance(db, reservation.user_id) or 0

        if refunded:
            logger.info("Refunded credit reservation", reservation_id=reservation_id, amount=reservation.amount, new_balance=balance)
        else:
            logger.info("Reservation already settled, nothing to refund", reservation_id=reservation_id, status=reservation.status)
        return balance

    @staticmethod
    def _check_amount(amount: int) -> None:
        if amount <= 0:
            raise Errors.Credits.INVALID_AMOUNT.create(details={"amount": amount})
