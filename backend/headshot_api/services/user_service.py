"""User lookups used when attributing payments."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from headshot_common.db.db_utils import use_session
from headshot_common.ids import UserId
from headshot_common.utils.utils import get_logger
from headshot_db.crud.user import UserDAO
from headshot_db.schemas.user import UserResponse

logger = get_logger()


class UserService:
    """Read-only access to users for the billing flows."""

    def __init__(self, user_dao: UserDAO) -> None:
        self.user_dao = user_dao

    async def get_user_by_id(self, db: AsyncSession, user_id: UserId) -> UserResponse | None:
        async with use_session(db):
            return await self.user_dao.get(db, user_id)

    async def find_by_email(self, db: AsyncSession, email: str) -> UserResponse | None:
        """Find a user by email.

        Tries an exact match first, then falls back to a case-insensitive scan
        for payers who typed their address with different casing at checkout.

        Args:
            db: Database session
            email: Email address as reported by Stripe

        Returns:
            The matching user, or None
        """
        async with use_session(db):
            user = await self.user_dao.get_by_email(db, email)
            if user is not None:
                return user
            user = await self.user_dao.find_by_email_case_insensitive(db, email)
        if user is not None:
            logger.info("Matched payer by case-insensitive email", user_id=user.id)
        return user

    async def resolve_payer(self, db: AsyncSession, user_id: str | None, emails: list[str]) -> UserResponse | None:
        """Resolve the user a payment belongs to: the referenced id when it exists, else the first matching email."""
        if user_id:
            user = await self.get_user_by_id(db, UserId(user_id))
            if user is not None:
                return user
            logger.warning("Payment references unknown user id, falling back to email", user_id=user_id)

        for email in emails:
            user = await self.find_by_email(db, email)
            if user is not None:
                return user
        return None
