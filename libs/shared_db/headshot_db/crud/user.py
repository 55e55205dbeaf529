from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from headshot_common.ids import UserId
from headshot_common.utils.utils import get_logger
from headshot_db.models.user import User
from headshot_db.schemas.user import UserCreate, UserResponse

logger = get_logger(__name__)


class UserDAO:
    """Data Access Object for User operations.
    Returns Pydantic objects instead of SQLAlchemy models.

    Writes are flushed, never committed: the calling service owns the transaction.
    Balance changes are single conditional UPDATE statements so concurrent writers
    serialize on the row instead of racing a read-modify-write.
    """

    async def get(self, db: AsyncSession, id: UserId) -> UserResponse | None:
        result = await db.execute(select(User).where(User.id == id))
        user = result.scalar_one_or_none()
        return UserResponse.model_validate(user) if user else None

    async def get_balance(self, db: AsyncSession, id: UserId) -> int | None:
        result = await db.execute(select(User.credits).where(User.id == id))
        return result.scalar_one_or_none()

    async def get_by_email(self, db: AsyncSession, email: str) -> UserResponse | None:
        """Exact email match; the first user wins when several share an address."""
        result = await db.execute(select(User).where(User.email == email).order_by(User.created_at).limit(1))
        user = result.scalar_one_or_none()
        return UserResponse.model_validate(user) if user else None

    async def find_by_email_case_insensitive(self, db: AsyncSession, email: str) -> UserResponse | None:
        """Case-insensitive email match. Not index-backed: a full scan of users."""
        result = await db.execute(select(User).where(func.lower(User.email) == email.strip().lower()).order_by(User.created_at).limit(1))
        user = result.scalar_one_or_none()
        return UserResponse.model_validate(user) if user else None

    async def insert_if_absent(self, db: AsyncSession, *, obj_in: UserCreate) -> UserResponse | None:
        """Insert the user unless the id already exists.
        Returns the created user, or None (after rolling back) when the id is taken.
        """
        user = User(id=obj_in.id, email=obj_in.email, display_name=obj_in.display_name, credits=obj_in.credits)
        try:
            db.add(user)
            await db.flush()
        except IntegrityError:
            logger.info("User already exists, skipping insert", user_id=obj_in.id)
            await db.rollback()
            return None
        await db.refresh(user)
        return UserResponse.model_validate(user)

    async def try_debit(self, db: AsyncSession, id: UserId, amount: int) -> int | None:
        """Subtract ``amount`` only if the balance covers it.
        Returns the new balance, or None when the user is missing or the balance is too low.
        """
        result = await db.execute(
            update(User)
            .where(User.id == id, User.credits >= amount)
            .values(credits=User.credits - amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:  # type: ignore[attr-defined]
            return None
        return await self.get_balance(db, id)

    async def credit(self, db: AsyncSession, id: UserId, amount: int) -> int | None:
        """Atomically add ``amount``. Returns the new balance, or None if the user does not exist."""
        result = await db.execute(
            update(User).where(User.id == id).values(credits=User.credits + amount).execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:  # type: ignore[attr-defined]
            return None
        return await self.get_balance(db, id)
