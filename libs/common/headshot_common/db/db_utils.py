from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sqlalchemy import DateTime, Dialect, TypeDecorator
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError, TimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from headshot_common.core.app_error import Errors
from headshot_common.utils.utils import get_logger

logger = get_logger()

# Failures of the store itself, as opposed to constraint violations a caller may handle
STORE_UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, DisconnectionError, TimeoutError)


class DateTimeUTC(TypeDecorator[datetime]):
    """Timezone Aware DateTime.

    Ensure UTC is stored in the database and that TZ aware dates are returned for all dialects.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    @property
    def python_type(self) -> type[datetime]:
        return datetime

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        if value is None:
            return value
        if not value.tzinfo:
            msg = "tzinfo is required"
            raise TypeError(msg)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


def enum_values(enum_cls: type[Enum]) -> list[Any]:
    """``values_callable`` for SQLAlchemy ``Enum`` columns: persist the StrEnum values, not member names."""
    return [member.value for member in enum_cls]


@asynccontextmanager
async def use_session(session: AsyncSession) -> AsyncGenerator[AsyncSession]:
    """Commits the session when exiting the context, rolls back on error.

    Store failures surface as ``Errors.Store.UNAVAILABLE``.
    """
    try:
        yield session
        await session.commit()
    except STORE_UNAVAILABLE_ERRORS as e:
        await _safe_rollback(session)
        logger.exception("Database unavailable", error=str(e))
        raise Errors.Store.UNAVAILABLE.create(cause=e) from e
    except Exception:
        await _safe_rollback(session)
        raise


async def _safe_rollback(session: AsyncSession) -> None:
    try:
        await session.rollback()
    except STORE_UNAVAILABLE_ERRORS as e:
        logger.warning("Rollback failed", error=str(e))
