# Shared database configuration
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase as _DeclarativeBase
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from headshot_common.core.config_service import config_service
from headshot_common.db.db_utils import DateTimeUTC


def create_engine_for_url(url: str) -> AsyncEngine:
    """Async engine for the given URL; SQLite gets a busy timeout so concurrent writers queue up."""
    if url.startswith("sqlite"):
        return create_async_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 30},
            echo=False,
        )
    return create_async_engine(
        url,
        pool_size=20,
        max_overflow=30,
        pool_timeout=30,
        pool_pre_ping=True,
    )


DATABASE_URL = config_service.get_database_url()
engine = create_engine_for_url(DATABASE_URL)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=bind,
    )


AsyncSessionLocal = create_session_factory(engine)


class Base(_DeclarativeBase):
    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(DateTimeUTC(), server_default=func.current_timestamp())
    updated_at: Mapped[datetime] = mapped_column(
        DateTimeUTC(),
        server_default=func.current_timestamp(),
        onupdate=func.current_timestamp(),
    )
