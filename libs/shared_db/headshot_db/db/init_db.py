from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from headshot_common.utils.utils import get_logger
from headshot_db import models  # noqa: F401  # registers every table on Base.metadata
from headshot_db.db import Base, engine

logger = get_logger()


async def init_db(bind: AsyncEngine | None = None) -> bool:
    """Create all tables that do not exist yet. Safe to call on every start."""
    target = bind or engine
    try:
        logger.info("Creating database tables", operation="create_tables", dialect=target.dialect.name)
        async with target.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ready", operation="create_tables", status="success")
        return True
    except SQLAlchemyError as e:
        logger.exception("Error during database initialization", operation="create_tables", status="error", error=str(e))
        return False


async def reset_db(bind: AsyncEngine | None = None) -> bool:
    """Drop and recreate every table. Destroys all data."""
    target = bind or engine
    try:
        logger.warning("Dropping all database tables", operation="reset_db", dialect=target.dialect.name)
        async with target.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database reset completed", operation="reset_db", status="success")
        return True
    except SQLAlchemyError as e:
        logger.exception("Error during database reset", operation="reset_db", status="error", error=str(e))
        return False
