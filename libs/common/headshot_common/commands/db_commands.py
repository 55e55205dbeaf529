import asyncio

import typer

from headshot_common.logging import setup_logging
from headshot_common.utils.utils import get_logger
from headshot_db.db.init_db import init_db, reset_db

logger = get_logger(__name__)

app = typer.Typer(help="Database management commands")


@app.callback()
def main() -> None:
    setup_logging()


@app.command()
def init() -> None:
    """Initialize the database by creating all tables."""
    logger.info("Initializing database...")
    if not asyncio.run(init_db()):
        logger.error("Database initialization failed!")
        raise typer.Exit(code=1)
    logger.info("Database initialized successfully!")


@app.command()
def reset(yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt")) -> None:
    """Drop and recreate all tables. Destroys all data."""
    if not yes:
        typer.confirm("This deletes every user, purchase and headshot. Continue?", abort=True)
    if not asyncio.run(reset_db()):
        logger.error("Database reset failed!")
        raise typer.Exit(code=1)
    logger.info("Database reset successfully!")


if __name__ == "__main__":
    app()
