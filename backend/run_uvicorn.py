"""Development launcher for Uvicorn that ensures logging is configured before reload workers start."""

from __future__ import annotations

import uvicorn

from headshot_common.core.config_service import config_service
from headshot_common.logging.setup_logging import setup_logging


def main() -> None:
    """Configure logging and delegate to uvicorn.run."""
    # Importing config_service loads the .env file for APP_ENV first
    setup_logging()
    uvicorn.run(
        "headshot_api.main:app",
        host=str(config_service.get("host", "0.0.0.0")),
        port=int(config_service.get("port", 9998)),
        reload=config_service.is_development(),
        reload_dirs=[".", "../libs"],  # Watch current dir (backend) and libs
    )


if __name__ == "__main__":
    main()
