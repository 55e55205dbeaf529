import os
from logging.config import dictConfig
from typing import Any

import structlog

from headshot_common.logging.std_logging_config import StdLoggingConfig, build_logger_config
from headshot_common.utils.utils import deep_merge


def setup_logging(logging_config: dict[str, Any] | None = None) -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    dictConfig(deep_merge(build_logger_config(level), logging_config or {}))

    structlog.configure(
        processors=StdLoggingConfig.structlog_processors,
        # The bound logger returned by get_logger(), imitating ``logging.Logger``
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=StdLoggingConfig.logger_factory,
        cache_logger_on_first_use=True,
    )
