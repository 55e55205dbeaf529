from __future__ import annotations

import atexit
import logging
import os
import sys
from contextvars import ContextVar
from enum import Enum
from logging import Filter, Handler, LogRecord
from logging.handlers import QueueHandler, QueueListener
from queue import Queue
from typing import Any

import structlog
from pydantic import BaseModel
from structlog.typing import EventDict, Processor, WrappedLogger

from headshot_common.core.request_context import RequestContext
from headshot_common.utils import encode_json_str, is_dict

_EXCLUDED_KEYS = {"stripe_signature", "authorization", "api_key", "webhook_secret"}

ANSI_RESET = "\033[0m"
ANSI_DIM = "\033[2m"
ANSI_KEY = "\033[38;5;37m"
LEVEL_COLORS = {
    "debug": "\033[38;5;245m",
    "info": "\033[38;5;40m",
    "warning": "\033[38;5;214m",
    "error": "\033[1;38;5;196m",
    "critical": "\033[1;38;5;196m",
}


def _should_use_json_logging() -> bool:
    """JSON logs outside local/dev, opt-in locally via LOG_JSON_FORMAT."""
    app_env = os.getenv("APP_ENV", "local").lower()
    if app_env not in ("development", "local", "test", "testing"):
        return True
    return os.getenv("LOG_JSON_FORMAT", "").lower() in {"true", "1", "t", "yes"}


def _get_formatter_name() -> str:
    return "json" if _should_use_json_logging() else "plain"


class LoggingQueueListener(QueueListener):
    """``QueueListener`` which starts on creation and stops at exit."""

    def __init__(self, queue: Queue[LogRecord], *handlers: Handler, respect_handler_level: bool = False) -> None:
        super().__init__(queue, *handlers, respect_handler_level=respect_handler_level)
        self.start()
        _ = atexit.register(self.stop)


def _process_values(_logger: WrappedLogger, _name: str, event_dict: EventDict) -> EventDict:
    """Injects the request context and flattens models, enums and context vars into plain values."""
    request_context = RequestContext.get_or_none()
    if request_context is not None:
        event_dict["requestContext"] = request_context

    for key, value in list(event_dict.items()):
        _process_value(event_dict, key, value)
    return event_dict


def _process_value(event_dict: EventDict, key: str, value: Any) -> None:
    if key.lower() in _EXCLUDED_KEYS or value is None:
        event_dict.pop(key, None)
        return

    processed_value = value
    if isinstance(value, ContextVar):
        processed_value = value.get(None)  # type: ignore
        if processed_value is None:
            event_dict.pop(key, None)
            return
    elif isinstance(value, BaseModel):
        processed_value = value.model_dump(exclude_none=True, by_alias=True, mode="json")
    elif isinstance(value, Enum):
        processed_value = value.value

    if is_dict(processed_value):
        for k, v in list(processed_value.items()):
            _process_value(processed_value, k, v)

    event_dict[key] = processed_value


def json_serializer(value: EventDict, **_: Any) -> str:
    return encode_json_str(value)


def _ensure_event_dict(_logger: WrappedLogger, _name: str, event_dict: Any) -> EventDict:
    """Stdlib loggers may hand over a bare string as the message."""
    if isinstance(event_dict, dict):
        return event_dict
    return {"event": str(event_dict)}


def _human_readable_renderer(_logger: WrappedLogger, _name: str, event_dict: EventDict) -> str:
    """``HH:MM:SS LEVEL logger: event key=value ...`` with colors on a tty."""
    use_colors = hasattr(sys.stdout, "isatty") and sys.stdout.isatty()

    level = str(event_dict.pop("level", "info")).lower()
    timestamp = str(event_dict.pop("timestamp", ""))
    logger_name = event_dict.pop("logger", "")
    event = event_dict.pop("event", "")
    exception = event_dict.pop("exception", None)
    event_dict.pop("requestContext", None)

    short_time = timestamp[11:19] if len(timestamp) >= 19 else timestamp
    level_str = f"{level.upper():<8}"
    if use_colors:
        level_str = f"{LEVEL_COLORS.get(level, '')}{level_str}{ANSI_RESET}"
        short_time = f"{ANSI_DIM}{short_time}{ANSI_RESET}"

    parts = [short_time, level_str]
    if logger_name:
        parts.append(f"{logger_name}:")
    parts.append(str(event))
    for key in sorted(event_dict):
        value = event_dict[key]
        rendered = value if isinstance(value, str) else encode_json_str(value, lambda v: str(v))
        parts.append(f"{ANSI_KEY}{key}{ANSI_RESET}={rendered}" if use_colors else f"{key}={rendered}")

    result = " ".join(parts)
    if exception:
        result = f"{result}\n{exception}"
    return result


class NoHealthCheckFilter(Filter):
    def filter(self, record: LogRecord) -> bool:
        return "GET /api/v1/health" not in record.getMessage()


class SafeProcessorFormatter(structlog.stdlib.ProcessorFormatter):
    """ProcessorFormatter that accepts records whose msg is not an event dict."""

    def format(self, record: LogRecord) -> str:
        if not isinstance(record.msg, dict):
            record.msg = {"event": record.getMessage()}
            record.args = ()
        return super().format(record)


class StdLoggingConfig:
    foreign_pre_chain_processors: list[Processor] = [
        _ensure_event_dict,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.ExtraAdder(),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _process_values,
    ]

    structlog_processors = [*foreign_pre_chain_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter]

    # Compact single-line JSON for log shippers
    json_renderer: list[Processor] = [
        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
        structlog.processors.dict_tracebacks,
        structlog.processors.JSONRenderer(serializer=json_serializer),
    ]

    console_renderer: list[Processor] = [
        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
        structlog.processors.format_exc_info,
        _human_readable_renderer,
    ]

    formatters = {
        "json": {
            "()": SafeProcessorFormatter,
            "processors": json_renderer,
            "foreign_pre_chain": foreign_pre_chain_processors,
        },
        "plain": {
            "()": SafeProcessorFormatter,
            "processors": console_renderer,
            "foreign_pre_chain": foreign_pre_chain_processors,
        },
    }

    filters = {
        "no_health_check": {
            "()": NoHealthCheckFilter,
        },
    }

    logger_factory = structlog.stdlib.LoggerFactory()


def _get_handlers() -> dict[str, Any]:
    return {
        "console": {
            "class": logging.StreamHandler,
            "level": "DEBUG",
            "stream": sys.stdout,
            "formatter": _get_formatter_name(),
            "filters": ["no_health_check"],
        },
        "standard": {
            "class": QueueHandler,
            "level": "DEBUG",
            "listener": LoggingQueueListener,
            "handlers": ["console"],
        },
    }


def _quiet_logger(level: str) -> dict[str, Any]:
    return {"handlers": ["standard"], "propagate": False, "level": level}


def build_logger_config(level: str = "INFO") -> dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": StdLoggingConfig.formatters,
        "handlers": _get_handlers(),
        "filters": StdLoggingConfig.filters,
        "root": {"handlers": ["standard"], "level": level},
        "loggers": {
            "botocore": _quiet_logger("ERROR"),
            "urllib3": _quiet_logger("WARNING"),
            "stripe": _quiet_logger("WARNING"),
            "sqlalchemy.engine": _quiet_logger("WARNING"),
            "aiosqlite": _quiet_logger("WARNING"),
            "uvicorn": _quiet_logger("INFO"),
            "uvicorn.error": _quiet_logger("INFO"),
            "uvicorn.access": _quiet_logger("WARNING"),
        },
    }
