"""Structured logging for the number pool service.

Every record carries the request's correlation id. Pool operations add
`user_id`, `operation` and their outcome counts as extra fields, which the
JSON formatter emits as top-level keys.
"""

import json
import logging
import logging.config
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

from .settings import Settings, settings as default_settings

correlation_id: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)

# Fields placed first in every JSON entry when a record carries them
PROMOTED_FIELDS = ('user_id', 'operation', 'error')

_LOG_RECORD_ATTRS = frozenset(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {
    'message', 'asctime', 'correlation_id', 'taskName',
}


class CorrelationIdFormatter(logging.Formatter):
    """Text formatter exposing %(correlation_id)s."""

    def format(self, record: logging.LogRecord) -> str:
        record.correlation_id = correlation_id.get() or "N/A"
        return super().format(record)


class StructuredFormatter(CorrelationIdFormatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "correlation_id": correlation_id.get() or "N/A",
            "message": record.getMessage(),
        }

        for field in PROMOTED_FIELDS:
            if hasattr(record, field):
                entry[field] = getattr(record, field)

        for key, value in record.__dict__.items():
            if key in entry or key in _LOG_RECORD_ATTRS or key.startswith('_'):
                continue
            entry[key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


def get_logging_config(config: Optional[Settings] = None) -> Dict[str, Any]:
    """dictConfig schema for the given settings."""
    config = config or default_settings

    if config.log_format == "json":
        formatter = {
            "()": "number_pool_service.config.logging.StructuredFormatter",
            "datefmt": "%Y-%m-%dT%H:%M:%S",
        }
    else:
        formatter = {
            "()": "number_pool_service.config.logging.CorrelationIdFormatter",
            "format": "%(asctime)s - %(correlation_id)s - %(name)s - %(levelname)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        }

    package_logger = {
        "level": config.log_level,
        "handlers": ["console"],
        "propagate": False,
    }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
                "formatter": "default",
                "level": config.log_level,
            },
        },
        "root": {"level": config.log_level, "handlers": ["console"]},
        "loggers": {
            "number_pool_service": package_logger,
            "uvicorn": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "uvicorn.access": {"level": "WARNING", "handlers": ["console"], "propagate": False},
        },
    }


def setup_logging(config: Optional[Settings] = None) -> None:
    logging.config.dictConfig(get_logging_config(config))


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def set_correlation_id(corr_id: str) -> None:
    correlation_id.set(corr_id)


def get_correlation_id() -> Optional[str]:
    return correlation_id.get()


class LoggingService:
    """Logger wrapper that attaches pool context as extra fields."""

    def __init__(self, logger_name: str):
        self.logger = logging.getLogger(logger_name)

    def log_operation(self, level: str, message: str, user_id: Optional[str] = None,
                      operation: Optional[str] = None, error: Optional[str] = None, **fields) -> None:
        """Log a message with pool context.

        Args:
            level: Log level name (debug, info, warning, error)
            message: Log message
            user_id: User the operation acts on, if any
            operation: Operation name
            error: Error text, if any
            **fields: Counts and other extra fields; None values are dropped
        """
        extra = {key: value for key, value in fields.items() if value is not None}
        if user_id:
            extra['user_id'] = user_id
        if operation:
            extra['operation'] = operation
        if error:
            extra['error'] = error

        self.logger.log(logging.getLevelName(level.upper()), message, extra=extra)

    def log_pool_operation(self, operation: str, success: bool, user_id: Optional[str] = None,
                           error: Optional[str] = None, **counts) -> None:
        """Log the outcome of a pool operation with its counts.

        Successes log at INFO. Failures log at WARNING, or at ERROR when an
        error text is given.
        """
        label = operation.replace("_", " ").capitalize()
        if success:
            level, message = "info", f"{label} operation completed successfully"
        else:
            level, message = ("error" if error else "warning"), f"{label} operation failed"

        self.log_operation(level, message, user_id=user_id, operation=operation, error=error, **counts)

    def log_error(self, message: str, error: Exception, user_id: Optional[str] = None,
                  operation: Optional[str] = None, **fields) -> None:
        """Log an exception's text and type at ERROR."""
        self.log_operation(
            "error",
            message,
            user_id=user_id,
            operation=operation,
            error=str(error),
            error_type=type(error).__name__,
            **fields
        )
