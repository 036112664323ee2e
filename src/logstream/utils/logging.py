"""
Logging and error handling framework for logstream.

This module provides:
- Structured (JSON) logging configuration
- Custom exception classes
- Context-aware logging utilities
"""

import json
import logging
import sys
import traceback
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# Attributes every stdlib LogRecord carries; anything else was passed as an extra.
STANDARD_RECORD_FIELDS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
        "asctime",
    }
)


class LogLevel(str, Enum):
    """Log level enumeration for type safety."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogContext(str, Enum):
    """Log context categories for structured logging."""

    CAPTURE = "capture"
    STREAM = "stream"
    WEB = "web"
    AUTH = "auth"
    CONFIG = "config"
    CLI = "cli"


class LogStreamException(Exception):
    """Base exception class for all logstream errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.timestamp = datetime.now(UTC)


class ConfigurationError(LogStreamException):
    """Errors related to configuration and setup."""

    pass


class StreamError(LogStreamException):
    """Errors related to a log stream session's lifecycle."""

    pass


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key, value in record.__dict__.items():
            if key not in STANDARD_RECORD_FIELDS and not key.startswith("_"):
                log_data[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        try:
            return json.dumps(log_data, default=str)
        except ValueError:
            # Circular extras; fall back to repr so the line still gets out
            return json.dumps({k: repr(v) for k, v in log_data.items()})


class ContextualLogger:
    """Logger with context management for structured logging."""

    def __init__(self, name: str, context: LogContext):
        self.logger = logging.getLogger(name)
        self.context = context.value
        self.connection_id: str | None = None
        self.request_id: str | None = None

    def set_connection_id(self, connection_id: str) -> None:
        """Set the stream connection ID for all subsequent log messages."""
        self.connection_id = connection_id

    def set_request_id(self, request_id: str) -> None:
        """Set the request ID for all subsequent log messages."""
        self.request_id = request_id

    def _extra(self, extra_context: dict[str, Any] | None) -> dict[str, Any]:
        extra: dict[str, Any] = {"context": self.context}
        if self.connection_id:
            extra["connection_id"] = self.connection_id
        if self.request_id:
            extra["request_id"] = self.request_id
        if extra_context:
            # Keys colliding with LogRecord attributes would make logging raise
            for key, value in extra_context.items():
                if key in STANDARD_RECORD_FIELDS:
                    key = f"field_{key}"
                extra[key] = value
        return extra

    def _log(
        self,
        level: int,
        message: str,
        extra_context: dict[str, Any] | None = None,
        exception: BaseException | None = None,
    ) -> None:
        self.logger.log(
            level, message, exc_info=exception, extra=self._extra(extra_context)
        )

    def trace(self, message: str, **kwargs: Any) -> None:
        """Log trace message with context."""
        self._log(TRACE, message, kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message with context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message with context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message with context."""
        self._log(logging.WARNING, message, kwargs)

    def error(
        self, message: str, exception: BaseException | None = None, **kwargs: Any
    ) -> None:
        """Log error message with context and optional exception."""
        self._log(logging.ERROR, message, kwargs, exception)

    def critical(
        self, message: str, exception: BaseException | None = None, **kwargs: Any
    ) -> None:
        """Log critical message with context and optional exception."""
        self._log(logging.CRITICAL, message, kwargs, exception)


def get_logger(name: str, context: LogContext) -> ContextualLogger:
    """Get a contextual logger instance."""
    return ContextualLogger(name, context)


def setup_logging(
    log_level: str | LogLevel = LogLevel.INFO,
    log_file: Path | None = None,
    enable_structured: bool = True,
    enable_console: bool = True,
) -> None:
    """
    Setup process-level logging configuration.

    Args:
        log_level: Minimum log level to capture
        log_file: Optional file path for log output
        enable_structured: Use JSON structured logging format
        enable_console: Enable console output
    """
    if isinstance(log_level, LogLevel):
        log_level = log_level.value

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    def _formatter() -> logging.Formatter:
        if enable_structured:
            return StructuredFormatter()
        return logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handlers: list[logging.Handler] = []

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(_formatter())
        handlers.append(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(_formatter())
        handlers.append(file_handler)

    root_logger = logging.getLogger()

    # Only replace the output handlers; capture handlers stay attached
    for handler in root_logger.handlers[:]:
        if isinstance(handler, (logging.StreamHandler, logging.FileHandler)):
            root_logger.removeHandler(handler)

    root_logger.setLevel(logging.getLevelName(log_level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
