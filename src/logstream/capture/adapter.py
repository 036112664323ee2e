"""Entry points that feed application logging into the capture service."""

import logging
import threading
from typing import Any

from ..utils.logging import STANDARD_RECORD_FIELDS, TRACE
from .models import RecordLevel
from .sanitizer import describe_exception
from .service import LogCaptureService

# Set on records the StreamLogger already captured so CaptureHandler skips them.
CAPTURED_FLAG = "_logstream_captured"

_SINK_LEVELS = {
    RecordLevel.TRACE: TRACE,
    RecordLevel.DEBUG: logging.DEBUG,
    RecordLevel.VERBOSE: logging.INFO,
    RecordLevel.LOG: logging.INFO,
    RecordLevel.WARN: logging.WARNING,
    RecordLevel.ERROR: logging.ERROR,
}


def record_level_for(levelno: int) -> RecordLevel:
    """Map a stdlib numeric level onto the closed record level set."""
    if levelno < logging.DEBUG:
        return RecordLevel.TRACE
    if levelno < logging.INFO:
        return RecordLevel.DEBUG
    if levelno < logging.WARNING:
        return RecordLevel.LOG
    if levelno < logging.ERROR:
        return RecordLevel.WARN
    return RecordLevel.ERROR


class StreamLogger:
    """Structured logging facade other subsystems call instead of printing.

    Every call is written unsanitized to the local process sink (a stdlib
    logger) and then pushed, sanitized, into the capture service.
    """

    def __init__(
        self,
        service: LogCaptureService,
        context: str | None = None,
        sink: logging.Logger | None = None,
    ) -> None:
        self.service = service
        self.context = context
        self.sink = sink or logging.getLogger("logstream.app")

    def child(self, context: str) -> "StreamLogger":
        """Same service and sink, different default context."""
        return StreamLogger(self.service, context, self.sink)

    def log(self, message: Any, context: str | None = None, **meta: Any) -> None:
        self._emit(RecordLevel.LOG, message, context, meta)

    info = log

    def warn(self, message: Any, context: str | None = None, **meta: Any) -> None:
        self._emit(RecordLevel.WARN, message, context, meta)

    warning = warn

    def error(
        self,
        message: Any,
        trace: str | None = None,
        context: str | None = None,
        **meta: Any,
    ) -> None:
        if trace:
            meta["trace"] = trace
        self._emit(RecordLevel.ERROR, message, context, meta)

    def debug(self, message: Any, context: str | None = None, **meta: Any) -> None:
        self._emit(RecordLevel.DEBUG, message, context, meta)

    def verbose(self, message: Any, context: str | None = None, **meta: Any) -> None:
        self._emit(RecordLevel.VERBOSE, message, context, meta)

    def trace(self, message: Any, context: str | None = None, **meta: Any) -> None:
        self._emit(RecordLevel.TRACE, message, context, meta)

    def emit(
        self,
        level: RecordLevel | str,
        message: Any,
        context: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        """Log at a level chosen at runtime."""
        self._emit(RecordLevel.coerce(level), message, context, meta or {})

    def _emit(
        self,
        level: RecordLevel,
        message: Any,
        context: str | None,
        meta: dict[str, Any],
    ) -> None:
        context = context or self.context
        self._write_sink(level, message, context, meta)
        self.service.push(level, message, context, meta or None)

    def _write_sink(
        self,
        level: RecordLevel,
        message: Any,
        context: str | None,
        meta: dict[str, Any],
    ) -> None:
        exc_info = message if isinstance(message, BaseException) else None
        text = message if isinstance(message, str) else repr(message)
        if context:
            text = f"[{context}] {text}"
        extra: dict[str, Any] = {CAPTURED_FLAG: True, "context": context}
        if meta:
            extra["meta"] = meta
        self.sink.log(_SINK_LEVELS[level], "%s", text, exc_info=exc_info, extra=extra)


class CaptureHandler(logging.Handler):
    """Captures stdlib log records and pushes them into the capture service.

    Installed on the root logger so that modules logging through
    ``logging.getLogger`` or ``get_logger`` show up on the live stream too.
    """

    def __init__(self, service: LogCaptureService, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.service = service
        self._state = threading.local()

    def handle(self, record: logging.LogRecord) -> bool:
        # No handler lock here: pushes are serialized by the service lock.
        rv = self.filter(record)
        if isinstance(rv, logging.LogRecord):
            record = rv
        if rv:
            self.emit(record)
        return bool(rv)

    def emit(self, record: logging.LogRecord) -> None:
        if getattr(record, CAPTURED_FLAG, False):
            return
        # Re-entrancy guard: capturing may itself log, which would call back
        # into this handler on the same thread.
        if getattr(self._state, "emitting", False):
            return
        self._state.emitting = True
        try:
            context = getattr(record, "context", None) or record.name
            self.service.push(
                record_level_for(record.levelno),
                record.getMessage(),
                context=str(context),
                meta=self._meta_for(record),
            )
        except Exception:
            self.handleError(record)
        finally:
            self._state.emitting = False

    @staticmethod
    def _meta_for(record: logging.LogRecord) -> dict[str, Any] | None:
        meta: dict[str, Any] = {
            key: value
            for key, value in record.__dict__.items()
            if key not in STANDARD_RECORD_FIELDS
            and key != "context"
            and not key.startswith("_")
        }
        if record.exc_info and record.exc_info[1] is not None:
            meta["exception"] = describe_exception(record.exc_info[1])
        if record.stack_info:
            meta["stack"] = record.stack_info
        if meta:
            meta.setdefault("logger", record.name)
        return meta or None


def install_capture_handler(
    service: LogCaptureService, logger: logging.Logger | None = None
) -> CaptureHandler:
    """Attach a CaptureHandler to ``logger`` (the root logger by default)."""
    handler = CaptureHandler(service)
    (logger or logging.getLogger()).addHandler(handler)
    return handler


def remove_capture_handler(
    handler: CaptureHandler, logger: logging.Logger | None = None
) -> None:
    (logger or logging.getLogger()).removeHandler(handler)
