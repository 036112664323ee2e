"""Log capture pipeline: sanitizer, history, broadcast hub and adapters."""

from .adapter import CaptureHandler, StreamLogger, install_capture_handler
from .history import HistoryStore
from .hub import BroadcastHub, Subscription
from .large_text import log_large_text
from .models import LogRecord, PingRecord, RecordLevel, decode_event, encode_event
from .sanitizer import Sanitizer, SanitizerPolicy, safe_stringify_message, sanitize
from .service import LogCaptureService

__all__ = [
    "BroadcastHub",
    "CaptureHandler",
    "HistoryStore",
    "LogCaptureService",
    "LogRecord",
    "PingRecord",
    "RecordLevel",
    "Sanitizer",
    "SanitizerPolicy",
    "StreamLogger",
    "Subscription",
    "decode_event",
    "encode_event",
    "install_capture_handler",
    "log_large_text",
    "safe_stringify_message",
    "sanitize",
]
