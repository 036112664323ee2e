"""The log capture service: sequence, sanitization, history and fan-out."""

import threading
from collections.abc import Mapping
from typing import Any

from ..config.loader import LogStreamConfig
from .history import DEFAULT_CAPACITY, HistoryStore
from .hub import DEFAULT_QUEUE_SIZE, BroadcastHub
from .models import MAX_CONTEXT_LENGTH, LogRecord, RecordLevel, now_ms
from .sanitizer import Sanitizer, SanitizerPolicy


class LogCaptureService:
    """Owns every piece of shared log-capture state for one process.

    ``push`` is the single write path. Sequence assignment, the history
    append and the hub publish happen inside one short critical section, so
    history order, sequence order and publish order always agree. Nothing in
    that section performs I/O or awaits.
    """

    def __init__(
        self,
        history_capacity: int = DEFAULT_CAPACITY,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        sanitizer: Sanitizer | None = None,
    ) -> None:
        self.history = HistoryStore(history_capacity)
        self.hub = BroadcastHub(queue_size)
        self.sanitizer = sanitizer or Sanitizer()
        self._sequence = 0
        self._lock = threading.Lock()
        self._local = threading.local()

    @classmethod
    def from_config(cls, config: LogStreamConfig) -> "LogCaptureService":
        return cls(
            history_capacity=config.history_capacity,
            queue_size=config.subscriber_queue_size,
            sanitizer=Sanitizer(SanitizerPolicy.from_config(config)),
        )

    @property
    def last_sequence(self) -> int:
        return self._sequence

    def push(
        self,
        level: RecordLevel | str,
        message: Any,
        context: str | None = None,
        meta: Any = None,
    ) -> LogRecord | None:
        """Capture one log call.

        Returns the stored record, or None when the call was made re-entrantly
        from inside another push on the same thread (for example a warning
        logged while publishing), which is never captured.
        """
        if getattr(self._local, "active", False):
            return None
        self._local.active = True
        try:
            safe_message = self.sanitizer.stringify_message(message)
            safe_meta = self._sanitize_meta(meta)
            safe_context = self._sanitize_context(context)
            with self._lock:
                self._sequence += 1
                record = LogRecord(
                    id=self._sequence,
                    ts=now_ms(),
                    level=RecordLevel.coerce(level),
                    context=safe_context,
                    message=safe_message,
                    meta=safe_meta,
                )
                self.history.push(record)
                self.hub.publish(record)
            return record
        finally:
            self._local.active = False

    def recent(self, limit: int) -> list[LogRecord]:
        return self.history.recent(limit)

    def stats(self) -> dict[str, int]:
        return {
            "history_size": len(self.history),
            "history_capacity": self.history.capacity,
            "subscribers": self.hub.subscriber_count,
            "last_sequence": self._sequence,
            "dropped_deliveries": self.hub.total_dropped(),
        }

    def close(self) -> None:
        """End all live streams. History stays readable."""
        self.hub.close()

    def _sanitize_meta(self, meta: Any) -> dict[str, Any] | None:
        if meta is None:
            return None
        if isinstance(meta, Mapping) and not meta:
            return None
        safe = self.sanitizer.sanitize(meta)
        if isinstance(safe, dict):
            return safe
        return {"meta": safe}

    def _sanitize_context(self, context: Any) -> str | None:
        if context is None:
            return None
        text = self.sanitizer.sanitize_string(str(context))
        return text[:MAX_CONTEXT_LENGTH] or None
