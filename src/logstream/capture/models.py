"""Wire models for captured log events."""

import time
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

MAX_CONTEXT_LENGTH = 120


def now_ms() -> int:
    """Wall-clock time in integer milliseconds."""
    return time.time_ns() // 1_000_000


class RecordLevel(str, Enum):
    """Closed set of levels a captured record can carry."""

    TRACE = "trace"
    DEBUG = "debug"
    LOG = "log"
    WARN = "warn"
    ERROR = "error"
    VERBOSE = "verbose"

    @classmethod
    def coerce(cls, value: "RecordLevel | str") -> "RecordLevel":
        """Map free-form level names onto the closed set, defaulting to LOG."""
        if isinstance(value, cls):
            return value
        name = str(value).strip().lower()
        aliases = {"info": "log", "warning": "warn", "critical": "error", "fatal": "error"}
        try:
            return cls(aliases.get(name, name))
        except ValueError:
            return cls.LOG


class LogRecord(BaseModel):
    """A sanitized log record as stored in history and sent to viewers."""

    model_config = ConfigDict(frozen=True)

    type: Literal["log"] = "log"
    id: int = Field(..., description="Process-wide sequence number")
    ts: int = Field(..., description="Capture time in epoch milliseconds")
    level: RecordLevel
    context: str | None = Field(None, max_length=MAX_CONTEXT_LENGTH)
    message: str
    meta: dict[str, Any] | None = None

    @property
    def sequence(self) -> int:
        return self.id

    @property
    def timestamp(self) -> int:
        return self.ts


class PingRecord(BaseModel):
    """Keep-alive marker; never stored in history."""

    model_config = ConfigDict(frozen=True)

    type: Literal["ping"] = "ping"
    ts: int = Field(default_factory=now_ms)


LogEvent = Annotated[LogRecord | PingRecord, Field(discriminator="type")]

log_event_adapter: TypeAdapter[LogRecord | PingRecord] = TypeAdapter(LogEvent)


def encode_event(event: LogRecord | PingRecord) -> str:
    """Serialize one event as a single NDJSON line."""
    return event.model_dump_json(exclude_none=True) + "\n"


def decode_event(line: str | bytes) -> LogRecord | PingRecord:
    """Parse one NDJSON line back into an event."""
    return log_event_adapter.validate_json(line)
