"""
Pydantic schemas for the log API.

Request bodies and response envelopes; the records themselves are the
capture models.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from ..capture.models import LogRecord, RecordLevel

MAX_CLIENT_BATCH = 100


class RecentLogsResponse(BaseModel):
    """Envelope for the recent history slice."""

    success: bool = True
    items: list[LogRecord] = Field(..., description="Oldest-first log records")


class ClientLogEntry(BaseModel):
    """One console or error event captured in the operator's browser."""

    level: RecordLevel = Field(RecordLevel.LOG, description="Console level")
    message: Any = Field(..., description="Console arguments or error text")
    context: str | None = Field(None, max_length=200, description="Emitting component")
    meta: dict[str, Any] | None = Field(None, description="Extra structured detail")

    @field_validator("level", mode="before")
    @classmethod
    def coerce_level(cls, v: Any) -> RecordLevel:
        """Accept browser console names such as ``info``."""
        return RecordLevel.coerce(v if v is not None else RecordLevel.LOG)


class ClientLogBatch(BaseModel):
    """Batch of frontend events pushed over HTTP."""

    entries: list[ClientLogEntry] = Field(
        ..., min_length=1, max_length=MAX_CLIENT_BATCH
    )


class ClientLogAccepted(BaseModel):
    accepted: int


class LogStatsResponse(BaseModel):
    """Capture pipeline counters."""

    history_size: int
    history_capacity: int
    subscribers: int
    last_sequence: int
    dropped_deliveries: int
