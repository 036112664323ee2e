"""
Per-connection NDJSON log streaming.

A ``LogStreamSession`` moves through OPEN -> STREAMING -> CLOSED. Entering
STREAMING subscribes to the broadcast hub and writes an immediate ping; after
that every hub event becomes one JSON line and a ping is written on a fixed
cadence regardless of log traffic. Closing, whatever the cause, unsubscribes
exactly once.
"""

import asyncio
import uuid
from collections.abc import AsyncIterator, Mapping
from enum import Enum
from typing import Any

from fastapi.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from ..capture.hub import BroadcastHub, Subscription
from ..capture.models import PingRecord, encode_event
from ..utils.logging import LogContext, StreamError, get_logger
from .logging_utils import log_stream_connection

NDJSON_MEDIA_TYPE = "application/x-ndjson; charset=utf-8"
DEFAULT_PING_INTERVAL = 15.0

STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class StreamState(str, Enum):
    OPEN = "open"
    STREAMING = "streaming"
    CLOSED = "closed"


class LogStreamSession:
    """One viewer's subscription to the live log stream."""

    def __init__(
        self,
        hub: BroadcastHub,
        ping_interval: float = DEFAULT_PING_INTERVAL,
        client_ip: str = "unknown",
        subject: str | None = None,
    ) -> None:
        self.hub = hub
        self.ping_interval = ping_interval
        self.client_ip = client_ip
        self.subject = subject
        self.connection_id = uuid.uuid4().hex[:12]
        self.logger = get_logger(__name__, LogContext.STREAM)
        self.logger.set_connection_id(self.connection_id)
        self.state = StreamState.OPEN
        self.lines_sent = 0
        self._subscription: Subscription | None = None

    @property
    def subscription(self) -> Subscription | None:
        return self._subscription

    async def lines(self) -> AsyncIterator[str]:
        """Yield NDJSON lines until the hub closes or the consumer goes away."""
        if self.state is not StreamState.OPEN:
            raise StreamError(
                "Log stream session can only be started once",
                context={"connection_id": self.connection_id, "state": self.state.value},
            )

        subscription = self.hub.subscribe()
        self._subscription = subscription
        self.state = StreamState.STREAMING
        log_stream_connection(
            self.client_ip, "open", self.connection_id, subject=self.subject
        )

        reason = "client disconnected"
        try:
            yield self._line(PingRecord())

            loop = asyncio.get_running_loop()
            next_ping = loop.time() + self.ping_interval
            while True:
                remaining = next_ping - loop.time()
                if remaining <= 0:
                    self.logger.trace("Keep-alive ping")
                    yield self._line(PingRecord())
                    next_ping = loop.time() + self.ping_interval
                    continue
                try:
                    event = await asyncio.wait_for(subscription.get(), remaining)
                except TimeoutError:
                    continue
                if event is None:
                    reason = "server shutdown"
                    break
                yield self._line(event)
        finally:
            self.close(reason)

    def close(self, reason: str = "closed") -> None:
        """Unsubscribe and mark the session CLOSED. Safe to call repeatedly."""
        if self.state is StreamState.CLOSED:
            return
        previous = self.state
        self.state = StreamState.CLOSED
        if self._subscription is not None:
            self.hub.unsubscribe(self._subscription)
        if previous is not StreamState.STREAMING:
            return
        dropped = self._subscription.dropped if self._subscription else 0
        log_stream_connection(
            self.client_ip,
            "close",
            self.connection_id,
            reason=reason,
            lines_sent=self.lines_sent,
            dropped=dropped,
        )
        if dropped:
            self.logger.warning(
                "Viewer missed events while falling behind",
                dropped=dropped,
                subject=self.subject,
            )

    def _line(self, event: Any) -> str:
        self.lines_sent += 1
        return encode_event(event)


class LogStreamResponse(StreamingResponse):
    """StreamingResponse that always releases its session.

    Starlette stops iterating on disconnect or a failed write without closing
    the generator, so the generator and session are closed explicitly here.
    """

    def __init__(
        self, session: LogStreamSession, headers: Mapping[str, str] | None = None
    ) -> None:
        self.session = session
        self._lines = session.lines()
        super().__init__(
            self._lines,
            media_type=NDJSON_MEDIA_TYPE,
            headers={**STREAM_HEADERS, **(headers or {})},
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self._lines.aclose()
            self.session.close()
