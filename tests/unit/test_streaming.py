"""Tests for per-connection NDJSON stream sessions."""

import asyncio
import logging

import pytest

from logstream.capture.hub import BroadcastHub
from logstream.capture.models import LogRecord, PingRecord, decode_event
from logstream.utils.logging import StreamError
from logstream.web.streaming import (
    NDJSON_MEDIA_TYPE,
    STREAM_HEADERS,
    LogStreamResponse,
    LogStreamSession,
    StreamState,
)


async def next_line(lines, timeout: float = 1.0) -> str:
    return await asyncio.wait_for(lines.__anext__(), timeout)


class TestLogStreamSession:
    """Test the OPEN -> STREAMING -> CLOSED lifecycle."""

    @pytest.mark.asyncio
    async def test_first_line_is_ping(self):
        hub = BroadcastHub()
        session = LogStreamSession(hub, ping_interval=10)
        lines = session.lines()

        first = await next_line(lines)

        assert first.endswith("\n")
        assert isinstance(decode_event(first), PingRecord)
        assert session.state is StreamState.STREAMING
        assert hub.subscriber_count == 1
        await lines.aclose()

    @pytest.mark.asyncio
    async def test_published_records_become_lines(self, make_record):
        hub = BroadcastHub()
        session = LogStreamSession(hub, ping_interval=10)
        lines = session.lines()
        await next_line(lines)

        hub.publish(make_record(1, "first"))
        hub.publish(make_record(2, "second"))

        first = decode_event(await next_line(lines))
        second = decode_event(await next_line(lines))
        assert isinstance(first, LogRecord)
        assert (first.id, first.message) == (1, "first")
        assert second.id == 2
        assert session.lines_sent == 3
        await lines.aclose()

    @pytest.mark.asyncio
    async def test_pings_repeat_while_idle(self):
        hub = BroadcastHub()
        session = LogStreamSession(hub, ping_interval=0.05)
        lines = session.lines()
        await next_line(lines)

        assert isinstance(decode_event(await next_line(lines)), PingRecord)
        assert isinstance(decode_event(await next_line(lines)), PingRecord)
        await lines.aclose()

    @pytest.mark.asyncio
    async def test_pings_keep_cadence_under_traffic(self, make_record):
        hub = BroadcastHub()
        session = LogStreamSession(hub, ping_interval=0.1)
        lines = session.lines()
        await next_line(lines)

        async def chatter() -> None:
            for i in range(1, 40):
                hub.publish(make_record(i))
                await asyncio.sleep(0.01)

        producer = asyncio.create_task(chatter())
        kinds = []
        while not producer.done() or kinds.count("ping") == 0:
            kinds.append(decode_event(await next_line(lines)).type)
            if len(kinds) > 200:
                break
        await producer
        await lines.aclose()

        assert "ping" in kinds
        assert "log" in kinds

    @pytest.mark.asyncio
    async def test_consumer_close_unsubscribes(self):
        hub = BroadcastHub()
        session = LogStreamSession(hub, ping_interval=10)
        lines = session.lines()
        await next_line(lines)

        await lines.aclose()

        assert session.state is StreamState.CLOSED
        assert hub.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_hub_close_ends_stream(self):
        hub = BroadcastHub()
        session = LogStreamSession(hub, ping_interval=10)
        lines = session.lines()
        await next_line(lines)

        hub.close()

        with pytest.raises(StopAsyncIteration):
            await next_line(lines)
        assert session.state is StreamState.CLOSED

    @pytest.mark.asyncio
    async def test_session_starts_only_once(self):
        hub = BroadcastHub()
        session = LogStreamSession(hub, ping_interval=10)
        lines = session.lines()
        await next_line(lines)

        with pytest.raises(StreamError):
            await session.lines().__anext__()
        await lines.aclose()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        hub = BroadcastHub()
        session = LogStreamSession(hub, ping_interval=10)
        lines = session.lines()
        await next_line(lines)

        session.close("first")
        session.close("second")
        await lines.aclose()

        assert session.state is StreamState.CLOSED
        assert hub.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_close_reports_missed_events(self, make_record, caplog):
        hub = BroadcastHub(queue_size=1)
        session = LogStreamSession(hub, ping_interval=10, subject="alice")
        lines = session.lines()
        await next_line(lines)

        for i in range(1, 4):
            hub.publish(make_record(i))
        with caplog.at_level(logging.WARNING, logger="logstream.web.streaming"):
            await lines.aclose()

        warnings = [r for r in caplog.records if r.name == "logstream.web.streaming"]
        assert warnings[-1].connection_id == session.connection_id
        assert warnings[-1].dropped == 2
        assert warnings[-1].subject == "alice"

    def test_close_before_start(self):
        session = LogStreamSession(BroadcastHub())
        session.close()

        assert session.state is StreamState.CLOSED
        assert session.subscription is None


class TestLogStreamResponse:
    """Test response headers."""

    def test_headers(self):
        response = LogStreamResponse(
            LogStreamSession(BroadcastHub()), headers={"X-Extra": "1"}
        )

        assert response.media_type == NDJSON_MEDIA_TYPE
        assert response.headers["content-type"] == NDJSON_MEDIA_TYPE
        for name, value in STREAM_HEADERS.items():
            assert response.headers[name] == value
        assert response.headers["x-extra"] == "1"
