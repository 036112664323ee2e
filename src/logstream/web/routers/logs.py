"""
Log history and live streaming API endpoints.

Provides the recent-history slice, the NDJSON live stream, the frontend
event ingest and pipeline statistics. Every endpoint requires an operator.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query, Request

from ...capture.adapter import StreamLogger
from ...capture.service import LogCaptureService
from ...config.loader import LogStreamConfig
from ...utils.logging import LogContext, get_logger
from ..dependencies import (
    Operator,
    get_client_ip,
    get_config,
    get_current_operator,
    get_log_service,
    get_request_id,
)
from ..logging_utils import handle_api_errors, track_api_performance
from ..schemas import (
    ClientLogAccepted,
    ClientLogBatch,
    LogStatsResponse,
    RecentLogsResponse,
)
from ..streaming import LogStreamResponse, LogStreamSession

router = APIRouter(tags=["logs"])


def clamp_limit(limit: int | None, default: int, capacity: int) -> int:
    """Clamp a requested history limit into [1, capacity]."""
    if limit is None:
        limit = default
    return max(1, min(limit, capacity))


def get_client_logger(request: Request) -> StreamLogger:
    """Get the frontend capture adapter from application state."""
    return request.app.state.client_logger


@router.get(
    "/recent", response_model=RecentLogsResponse, response_model_exclude_none=True
)
@track_api_performance()
@handle_api_errors()
async def recent_logs(
    limit: int | None = Query(None, description="Number of records (clamped)"),
    service: LogCaptureService = Depends(get_log_service),
    config: LogStreamConfig = Depends(get_config),
    operator: Operator = Depends(get_current_operator),
) -> dict[str, Any]:
    """
    Return the newest history records, oldest first.

    - **limit**: defaults to the configured value and is clamped to
      [1, history capacity]
    """
    effective = clamp_limit(
        limit, config.recent_default_limit, service.history.capacity
    )
    return {"success": True, "items": service.recent(effective)}


@router.get("/stream", response_class=LogStreamResponse)
async def stream_logs(
    request: Request,
    service: LogCaptureService = Depends(get_log_service),
    config: LogStreamConfig = Depends(get_config),
    operator: Operator = Depends(get_current_operator),
) -> LogStreamResponse:
    """
    Follow the live log stream as newline-delimited JSON.

    Each line is either a ``log`` record or a ``ping`` keep-alive. Only
    records captured after the connection opens are sent; use ``/recent``
    for history.
    """
    session = LogStreamSession(
        service.hub,
        ping_interval=config.ping_interval_seconds,
        client_ip=get_client_ip(request),
        subject=operator.subject,
    )
    return LogStreamResponse(
        session, headers={"X-Stream-Connection-ID": session.connection_id}
    )


@router.post("/client", response_model=ClientLogAccepted)
@handle_api_errors()
async def ingest_client_logs(
    batch: ClientLogBatch,
    client_logger: StreamLogger = Depends(get_client_logger),
    request_id: str = Depends(get_request_id),
    operator: Operator = Depends(get_current_operator),
) -> dict[str, int]:
    """
    Accept console and error events captured in the operator's browser.

    They share the sanitizer, sequence, history and stream with backend logs.
    """
    for entry in batch.entries:
        client_logger.emit(
            entry.level,
            entry.message,
            context=entry.context,
            meta=entry.meta,
        )
    request_logger = get_logger(__name__, LogContext.WEB)
    request_logger.set_request_id(request_id)
    request_logger.debug(
        "Client log batch accepted",
        accepted=len(batch.entries),
        subject=operator.subject,
    )
    return {"accepted": len(batch.entries)}


@router.get("/stats", response_model=LogStatsResponse)
async def log_stats(
    service: LogCaptureService = Depends(get_log_service),
    operator: Operator = Depends(get_current_operator),
) -> dict[str, int]:
    """Capture pipeline counters."""
    return service.stats()
