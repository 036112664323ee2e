"""
Middleware for the FastAPI application.

Request IDs and request/response logging.
"""

import time
import uuid
from collections.abc import Callable
from typing import Any

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .dependencies import get_client_ip
from .logging_utils import log_api_request, log_api_response


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add unique request ID to each request for tracking."""

    async def dispatch(
        self, request: Request, call_next: Callable[..., Any]
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log API requests and responses with timing information.

    For the log stream this times header delivery, not the whole connection.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[..., Any]
    ) -> Response:
        start_time = time.perf_counter()
        request_id = getattr(request.state, "request_id", None)

        log_api_request(
            method=request.method,
            path=str(request.url.path),
            client_ip=get_client_ip(request),
            user_agent=request.headers.get("user-agent"),
            request_id=request_id,
        )

        response = await call_next(request)

        log_api_response(
            method=request.method,
            path=str(request.url.path),
            status_code=response.status_code,
            response_time_ms=(time.perf_counter() - start_time) * 1000,
            request_id=request_id,
        )

        return response
