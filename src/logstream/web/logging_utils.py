"""
Logging utilities for web interface components.

This module provides specialized logging for:
- FastAPI request/response logging
- Log stream connection lifecycle
- Operator authentication and authorization
"""

import asyncio
import functools
import time
from collections.abc import Callable
from typing import Any

from fastapi import HTTPException

from ..utils.logging import LogContext, get_logger

# Web component loggers
api_logger = get_logger(__name__ + ".api", LogContext.WEB)
stream_logger = get_logger(__name__ + ".stream", LogContext.STREAM)
auth_logger = get_logger(__name__ + ".auth", LogContext.AUTH)


def log_api_request(
    method: str,
    path: str,
    client_ip: str,
    user_agent: str | None = None,
    request_id: str | None = None,
) -> None:
    """Log incoming API requests."""
    api_logger.debug(
        "API request received",
        method=method,
        path=path,
        client_ip=client_ip,
        user_agent=user_agent,
        request_id=request_id,
    )


def log_api_response(
    method: str,
    path: str,
    status_code: int,
    response_time_ms: float,
    request_id: str | None = None,
) -> None:
    """Log API responses with timing."""
    log = api_logger.info if 200 <= status_code < 400 else api_logger.warning
    log(
        "API response sent",
        method=method,
        path=path,
        status_code=status_code,
        response_time_ms=round(response_time_ms, 2),
        request_id=request_id,
    )


def log_stream_connection(
    client_ip: str,
    action: str,  # open, close
    connection_id: str,
    reason: str | None = None,
    **details: Any,
) -> None:
    """Log stream connection lifecycle events."""
    stream_logger.info(
        f"Log stream {action}",
        action=action,
        client_ip=client_ip,
        connection_id=connection_id,
        reason=reason,
        **details,
    )


def log_authorization_check(
    subject: str, method: str, allowed: bool, reason: str | None = None
) -> None:
    """Log operator authorization decisions."""
    if allowed:
        auth_logger.debug("Operator authorized", subject=subject, auth_method=method)
    else:
        auth_logger.warning(
            "Operator authorization denied",
            subject=subject,
            auth_method=method,
            reason=reason,
        )


def handle_api_errors() -> Callable[..., Any]:
    """Decorator that logs unexpected endpoint failures and maps them to 500.

    HTTPExceptions pass through untouched.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError("handle_api_errors only wraps async endpoints")

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except HTTPException:
                raise
            except Exception as e:
                api_logger.error(
                    f"API error in {func.__name__}: {e}",
                    exception=e,
                    function=func.__name__,
                    error_type=type(e).__name__,
                )
                raise HTTPException(status_code=500, detail="Internal server error") from e

        return wrapper

    return decorator


def track_api_performance() -> Callable[..., Any]:
    """Decorator for endpoint timing."""

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            start_time = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                api_logger.debug(
                    f"Performance: {func.__name__} completed",
                    function=func.__name__,
                    execution_time_ms=round((time.perf_counter() - start_time) * 1000, 2),
                )

        return wrapper

    return decorator
