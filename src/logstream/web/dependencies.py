"""
FastAPI dependencies for the capture service, configuration and operator auth.

The log pipeline only consumes the resulting ``Operator``; credential
checks live here.
"""

import secrets
from typing import cast

from fastapi import Depends, Request

from ..capture.service import LogCaptureService
from ..config.loader import LogStreamConfig
from .auth import verify_token
from .exceptions import AuthenticationError, AuthorizationError, ServiceUnavailableError
from .logging_utils import log_authorization_check


class Operator:
    """An authenticated caller allowed to read the log stream."""

    def __init__(self, subject: str, role: str, auth_method: str):
        self.subject = subject
        self.role = role
        self.auth_method = auth_method

    def __repr__(self) -> str:
        return f"Operator(subject={self.subject!r}, role={self.role!r})"


def get_config(request: Request) -> LogStreamConfig:
    """Get the active configuration from application state."""
    return cast(LogStreamConfig, request.app.state.config)


def get_log_service(request: Request) -> LogCaptureService:
    """Get the capture service from application state."""
    service = getattr(request.app.state, "log_service", None)
    if service is None:
        raise ServiceUnavailableError()
    return cast(LogCaptureService, service)


def get_request_id(request: Request) -> str:
    """Get the request ID from request state."""
    return getattr(request.state, "request_id", "unknown")


def get_client_ip(request: Request) -> str:
    """Extract client IP address from request."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"


async def get_current_operator(
    request: Request, config: LogStreamConfig = Depends(get_config)
) -> Operator:
    """
    Authenticate the caller as an operator.

    Accepts an ``Authorization: Bearer <jwt>`` whose ``role`` claim is one of
    the configured operator roles, or an ``X-API-Key`` listed in the
    configuration.
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        payload = verify_token(auth_header[7:])
        subject = str(payload.get("sub", "unknown"))
        role = str(payload.get("role", ""))
        if role not in config.operator_roles:
            log_authorization_check(subject, "bearer", False, reason=f"role={role!r}")
            raise AuthorizationError()
        log_authorization_check(subject, "bearer", True)
        return Operator(subject=subject, role=role, auth_method="bearer")

    api_key = request.headers.get("X-API-Key")
    if api_key:
        for known in config.operator_api_keys:
            if secrets.compare_digest(api_key.encode(), known.encode()):
                log_authorization_check("api_key", "api_key", True)
                return Operator(subject="api_key", role="operator", auth_method="api_key")
        log_authorization_check(
            "api_key", "api_key", False, reason=f"unknown key from {get_client_ip(request)}"
        )
        raise AuthenticationError("Invalid API key")

    log_authorization_check("anonymous", "none", False, reason="no credentials")
    raise AuthenticationError()
