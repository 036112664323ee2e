"""Operator token creation and validation."""

import os
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from ..utils.logging import ConfigurationError
from .exceptions import AuthenticationError

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60
_INSECURE_SECRETS = {"", "dev-secret-key-change-in-production"}  # nosec B105


def get_secret_key() -> str:
    """Read the JWT signing secret from the environment."""
    secret = os.getenv("JWT_SECRET_KEY") or ""
    if secret in _INSECURE_SECRETS:
        raise ConfigurationError(
            "JWT_SECRET_KEY must be set to a strong, unique secret key"
        )
    return secret


def create_access_token(
    data: dict[str, Any], expires_delta: timedelta | None = None
) -> str:
    """Create a signed operator access token."""
    to_encode = data.copy()
    expire = datetime.now(UTC) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, get_secret_key(), algorithm=ALGORITHM)


def verify_token(token: str) -> dict[str, Any]:
    """Verify and decode an operator access token."""
    try:
        return jwt.decode(token, get_secret_key(), algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Token expired") from e
    except jwt.PyJWTError as e:
        raise AuthenticationError("Could not validate credentials") from e
