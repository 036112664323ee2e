"""
Pytest configuration and shared fixtures for logstream tests.
"""

import os

# Set up environment variables BEFORE any imports to avoid collection errors
os.environ.setdefault(
    "JWT_SECRET_KEY", "test-secret-key-for-pytest-only-never-use-in-production"
)

# Add src to path for imports
import sys
from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from logstream.capture.models import LogRecord, RecordLevel
from logstream.capture.service import LogCaptureService
from logstream.config.loader import LogStreamConfig
from logstream.web.app import create_app
from logstream.web.auth import create_access_token

TEST_API_KEY = "test-operator-api-key"


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Set up environment variables for testing."""
    os.environ["JWT_SECRET_KEY"] = (
        "test-secret-key-for-pytest-only-never-use-in-production"
    )
    yield


@pytest.fixture
def test_config() -> LogStreamConfig:
    """Small, fast configuration for tests."""
    return LogStreamConfig(
        history_capacity=50,
        recent_default_limit=20,
        ping_interval_seconds=5.0,
        subscriber_queue_size=32,
        capture_stdlib_logging=False,
        operator_api_keys=[TEST_API_KEY],
    )


@pytest.fixture
def log_service(test_config: LogStreamConfig) -> LogCaptureService:
    """Capture service matching ``test_config``."""
    return LogCaptureService.from_config(test_config)


@pytest.fixture
def app(test_config: LogStreamConfig, log_service: LogCaptureService) -> FastAPI:
    """Application wired to the test service."""
    return create_app(test_config, log_service)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Test client without lifespan events."""
    yield TestClient(app)


@pytest.fixture
def operator_headers() -> dict[str, str]:
    """Bearer headers for an operator."""
    token = create_access_token({"sub": "alice", "role": "operator"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def viewer_headers() -> dict[str, str]:
    """Bearer headers for an authenticated non-operator."""
    token = create_access_token({"sub": "bob", "role": "viewer"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def api_key_headers() -> dict[str, str]:
    return {"X-API-Key": TEST_API_KEY}


def build_record(sequence: int, message: str | None = None) -> LogRecord:
    """Build a stored-shape record without going through the service."""
    return LogRecord(
        id=sequence,
        ts=1_700_000_000_000 + sequence,
        level=RecordLevel.LOG,
        message=message or f"message {sequence}",
    )


@pytest.fixture
def make_record():
    """Factory for stored-shape records."""
    return build_record
