"""Configuration loading and management."""

import os
import warnings
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from ..utils.logging import ConfigurationError

# Suppress Pydantic serialization warnings globally for config operations
warnings.filterwarnings("ignore", message=".*Pydantic serializer warnings.*")

ENV_PREFIX = "LOGSTREAM_"


class LogStreamConfig(BaseModel):
    """Configuration model for logstream."""

    # Web interface
    web_host: str = Field(default="127.0.0.1", description="Web interface host")
    web_port: int = Field(default=8000, description="Web interface port")
    cors_origins: list[str] = Field(
        default_factory=list, description="Origins allowed to call the API"
    )

    # Process-level logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str | None = Field(default=None, description="Log file path")
    structured_logging: bool = Field(
        default=True, description="Emit JSON lines on the local console"
    )

    # Capture pipeline
    history_capacity: int = Field(
        default=2000, ge=1, description="Records kept in the in-memory history"
    )
    recent_default_limit: int = Field(
        default=200, ge=1, description="Default limit for /logs/recent"
    )
    ping_interval_seconds: float = Field(
        default=15.0, gt=0, description="Keep-alive cadence on open streams"
    )
    subscriber_queue_size: int = Field(
        default=256, ge=1, description="Buffered events per stream subscriber"
    )
    capture_stdlib_logging: bool = Field(
        default=True, description="Forward stdlib logging records into the stream"
    )

    # Sanitizer limits
    max_string_length: int = Field(default=4000, ge=1)
    truncated_head_length: int = Field(default=200, ge=0)
    max_depth: int = Field(default=6, ge=1)
    max_array_items: int = Field(default=80, ge=2)
    max_object_keys: int = Field(default=120, ge=2)
    digest_hex_chars: int = Field(default=12, ge=4, le=64)
    sensitive_key_exact: list[str] = Field(
        default_factory=lambda: ["data"],
        description="Normalized key names whose values are always redacted",
    )
    sensitive_key_substrings: list[str] = Field(
        default_factory=lambda: [
            "base64",
            "inlinedata",
            "maskimage",
            "referenceimage",
            "imagebytes",
            "thoughtsignature",
        ],
        description="Normalized key fragments whose values are always redacted",
    )

    # Operator access
    operator_roles: list[str] = Field(
        default_factory=lambda: ["admin", "operator"],
        description="JWT role claims allowed to read the log stream",
    )
    operator_api_keys: list[str] = Field(
        default_factory=list, description="Static API keys accepted for operators"
    )


def _as_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes", "on")


def _as_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


# Environment variable suffix -> (config key, converter)
ENV_MAPPINGS: dict[str, tuple[str, Callable[[str], Any]]] = {
    "WEB_HOST": ("web_host", str),
    "WEB_PORT": ("web_port", int),
    "CORS_ORIGINS": ("cors_origins", _as_list),
    "LOG_LEVEL": ("log_level", str),
    "LOG_FILE": ("log_file", str),
    "STRUCTURED_LOGGING": ("structured_logging", _as_bool),
    "HISTORY_CAPACITY": ("history_capacity", int),
    "RECENT_DEFAULT_LIMIT": ("recent_default_limit", int),
    "PING_INTERVAL_SECONDS": ("ping_interval_seconds", float),
    "SUBSCRIBER_QUEUE_SIZE": ("subscriber_queue_size", int),
    "CAPTURE_STDLIB_LOGGING": ("capture_stdlib_logging", _as_bool),
    "SENSITIVE_KEY_EXACT": ("sensitive_key_exact", _as_list),
    "SENSITIVE_KEY_SUBSTRINGS": ("sensitive_key_substrings", _as_list),
    "OPERATOR_ROLES": ("operator_roles", _as_list),
    "OPERATOR_API_KEYS": ("operator_api_keys", _as_list),
}


def find_config_file(custom_path: str | None = None) -> Path | None:
    """Find configuration file in standard locations."""
    if custom_path:
        path = Path(custom_path).expanduser()
        if path.exists():
            return path
        raise FileNotFoundError(f"Config file not found: {custom_path}")

    search_paths = [
        Path.cwd() / "logstream.yaml",
        Path.cwd() / "logstream.yml",
        Path.home() / ".config" / "logstream" / "config.yaml",
    ]

    for path in search_paths:
        if path.exists():
            return path

    return None


def load_config_file(config_path: Path) -> dict[str, Any]:
    """Load configuration from YAML file."""
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file {config_path}: {e}")
    except OSError as e:
        raise ConfigurationError(f"Failed to read config file {config_path}: {e}")

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    return data


def load_env_vars() -> dict[str, Any]:
    """Load configuration from LOGSTREAM_* environment variables.

    Values that fail to convert are skipped so a typo in one variable does
    not take down the whole process.
    """
    config: dict[str, Any] = {}
    for suffix, (config_key, convert) in ENV_MAPPINGS.items():
        env_value = os.environ.get(ENV_PREFIX + suffix)
        if env_value is None:
            continue
        try:
            config[config_key] = convert(env_value)
        except ValueError:
            continue
    return config


def load_config(
    config_path: str | None = None,
    profile: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> LogStreamConfig:
    """Load configuration from file and environment variables.

    Precedence order (highest to lowest):
    1. CLI flag overrides
    2. Environment variables
    3. Configuration file (with profile support)
    4. Default values
    """
    config_data: dict[str, Any] = {}

    config_file = find_config_file(config_path)
    if config_file:
        file_data = load_config_file(config_file)
        config_data.update({k: v for k, v in file_data.items() if k != "profiles"})

        profiles = file_data.get("profiles") or {}
        if profile and profile in profiles:
            config_data.update(profiles[profile])

    config_data.update(load_env_vars())

    if cli_overrides:
        config_data.update({k: v for k, v in cli_overrides.items() if v is not None})

    try:
        return LogStreamConfig(**config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def save_config(config: LogStreamConfig, config_path: str | None = None) -> Path:
    """Save configuration to a YAML file."""
    if config_path:
        path = Path(config_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
    else:
        config_dir = Path.home() / ".config" / "logstream"
        config_dir.mkdir(parents=True, exist_ok=True)
        path = config_dir / "config.yaml"

    with open(path, "w") as f:
        yaml.safe_dump(config.model_dump(), f, default_flow_style=False, sort_keys=True)

    return path
