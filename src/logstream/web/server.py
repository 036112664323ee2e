"""
Web server startup for logstream.

Provides utilities for starting the FastAPI server with proper configuration.
"""

from pathlib import Path
from typing import Any

import uvicorn

from ..config.loader import LogStreamConfig, load_config
from ..utils.logging import LogContext, get_logger, setup_logging
from .app import create_app

logger = get_logger(__name__, LogContext.WEB)


def get_server_config(config: LogStreamConfig | None = None) -> dict[str, Any]:
    """
    Get server configuration from the loaded settings.

    Returns:
        Dictionary containing uvicorn settings
    """
    if config is None:
        config = load_config()

    return {
        "host": config.web_host,
        "port": config.web_port,
        "reload": False,
        "log_level": config.log_level.lower(),
    }


def run_server(
    config: LogStreamConfig | None = None,
    host: str | None = None,
    port: int | None = None,
    reload: bool | None = None,
) -> None:
    """
    Run the FastAPI server.

    Args:
        config: Settings to run with (loaded if omitted)
        host: Host to bind to (overrides config)
        port: Port to bind to (overrides config)
        reload: Enable auto-reload (overrides config)
    """
    if config is None:
        config = load_config()
    server_config = get_server_config(config)

    if host is not None:
        server_config["host"] = host
    if port is not None:
        server_config["port"] = port
    if reload is not None:
        server_config["reload"] = reload

    setup_logging(
        log_level=config.log_level,
        log_file=Path(config.log_file) if config.log_file else None,
        enable_structured=config.structured_logging,
    )

    logger.info(
        "Starting logstream web server",
        host=server_config["host"],
        port=server_config["port"],
        reload=server_config["reload"],
        log_level=server_config["log_level"],
    )

    if server_config["reload"]:
        # Reload needs an import string; the worker rebuilds the app from config
        uvicorn.run(
            "logstream.web.app:app",
            host=server_config["host"],
            port=server_config["port"],
            reload=True,
            log_level=server_config["log_level"],
        )
        return

    uvicorn.run(
        create_app(config),
        host=server_config["host"],
        port=server_config["port"],
        log_level=server_config["log_level"],
        access_log=True,
    )
