"""FastAPI web application serving the live log stream."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..capture.adapter import StreamLogger, install_capture_handler, remove_capture_handler
from ..capture.service import LogCaptureService
from ..config.loader import LogStreamConfig, load_config
from .exceptions import LogStreamAPIException
from .logging_utils import api_logger
from .middleware import LoggingMiddleware, RequestIDMiddleware
from .routers import logs_router

CLIENT_CONTEXT = "frontend"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifespan events."""
    config: LogStreamConfig = app.state.config
    service: LogCaptureService = app.state.log_service

    api_logger.info("Starting logstream API server")

    handler = None
    if config.capture_stdlib_logging:
        handler = install_capture_handler(service)
        api_logger.info("Stdlib logging capture installed")

    yield

    api_logger.info("Shutting down logstream API server")

    if handler is not None:
        remove_capture_handler(handler)

    # Ends every open stream; history stays readable until the process exits
    service.close()
    api_logger.info("logstream API server shutdown complete")


def create_app(
    config: LogStreamConfig | None = None,
    service: LogCaptureService | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Settings to run with; loaded from file and environment if omitted
        service: Capture service to expose; built from ``config`` if omitted
    """
    if config is None:
        config = load_config()
    if service is None:
        service = LogCaptureService.from_config(config)

    app = FastAPI(
        title="logstream API",
        description="Live application log stream for operators",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.log_service = service
    app.state.client_logger = StreamLogger(
        service, CLIENT_CONTEXT, logging.getLogger("logstream.client")
    )

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization", "Accept", "X-API-Key"],
        )

    # Last added runs first, so request IDs exist before logging reads them
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.exception_handler(LogStreamAPIException)
    async def api_exception_handler(
        request: Request, exc: LogStreamAPIException
    ) -> JSONResponse:
        """Handle custom API exceptions."""
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.__class__.__name__,
                "message": exc.message,
                "status_code": exc.status_code,
            },
            headers=headers,
        )

    app.include_router(logs_router, prefix="/logs")

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/ping")
    async def ping() -> dict[str, str]:
        """Ping endpoint for simple health check."""
        return {"status": "ok"}

    return app


# Create the application instance
app = create_app()
