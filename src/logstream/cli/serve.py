"""Server command."""

import sys

import click

from ..utils.logging import LogStreamException
from ..web.server import run_server
from .utils import handle_error, load_context_config, quiet_echo, verbose_echo


@click.command()
@click.option("--host", "-h", help="Host to bind to (overrides config)")
@click.option("--port", "-P", type=int, help="Port to run on (overrides config)")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Run the log API server."""
    try:
        config = load_context_config(ctx)
    except (LogStreamException, FileNotFoundError) as e:
        handle_error(f"Failed to load configuration: {e}")
        return

    bind_host = host or config.web_host
    bind_port = port or config.web_port
    quiet_echo(ctx, f"Starting logstream on {bind_host}:{bind_port}")
    verbose_echo(ctx, f"History capacity: {config.history_capacity}")
    if reload:
        quiet_echo(ctx, "Development mode: auto-reload enabled")

    try:
        run_server(config, host=bind_host, port=bind_port, reload=reload)
    except KeyboardInterrupt:
        click.echo("\nShutting down logstream...")
    except Exception as e:
        click.echo(f"Failed to start logstream: {e}", err=True)
        sys.exit(1)
