"""Main CLI entry point for logstream."""

import warnings

import click

from .. import __version__
from .config import config
from .serve import serve
from .tail import tail
from .tokens import token

# Suppress Pydantic serialization warnings globally for better CLI UX
warnings.filterwarnings("ignore", message=".*Pydantic serializer warnings.*")


@click.group()
@click.version_option(version=__version__, prog_name="logstream")
@click.option("--config", "-c", help="Configuration file path")
@click.option("--profile", "-p", help="Configuration profile to use")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
# Configuration override flags
@click.option("--web-port", type=int, help="Override web_port setting")
@click.option("--web-host", help="Override web_host setting")
@click.option("--log-level", help="Override log_level setting")
@click.pass_context
def main(
    ctx: click.Context,
    config: str | None,
    profile: str | None,
    verbose: bool,
    quiet: bool,
    json: bool,
    web_port: int | None,
    web_host: str | None,
    log_level: str | None,
) -> None:
    """logstream - live application log streaming for operators.

    Capture backend and frontend logs, keep a bounded recent history and
    follow the live stream over HTTP.

    Use commands to organize functionality:
    - serve: Run the log API server
    - tail: Follow a running server's log stream
    - token: Issue an operator access token
    - config: Manage configuration settings
    """
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["profile"] = profile
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["json"] = json

    overrides = {"web_port": web_port, "web_host": web_host, "log_level": log_level}
    ctx.obj["cli_overrides"] = {k: v for k, v in overrides.items() if v is not None}

    # Validate conflicting options
    if verbose and quiet:
        raise click.UsageError("Cannot use both --verbose and --quiet options")


main.add_command(serve)
main.add_command(tail)
main.add_command(token)
main.add_command(config)


if __name__ == "__main__":
    main()
