"""Configuration management commands."""

import click

from ..config.loader import LogStreamConfig, save_config
from .utils import format_output, handle_error, load_context_config, quiet_echo


@click.group()
def config() -> None:
    """Manage configuration settings."""
    pass


@config.command()
@click.option("--json", "as_json", is_flag=True, help="Output in JSON format")
@click.pass_context
def show(ctx: click.Context, as_json: bool) -> None:
    """Show current configuration."""
    try:
        config_obj = load_context_config(ctx)
    except Exception as e:
        handle_error(f"Failed to load configuration: {e}")
        return

    config_dict = config_obj.model_dump()
    # Never echo static API keys
    config_dict["operator_api_keys"] = ["***"] * len(config_obj.operator_api_keys)
    format_output(ctx, {"configuration": config_dict}, as_json=as_json)


@config.command()
@click.option("--path", help="Custom path for config file")
@click.pass_context
def init(ctx: click.Context, path: str | None) -> None:
    """Initialize configuration file with defaults."""
    try:
        saved_path = save_config(LogStreamConfig(), path)
    except OSError as e:
        handle_error(f"Failed to initialize configuration: {e}")
        return

    quiet_echo(ctx, f"Configuration initialized at: {saved_path}")
