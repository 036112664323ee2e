"""Operator token command."""

from datetime import timedelta

import click

from ..utils.logging import ConfigurationError
from ..web.auth import ACCESS_TOKEN_EXPIRE_MINUTES, create_access_token
from .utils import format_output, handle_error


@click.command()
@click.option("--subject", "-s", default="operator", help="Token subject (sub claim)")
@click.option("--role", "-r", default="operator", help="Role claim")
@click.option(
    "--expires-minutes",
    type=int,
    default=ACCESS_TOKEN_EXPIRE_MINUTES,
    show_default=True,
    help="Token lifetime in minutes",
)
@click.pass_context
def token(ctx: click.Context, subject: str, role: str, expires_minutes: int) -> None:
    """Issue an operator access token signed with JWT_SECRET_KEY."""
    if expires_minutes < 1:
        handle_error("--expires-minutes must be at least 1")
        return

    try:
        access_token = create_access_token(
            {"sub": subject, "role": role},
            expires_delta=timedelta(minutes=expires_minutes),
        )
    except ConfigurationError as e:
        handle_error(e.message)
        return

    if ctx.obj and ctx.obj.get("json"):
        format_output(
            ctx,
            {
                "access_token": access_token,
                "token_type": "bearer",
                "expires_in": expires_minutes * 60,
            },
        )
    else:
        click.echo(access_token)
