"""Follow a running server's log stream from the terminal."""

import itertools
import json
from datetime import datetime

import click
import httpx
from pydantic import ValidationError

from ..capture.models import LogRecord, PingRecord, decode_event
from .utils import handle_error, verbose_echo

LEVEL_COLORS = {
    "error": "red",
    "warn": "yellow",
    "debug": "blue",
    "trace": "bright_black",
    "verbose": "cyan",
}


def format_record(record: LogRecord) -> str:
    """Render a record as one human-readable terminal line."""
    ts = datetime.fromtimestamp(record.ts / 1000).strftime("%H:%M:%S.%f")[:-3]
    level = record.level.value.upper().ljust(7)
    context = f"[{record.context}] " if record.context else ""
    line = f"{ts} {level} {context}{record.message}"
    if record.meta:
        line += " " + json.dumps(record.meta, ensure_ascii=False, default=str)
    return click.style(line, fg=LEVEL_COLORS.get(record.level.value))


def _echo_record(record: LogRecord, as_json: bool) -> None:
    if as_json:
        click.echo(record.model_dump_json(exclude_none=True))
    else:
        click.echo(format_record(record))


def _auth_headers(token: str | None, api_key: str | None) -> dict[str, str]:
    if token:
        return {"Authorization": f"Bearer {token}"}
    if api_key:
        return {"X-API-Key": api_key}
    return {}


def _print_recent(client: httpx.Client, limit: int, as_json: bool) -> int | None:
    """Print the newest history records; returns the last id printed."""
    response = client.get("/logs/recent", params={"limit": limit})
    response.raise_for_status()
    last_id = None
    for item in response.json().get("items", []):
        record = LogRecord.model_validate(item)
        _echo_record(record, as_json)
        last_id = record.id
    return last_id


@click.command()
@click.option(
    "--url",
    envvar="LOGSTREAM_URL",
    default="http://127.0.0.1:8000",
    show_default=True,
    help="Server base URL",
)
@click.option("--token", envvar="LOGSTREAM_TOKEN", help="Operator bearer token")
@click.option("--api-key", envvar="LOGSTREAM_API_KEY", help="Operator API key")
@click.option(
    "--recent",
    "recent_limit",
    type=int,
    default=50,
    show_default=True,
    help="History records to print first (0 to skip)",
)
@click.option("--follow/--no-follow", default=True, help="Keep following the live stream")
@click.option("--json", "as_json", is_flag=True, help="Print raw NDJSON records")
@click.pass_context
def tail(
    ctx: click.Context,
    url: str,
    token: str | None,
    api_key: str | None,
    recent_limit: int,
    follow: bool,
    as_json: bool,
) -> None:
    """Print recent history, then follow the live log stream.

    The stream is opened before history is fetched, so nothing captured in
    between is lost; records already printed from history are skipped and
    gaps in the record ids are reported.
    """
    base_url = url.rstrip("/")
    headers = _auth_headers(token, api_key)
    timeout = httpx.Timeout(10.0, read=None)

    try:
        with httpx.Client(base_url=base_url, headers=headers, timeout=timeout) as client:
            if not follow:
                if recent_limit > 0:
                    _print_recent(client, recent_limit, as_json)
                return

            verbose_echo(ctx, f"Following {base_url}/logs/stream")
            with client.stream("GET", "/logs/stream") as stream:
                stream.raise_for_status()
                lines = stream.iter_lines()
                # The server subscribes before it writes its first line
                first = list(itertools.islice(lines, 1))

                last_id = None
                if recent_limit > 0:
                    last_id = _print_recent(client, recent_limit, as_json)

                for line in itertools.chain(first, lines):
                    if not line.strip():
                        continue
                    try:
                        event = decode_event(line)
                    except ValidationError:
                        verbose_echo(ctx, f"Skipping malformed line: {line[:80]}")
                        continue
                    if isinstance(event, PingRecord):
                        continue
                    if last_id is not None:
                        if event.id <= last_id:
                            continue
                        if event.id > last_id + 1:
                            click.echo(
                                f"Missed {event.id - last_id - 1} records "
                                f"(ids {last_id + 1}-{event.id - 1})",
                                err=True,
                            )
                    last_id = event.id
                    _echo_record(event, as_json)
            click.echo("Stream closed by server", err=True)
    except httpx.HTTPStatusError as e:
        handle_error(f"Server returned {e.response.status_code} for {e.request.url.path}")
    except httpx.HTTPError as e:
        handle_error(f"Could not reach {base_url}: {e}")
    except KeyboardInterrupt:
        click.echo("", err=True)
