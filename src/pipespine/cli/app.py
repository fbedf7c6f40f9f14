"""
Root Typer application for the pipespine CLI.

Connection settings come from ``PIPESPINE_*`` environment variables (or
``.env``); ``--host`` and ``--token`` override them per command.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import typer
from typer import Typer

from rich.markup import escape

from pipespine.cli.utils import (
    err_console,
    load_settings,
    make_context,
    output_frames,
    output_result,
)

app = Typer(
    name="pipespine",
    help="pipespine — query analytics pipes and shape the rows into frames.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from pipespine import __version__

        typer.echo(f"pipespine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """pipespine command-line interface."""


# ── Helpers ──────────────────────────────────────────────────────────────


def _parse_params(pairs: list[str] | None) -> dict[str, str]:
    params: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"expected key=value, got {pair!r}", param_hint="--param")
        params[key.strip()] = value
    return params


def _time_range(start: str | None, end: str | None) -> dict[str, str | datetime]:
    """``--from``/``--to`` as given; defaults to the last hour."""
    now = datetime.now(UTC)
    return {
        "from": start or now - timedelta(hours=1),
        "to": end or now,
    }


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("query")
def query(
    pipe: str = typer.Argument(..., help="Pipe to call."),
    param: list[str] | None = typer.Option(None, "--param", "-p", help="Pipe parameter as key=value. Repeatable."),
    time_key: str | None = typer.Option(None, "--time-key", "-t", help="Column to use as the time axis."),
    start: str | None = typer.Option(None, "--from", help="Range start (ISO-8601 or epoch). Default: one hour ago."),
    end: str | None = typer.Option(None, "--to", help="Range end (ISO-8601 or epoch). Default: now."),
    fmt: str = typer.Option("timeseries", "--format", "-f", help="timeseries, table or logs."),
    data_keys: str | None = typer.Option(None, "--data-keys", help="Comma-separated numeric columns to chart."),
    label_keys: str | None = typer.Option(None, "--label-keys", help="Comma-separated label columns, one per data key."),
    shape: str | None = typer.Option(None, "--shape", help="per_metric or wide."),
    host: str | None = typer.Option(None, "--host"),
    token: str | None = typer.Option(None, "--token"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run a pipe and print its frames."""
    from pipespine.ops.query import run_query

    settings = load_settings(host=host, token=token, frame_shape=shape)
    request = {
        "refId": "A",
        "pipeName": pipe,
        "params": _parse_params(param),
        "timeKey": time_key,
        "format": fmt,
        "dataKeys": data_keys,
        "labelKeys": label_keys,
    }
    with make_context(settings) as ctx:
        result = run_query(ctx, request, _time_range(start, end))
    output_frames(result, as_json=json_out)


@app.command("health")
def health(
    host: str | None = typer.Option(None, "--host"),
    token: str | None = typer.Option(None, "--token"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Check that the pipes API answers. Exits 1 when unhealthy."""
    from pipespine.ops.health import check_health

    settings = load_settings(host=host, token=token)
    with make_context(settings) as ctx:
        result = check_health(ctx)
    output_result(result, as_json=json_out, title="Health")
    if result.data is not None and result.data.status != "healthy":
        err_console.print(f"[bold red]Unhealthy[/bold red]: {escape(result.data.message)}")
        raise typer.Exit(code=1)


@app.command("pipes")
def pipes(
    host: str | None = typer.Option(None, "--host"),
    token: str | None = typer.Option(None, "--token"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List pipes published as API endpoints."""
    from pipespine.ops.health import list_pipes

    settings = load_settings(host=host, token=token)
    with make_context(settings) as ctx:
        result = list_pipes(ctx)
    output_result(result, as_json=json_out, title="Pipes")


@app.command("serve")
def serve(
    bind: str = typer.Option("127.0.0.1", "--bind", "-b", help="Bind address."),
    port: int = typer.Option(8000, "--port", help="Bind port."),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Start the HTTP API (settings from PIPESPINE_* environment variables)."""
    import uvicorn

    from pipespine.cli.utils import console

    console.print(f"[bold green]Starting pipespine API[/bold green] on {bind}:{port}")
    uvicorn.run(
        "pipespine.api:create_app",
        factory=True,
        host=bind,
        port=port,
        log_level=log_level,
    )
