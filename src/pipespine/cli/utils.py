"""
CLI utility helpers — output formatting and context management.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict
from typing import Any

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pipespine.core.errors import ConfigError
from pipespine.core.logging import configure_logging
from pipespine.core.settings import DatasourceSettings
from pipespine.ops.context import QueryContext
from pipespine.ops.result import OperationResult
from pipespine.transform.frames import Frame, display_name
from pipespine.transform.types import TypeKind

console = Console()
err_console = Console(stderr=True)


# ── Context helper ───────────────────────────────────────────────────────


def load_settings(**overrides: Any) -> DatasourceSettings:
    """Environment settings with CLI flags layered on top (``None`` = not given)."""
    given = {k: v for k, v in overrides.items() if v is not None}
    try:
        return DatasourceSettings(**given)
    except PydanticValidationError as e:
        err_console.print(f"[bold red]Error[/bold red] (CONFIG): {escape(str(e))}")
        raise typer.Exit(code=1) from e


@contextmanager
def make_context(settings: DatasourceSettings) -> Iterator[QueryContext]:
    """Open a :class:`QueryContext` for one CLI command and close its client."""
    configure_logging(level=settings.log_level, json_format=settings.json_logs)
    try:
        ctx = QueryContext.from_settings(settings, caller="cli")
    except ConfigError as e:
        err_console.print(f"[bold red]Error[/bold red] ({e.code}): {escape(e.message)}")
        raise typer.Exit(code=1) from e
    try:
        yield ctx
    finally:
        ctx.client.close()


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert dataclass / pydantic model / dict to plain dict."""
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def fail_if_error(result: OperationResult) -> None:
    if not result.success:
        err = result.error
        msg = err.message if err else "Unknown error"
        code = err.code if err else "ERROR"
        err_console.print(f"[bold red]Error[/bold red] ({code}): {escape(msg)}")
        raise typer.Exit(code=1)


def output_result(
    result: OperationResult,
    *,
    as_json: bool = False,
    title: str = "",
) -> None:
    """Render an ``OperationResult`` to the terminal."""
    fail_if_error(result)
    data = result.data

    if as_json:
        console.print_json(json.dumps(result.to_dict()["data"], default=str))
        return

    if isinstance(data, list):
        if not data:
            console.print("[dim]No items.[/dim]")
            return
        _print_table(data, title=title)
    else:
        _print_dict(_to_dict(data), title=title)


def output_frames(result: OperationResult[list[Frame]], *, as_json: bool = False) -> None:
    """Render query frames: one Rich table per frame, or the JSON payload."""
    fail_if_error(result)

    if as_json:
        console.print_json(json.dumps(result.to_dict()["data"], default=str))
        return

    for frame in result.data or []:
        table = Table(title=frame.name, show_lines=False, pad_edge=False)
        for f in frame.fields:
            table.add_column(display_name(f), overflow="fold", justify="right" if f.kind is TypeKind.NUMERIC else "left")
        for i in range(frame.row_count):
            table.add_row(*(_cell_text(f.kind, f.values[i], f.valid[i]) for f in frame.fields))
        console.print(table)

    fetch = result.metadata.get("fetch", {})
    if fetch:
        console.print(
            f"[dim]{fetch.get('row_count', 0)} rows from {fetch.get('pipe_name')}"
            f" in {fetch.get('duration_ms', 0)} ms[/dim]"
        )


# ── Private helpers ──────────────────────────────────────────────────────


def _cell_text(kind: TypeKind, value: Any, valid: bool) -> str:
    if not valid and value is None:
        return "[dim]null[/dim]"
    if kind is TypeKind.TEMPORAL:
        return value.isoformat() if value is not None else ""
    return escape(str(value))


def _print_table(items: list, *, title: str = "") -> None:
    """Render a list of dataclasses/dicts as a Rich table."""
    first = _to_dict(items[0])
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in first:
        table.add_column(col, overflow="fold")
    for item in items:
        d = _to_dict(item)
        table.add_row(*(escape(str(v)) for v in d.values()))
    console.print(table)


def _print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {escape(str(v))}")


__all__ = [
    "console",
    "err_console",
    "fail_if_error",
    "load_settings",
    "make_context",
    "output_frames",
    "output_result",
]
