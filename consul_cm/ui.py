"""Console output for consul-cm commands.

Status lines, phase headers and the drift summary go through a single
:mod:`rich` console.  Machine-readable output (plan and state JSON) is
printed verbatim through :func:`print_json` so it stays pipeable.
Module loggers stay on :mod:`logging`; nothing here is logged.
"""

from __future__ import annotations

from typing import Dict, Iterable

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

console = Console(stderr=False, force_terminal=None)

_MARKS: Dict[str, str] = {
    "ok": "[bold green]✓[/]",
    "fail": "[bold red]✗[/]",
    "warn": "[bold yellow]⚠[/]",
    "info": "[dim]·[/]",
}
_STYLES: Dict[str, str] = {
    "ok": "",
    "fail": "red",
    "warn": "yellow",
    "info": "dim",
}


def _status(kind: str, msg: str) -> None:
    text = escape(msg)
    style = _STYLES[kind]
    if style:
        text = f"[{style}]{text}[/]"
    console.print(f"  {_MARKS[kind]} {text}", highlight=False)


def phase(title: str) -> None:
    """Bold header for a workflow phase (``RESOLVE``, ``RENDER``)."""
    console.print()
    console.rule(f"[bold blue]{escape(title)}[/]", align="left", style="blue")


def ok(msg: str) -> None:
    _status("ok", msg)


def fail(msg: str) -> None:
    _status("fail", msg)


def warn(msg: str) -> None:
    _status("warn", msg)


def info(msg: str) -> None:
    _status("info", msg)


def detail(key: str, value: object) -> None:
    console.print(f"    [bold]{escape(key)}[/]: {escape(str(value))}", highlight=False)


def print_json(text: str) -> None:
    """Print a JSON document as-is: no markup, highlighting or wrapping."""
    console.print(text, markup=False, highlight=False, soft_wrap=True)


def drift_panel(drifted: Iterable[str]) -> None:
    """Summarise drifted check ids in a yellow panel."""
    table = Table(show_header=False, box=None, padding=(0, 1))
    for check_id in drifted:
        table.add_row(_MARKS["warn"], escape(check_id))
    console.print()
    console.print(
        Panel(
            table,
            title="[bold yellow]Plan drift[/]",
            border_style="yellow",
            expand=False,
        )
    )
