"""CLI output for ``cachelayer``: records on stdout, diagnostics on stderr.

Every command prints one flat record (a cache key, a decoded envelope, a
store summary). :class:`OutputManager` renders it in one of three modes:

* ``json`` -- a single indented JSON object, for scripts.
* ``plain`` -- ``field<TAB>value`` lines; nested values are compact JSON.
* ``rich`` -- a two-column table, used when stdout is a terminal.

Status lines, warnings and errors always go to stderr so that piping
``cachelayer --json inspect ...`` into ``jq`` never sees them. ``NO_COLOR``
and ``TERM=dumb`` disable colour just like ``--no-color``.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table


class OutputFormat(str, Enum):
    """Record rendering modes. ``AUTO`` picks ``RICH`` on a colour TTY."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


def _colour_disabled() -> bool:
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


def _stdout_is_terminal() -> bool:
    isatty = getattr(sys.stdout, "isatty", None)
    return bool(isatty and isatty())


def _compact(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


class OutputManager:
    """Holds the output preferences chosen by the global CLI flags.

    Args:
        format: Requested rendering mode.
        no_color: Strip colour and markup from every stream.
        quiet: Drop :meth:`info` and :meth:`success` messages.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
    ) -> None:
        self._no_color = no_color or _colour_disabled()
        self._quiet = quiet
        if format == OutputFormat.AUTO:
            rich_ok = _stdout_is_terminal() and not self._no_color
            format = OutputFormat.RICH if rich_ok else OutputFormat.PLAIN
        self._format = format
        self._stdout = Console(file=sys.stdout, no_color=self._no_color)
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    def format_response(self, record: dict[str, Any]) -> None:
        """Write *record* to stdout in the active mode."""
        if self._format == OutputFormat.JSON:
            self._write(json.dumps(record, indent=2, ensure_ascii=False, default=str))
        elif self._format == OutputFormat.PLAIN:
            for field, value in record.items():
                self._write(f"{field}\t{_compact(value)}")
        else:
            table = Table(show_header=False, box=None, pad_edge=False)
            table.add_column(style="bold cyan")
            table.add_column(overflow="fold")
            for field, value in record.items():
                table.add_row(field, _compact(value))
            self._stdout.print(table)

    def info(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic(message, "")

    def success(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic(message, "[green]{}[/green]")

    def warning(self, message: str) -> None:
        self._diagnostic(f"Warning: {message}", "[yellow]{}[/yellow]")

    def error(self, message: str) -> None:
        self._diagnostic(f"Error: {message}", "[bold red]{}[/bold red]")

    def _write(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def _diagnostic(self, message: str, markup: str) -> None:
        if self._no_color or not markup:
            print(message, file=sys.stderr, flush=True)
        else:
            self._stderr.print(markup.format(escape(message)), markup=True, highlight=False)


_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed manager, creating a default one on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the installed manager. Tests call this between CLI runs."""
    global _output
    _output = None


def format_response(record: dict[str, Any]) -> None:
    get_output().format_response(record)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)
