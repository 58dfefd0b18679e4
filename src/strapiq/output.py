"""Printing query results and diagnostics for the ``strapiq`` command line.

Results go to stdout and nothing else does, so ``strapiq query ... --json``
can be piped straight into ``jq``.  Status lines, warnings, errors and
``--verbose`` debug lines go to stderr.

Three renderings of a result are available:

- ``json`` -- the normalised data, pretty-printed.
- ``plain`` -- tab-separated: one ``key<TAB>value`` line per field of a
  single record, or a header line plus one row per record for a list.
- ``rich`` -- a table for record lists, highlighted JSON otherwise.

``auto`` picks ``rich`` on a colour terminal and ``plain`` when piped or
when colour is disabled (``--no-color``, ``NO_COLOR``, ``TERM=dumb``).

The CLI callback installs one :class:`OutputManager` with
:func:`use_output`; commands print through the module-level helpers.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text


class OutputFormat(str, Enum):
    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


# level -> (plain prefix, rich style, hidden by --quiet, needs --verbose)
_LEVELS: dict[str, tuple[str, str, bool, bool]] = {
    "info": ("", "", True, False),
    "success": ("", "green", True, False),
    "warning": ("Warning: ", "yellow", False, False),
    "error": ("Error: ", "bold red", False, False),
    "debug": ("[debug] ", "dim", False, True),
}


def color_disabled_by_env() -> bool:
    """``NO_COLOR`` (any value, even empty) or ``TERM=dumb`` turn colour off."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


def _stdout_is_terminal() -> bool:
    isatty = getattr(sys.stdout, "isatty", None)
    return bool(isatty and isatty())


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def _cell(value: Any) -> str:
    """Scalar as text; nested values as compact JSON; ``None`` as empty."""
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def _columns(records: list[dict]) -> list[str]:
    """Union of record keys, in first-seen order."""
    seen: dict[str, None] = {}
    for record in records:
        for key in record:
            seen.setdefault(str(key), None)
    return list(seen)


def _is_record_list(data: Any) -> bool:
    return isinstance(data, list) and bool(data) and all(isinstance(r, dict) for r in data)


class OutputManager:
    """Output preferences for one CLI invocation.

    Args:
        format: Result rendering; ``AUTO`` is resolved at construction.
        no_color: Disable colour and markup.
        quiet: Hide info and success lines.
        verbose: Show debug lines.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self.no_color = no_color or color_disabled_by_env()
        self.quiet = quiet
        self.verbose = verbose
        if format is OutputFormat.AUTO:
            rich_ok = _stdout_is_terminal() and not self.no_color
            format = OutputFormat.RICH if rich_ok else OutputFormat.PLAIN
        self.format = format

    # sys.stdout / sys.stderr are looked up on every call.
    def _console(self, stderr: bool = False) -> Console:
        return Console(
            file=sys.stderr if stderr else sys.stdout,
            no_color=self.no_color,
            force_terminal=(not stderr and self.format is OutputFormat.RICH),
            highlight=False,
        )

    def print_line(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def print_records(self, data: Any) -> None:
        """Print a query result (a record, a list of records, or a scalar)."""
        if self.format is OutputFormat.JSON:
            self.print_line(_to_json(data))
        elif self.format is OutputFormat.PLAIN:
            self._print_tsv(data)
        elif _is_record_list(data):
            columns = _columns(data)
            self.print_table(columns, [[_cell(r.get(c)) for c in columns] for r in data])
        elif isinstance(data, (dict, list)):
            self._console().print(Syntax(_to_json(data), "json", word_wrap=True))
        else:
            self._console().print(_cell(data))

    def print_table(
        self, headers: list[str], rows: list[list[str]], title: Optional[str] = None
    ) -> None:
        """JSON: array of objects.  Plain: TSV with a header line.  Rich: a table."""
        if self.format is OutputFormat.JSON:
            self.print_line(_to_json([dict(zip(headers, row)) for row in rows]))
            return
        if self.format is OutputFormat.PLAIN:
            for row in [headers, *rows]:
                self.print_line("\t".join(row))
            return
        table = Table(*headers, title=title, header_style="bold")
        for row in rows:
            table.add_row(*row)
        self._console().print(table)

    def notify(self, level: str, message: str) -> None:
        """Write a diagnostic line to stderr, honouring quiet and verbose."""
        prefix, style, quiet_hides, needs_verbose = _LEVELS[level]
        if (quiet_hides and self.quiet) or (needs_verbose and not self.verbose):
            return
        if self.no_color or not style:
            print(f"{prefix}{message}", file=sys.stderr, flush=True)
        else:
            self._console(stderr=True).print(Text(f"{prefix}{message}", style=style))

    def _print_tsv(self, data: Any) -> None:
        if isinstance(data, dict):
            for key, value in data.items():
                self.print_line(f"{key}\t{_cell(value)}")
        elif _is_record_list(data):
            columns = _columns(data)
            self.print_table(columns, [[_cell(r.get(c)) for c in columns] for r in data])
        elif isinstance(data, list):
            for item in data:
                self.print_line(_cell(item))
        else:
            self.print_line(_cell(data))


_active: Optional[OutputManager] = None


def current_output() -> OutputManager:
    """The installed manager, or a default one when none was installed."""
    global _active
    if _active is None:
        _active = OutputManager()
    return _active


def use_output(manager: OutputManager) -> None:
    global _active
    _active = manager


def reset_output() -> None:
    global _active
    _active = None


def print_records(data: Any) -> None:
    current_output().print_records(data)


def print_line(text: str) -> None:
    current_output().print_line(text)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    current_output().print_table(headers, rows, title)


def info(message: str) -> None:
    current_output().notify("info", message)


def success(message: str) -> None:
    current_output().notify("success", message)


def warning(message: str) -> None:
    current_output().notify("warning", message)


def error(message: str) -> None:
    current_output().notify("error", message)


def debug(message: str) -> None:
    current_output().notify("debug", message)
