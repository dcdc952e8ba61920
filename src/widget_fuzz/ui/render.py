"""Output rendering abstraction for the widget-fuzz CLI.

File: src/widget_fuzz/ui/render.py

Purpose
- Provide a thin rendering layer for CLI output on top of ``rich``.
- Respect NO_COLOR environment variable and --no-color CLI flag.

What should be included in this file
- CLIRenderer class with key/value, section, list and table output.
- Factory function to create a renderer with appropriate settings.

Functional requirements
- Plain-text rendering must work when stdout is not a terminal.
- All public methods must be safe to call in any environment.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from collections.abc import Sequence

_SEVERITY_STYLES = {"weird": "bold red", "warn": "yellow"}


def _color_allowed(no_color_flag: bool) -> bool:
    """Check whether color output should be attempted."""

    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


class CLIRenderer:
    """Thin CLI output renderer.

    Output goes through a ``rich`` console bound to the current ``sys.stdout``.
    Respects ``NO_COLOR`` env var and ``--no-color`` flag.
    """

    def __init__(self, *, no_color: bool = False, verbose: bool = False) -> None:
        self.verbose = verbose
        self._color = _color_allowed(no_color)
        self._console = Console(
            no_color=not self._color,
            highlight=False,
            soft_wrap=True,
            color_system="auto" if self._color else None,
        )

    def kv(self, key: str, value: object) -> None:
        """Print a key: value pair."""

        line = Text(f"{key}: ", style="bold")
        line.append(str(value))
        self._console.print(line)

    def text(self, line: str) -> None:
        """Print a plain text line."""

        self._console.print(Text(line))

    def section(self, title: str) -> None:
        """Print a section header with a preceding blank line."""

        self._console.print()
        self._console.print(Text(title, style="bold underline"))

    def warning(self, text: str) -> None:
        self._console.print(Text(f"  Warning: {text}", style="yellow"))

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        """Print a bulleted list."""

        for entry in entries:
            self._console.print(Text(f"  {prefix}{entry}"))

    def severity(self, severity: str) -> Text:
        """Return ``severity`` styled for table cells."""

        return Text(severity, style=_SEVERITY_STYLES.get(severity, ""))

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str | Text]],
        *,
        title: str | None = None,
    ) -> None:
        """Print a table; nothing is printed when ``rows`` is empty."""

        if not rows:
            return

        if title:
            self.section(title)
        grid = Table(show_edge=False, box=None, pad_edge=False, header_style="bold")
        for header in headers:
            grid.add_column(header, overflow="fold")
        for row in rows:
            cells = [cell if isinstance(cell, Text) else Text(str(cell)) for cell in row]
            cells.extend(Text("") for _ in range(len(headers) - len(cells)))
            grid.add_row(*cells[: len(headers)])
        self._console.print(grid)


def create_renderer(*, no_color: bool = False, verbose: bool = False) -> CLIRenderer:
    """Create a CLI renderer with the given settings."""

    return CLIRenderer(no_color=no_color, verbose=verbose)


__all__ = ["CLIRenderer", "create_renderer"]
