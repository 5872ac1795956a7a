"""Console output formatting for the hfile CLI."""

import json
from typing import Any

from rich.console import Console
from rich.table import Table


class OutputFormatter:
    """Handles user-facing output with optional JSON and quiet modes.

    Status messages go to stderr so that ``--json`` output on stdout stays
    machine-readable.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(highlight=False, soft_wrap=True)
        self.err_console = Console(stderr=True, highlight=False, soft_wrap=True)

    def _status_console(self) -> Console:
        return self.err_console if self.json_output else self.console

    def print(self, message: str = "") -> None:
        """Print a plain message (suppressed in quiet mode)."""
        if not self.quiet:
            self._status_console().print(message, markup=False)

    def info(self, message: str) -> None:
        """Print an informational message."""
        if not self.quiet:
            self._status_console().print(message, markup=False)

    def success(self, message: str) -> None:
        """Print a success message."""
        if not self.quiet:
            self._status_console().print(message, style="green", markup=False)

    def warning(self, message: str) -> None:
        """Print a warning message."""
        if not self.quiet:
            self._status_console().print(message, style="yellow", markup=False)

    def error(self, message: str) -> None:
        """Print an error message. Errors are shown even in quiet mode."""
        self.err_console.print(f"Error: {message}", style="red", markup=False)

    def output_json(self, data: Any) -> None:
        """Write data as JSON to stdout."""
        self.console.print_json(json.dumps(data, default=str))

    def print_summary(self, title: str, rows: list[tuple[str, str]]) -> None:
        """Print a two-column key/value table."""
        if self.quiet:
            return
        if self.json_output:
            self.output_json({key: value for key, value in rows})
            return
        table = Table(title=title, show_header=False, title_justify="left")
        table.add_column("Key", style="bold")
        table.add_column("Value", overflow="fold")
        for key, value in rows:
            table.add_row(key, value)
        self.console.print(table)
