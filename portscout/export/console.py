"""Terminal presentation of scan events."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TaskID, TextColumn, TimeElapsedColumn
from rich.text import Text

from ..scanner.engine import IPAddress, OpenPort, Scanner

ROW_FORMAT = "{:<8} {:<7} {:<15} {:<20} {}"


class ConsoleReport:
    """Render resolution messages, open-port rows, a progress bar and the final summary."""

    def __init__(self, console: Console | None = None, error_console: Console | None = None) -> None:
        self.console = console or Console(highlight=False)
        self.error_console = error_console or Console(stderr=True, highlight=False)
        self._progress: Progress | None = None
        self._task: TaskID | None = None

    def resolving(self, target: str) -> None:
        self.console.print(Text.assemble("\n", ("Resolving", "bright_blue"), " ", (target, "bright_yellow"), "..."))

    def resolved(self, target: str, address: IPAddress) -> None:
        self.console.print(
            Text.assemble(
                ("Resolved", "bright_green"), " ", (target, "bright_yellow"), " -> ", (str(address), "bright_green")
            )
        )

    def resolution_failed(self, exc: Exception) -> None:
        self.error_console.print(Text.assemble(("Error:", "bright_red"), f" {exc}"))
        self.error_console.print("Try using IP address directly or check your internet connection", markup=False)

    @contextmanager
    def scanning(self, scanner: Scanner) -> Iterator[None]:
        """Print the table header and keep a progress bar alive for the duration of a scan."""
        address, start_port, end_port = scanner.target, scanner.start_port, scanner.end_port
        self.console.print(
            Text.assemble(
                "\n", ("Scanning", "bright_blue"), " ", (str(address), "bright_yellow"), f" ({start_port}-{end_port})"
            )
        )
        self.console.print("\n" + ROW_FORMAT.format("STATUS", "PORT", "PROTOCOL", "SERVICE", "DETAILS"), markup=False)
        self.console.print("-" * 80, markup=False)

        progress = Progress(
            SpinnerColumn(style="green"),
            TimeElapsedColumn(),
            BarColumn(complete_style="cyan", finished_style="blue"),
            MofNCompleteColumn(),
            TextColumn("ports scanned"),
            TextColumn("{task.fields[message]}"),
            console=self.console,
            transient=True,
        )
        self._task = progress.add_task("scan", total=scanner.port_count, message="Starting scan...")
        self._progress = progress
        try:
            with progress:
                yield
        finally:
            self._progress = None
            self._task = None

    def on_result(self, result: OpenPort) -> None:
        service = result.service
        self.console.print(
            Text.assemble(
                ("{:<8}".format("OPEN"), "bright_green"),
                " ",
                "{:<7}".format(result.port),
                " ",
                ("{:<15}".format(service.protocol), "bright_blue"),
                " ",
                ("{:<20}".format(service.service_name), "bright_blue"),
                " ",
                (service.details, "bright_white"),
            ),
            soft_wrap=True,
        )

    def on_progress(self, scanned: int, open_count: int) -> None:
        if self._progress is None or self._task is None:
            return
        self._progress.update(self._task, completed=scanned)
        if open_count:
            self._progress.update(self._task, message=f"Open ports found: {open_count}")

    def on_complete(self, open_count: int) -> None:
        if self._progress is not None:
            self._progress.stop()
        self.console.print(Text.assemble("\n", ("Scan completed!", "bright_green"), f" Found {open_count} open ports."))
