"""
Rich progress display for a single separation run: server-side progress while
the job is processing, then one line per downloaded file.
"""

import logging

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from stemfetch.models.result import DownloadResult
from stemfetch.models.status import JobStatus
from stemfetch.utils.formatting import format_size

log = logging.getLogger("stemfetch")


class ProgressManager:
    """Feeds orchestrator callbacks into a Rich progress bar."""

    def __init__(self, console: Console, label: str = "Separating"):
        self.console = console
        self.label = label
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=30),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            TimeElapsedColumn(),
            console=console,
            transient=False,
        )
        self._task_id: TaskID | None = None
        self._last_state: str | None = None

    def __enter__(self) -> "ProgressManager":
        self.progress.start()
        self._task_id = self.progress.add_task(
            f"[cyan]{escape(self.label)}[/cyan] (submitting)", total=100
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.progress.stop()

    def on_status(self, status: JobStatus) -> None:
        """Updates the bar from one decoded status report."""
        if self._task_id is None:
            return
        description = f"[cyan]{escape(self.label)}[/cyan] ({status.state.value})"
        if pair := status.model_progress:
            description += f" [dim]model {pair[0] + 1}/{pair[1]}[/dim]"
        update: dict = {"description": description}
        if status.progress is not None:
            update["completed"] = max(0.0, min(100.0, float(status.progress)))
        if status.is_terminal:
            update["completed"] = 100
        self.progress.update(self._task_id, **update)
        if status.state.value != self._last_state:
            log.debug(f"Job state is now '{status.state.value}'.")
            self._last_state = status.state.value

    def on_download(self, result: DownloadResult) -> None:
        """Prints one line per finished file above the live bar."""
        if result.ok:
            self.console.print(
                f"  [green]✓[/green] {escape(result.filename)} "
                f"[dim]({format_size(result.size_bytes)})[/dim]"
            )
        else:
            self.console.print(
                f"  [red]✗[/red] {escape(result.filename)} "
                f"[dim]({escape(result.error or 'unknown error')})[/dim]"
            )
