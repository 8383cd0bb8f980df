"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from stemfetch.media.stems import StemFolder
from stemfetch.models.result import JobResult, ResultStatus
from stemfetch.models.status import JobStatus
from stemfetch.utils.formatting import format_duration, format_size, format_stem_name


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "InputError": [
            "• Check that the audio file path is correct and the file is not empty.",
        ],
        "SubmissionError": [
            "• The server rejected the upload; check the model names and options.",
            "• Run `stemfetch health` to confirm the server is reachable.",
        ],
        "TerminalJobError": [
            "• The server failed while separating; try a different model.",
            "• Very long or unusual files may exceed the server's limits.",
        ],
        "JobTimeoutError": [
            "• The job may still be running; check it with `stemfetch status <TASK_ID>`.",
            "• Increase the polling budget with --timeout.",
        ],
        "ConfigurationError": [
            "• Run `stemfetch init <API_URL>` to create a configuration file.",
            "• Use --show-config to review the current settings.",
        ],
        "HealthCheckError": [
            "• Verify the api_url in your configuration.",
            "• The server may be starting up; please try again in a minute.",
        ],
        "ClientConnectorError": [
            "• A network connection issue occurred.",
            "• The separation server might be temporarily unavailable.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        if isinstance(value, list):
            value = ", ".join(value) or "(server default)"
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            escape(content.strip()),
            title=f"Configuration ([dim]{escape(str(config_path))}[/dim])",
            border_style="cyan",
        )
    )


def print_status_table(task_id: str, status: JobStatus):
    """Displays a single status report."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    colors = {"completed": "green", "error": "red", "unknown": "yellow"}
    color = colors.get(status.state.value, "cyan")
    table.add_row("Task:", escape(task_id))
    table.add_row(
        "Status:",
        f"[{color}]{status.state.value}[/{color}]"
        + (
            f" [dim](reported '{escape(status.raw_status)}')[/dim]"
            if status.raw_status and status.raw_status.lower() != status.state.value
            else ""
        ),
    )
    if progress := status.describe_progress():
        table.add_row("Progress:", progress)
    if status.files is not None:
        table.add_row("Files:", escape(", ".join(status.files.filenames())) or "-")

    console.print(Panel(table, title="[bold]Job Status[/bold]", border_style=color))


def print_result_panel(result: JobResult):
    """Displays the final summary of a separation run."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=16)
    stats_table.add_column(style="white", justify="left")

    if result.job_id:
        stats_table.add_row("Task:", escape(result.job_id))
    stats_table.add_row("Outcome:", result.status.value)

    if result.downloads:
        stats_table.add_row(
            "✓ Downloaded:", f"[bold green]{len(result.succeeded)}[/bold green]"
        )
        if result.failed:
            stats_table.add_row(
                "✗ Failed:", f"[bold red]{len(result.failed)}[/bold red]"
            )
        stats_table.add_row(
            "Stems:",
            escape(", ".join(format_stem_name(d.filename) for d in result.succeeded))
            or "-",
        )
        stats_table.add_row(
            "Total Size:", f"[cyan]{format_size(result.total_bytes)}[/cyan]"
        )
        if result.destination:
            stats_table.add_row("Folder:", f"[dim]{escape(str(result.destination))}[/dim]")
    elif result.manifest is not None and len(result.manifest):
        stats_table.add_row(
            "Files:", escape(", ".join(result.manifest.filenames()))
        )

    if result.first_error:
        stats_table.add_row("", "")
        stats_table.add_row("Error:", f"[red]{escape(str(result.first_error))}[/red]")

    stats_table.add_row(
        "Time Elapsed:", f"[blue]{format_duration(result.elapsed_s)}[/blue]"
    )

    if result.status is ResultStatus.COMPLETED and not result.failed:
        title, border_color = "🎵 [bold]Separation Complete![/bold]", "green"
    elif result.status is ResultStatus.COMPLETED:
        title, border_color = "⚠ [bold]Completed With Missing Stems[/bold]", "yellow"
    elif result.status is ResultStatus.CANCELLED:
        title, border_color = "[bold]Cancelled[/bold]", "yellow"
    else:
        title, border_color = "✗ [bold]Separation Failed[/bold]", "red"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()


def print_stem_folder(folder: StemFolder):
    """Displays the stems found in a folder and whether the set is complete."""
    console = Console()
    table = Table(title=f"Stems in {escape(folder.name)}", box=box.ROUNDED)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Stem", style="cyan")
    table.add_column("File")
    table.add_column("Length", justify="right")

    for i, stem in enumerate(folder.stems, 1):
        length = (
            format_duration(stem.duration_s)
            if stem.is_readable
            else "[red]unreadable[/red]"
        )
        table.add_row(
            str(i),
            escape(format_stem_name(stem.path.name)),
            escape(stem.path.name),
            length,
        )

    console.print(table)
    if folder.is_complete:
        console.print("[green]✓ Complete 4-stem set, ready for playback.[/green]")
    else:
        console.print(
            f"[yellow]⚠ Expected 4 readable stems, found {len(folder.stems)} "
            f"file(s).[/yellow]"
        )
