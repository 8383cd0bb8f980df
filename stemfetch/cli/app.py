"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import signal
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from stemfetch import __version__
from stemfetch.api.client import SeparatorAPIClient
from stemfetch.api.poller import StatusPoller
from stemfetch.core.cancel import CancelToken
from stemfetch.core.orchestrator import JobOrchestrator
from stemfetch.exceptions import StemFetchError
from stemfetch.media.downloader import DownloadCoordinator
from stemfetch.media.stems import scan_stem_folder
from stemfetch.models.params import SeparationParameters
from stemfetch.models.result import ResultStatus
from stemfetch.storage.config_manager import ConfigManager
from stemfetch.utils.structured_logger import create_structured_logger

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_result_panel,
    print_status_table,
    print_stem_folder,
)
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="WARNING",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("stemfetch")
log.setLevel("INFO")

app = typer.Typer(
    name="stemfetch",
    help=(
        "Split a song into stems on a remote separation server and download them."
        " Use 'stemfetch <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "stemfetch"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """stemfetch CLI"""
    if version:
        console.print(f"[bold]stemfetch[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("stemfetch").setLevel(log_level)

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]stemfetch init <API_URL>"
                "[/cyan] first."
            )
            raise typer.Exit(code=1)
        config_manager = ConfigManager(CONFIG_FILE)
        print_config(CONFIG_FILE, config_manager.get_config_as_dict())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    api_url: str = typer.Argument(..., help="Base URL of the separation server."),
    output_dir: str = typer.Option(
        ".", "--output-dir", "-o", help="Folder where stem folders are created."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration."
    ),
):
    """Create the configuration file."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    config_manager = ConfigManager(CONFIG_FILE)
    try:
        config_manager.save_new_config({"api_url": api_url, "output_dir": output_dir})
    except StemFetchError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready! Try: [cyan]stemfetch separate <FILE>[/cyan]")


def _load_config(cli_options: dict | None = None):
    config_manager = ConfigManager(CONFIG_FILE)
    return config_manager.load_config(cli_options)


@app.command()
def separate(
    audio_file: Path = typer.Argument(  # noqa: B008
        ..., help="Audio file to split into stems."
    ),
    output: Path | None = typer.Option(  # noqa: B008
        None,
        "-o",
        "--output",
        help="Folder to write stems into (default: '<output_dir>/<name> Stems').",
    ),
    models: list[str] | None = typer.Option(  # noqa: B008
        None,
        "-m",
        "--model",
        help="Model to run; repeat for several models (e.g. -m htdemucs.yaml).",
    ),
    output_format: str | None = typer.Option(
        None, "-f", "--format", help="Output audio format (flac, wav, mp3, ...)."
    ),
    single_stem: str | None = typer.Option(
        None, "--single-stem", help="Only output one stem, e.g. 'Vocals'."
    ),
    poll_interval: float | None = typer.Option(
        None, "--interval", help="Seconds between status checks."
    ),
    timeout: float | None = typer.Option(
        None, "--timeout", help="Give up after this many seconds of polling."
    ),
    workers: int | None = typer.Option(
        None, "-w", "--workers", help="Number of simultaneous file downloads."
    ),
    no_download: bool = typer.Option(
        False, "--no-download", help="Only report the file list, do not download."
    ),
    require: int | None = typer.Option(
        None,
        "--require",
        help="Exit with an error unless at least this many stems were downloaded.",
    ),
    log_dir: Path | None = typer.Option(  # noqa: B008
        None, "--log-dir", help="Write a JSON-lines event log into this folder."
    ),
):
    """Separate an audio file into stems and download them."""
    cli_options = {
        key: value
        for key, value in {
            "poll_interval": poll_interval,
            "timeout": timeout,
            "max_concurrent_downloads": workers,
            "output_format": output_format,
        }.items()
        if value is not None
    }
    config = _load_config(cli_options)

    try:
        params = SeparationParameters(
            models=list(models) if models else (config.default_models or None),
            output_format=config.output_format,
            output_single_stem=single_stem,
        )
    except ValidationError as e:
        console.print(f"[red]✗ Invalid separation options:[/red]\n{e}")
        raise typer.Exit(code=1) from e

    base_logger, job_logger = create_structured_logger(
        log_dir=log_dir, enable_json=log_dir is not None
    )

    async def _separate_async():
        cancel_token = CancelToken()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, cancel_token.cancel)
        except (NotImplementedError, RuntimeError):
            pass

        async with SeparatorAPIClient(
            config.api_url, request_timeout=config.request_timeout
        ) as client:
            orchestrator = JobOrchestrator(
                client,
                coordinator=DownloadCoordinator(
                    client, max_concurrent=config.max_concurrent_downloads
                ),
                event_logger=job_logger,
                output_root=Path(config.output_dir).expanduser(),
            )
            with ProgressManager(console, label=audio_file.name) as progress:
                return await orchestrator.run(
                    audio_file,
                    params,
                    poll_interval=config.poll_interval,
                    timeout=config.timeout,
                    destination_dir=output,
                    cancel_token=cancel_token,
                    download=not no_download,
                    on_status=progress.on_status,
                    on_download=progress.on_download,
                )

    with base_logger:
        result = asyncio.run(_separate_async())

    if result.status is ResultStatus.ERROR and result.first_error is not None:
        console.print(format_error_with_suggestions(result.first_error))
    print_result_panel(result)
    if base_logger.json_log_path:
        console.print(f"[dim]Event log: {base_logger.json_log_path}[/dim]")

    if result.status is not ResultStatus.COMPLETED:
        raise typer.Exit(code=1)
    if require is not None and len(result.succeeded) < require:
        console.print(
            f"[red]✗ Only {len(result.succeeded)} of the {require} required stems "
            "were downloaded.[/red]"
        )
        raise typer.Exit(code=1)


@app.command()
def status(task_id: str = typer.Argument(..., help="Task ID returned at submission.")):
    """Check the status of a job once."""
    config = _load_config()

    async def _status_async():
        async with SeparatorAPIClient(
            config.api_url, request_timeout=config.request_timeout
        ) as client:
            return await StatusPoller(client).poll(task_id)

    print_status_table(task_id, asyncio.run(_status_async()))


@app.command()
def health():
    """Show the separation server's version."""
    config = _load_config()

    async def _health_async():
        async with SeparatorAPIClient(
            config.api_url, request_timeout=config.request_timeout
        ) as client:
            return await client.get_server_version()

    version = asyncio.run(_health_async())
    console.print(
        f"[green]✓[/] Server at [dim]{config.api_url}[/dim] is up, "
        f"version [cyan]{version}[/cyan]."
    )


@app.command()
def inspect(
    folder: Path = typer.Argument(..., help="A folder of downloaded stems."),  # noqa: B008
):
    """Check that a folder holds a complete, readable set of four stems."""
    if not folder.is_dir():
        console.print(f"[red]✗ Not a folder: {folder}[/red]")
        raise typer.Exit(code=1)
    stem_folder = scan_stem_folder(folder)
    print_stem_folder(stem_folder)
    if not stem_folder.is_complete:
        raise typer.Exit(code=1)
