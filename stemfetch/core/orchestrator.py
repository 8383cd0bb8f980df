"""
The state machine that composes submission, polling and downloading into one run.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Callable, Optional

from stemfetch.api.client import SeparatorAPIClient
from stemfetch.api.poller import StatusPoller
from stemfetch.api.submitter import JobSubmitter
from stemfetch.exceptions import (
    InputError,
    JobTimeoutError,
    PartialDownloadError,
    SubmissionError,
    TerminalJobError,
    TransientPollError,
)
from stemfetch.media.downloader import DownloadCoordinator
from stemfetch.models.manifest import ListManifest
from stemfetch.models.params import SeparationParameters
from stemfetch.models.result import DownloadResult, JobResult, ResultStatus, RunState
from stemfetch.models.status import JobState, JobStatus
from stemfetch.utils.structured_logger import JobLogger

from .cancel import CancelToken

log = logging.getLogger(__name__)


def default_destination(audio_file: Path, output_root: Path) -> Path:
    """'<output_root>/<file stem> Stems', the folder layout the player expects."""
    return Path(output_root) / f"{Path(audio_file).stem} Stems"


class JobOrchestrator:
    """
    Runs one separation job end to end: submit, poll until terminal, download.

    State: IDLE -> SUBMITTING -> POLLING -> (DOWNLOADING -> DONE) | FAILED |
    TIMED_OUT | CANCELLED. Every run returns exactly one JobResult; errors are
    reported through it rather than raised.
    """

    def __init__(
        self,
        client: SeparatorAPIClient,
        submitter: Optional[JobSubmitter] = None,
        poller: Optional[StatusPoller] = None,
        coordinator: Optional[DownloadCoordinator] = None,
        event_logger: Optional[JobLogger] = None,
        output_root: Path = Path("."),
    ):
        self.client = client
        self.submitter = submitter or JobSubmitter(client)
        self.poller = poller or StatusPoller(client)
        self.coordinator = coordinator or DownloadCoordinator(client)
        self.events = event_logger
        self.output_root = Path(output_root)
        self.state = RunState.IDLE

    def _transition(self, new_state: RunState) -> None:
        log.debug(f"Run state: {self.state.value} -> {new_state.value}")
        self.state = new_state

    async def run(
        self,
        audio_file: Path,
        params: Optional[SeparationParameters] = None,
        poll_interval: float = 10.0,
        timeout: float = 600.0,
        destination_dir: Optional[Path] = None,
        cancel_token: Optional[CancelToken] = None,
        download: bool = True,
        on_status: Optional[Callable[[JobStatus], None]] = None,
        on_download: Optional[Callable[[DownloadResult], None]] = None,
    ) -> JobResult:
        """
        Submits `audio_file` and drives the job to a terminal result.

        Args:
            audio_file: Local audio file to separate.
            params: Separation options; server defaults when omitted.
            poll_interval: Seconds to wait between status checks.
            timeout: Total polling budget in seconds, counted from the first poll.
            destination_dir: Where stems are written; defaults to
                '<output_root>/<file stem> Stems'.
            cancel_token: Checked before each poll, sleep and download.
            download: When False, a completed job returns its manifest only.
            on_status: Called with every successfully decoded status.
            on_download: Called with every per-file outcome.
        """
        if self.state is not RunState.IDLE:
            raise RuntimeError("A JobOrchestrator runs exactly one job.")

        params = params or SeparationParameters()
        cancel_token = cancel_token or CancelToken()
        audio_file = Path(audio_file)
        destination = Path(
            destination_dir or default_destination(audio_file, self.output_root)
        )
        started = time.monotonic()

        def finish(status: ResultStatus, state: RunState, **fields) -> JobResult:
            self._transition(state)
            result = JobResult(
                status=status,
                state=state,
                destination=destination,
                elapsed_s=time.monotonic() - started,
                **fields,
            )
            if self.events:
                self.events.job_finished(result)
            return result

        # Submitting
        self._transition(RunState.SUBMITTING)
        if cancel_token.cancelled:
            return finish(ResultStatus.CANCELLED, RunState.CANCELLED)
        try:
            job_id = await self.submitter.submit_file(audio_file, params)
        except (InputError, SubmissionError) as e:
            log.error(f"[red]✗ Submission failed: {e}[/red]")
            return finish(ResultStatus.ERROR, RunState.FAILED, first_error=e)
        if self.events:
            self.events.job_submitted(job_id, audio_file.name, params)

        # Polling
        self._transition(RunState.POLLING)
        outcome = await self._poll_until_terminal(
            job_id, poll_interval, timeout, cancel_token, on_status
        )
        if outcome is None:
            return finish(ResultStatus.CANCELLED, RunState.CANCELLED, job_id=job_id)
        if isinstance(outcome, JobTimeoutError):
            log.error(f"[red]✗ {outcome}[/red]")
            return finish(
                ResultStatus.TIMED_OUT,
                RunState.TIMED_OUT,
                job_id=job_id,
                first_error=outcome,
            )

        final_status = outcome
        if final_status.state is JobState.ERROR:
            error = TerminalJobError(job_id)
            log.error(f"[red]✗ {error}[/red]")
            return finish(
                ResultStatus.ERROR, RunState.FAILED, job_id=job_id, first_error=error
            )

        # Downloading
        log.info("[green]Separation completed.[/green]")
        manifest = final_status.files
        if manifest is None:
            manifest = ListManifest(())
            if final_status.files_error is not None:
                log.warning(
                    f"[yellow]⚠ Unreadable file list: {final_status.files_error}[/yellow]"
                )
                return finish(
                    ResultStatus.COMPLETED,
                    RunState.DONE,
                    job_id=job_id,
                    manifest=manifest,
                    first_error=final_status.files_error,
                )
            log.warning("[yellow]Job completed without a file list.[/yellow]")
        if not download:
            return finish(
                ResultStatus.COMPLETED, RunState.DONE, job_id=job_id, manifest=manifest
            )

        self._transition(RunState.DOWNLOADING)
        downloads = await self.coordinator.fetch_all(
            job_id,
            manifest.as_pairs(),
            destination,
            cancel_token=cancel_token,
            on_result=self._download_callback(job_id, on_download),
        )

        if cancel_token.cancelled:
            return finish(
                ResultStatus.CANCELLED,
                RunState.CANCELLED,
                job_id=job_id,
                manifest=manifest,
                downloads=tuple(downloads),
            )

        failures = [d for d in downloads if not d.ok]
        partial = PartialDownloadError(failures, len(downloads)) if failures else None
        if partial:
            log.warning(f"[yellow]⚠ {partial}[/yellow]")
        return finish(
            ResultStatus.COMPLETED,
            RunState.DONE,
            job_id=job_id,
            manifest=manifest,
            downloads=tuple(downloads),
            first_error=partial,
        )

    async def _poll_until_terminal(
        self,
        job_id: str,
        poll_interval: float,
        timeout: float,
        cancel_token: CancelToken,
        on_status: Optional[Callable[[JobStatus], None]],
    ):
        """
        Polls until the job is terminal.

        Returns:
            The terminal JobStatus, a JobTimeoutError when the budget runs out,
            or None when cancelled.
        """
        started = time.monotonic()
        last_progress = None

        while True:
            remaining = timeout - (time.monotonic() - started)
            if remaining <= 0:
                return JobTimeoutError(job_id, timeout, time.monotonic() - started)

            if cancel_token.cancelled:
                return None
            try:
                status = await asyncio.wait_for(self.poller.poll(job_id), remaining)
            except TransientPollError as e:
                log.warning(f"[yellow]Polling error: {e}[/yellow]")
                status = None
            except asyncio.TimeoutError:
                log.warning("[yellow]Status request outlived the polling budget.[/yellow]")
                status = None

            if status is not None:
                if status.progress is not None and status.progress != last_progress:
                    log.info(f"Progress: {status.describe_progress()}")
                    if self.events:
                        self.events.job_progress(job_id, status)
                    last_progress = status.progress
                if on_status is not None:
                    on_status(status)
                if status.is_terminal:
                    return status

            remaining = timeout - (time.monotonic() - started)
            if remaining <= 0:
                continue
            if cancel_token.cancelled:
                return None
            if await cancel_token.sleep(min(poll_interval, remaining)):
                return None

    def _download_callback(
        self, job_id: str, on_download: Optional[Callable[[DownloadResult], None]]
    ) -> Callable[[DownloadResult], None]:
        def callback(result: DownloadResult) -> None:
            if self.events:
                if result.ok:
                    self.events.file_downloaded(job_id, result)
                else:
                    self.events.file_failed(job_id, result)
            if on_download is not None:
                on_download(result)

        return callback

