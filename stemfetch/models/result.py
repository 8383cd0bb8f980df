"""
Result types produced by a download batch and by a whole separation run.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from stemfetch.exceptions import StemFetchError

from .manifest import Manifest


class RunState(Enum):
    """States of the job orchestrator's state machine."""

    IDLE = "idle"
    SUBMITTING = "submitting"
    POLLING = "polling"
    DOWNLOADING = "downloading"
    DONE = "done"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_RUN_STATES


TERMINAL_RUN_STATES = frozenset(
    {RunState.DONE, RunState.FAILED, RunState.TIMED_OUT, RunState.CANCELLED}
)


class ResultStatus(Enum):
    """Aggregate outcome reported to the caller."""

    COMPLETED = "completed"
    ERROR = "error"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class DownloadRoute(Enum):
    LEGACY = "legacy"
    HASH = "hash"


@dataclass(frozen=True)
class DownloadResult:
    """The outcome of fetching one manifest entry: a path or a failure reason."""

    key: str
    filename: str
    route: DownloadRoute
    path: Optional[Path] = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    size_bytes: int = 0

    @property
    def ok(self) -> bool:
        return self.path is not None


@dataclass(frozen=True)
class JobResult:
    """The single terminal aggregate of one run."""

    status: ResultStatus
    state: RunState
    job_id: Optional[str] = None
    manifest: Optional[Manifest] = None
    downloads: tuple[DownloadResult, ...] = field(default_factory=tuple)
    first_error: Optional[StemFetchError] = None
    destination: Optional[Path] = None
    elapsed_s: float = 0.0

    @property
    def succeeded(self) -> list[DownloadResult]:
        return [d for d in self.downloads if d.ok]

    @property
    def failed(self) -> list[DownloadResult]:
        return [d for d in self.downloads if not d.ok]

    @property
    def downloaded_paths(self) -> list[Path]:
        return [d.path for d in self.downloads if d.path is not None]

    @property
    def total_bytes(self) -> int:
        return sum(d.size_bytes for d in self.downloads)
