"""
Decoding of `/status/{task_id}` responses.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from stemfetch.exceptions import FormatError

from .manifest import Manifest, normalize_manifest


class JobState(Enum):
    """Server-side job states as reported by the status endpoint."""

    SUBMITTED = "submitted"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "JobState":
        """Maps any status value onto a JobState; anything unrecognized is UNKNOWN."""
        if not isinstance(value, str):
            return cls.UNKNOWN
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.ERROR)


def _number(value: Any) -> Optional[Union[int, float]]:
    # bool is an int subclass but never a valid progress value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _integer(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


@dataclass(frozen=True)
class JobStatus:
    """One decoded status report."""

    state: JobState
    progress: Optional[Union[int, float]] = None
    current_model_index: Optional[int] = None
    total_models: Optional[int] = None
    files: Optional[Manifest] = None
    raw_status: Optional[str] = None
    files_error: Optional[FormatError] = None

    @property
    def model_progress(self) -> Optional[tuple[int, int]]:
        """The (current index, total) model pair, if both halves were reported."""
        if self.current_model_index is None or self.total_models is None:
            return None
        return self.current_model_index, self.total_models

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "JobStatus":
        """
        Decodes a status object field by field. A missing or mistyped field is
        treated as absent; it never fails the whole decode. An unreadable `files`
        value is kept as `files_error` so callers can tell it from an empty list.
        """
        raw_status = payload.get("status")
        files: Optional[Manifest] = None
        files_error: Optional[FormatError] = None
        if payload.get("files") is not None:
            try:
                files = normalize_manifest(payload["files"])
            except FormatError as e:
                files_error = e

        return cls(
            state=JobState.parse(raw_status),
            progress=_number(payload.get("progress")),
            current_model_index=_integer(payload.get("current_model_index")),
            total_models=_integer(payload.get("total_models")),
            files=files,
            raw_status=raw_status if isinstance(raw_status, str) else None,
            files_error=files_error,
        )

    def describe_progress(self) -> Optional[str]:
        """Human-readable progress, e.g. '42% (Model 2/3)'."""
        if self.progress is None:
            return None
        text = f"{self.progress:g}%"
        if pair := self.model_progress:
            text += f" (Model {pair[0] + 1}/{pair[1]})"
        return text
