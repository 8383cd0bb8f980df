"""
Defines custom exceptions for the application to allow for more specific error handling.
"""

from typing import Any, Optional

# Error messages never carry more than this much of a server response body.
BODY_PREVIEW_LIMIT = 500


def truncate_body(body: Any, limit: int = BODY_PREVIEW_LIMIT) -> str:
    """Returns a printable preview of a response body, cut to `limit` characters."""
    if body is None:
        return ""
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    text = str(body)
    if len(text) > limit:
        return text[:limit] + "…"
    return text


class StemFetchError(Exception):
    """Base exception for all application-specific errors."""


class InputError(StemFetchError):
    """Raised when the local audio file is missing, unreadable or empty."""


class SubmissionError(StemFetchError):
    """Raised when the separation server rejects or fails the upload."""

    def __init__(
        self, message: str, status: Optional[int] = None, body: Any = None
    ) -> None:
        self.status = status
        self.body = truncate_body(body)
        detail = message
        if status is not None:
            detail += f" (HTTP {status})"
        if self.body:
            detail += f": {self.body}"
        super().__init__(detail)


class TransientPollError(StemFetchError):
    """
    Raised when a single status check fails in a way that polling again may fix
    (network hiccup, non-success status, unparseable body).
    """

    def __init__(
        self, message: str, status: Optional[int] = None, body: Any = None
    ) -> None:
        self.status = status
        self.body = truncate_body(body)
        super().__init__(message)


class TerminalJobError(StemFetchError):
    """Raised when the server reports that the separation job failed."""

    def __init__(self, job_id: str, message: str = "Job failed on the server.") -> None:
        self.job_id = job_id
        super().__init__(f"{message} (task {job_id})")


class JobTimeoutError(StemFetchError):
    """Raised when a job does not reach a terminal status within its budget."""

    def __init__(self, job_id: str, timeout: float, elapsed: float) -> None:
        self.job_id = job_id
        self.timeout = timeout
        self.elapsed = elapsed
        super().__init__(
            f"Job polling timed out after {timeout:g} seconds (task {job_id})."
        )


class FormatError(StemFetchError):
    """Raised when the server's file manifest has an unrecognized shape."""


class DownloadError(StemFetchError):
    """Describes why a single output file could not be downloaded."""

    def __init__(
        self, message: str, status: Optional[int] = None, body: Any = None
    ) -> None:
        self.status = status
        self.body = truncate_body(body)
        super().__init__(message)


class PartialDownloadError(StemFetchError):
    """
    Attached to a completed job when one or more of its files failed to download.
    """

    def __init__(self, failures: list, total: int) -> None:
        self.failures = list(failures)
        self.total = total
        names = ", ".join(f.filename for f in self.failures)
        super().__init__(
            f"{len(self.failures)} of {total} files failed to download: {names}"
        )


class HealthCheckError(StemFetchError):
    """Raised when the server's health endpoint cannot be read."""


class ConfigurationError(StemFetchError):
    """Raised for issues related to configuration loading or validation."""
