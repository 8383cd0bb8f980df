"""
Data Models Layer.

This package contains the Pydantic models and frozen dataclasses that define
the core data structures used throughout the application: configuration,
separation parameters, job status, file manifests and run results.
"""

from .config import ClientConfig
from .manifest import ListManifest, Manifest, MapManifest, normalize_manifest
from .params import SeparationParameters
from .result import (
    DownloadResult,
    DownloadRoute,
    JobResult,
    ResultStatus,
    RunState,
)
from .status import JobState, JobStatus

__all__ = [
    "ClientConfig",
    "DownloadResult",
    "DownloadRoute",
    "JobResult",
    "JobState",
    "JobStatus",
    "ListManifest",
    "Manifest",
    "MapManifest",
    "ResultStatus",
    "RunState",
    "SeparationParameters",
    "normalize_manifest",
]
