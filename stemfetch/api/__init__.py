"""
Separation API Layer.

This package handles all communication with the remote separation server:
job submission, status polling and the health check.
"""

from .client import SeparatorAPIClient
from .poller import StatusPoller
from .submitter import JobSubmitter

__all__ = ["JobSubmitter", "SeparatorAPIClient", "StatusPoller"]
