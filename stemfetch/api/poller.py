"""
Single-shot status checks against `/status/{task_id}`.
"""

import asyncio
import json
import logging

import aiohttp

from stemfetch.exceptions import TransientPollError
from stemfetch.models.status import JobStatus

from .client import SeparatorAPIClient, encode_path_segment

log = logging.getLogger(__name__)


class StatusPoller:
    """Performs exactly one status round trip per call; retrying is the caller's job."""

    def __init__(self, client: SeparatorAPIClient):
        self.client = client

    async def poll(self, job_id: str) -> JobStatus:
        """
        Fetches and decodes the current status of a job.

        Raises:
            TransientPollError: On a network error, a non-success status, or a
            body that is not a JSON object.
        """
        session = await self.client.get_session()
        url = self.client.url("status", encode_path_segment(job_id))
        try:
            async with session.get(url) as r:
                body = await r.read()
                if not 200 <= r.status < 300:
                    raise TransientPollError(
                        f"Status request failed with HTTP {r.status}",
                        status=r.status,
                        body=body,
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientPollError(f"Status request failed: {e!r}") from e

        try:
            payload = json.loads(body.decode("utf-8"))
        except ValueError as e:
            raise TransientPollError(
                "Status response is not valid JSON", status=r.status, body=body
            ) from e
        if not isinstance(payload, dict):
            raise TransientPollError(
                "Status response is not a JSON object", status=r.status, body=body
            )

        status = JobStatus.from_payload(payload)
        log.debug(f"Status for {job_id}: {status.raw_status!r} -> {status.state.value}")
        return status
