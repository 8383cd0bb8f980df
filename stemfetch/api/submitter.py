"""
Builds and sends the multipart `/separate` upload that starts a job.
"""

import asyncio
import json
import logging
import os
from pathlib import Path

import aiofiles
import aiohttp

from stemfetch.exceptions import InputError, SubmissionError
from stemfetch.models.params import SeparationParameters

from .client import SeparatorAPIClient

log = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def content_type_for(filename: str) -> str:
    """Derives the upload content type from a file extension, e.g. 'audio/flac'."""
    ext = os.path.splitext(filename)[1].lstrip(".").lower()
    return f"audio/{ext}" if ext else DEFAULT_CONTENT_TYPE


def build_form(
    file_bytes: bytes, filename: str, params: SeparationParameters
) -> aiohttp.FormData:
    """
    Encodes the parameters and the audio file as one multipart body: a text part
    per parameter and exactly one binary part for the file.
    """
    form = aiohttp.FormData()
    for name, value in params.to_form_fields():
        form.add_field(name, value)
    form.add_field(
        "file",
        file_bytes,
        filename=filename,
        content_type=content_type_for(filename),
    )
    return form


class JobSubmitter:
    """Uploads an audio file with its separation options and returns the task ID."""

    def __init__(self, client: SeparatorAPIClient):
        self.client = client

    async def submit(
        self, file_bytes: bytes, filename: str, params: SeparationParameters
    ) -> str:
        """
        Submits one separation job.

        Returns:
            The task ID issued by the server.

        Raises:
            InputError: If the file content is empty.
            SubmissionError: If the request fails or the server rejects it.
        """
        if not file_bytes:
            raise InputError(f"Audio file is empty: {filename}")

        session = await self.client.get_session()
        form = build_form(file_bytes, filename, params)
        try:
            async with session.post(self.client.url("separate"), data=form) as r:
                body = await r.text(errors="replace")
                if not 200 <= r.status < 300:
                    raise SubmissionError(
                        "Separation request failed", status=r.status, body=body
                    )
                try:
                    payload = json.loads(body)
                except ValueError as e:
                    raise SubmissionError(
                        "Server returned invalid JSON", status=r.status, body=body
                    ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SubmissionError(f"Separation request failed: {e!r}") from e

        task_id = payload.get("task_id") if isinstance(payload, dict) else None
        if not isinstance(task_id, str) or not task_id:
            raise SubmissionError(
                "Server response did not include a task_id", status=r.status, body=body
            )

        log.info(f"Job submitted. Task ID: [cyan]{task_id}[/cyan]")
        return task_id

    async def submit_file(self, path: Path, params: SeparationParameters) -> str:
        """Reads a local audio file and submits it."""
        path = Path(path)
        is_file = await asyncio.to_thread(path.is_file)
        if not is_file:
            raise InputError(f"Audio file not found: {path}")
        try:
            async with aiofiles.open(path, "rb") as f:
                file_bytes = await f.read()
        except OSError as e:
            raise InputError(f"Could not read audio file {path}: {e}") from e
        return await self.submit(file_bytes, path.name, params)
