"""
Shared fixtures: an in-process fake separation server built on aiohttp.web.
"""

import asyncio
from pathlib import Path

import pytest
from aiohttp import web

from stemfetch.api.client import SeparatorAPIClient


class FakeSeparator:
    """
    Scriptable stand-in for the separation server.

    `statuses` is consumed one entry per status call and its last entry repeats.
    An entry is either a dict (sent as JSON) or an (http_status, body) tuple.
    `on_download_hit` is called with the path segment as each download request arrives.
    """

    def __init__(self):
        self.task_id = "abc123"
        self.separate_status = 200
        self.separate_body: str | bytes | None = None
        self.statuses: list = [{"status": "processing", "progress": 0}]
        self.status_delay = 0.0
        self.download_delay = 0.0
        self.on_download_hit = None
        self.file_bodies: dict[str, bytes] = {}
        self.fail_segments: set[str] = set()
        self.health_status = 200
        self.version = "0.9.1"

        self.submissions: list[dict] = []
        self.status_calls = 0
        self.download_hits: list[str] = []
        self.raw_download_paths: list[str] = []
        self.health_calls = 0

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/separate", self.handle_separate)
        app.router.add_get("/status/{task_id}", self.handle_status)
        app.router.add_get("/download/{task_id}/{segment}", self.handle_download)
        app.router.add_get("/health", self.handle_health)
        return app

    @staticmethod
    def _raw_response(status: int, body: str | bytes) -> web.Response:
        # bytes are sent verbatim, so tests can serve bodies that are not valid UTF-8
        if isinstance(body, bytes):
            return web.Response(
                status=status, body=body, content_type="application/json", charset="utf-8"
            )
        return web.Response(status=status, text=body)

    async def handle_separate(self, request: web.Request) -> web.Response:
        data = await request.post()
        files = data.getall("file", [])
        submission = {
            "fields": {k: v for k, v in data.items() if k != "file"},
            "keys": list(data.keys()),
            "files": [
                {
                    "filename": f.filename,
                    "content_type": f.content_type,
                    "data": f.file.read(),
                }
                for f in files
            ],
        }
        self.submissions.append(submission)
        if self.separate_body is not None:
            return self._raw_response(self.separate_status, self.separate_body)
        if not 200 <= self.separate_status < 300:
            return web.Response(status=self.separate_status, text="rejected")
        return web.json_response({"task_id": self.task_id})

    async def handle_status(self, request: web.Request) -> web.Response:
        self.status_calls += 1
        if self.status_delay:
            await asyncio.sleep(self.status_delay)
        index = min(self.status_calls - 1, len(self.statuses) - 1)
        entry = self.statuses[index]
        if isinstance(entry, tuple):
            code, body = entry
            return self._raw_response(code, body)
        return web.json_response(entry)

    async def handle_download(self, request: web.Request) -> web.Response:
        segment = request.match_info["segment"]
        self.download_hits.append(segment)
        self.raw_download_paths.append(request.raw_path)
        if self.on_download_hit is not None:
            self.on_download_hit(segment)
        if self.download_delay:
            await asyncio.sleep(self.download_delay)
        if segment in self.fail_segments:
            return web.Response(status=500, text="internal error while reading file")
        body = self.file_bodies.get(segment, f"audio-bytes:{segment}".encode())
        return web.Response(body=body, content_type="application/octet-stream")

    async def handle_health(self, request: web.Request) -> web.Response:
        self.health_calls += 1
        if self.health_status != 200:
            return web.Response(status=self.health_status, text="down")
        return web.json_response({"version": self.version})


@pytest.fixture
def fake_server() -> FakeSeparator:
    return FakeSeparator()


@pytest.fixture
async def api(aiohttp_server, fake_server):
    server = await aiohttp_server(fake_server.make_app())
    client = SeparatorAPIClient(str(server.make_url("/")))
    yield client
    await client.close()


@pytest.fixture
def audio_file(tmp_path: Path) -> Path:
    path = tmp_path / "song.wav"
    path.write_bytes(b"RIFF\x24\x00\x00\x00WAVEfmt fake audio payload")
    return path
