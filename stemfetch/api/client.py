"""
Async client value for the audio separation HTTP API.

Every component that talks to the server receives one of these explicitly
instead of reaching for a process-wide session.
"""

import asyncio
import logging
from typing import Optional
from urllib.parse import quote

import aiohttp

from stemfetch.exceptions import HealthCheckError, truncate_body

log = logging.getLogger(__name__)


def encode_path_segment(segment: str) -> str:
    """Percent-encodes a value so it is safe as exactly one URL path segment."""
    return quote(segment, safe="")


class SeparatorAPIClient:
    """
    Holds the server base URL and the aiohttp session used to reach it.

    The session is created lazily and owned by the client unless one is passed in,
    in which case closing it stays the caller's job.
    """

    def __init__(
        self,
        base_url: str,
        session: Optional[aiohttp.ClientSession] = None,
        request_timeout: float = 300.0,
        max_connections: int = 4,
    ):
        """
        Initializes the API client.

        Args:
            base_url: Root URL of the separation server, e.g. https://host/api.
            session: An existing session to use instead of creating one.
            request_timeout: Total timeout for a single request, in seconds.
            max_connections: Connection pool size for a session created here.
        """
        self.base_url = base_url.strip().rstrip("/")
        self.request_timeout = request_timeout
        self.max_connections = max_connections
        self._session = session
        self._owns_session = session is None

    async def get_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.max_connections,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={"Accept-Encoding": "gzip, deflate"},
                timeout=aiohttp.ClientTimeout(
                    total=self.request_timeout, sock_connect=15
                ),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "SeparatorAPIClient":
        await self.get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def url(self, *segments: str) -> str:
        """
        Builds an endpoint URL. Segments must already be path-safe; use
        `encode_path_segment` for values coming from the server or the user.
        """
        return "/".join([self.base_url, *segments])

    async def get_server_version(self) -> str:
        """
        Reads the server version from `GET /health`.

        Returns:
            The reported version, or "unknown" when the server does not report one.

        Raises:
            HealthCheckError: On a network error, non-success status or bad body.
        """
        session = await self.get_session()
        try:
            async with session.get(self.url("health")) as r:
                if not 200 <= r.status < 300:
                    body = await r.text(errors="replace")
                    raise HealthCheckError(
                        f"Health check failed with HTTP {r.status}: "
                        f"{truncate_body(body)}"
                    )
                data = await r.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise HealthCheckError(f"Health check failed: {e}") from e
        except ValueError as e:
            raise HealthCheckError(f"Health check returned invalid JSON: {e}") from e

        version = data.get("version") if isinstance(data, dict) else None
        return version if isinstance(version, str) else "unknown"
