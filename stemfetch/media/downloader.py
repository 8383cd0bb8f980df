"""
Fetches every file of a completed job, tolerating individual failures.
"""

import asyncio
import logging
import os
import uuid
from pathlib import Path
from typing import Callable, Iterable, Optional

import aiofiles
import aiohttp
from pathvalidate import sanitize_filename
from yarl import URL

from stemfetch.api.client import SeparatorAPIClient, encode_path_segment
from stemfetch.core.cancel import CancelToken
from stemfetch.exceptions import DownloadError, HealthCheckError
from stemfetch.models.result import DownloadResult, DownloadRoute

log = logging.getLogger(__name__)

CANCELLED_REASON = "cancelled"
DUPLICATE_REASON = "duplicate local filename"


def select_route(key: str, filename: str) -> DownloadRoute:
    """Files whose key is their own name use the legacy route, all others the hash route."""
    return DownloadRoute.LEGACY if key == filename else DownloadRoute.HASH


def local_filename(filename: str) -> str:
    """Makes a server-supplied display filename safe to create inside one directory."""
    safe = sanitize_filename(filename, platform="auto")
    return safe or "unnamed"


class DownloadCoordinator:
    """Downloads manifest entries into a directory with bounded concurrency."""

    CHUNK_SIZE = 262144  # 256 KB

    def __init__(self, client: SeparatorAPIClient, max_concurrent: int = 2):
        self.client = client
        self.max_concurrent = max(1, max_concurrent)

    def route_url(self, job_id: str, key: str, filename: str) -> tuple[DownloadRoute, str]:
        route = select_route(key, filename)
        segment = filename if route is DownloadRoute.LEGACY else key
        url = self.client.url(
            "download", encode_path_segment(job_id), encode_path_segment(segment)
        )
        return route, url

    async def fetch_all(
        self,
        job_id: str,
        pairs: Iterable[tuple[str, str]],
        destination_dir: Path,
        cancel_token: Optional[CancelToken] = None,
        on_result: Optional[Callable[[DownloadResult], None]] = None,
    ) -> list[DownloadResult]:
        """
        Downloads every (key, filename) pair into `destination_dir`.

        Every pair yields exactly one DownloadResult, in input order. A failed file
        never stops the others; entries not started because of cancellation are
        reported with the reason "cancelled". Local names are reserved up front:
        an entry whose sanitized name (compared case-insensitively) was already
        claimed by an earlier entry is not fetched and fails with
        "duplicate local filename".
        """
        pairs = list(pairs)
        destination_dir = Path(destination_dir)
        await asyncio.to_thread(destination_dir.mkdir, parents=True, exist_ok=True)

        claimed: set[str] = set()
        local_names: list[Optional[str]] = []
        for _, filename in pairs:
            name = local_filename(filename)
            if name.casefold() in claimed:
                log.warning(
                    f"[yellow]Skipping {filename}: another file already saves as "
                    f"{name}.[/yellow]"
                )
                local_names.append(None)
            else:
                claimed.add(name.casefold())
                local_names.append(name)

        semaphore = asyncio.Semaphore(self.max_concurrent)
        diagnosed = False

        async def worker(
            key: str, filename: str, local_name: Optional[str]
        ) -> DownloadResult:
            nonlocal diagnosed
            route, url = self.route_url(job_id, key, filename)
            if local_name is None:
                result = DownloadResult(
                    key=key, filename=filename, route=route, error=DUPLICATE_REASON
                )
                if on_result is not None:
                    on_result(result)
                return result
            async with semaphore:
                if cancel_token is not None and cancel_token.cancelled:
                    result = DownloadResult(
                        key=key, filename=filename, route=route, error=CANCELLED_REASON
                    )
                else:
                    result = await self._fetch_one(
                        key, filename, route, url, destination_dir / local_name
                    )
            if not result.ok and result.error != CANCELLED_REASON and not diagnosed:
                diagnosed = True
                await self._diagnose()
            if on_result is not None:
                on_result(result)
            return result

        log.info(f"Downloading {len(pairs)} files for task {job_id}.")
        results = await asyncio.gather(
            *(worker(k, f, n) for (k, f), n in zip(pairs, local_names))
        )

        ok_count = sum(1 for r in results if r.ok)
        log.info(f"Downloaded {ok_count}/{len(results)} files.")
        return list(results)

    async def _fetch_one(
        self,
        key: str,
        filename: str,
        route: DownloadRoute,
        url: str,
        final_path: Path,
    ) -> DownloadResult:
        log.debug(f"Downloading ({route.value}) {filename} from {url}")
        try:
            size = await self.download_to(url, final_path)
        except DownloadError as e:
            log.error(f"[red]✗ Failed to download {filename}: {e}[/red]")
            return DownloadResult(
                key=key,
                filename=filename,
                route=route,
                error=str(e),
                status_code=e.status,
            )
        log.info(f"  [green]✓[/green] {final_path.name}")
        return DownloadResult(
            key=key, filename=filename, route=route, path=final_path, size_bytes=size
        )

    async def download_to(self, url: str, final_path: Path) -> int:
        """
        Streams one URL into `final_path` through a temporary file in the same
        directory, so the final path only ever holds a complete file.

        Returns:
            Number of bytes written.

        Raises:
            DownloadError: On a network error, non-success status or write failure.
        """
        temp_path = final_path.with_name(f".{final_path.name}.{uuid.uuid4().hex}.part")
        session = await self.client.get_session()
        written = 0
        try:
            async with session.get(URL(url, encoded=True)) as response:
                if not 200 <= response.status < 300:
                    body = await response.text(errors="replace")
                    log.debug(
                        f"Download failed. Status: {response.status}, "
                        f"headers: {dict(response.headers)}"
                    )
                    raise DownloadError(
                        f"Download failed with status {response.status}",
                        status=response.status,
                        body=body,
                    )
                async with aiofiles.open(temp_path, "wb") as f:
                    async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                        await f.write(chunk)
                        written += len(chunk)
            await asyncio.to_thread(os.replace, temp_path, final_path)
            return written
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DownloadError(f"Network error: {e!r}") from e
        except OSError as e:
            raise DownloadError(f"Could not write {final_path.name}: {e}") from e
        finally:
            if temp_path.exists():
                try:
                    os.remove(temp_path)
                except OSError:
                    pass

    async def _diagnose(self) -> None:
        """Best-effort server version lookup after a failure; its own errors are ignored."""
        try:
            version = await self.client.get_server_version()
            log.info(f"Server version: {version}")
        except HealthCheckError as e:
            log.debug(f"Diagnostic health check failed: {e}")
