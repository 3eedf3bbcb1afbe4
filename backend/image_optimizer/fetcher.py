"""
Source Fetcher

Retrieves raw image bytes for a resolved source:
- RemoteSource: GET through a shared httpx.AsyncClient
- LocalSource: full file read in a worker thread

Sources larger than `max_source_bytes` are refused; remote bodies are
streamed so an oversized response is cut off instead of buffered.

No retries at this layer; a failed fetch fails the request.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import httpx

from .errors import SourceNotFound, SourceReadError, SourceTooLarge, UpstreamFailure
from .models import LocalSource, RemoteSource, SourceLocation

logger = logging.getLogger(__name__)

DEFAULT_MAX_SOURCE_BYTES = 20 * 1024 * 1024

DEFAULT_HEADERS = {
    "User-Agent": "image-optimizer/1.0 (+httpx)",
    "Accept": "image/avif,image/webp,image/*,*/*;q=0.8",
}


def _read_file(path: Path) -> bytes:
    with open(path, "rb") as f:
        return f.read()


class SourceFetcher:
    """
    Fetches source bytes.

    Usage:
        fetcher = SourceFetcher(timeout=15.0)
        data = await fetcher.fetch(RemoteSource("https://example.com/a.jpg"))
        await fetcher.close()
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        max_source_bytes: int = DEFAULT_MAX_SOURCE_BYTES,
    ):
        self.max_source_bytes = max_source_bytes
        self._owns_client = client is None
        self.http_client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers=DEFAULT_HEADERS,
        )

    async def close(self):
        """Close the HTTP client if this fetcher created it."""
        if self._owns_client:
            await self.http_client.aclose()

    async def fetch(self, location: SourceLocation) -> bytes:
        if isinstance(location, RemoteSource):
            return await self.fetch_remote(location.url)
        if isinstance(location, LocalSource):
            return await self.fetch_local(location.path)
        raise TypeError(f"Unsupported source location: {location!r}")

    async def fetch_remote(self, url: str) -> bytes:
        logger.info(f"[SourceFetcher] Fetching: {url[:80]}...")
        try:
            async with self.http_client.stream("GET", url) as response:
                if not response.is_success:
                    logger.error(f"[SourceFetcher] HTTP error {response.status_code}: {url[:60]}...")
                    raise UpstreamFailure(
                        f"Failed to fetch image: {response.status_code} {response.reason_phrase}".rstrip()
                    )

                content_length = response.headers.get("content-length", "")
                if content_length.isdigit() and int(content_length) > self.max_source_bytes:
                    self._reject_size(url, int(content_length))

                chunks = []
                received = 0
                async for chunk in response.aiter_bytes():
                    received += len(chunk)
                    if received > self.max_source_bytes:
                        self._reject_size(url, received)
                    chunks.append(chunk)
        except httpx.TimeoutException:
            logger.error(f"[SourceFetcher] Timeout: {url[:60]}...")
            raise UpstreamFailure("Upstream fetch timed out")
        except httpx.HTTPError as e:
            logger.error(f"[SourceFetcher] Transport error for {url[:60]}...: {e}")
            raise UpstreamFailure()

        return b"".join(chunks)

    def _reject_size(self, source: str, size: int):
        logger.warning(
            f"[SourceFetcher] Source too large ({size} bytes, max {self.max_source_bytes}): {source[:60]}..."
        )
        raise SourceTooLarge()

    async def fetch_local(self, path: Path) -> bytes:
        if not path.is_file():
            logger.info(f"[SourceFetcher] Local source missing: {path}")
            raise SourceNotFound()

        try:
            size = path.stat().st_size
            if size > self.max_source_bytes:
                self._reject_size(str(path), size)
            return await asyncio.to_thread(_read_file, path)
        except FileNotFoundError:
            raise SourceNotFound()
        except OSError as e:
            logger.error(f"[SourceFetcher] Failed to read {path}: {e}")
            raise SourceReadError()
