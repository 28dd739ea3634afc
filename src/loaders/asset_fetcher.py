"""
Single-resource HTTP(S) downloader used for product and page images.
"""

import asyncio
from pathlib import Path
from typing import Optional
from urllib.parse import urljoin, urlparse

import aiofiles
import aiohttp

from src.exceptions import AssetFetchError, FetchFailed, InvalidSource, NetworkError

REDIRECT_STATUSES = {301, 302, 303, 307, 308}
CHUNK_SIZE = 64 * 1024

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "image/webp,image/apng,image/*,*/*;q=0.8",
}


def is_absolute_http_url(url: Optional[str]) -> bool:
    if not url or not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class AssetFetcher:
    """
    Downloads one URL to one local path.

    Redirects are followed by hand, up to ``max_redirects`` hops. The caller is
    responsible for creating the destination directory. There is a single
    attempt per call; no retries.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        max_redirects: int = 5,
        timeout_seconds: float = 30.0,
        headers: Optional[dict] = None,
    ):
        self.session = session
        self.max_redirects = max_redirects
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.headers = headers or DEFAULT_HEADERS

    async def fetch(self, url: str, destination: Path) -> Path:
        """
        Download ``url`` to ``destination``.

        Raises:
            InvalidSource: url is not an absolute http(s) URL
            FetchFailed: terminal response was not 2xx
            NetworkError: connection/DNS/timeout failure or too many redirects
        """
        if not is_absolute_http_url(url):
            raise InvalidSource(url)

        destination = Path(destination)
        current = url

        for _ in range(self.max_redirects + 1):
            started = False
            try:
                async with self.session.get(
                    current,
                    allow_redirects=False,
                    headers=self.headers,
                    timeout=self.timeout,
                ) as response:
                    if response.status in REDIRECT_STATUSES:
                        location = response.headers.get("Location")
                        if not location:
                            raise FetchFailed(current, response.status)
                        try:
                            current = urljoin(current, location)
                        except ValueError:
                            raise InvalidSource(location) from None
                        if not is_absolute_http_url(current):
                            raise InvalidSource(current)
                        continue

                    if not 200 <= response.status < 300:
                        raise FetchFailed(current, response.status)

                    started = True
                    async with aiofiles.open(destination, "wb") as f:
                        async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                            await f.write(chunk)
                    return destination

            except AssetFetchError:
                if started:
                    self._remove_partial(destination)
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if started:
                    self._remove_partial(destination)
                raise NetworkError(f"Network error fetching {current}: {e!r}") from e
            except ValueError as e:
                if started:
                    self._remove_partial(destination)
                raise InvalidSource(current) from e
            except Exception:
                if started:
                    self._remove_partial(destination)
                raise

        raise NetworkError(
            f"Too many redirects (>{self.max_redirects}) fetching {url}"
        )

    @staticmethod
    def _remove_partial(destination: Path) -> None:
        try:
            destination.unlink()
        except FileNotFoundError:
            pass


async def fetch(url: str, destination: Path, max_redirects: int = 5) -> Path:
    """Download a single asset with a throwaway client session."""
    async with aiohttp.ClientSession() as session:
        return await AssetFetcher(session, max_redirects=max_redirects).fetch(
            url, destination
        )
