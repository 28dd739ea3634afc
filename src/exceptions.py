"""
Exceptions raised by the crawler and asset fetcher.

Per-item errors (one image, one page, one product) are caught by the caller at
the item boundary and turned into an empty or degenerate result. Only
FatalStartupError is allowed to end a run.
"""

from typing import Optional


class StorefrontETLError(Exception):
    """Base class for all pipeline errors."""


class AssetFetchError(StorefrontETLError):
    """Downloading a remote asset failed."""


class InvalidSource(AssetFetchError):
    """The asset URL is missing, relative, or not http(s)."""

    def __init__(self, url: Optional[str]):
        self.url = url
        super().__init__(f"Invalid URL: {url!r}")


class FetchFailed(AssetFetchError):
    """The server answered with a non-2xx terminal status."""

    def __init__(self, url: str, status_code: int):
        self.url = url
        self.status_code = status_code
        super().__init__(f"HTTP {status_code} for {url}")


class NetworkError(AssetFetchError):
    """DNS, connection, timeout or redirect-loop failure."""


class PageNavigationError(StorefrontETLError):
    """Base class for page load failures."""

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"{message} ({url})")


class NavigationTimeout(PageNavigationError):
    """The page did not load within the navigation timeout."""


class NavigationError(PageNavigationError):
    """The page failed to load for any other reason."""


class FatalStartupError(StorefrontETLError):
    """The browser session could not be created."""
