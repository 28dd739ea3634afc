"""Shared test fixtures for the storefront ETL test suite."""

from pathlib import Path

import pytest

from config.settings import PipelineConfig, ScraperConfig, StorageConfig
from src.extractors.page_session import PageSnapshot

BASE_URL = "https://shop.example.com"

GRID_LISTING_HTML = """
<html><body>
  <ul>
    <li data-hook="product-list-grid-item">
      <a href="/product-page/bull-market-mug">
        <img src="https://static.wixstatic.com/media/mug.jpg/v1/fill/w_300,h_300/mug.jpg" alt="Mug">
      </a>
      <p data-hook="product-item-name">Bull Market Mug</p>
      <span data-hook="product-item-price-to-pay">$18.00</span>
    </li>
    <li data-hook="product-list-grid-item">
      <a href="/product-page/diamond-hands-hoodie">
        <img src="https://static.wixstatic.com/media/hoodie.jpg" alt="Hoodie">
      </a>
      <p data-hook="product-item-name">Diamond Hands Hoodie</p>
      <span data-hook="product-item-price-to-pay">$55.00</span>
    </li>
  </ul>
</body></html>
"""

LINKS_LISTING_HTML = """
<html><body>
  <div>
    <article>
      <a href="/product-page/to-the-moon-tee"><img src="/img/tee.png" alt="Tee"></a>
      <h3>To The Moon Tee</h3>
      <span class="price">$25.00</span>
    </article>
    <article>
      <a href="/product-page/hodl-cap">HODL Cap</a>
    </article>
    <a href="/product-page/to-the-moon-tee">again</a>
  </div>
</body></html>
"""

EMBEDDED_LISTING_HTML = """
<html><body>
  <div id="app"></div>
  <script type="application/json">
    {"catalog": {"products": [
      {"name": "Candle", "formattedPrice": "$12.00",
       "productPageUrl": "/product-page/candle",
       "mainMedia": {"image": {"url": "https://static.wixstatic.com/media/candle.jpg"}}},
      {"name": "Sticker", "price": {"formatted": "$3.00"},
       "url": "/product-page/sticker",
       "media": [{"url": "https://static.wixstatic.com/media/sticker.jpg"}]}
    ]}}
  </script>
</body></html>
"""

PRODUCT_HTML = """
<html><body>
  <h1 data-hook="product-title">Bull Market Mug</h1>
  <span data-hook="product-price">$18.00</span>
  <div data-hook="product-description"><p>A ceramic mug. Holds coffee.</p></div>
  <div data-hook="product-image">
    <img src="https://static.wixstatic.com/media/mug-1.jpg" alt="Bull Market Mug">
  </div>
  <div data-hook="thumbnail-image">
    <img src="https://static.wixstatic.com/media/mug-2.jpg" alt="Thumbnail: side">
  </div>
  <div data-hook="product-options-item">
    <label>Size</label>
    <div data-hook="option-selector">
      <option>Select</option>
      <option>11oz</option>
      <option>15oz</option>
    </div>
  </div>
  <div data-hook="product-options-item">
    <label>Empty</label>
    <div data-hook="option-selector"><option>Select</option></div>
  </div>
  <span data-hook="product-sku">MUG-001</span>
  <script type="application/ld+json">{"@type": "BreadcrumbList", "itemListElement": []}</script>
  <script type="application/ld+json">
    {"@type": "Product", "name": "Bull Market Mug",
     "offers": {"price": "18", "priceCurrency": "USD", "availability": "https://schema.org/InStock"}}
  </script>
</body></html>
"""

NOT_FOUND_HTML = """
<html><body><main><h2>This product couldn't be found</h2></main></body></html>
"""


@pytest.fixture
def storage_config(tmp_path: Path) -> StorageConfig:
    """StorageConfig rooted in a temporary directory."""
    return StorageConfig(base_dir=tmp_path, download_images=False)


@pytest.fixture
def scraper_config() -> ScraperConfig:
    """ScraperConfig with no settle delays, for fake-session tests."""
    return ScraperConfig(
        base_url=BASE_URL,
        listing_settle_seconds=0,
        product_settle_seconds=0,
        content_settle_seconds=0,
        scroll_settle_seconds=0,
        after_scroll_seconds=0,
    )


@pytest.fixture
def pipeline_config(scraper_config, storage_config) -> PipelineConfig:
    config = PipelineConfig(scraper=scraper_config, storage=storage_config)
    config.logging.log_to_file = False
    return config


class FakeSession:
    """
    Stand-in for PageSession that serves fixed HTML per URL.

    URLs mapped to an exception instance raise it from navigate().
    """

    def __init__(self, pages: dict):
        self.pages = pages
        self.current = ""
        self.visited = []
        self.screenshots = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    @property
    def url(self) -> str:
        return self.current

    async def navigate(self, url: str) -> None:
        self.visited.append(url)
        page = self.pages.get(url)
        if isinstance(page, Exception):
            raise page
        self.current = url

    async def await_readiness(self, selectors, **kwargs):
        return None

    async def wait_for_network_idle(self, timeout_ms: int) -> bool:
        return True

    async def exhaust_lazy_load(self, max_iterations=None, settle_seconds=None) -> int:
        return 0

    async def settle(self, seconds: float) -> None:
        return None

    async def evaluate(self, function, *args):
        return {}

    async def screenshot(self, path) -> bool:
        self.screenshots.append(Path(path))
        return True

    async def content(self) -> str:
        page = self.pages.get(self.current)
        return page if isinstance(page, str) else ""

    async def snapshot(self) -> PageSnapshot:
        return PageSnapshot(url=self.current, html=await self.content())


@pytest.fixture
def fake_session_factory():
    return FakeSession


@pytest.fixture
def base_url() -> str:
    return BASE_URL


@pytest.fixture
def grid_listing_html() -> str:
    return GRID_LISTING_HTML


@pytest.fixture
def links_listing_html() -> str:
    return LINKS_LISTING_HTML


@pytest.fixture
def embedded_listing_html() -> str:
    return EMBEDDED_LISTING_HTML


@pytest.fixture
def product_html() -> str:
    return PRODUCT_HTML


@pytest.fixture
def not_found_html() -> str:
    return NOT_FOUND_HTML
