"""
Configuration settings for the storefront catalog ETL pipeline.

Values can be overridden from the environment (or a .env file):
    STOREFRONT_BASE_URL    Merchant site root (default: https://www.thememdex100.com)
    STOREFRONT_HEADLESS    "true" / "false"
    STOREFRONT_LOG_LEVEL   DEBUG, INFO, WARNING, ...
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

PROJECT_ROOT = Path(__file__).parent.parent


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ListingPage:
    """A category/listing page whose product grid is crawled."""

    name: str
    path: str


@dataclass
class ContentPage:
    """A non-product page whose content is extracted as-is."""

    name: str
    path: str


@dataclass
class ScraperConfig:
    """Configuration for the browser crawler."""

    base_url: str = field(
        default_factory=lambda: os.getenv(
            "STOREFRONT_BASE_URL", "https://www.thememdex100.com"
        ).rstrip("/")
    )

    # Listing pages crawled for product cards (deduplicated across pages)
    listings: list = field(
        default_factory=lambda: [
            ListingPage("All Products", "/category/all-products"),
        ]
    )

    # Content pages extracted with --pages
    content_pages: list = field(
        default_factory=lambda: [
            ContentPage("home", "/"),
            ContentPage("about", "/about-9"),
            ContentPage("gmm", "/gmm"),
            ContentPage("coffee", "/official-memdex-coffee"),
            ContentPage("terms", "/english-terms-conditions"),
            ContentPage("privacy", "/english-privacy-policy"),
            ContentPage("refund", "/english-refund-policy"),
            ContentPage("thank-you", "/donation-thank-you-page"),
        ]
    )

    # Product detail URLs look like <base>/product-page/<slug>
    product_path_marker: str = "/product-page/"

    # Image CDN host used by the storefront
    asset_host: str = "wixstatic"

    # Readiness detection: candidate selectors, tried in order
    listing_ready_selectors: list = field(
        default_factory=lambda: [
            '[data-hook="product-list-wrapper"]',
            '[data-hook="product-list"]',
            ".gallery-item-container",
            '[class*="ProductItem"]',
            '[class*="product-item"]',
            '[data-hook="gallery-item-image-container"]',
            "li[data-hook]",
            ".grid-item",
        ]
    )
    product_ready_selectors: list = field(
        default_factory=lambda: [
            '[data-hook="product-title"]',
            '[data-hook="product-description"]',
            '[data-hook="product-price"]',
            'h1[class*="product"]',
            '[class*="ProductPage"]',
        ]
    )

    # Timeouts (milliseconds)
    navigation_timeout_ms: int = 60000
    listing_selector_timeout_ms: int = 5000
    product_selector_timeout_ms: int = 8000
    listing_network_idle_timeout_ms: int = 30000
    product_network_idle_timeout_ms: int = 20000
    content_network_idle_timeout_ms: int = 15000
    default_timeout_ms: int = 30000

    # Settle delays (seconds)
    listing_settle_seconds: float = 8.0
    product_settle_seconds: float = 5.0
    content_settle_seconds: float = 2.0
    scroll_settle_seconds: float = 1.5
    after_scroll_seconds: float = 2.0
    max_scroll_iterations: int = 20

    # Browser settings
    headless: bool = field(
        default_factory=lambda: _env_bool("STOREFRONT_HEADLESS", True)
    )
    browser_type: str = "chromium"
    viewport_width: int = 1440
    viewport_height: int = 900
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    def listing_url(self, listing: ListingPage) -> str:
        if listing.path.startswith(("http://", "https://")):
            return listing.path
        return f"{self.base_url}{listing.path}"

    def content_url(self, page: ContentPage) -> str:
        if page.path in ("", "/"):
            return self.base_url
        return f"{self.base_url}{page.path}"


@dataclass
class StorageConfig:
    """Configuration for data storage."""

    base_dir: Path = field(default_factory=lambda: PROJECT_ROOT)

    # File names under data_dir
    raw_products_file: str = "products-raw.json"
    failed_products_file: str = "products-failed.json"
    catalog_file: str = "products.json"

    # Image settings
    download_images: bool = True
    image_concurrency: int = 4
    image_timeout_seconds: float = 30.0
    max_redirects: int = 5

    @property
    def data_dir(self) -> Path:
        return self.base_dir / "data"

    @property
    def pages_dir(self) -> Path:
        return self.data_dir / "pages"

    @property
    def debug_dir(self) -> Path:
        return self.data_dir / "debug"

    @property
    def products_dir(self) -> Path:
        """Root of the per-product image folders (assets/products/<slug>)."""
        return self.base_dir / "assets" / "products"

    @property
    def images_dir(self) -> Path:
        return self.base_dir / "assets" / "images"

    @property
    def raw_products_path(self) -> Path:
        return self.data_dir / self.raw_products_file

    @property
    def failed_products_path(self) -> Path:
        return self.data_dir / self.failed_products_file

    @property
    def catalog_path(self) -> Path:
        return self.data_dir / self.catalog_file

    def get_product_dir(self, slug: str) -> Path:
        """Get the image directory for a specific product."""
        return self.products_dir / slug

    def ensure_dirs(self) -> None:
        """Create necessary directories if they don't exist."""
        for path in (self.data_dir, self.products_dir):
            path.mkdir(parents=True, exist_ok=True)


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    log_dir: Path = field(default_factory=lambda: PROJECT_ROOT / "logs")
    log_level: str = field(
        default_factory=lambda: os.getenv("STOREFRONT_LOG_LEVEL", "INFO")
    )
    log_to_file: bool = True
    log_to_console: bool = True

    def ensure_dirs(self) -> None:
        """Create log directory if it doesn't exist."""
        self.log_dir.mkdir(parents=True, exist_ok=True)


@dataclass
class PipelineConfig:
    """Main configuration combining all settings."""

    scraper: ScraperConfig = field(default_factory=ScraperConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def ensure_dirs(self) -> None:
        self.storage.ensure_dirs()
        if self.logging.log_to_file:
            self.logging.ensure_dirs()


def build_config(
    base_dir: Optional[Path] = None,
    headless: Optional[bool] = None,
    download_images: Optional[bool] = None,
    listings: Optional[list] = None,
) -> PipelineConfig:
    """Build a PipelineConfig with CLI-level overrides applied."""
    pipeline_config = PipelineConfig()
    if base_dir is not None:
        pipeline_config.storage.base_dir = Path(base_dir)
        pipeline_config.logging.log_dir = Path(base_dir) / "logs"
    if headless is not None:
        pipeline_config.scraper.headless = headless
    if download_images is not None:
        pipeline_config.storage.download_images = download_images
    if listings:
        pipeline_config.scraper.listings = listings
    return pipeline_config


# Default configuration instance
config = PipelineConfig()
