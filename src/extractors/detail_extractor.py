"""
Product page extractor.

Visits each product's own page and pulls name, price, description, images,
options, SKU and embedded JSON-LD. Any failure yields a degenerate record
marked notFound so the crawl can continue with the next product.
"""

import logging
from pathlib import Path
from typing import Optional

from rich.markup import escape

from config.settings import ScraperConfig, config
from src.extractors.diagnostics import Diagnostics, NullDiagnostics
from src.extractors.dom_strategies import extract_product_fields
from src.extractors.models import RawProductDetail, slug_from_url
from src.extractors.page_session import PageSession
from src.utils.log import console

logger = logging.getLogger(__name__)


class ProductDetailExtractor:
    """Extracts full product details from product pages."""

    def __init__(
        self,
        scraper_config: Optional[ScraperConfig] = None,
        diagnostics: Optional[Diagnostics] = None,
        screenshot_dir: Optional[Path] = None,
    ):
        self.config = scraper_config or config.scraper
        self.diagnostics = diagnostics or NullDiagnostics()
        self.screenshot_dir = screenshot_dir

    def slug_for(self, product_url: str) -> str:
        return slug_from_url(product_url, self.config.product_path_marker)

    async def extract_detail(
        self, session: PageSession, product_url: str
    ) -> RawProductDetail:
        """
        Extract one product page.

        Args:
            session: Open page session
            product_url: Absolute product page URL

        Returns:
            RawProductDetail; on any error a record with ``error`` set and
            ``not_found`` True.
        """
        slug = self.slug_for(product_url)
        console.print(f"\n[cyan]Extracting product detail: {slug}[/cyan]")

        try:
            await session.navigate(product_url)
            selector = await session.await_readiness(
                self.config.product_ready_selectors,
                selector_timeout_ms=self.config.product_selector_timeout_ms,
                network_idle_timeout_ms=self.config.product_network_idle_timeout_ms,
                settle_seconds=self.config.product_settle_seconds,
            )
            if selector:
                console.print(f"  [green]✓[/green] Product rendered ({escape(selector)})")

            await self.diagnostics.screenshot(session, slug, directory=self.screenshot_dir)

            snapshot = await session.snapshot()
            fields = extract_product_fields(
                snapshot.document,
                snapshot.url or product_url,
                self.config.asset_host,
            )
        except Exception as e:
            logger.error("Error extracting %s: %s", product_url, e)
            console.print(f"  [bold red]✗ Error: {escape(str(e))}[/bold red]")
            return RawProductDetail.failed(slug, product_url, str(e))

        detail = RawProductDetail(slug=slug, url=product_url, **fields)

        if detail.not_found:
            console.print('  [yellow]⚠ Product page says "not found"[/yellow]')
        else:
            console.print(f"  Name: {escape(detail.name) or '(not found)'}")
            console.print(f"  Price: {detail.price or '(not found)'}")
            console.print(f"  Images: {len(detail.images)}")
            console.print(f"  Options: {len(detail.options)}")

        return detail
