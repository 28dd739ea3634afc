"""
Main ETL pipeline orchestrating crawl, image download and catalog cleanup.

Each phase takes its input collection and returns a new one; no phase mutates
what an earlier phase produced.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from config.settings import PipelineConfig, config
from src.extractors.category_extractor import CategoryExtractor, ListingCrawl
from src.extractors.content_extractor import ContentPageExtractor
from src.extractors.detail_extractor import ProductDetailExtractor
from src.extractors.diagnostics import Diagnostics
from src.extractors.models import RawProduct, merge_card_and_detail
from src.extractors.page_session import PageSession
from src.loaders.file_loader import FileLoader, ImageDownloadReport
from src.transformers.catalog_normalizer import CatalogNormalizer, split_valid_records
from src.utils.log import console

logger = logging.getLogger(__name__)


@dataclass
class CrawlResult:
    """Everything the crawl phases produced."""

    listing: ListingCrawl
    raw_products: list  # RawProduct, in card order
    valid: list  # raw dicts kept for cleanup
    failed: list  # raw dicts needing manual follow-up
    pages: dict = field(default_factory=dict)  # content page name -> data
    images: ImageDownloadReport = field(default_factory=ImageDownloadReport)


class StorefrontPipeline:
    """
    ETL pipeline for the storefront catalog.

    Orchestrates:
    - Crawl: listing pages -> product cards -> product details
    - Load: raw JSON (valid / failed) and product images
    - Cleanup: raw records -> canonical catalog file
    """

    def __init__(
        self,
        pipeline_config: Optional[PipelineConfig] = None,
        include_pages: bool = False,
    ):
        self.config = pipeline_config or config
        self.include_pages = include_pages
        self.loader = FileLoader(self.config.storage)
        self.normalizer = CatalogNormalizer()
        self.diagnostics = Diagnostics(self.config.storage.debug_dir)

        self.category_extractor = CategoryExtractor(self.config.scraper, self.diagnostics)
        self.detail_extractor = ProductDetailExtractor(
            self.config.scraper,
            self.diagnostics,
            screenshot_dir=self.config.storage.debug_dir / "products",
        )
        self.content_extractor = ContentPageExtractor(
            self.config.scraper,
            self.diagnostics,
            screenshot_dir=self.config.storage.pages_dir,
        )

    async def run(self, crawl: bool = True, cleanup: bool = True) -> dict:
        """
        Run the selected phases.

        Returns:
            Summary dict with pipeline results
        """
        start_time = datetime.now()
        self.config.ensure_dirs()
        self._print_header(crawl, cleanup)

        result: dict = {"success": True}
        try:
            if crawl:
                crawl_result = await self.crawl()
                result.update(
                    products_found=len(crawl_result.listing.cards),
                    products_valid=len(crawl_result.valid),
                    products_failed=len(crawl_result.failed),
                    images_downloaded=crawl_result.images.succeeded,
                    images_failed=len(crawl_result.images.failed),
                )
                if not crawl_result.valid:
                    console.print(
                        "[bold yellow]No valid products extracted; catalog left untouched.[/bold yellow]"
                    )
                    cleanup = False

            if cleanup:
                catalog = await self.cleanup()
                result["catalog_products"] = len(catalog)
                result["catalog_path"] = str(self.config.storage.catalog_path)

        except Exception as e:
            logger.exception("Pipeline failed")
            return {"success": False, "error": str(e)}

        result["elapsed_seconds"] = (datetime.now() - start_time).total_seconds()
        console.print(f"\n[dim]Finished in {result['elapsed_seconds']:.1f} seconds[/dim]")
        return result

    # ------------------------------------------------------------------
    # Crawl
    # ------------------------------------------------------------------

    async def crawl(self) -> CrawlResult:
        """Crawl the storefront, save raw records and download images."""
        pages: dict = {}
        async with PageSession(self.config.scraper) as session:
            if self.include_pages:
                console.print("\n[bold blue]═══ PAGES PHASE ═══[/bold blue]")
                pages = await self.extract_pages(session)

            console.print("\n[bold blue]═══ LISTING PHASE ═══[/bold blue]")
            listing = await self.category_extractor.extract_listings(session)

            console.print("\n[bold blue]═══ DETAIL PHASE ═══[/bold blue]")
            raw_products = await self.extract_details(session, listing)

        console.print("\n[bold blue]═══ SAVE PHASE ═══[/bold blue]")
        valid, failed = split_valid_records([p.to_dict() for p in raw_products])
        await self.loader.save_raw_products(valid, failed)

        images = ImageDownloadReport()
        if self.config.storage.download_images:
            console.print("\n[bold blue]═══ IMAGE PHASE ═══[/bold blue]")
            images = await self.loader.download_product_images(valid)
            for name, data in pages.items():
                images.merge(await self.loader.download_page_images(name, data))

        result = CrawlResult(
            listing=listing,
            raw_products=raw_products,
            valid=valid,
            failed=failed,
            pages=pages,
            images=images,
        )
        self._print_crawl_summary(result)
        return result

    async def extract_pages(self, session: PageSession) -> dict:
        """Extract and save every configured content page."""
        pages = {}
        for page in self.config.scraper.content_pages:
            data = await self.content_extractor.extract_page(session, page)
            if data is None:
                continue
            await self.loader.save_page(page.name, data)
            pages[page.name] = data

        home = pages.get("home")
        if home and home.get("cssVars"):
            await self.loader.save_design_tokens(home["cssVars"])
            console.print("[dim]Design tokens saved[/dim]")

        console.print(
            f"\n[green]Pages extracted: {len(pages)}/{len(self.config.scraper.content_pages)}[/green]"
        )
        return pages

    async def extract_details(
        self, session: PageSession, listing: ListingCrawl
    ) -> list[RawProduct]:
        """Visit every card's product page and merge card + detail."""
        products = []
        for card in listing.cards:
            detail = await self.detail_extractor.extract_detail(session, card.url)
            products.append(
                merge_card_and_detail(
                    card,
                    detail,
                    listings=listing.memberships.get(card.url, []),
                    marker=self.config.scraper.product_path_marker,
                )
            )
        return products

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    async def cleanup(self) -> list[dict]:
        """Normalize the raw extraction file into the catalog file."""
        console.print("\n[bold blue]═══ CLEANUP PHASE ═══[/bold blue]")
        records = await self.loader.load_raw_products()
        valid, skipped = split_valid_records(records)
        if skipped:
            console.print(
                f"[yellow]Skipping {len(skipped)} not-found, nameless or duplicate records[/yellow]"
            )

        catalog = await asyncio.to_thread(self.normalizer.normalize_to_dicts, valid)
        await self.loader.save_catalog(catalog)
        self._print_catalog_summary(catalog)
        return catalog

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _print_header(self, crawl: bool, cleanup: bool):
        phases = [name for name, on in (("crawl", crawl), ("cleanup", cleanup)) if on]
        header = Panel(
            "[bold white]STOREFRONT CATALOG PIPELINE[/bold white]\n"
            f"[dim]Site: {self.config.scraper.base_url}[/dim]\n"
            f"[dim]Listings: {', '.join(listing.name for listing in self.config.scraper.listings)}[/dim]\n"
            f"[dim]Phases: {', '.join(phases)}[/dim]\n"
            f"[dim]Output: {self.config.storage.data_dir}[/dim]",
            title="Catalog ETL",
            border_style="blue",
        )
        console.print(header)

    def _print_crawl_summary(self, result: CrawlResult):
        """Found / succeeded / failed counts per phase."""
        table = Table(title="Extraction Summary", show_header=True)
        table.add_column("Phase", style="cyan")
        table.add_column("Found", justify="right")
        table.add_column("Succeeded", style="green", justify="right")
        table.add_column("Failed", style="red", justify="right")

        listing = result.listing
        if self.include_pages:
            total_pages = len(self.config.scraper.content_pages)
            table.add_row(
                "Content pages",
                str(total_pages),
                str(len(result.pages)),
                str(total_pages - len(result.pages)),
            )
        table.add_row(
            "Listing pages",
            str(len(listing.cards_per_listing)),
            str(len(listing.cards_per_listing) - len(listing.failed_listings)),
            str(len(listing.failed_listings)),
        )
        table.add_row(
            "Product details",
            str(len(listing.cards)),
            str(len(result.valid)),
            str(len(result.failed)),
        )
        table.add_row(
            "Images",
            str(result.images.attempted),
            str(result.images.succeeded),
            str(len(result.images.failed)),
        )
        console.print("\n")
        console.print(table)

        valid = result.valid
        console.print(
            f"[dim]With price: {sum(1 for p in valid if p.get('price'))} | "
            f"with images: {sum(1 for p in valid if p.get('images'))} | "
            f"with options: {sum(1 for p in valid if p.get('options'))}[/dim]"
        )

        if result.failed:
            console.print("\n[yellow]⚠ Products needing manual follow-up:[/yellow]")
            for record in result.failed:
                reason = record.get("error") or ("not found" if record.get("notFound") else "no name")
                console.print(f"  - {escape(str(record.get('slug') or record.get('url')))}: {escape(str(reason))}")

    def _print_catalog_summary(self, catalog: list[dict]):
        counts: dict[str, int] = {}
        for product in catalog:
            counts[product["category"]] = counts.get(product["category"], 0) + 1

        table = Table(title=f"Catalog ({len(catalog)} products)", show_header=True)
        table.add_column("Category", style="cyan")
        table.add_column("Products", style="green", justify="right")
        for category, count in sorted(counts.items()):
            table.add_row(category, str(count))
        console.print("\n")
        console.print(table)

        for product in catalog:
            console.print(
                f"  {escape('[' + product['category'] + ']')} [cyan]{escape(product['name'])}[/cyan] - "
                f"{product['formattedPrice']} ({len(product['images'])} images)"
            )


async def main():
    """Run the full pipeline with default settings."""
    pipeline = StorefrontPipeline()
    result = await pipeline.run()

    if result["success"]:
        console.print("\n[bold green]✓ Pipeline completed successfully![/bold green]")
    else:
        console.print(f"\n[bold red]✗ Pipeline failed: {result.get('error')}[/bold red]")

    return result


if __name__ == "__main__":
    asyncio.run(main())
