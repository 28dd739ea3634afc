"""
Listing page extractor: product cards from one or more category pages.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from rich.markup import escape

from config.settings import ListingPage, ScraperConfig, config
from src.extractors.diagnostics import Diagnostics, NullDiagnostics
from src.extractors.dom_strategies import dedupe_cards, extract_cards, listing_debug_info
from src.extractors.models import RawProductCard
from src.extractors.page_session import PageSession
from src.utils.log import console

logger = logging.getLogger(__name__)


@dataclass
class ListingCrawl:
    """Outcome of crawling every configured listing page."""

    cards: list = field(default_factory=list)  # deduplicated RawProductCard
    memberships: dict = field(default_factory=dict)  # card url -> [listing names]
    cards_per_listing: dict = field(default_factory=dict)
    failed_listings: list = field(default_factory=list)

    @property
    def total_found(self) -> int:
        return sum(self.cards_per_listing.values())


class CategoryExtractor:
    """Extracts product cards from storefront listing pages."""

    def __init__(
        self,
        scraper_config: Optional[ScraperConfig] = None,
        diagnostics: Optional[Diagnostics] = None,
    ):
        self.config = scraper_config or config.scraper
        self.diagnostics = diagnostics or NullDiagnostics()

    async def extract_category(
        self, session: PageSession, listing_url: str, name: str = "listing"
    ) -> list[RawProductCard]:
        """
        Extract product cards from a single listing page.

        Navigation failures are not retried. A screenshot plus HTML dump is
        left in the debug directory and the error is re-raised;
        extract_listings records it and moves on with no cards for the page.
        """
        console.print(f"\n[cyan]Extracting category: {name} ({listing_url})[/cyan]")

        try:
            await session.navigate(listing_url)
            selector = await session.await_readiness(
                self.config.listing_ready_selectors,
                selector_timeout_ms=self.config.listing_selector_timeout_ms,
                network_idle_timeout_ms=self.config.listing_network_idle_timeout_ms,
                settle_seconds=self.config.listing_settle_seconds,
            )
            if selector:
                console.print(f"  [green]✓[/green] Found products with selector: {escape(selector)}")

            await self.diagnostics.screenshot(session, f"category-{name}")

            await session.exhaust_lazy_load()
            await session.settle(self.config.after_scroll_seconds)

            snapshot = await session.snapshot()
        except Exception as e:
            logger.error("Error extracting category %s: %s", name, e)
            await self.diagnostics.capture_page(
                session, f"category-{name}-error", {"url": listing_url, "error": str(e)}
            )
            raise

        strategy, cards = extract_cards(snapshot.document, snapshot.url or listing_url)

        if cards:
            console.print(
                f"  Found {len(cards)} product cards [dim](strategy: {strategy})[/dim]"
            )
        else:
            console.print(f"  [yellow]No product cards found on {name}[/yellow]")
            debug = listing_debug_info(snapshot.document, snapshot.url or listing_url)
            debug["url"] = listing_url
            path = self.diagnostics.write_json(f"category-{name}-debug", debug)
            if path:
                console.print(f"  [dim]Debug data saved to {path}[/dim]")

        return cards

    async def extract_listings(
        self, session: PageSession, listings: Optional[list] = None
    ) -> ListingCrawl:
        """Crawl every listing page, then deduplicate cards by URL."""
        listings = listings if listings is not None else self.config.listings
        crawl = ListingCrawl()
        all_cards: list[RawProductCard] = []

        for listing in listings:
            listing_url = self.config.listing_url(listing)
            try:
                cards = await self.extract_category(session, listing_url, listing.name)
            except Exception as e:
                crawl.failed_listings.append({"name": listing.name, "url": listing_url, "error": str(e)})
                cards = []

            crawl.cards_per_listing[listing.name] = len(cards)
            for card in cards:
                if not card.url:
                    continue
                names = crawl.memberships.setdefault(card.url, [])
                if listing.name not in names:
                    names.append(listing.name)
            all_cards.extend(cards)

        crawl.cards = dedupe_cards(all_cards)
        console.print(
            f"\n[bold green]Found {len(crawl.cards)} unique product cards total[/bold green]"
        )
        return crawl


def listing_from_arg(value: str) -> ListingPage:
    """Parse a NAME=URL command line value into a ListingPage."""
    if "=" not in value:
        raise ValueError(f"Expected NAME=URL, got {value!r}")
    name, url = value.split("=", 1)
    name, url = name.strip(), url.strip()
    if not name or not url:
        raise ValueError(f"Expected NAME=URL, got {value!r}")
    return ListingPage(name=name, path=url)
