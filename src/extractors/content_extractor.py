"""
Content page extractor for the storefront's non-product pages (home, about,
policies, ...). Captures text structure, meta tags, navigation and images.
"""

import logging
from pathlib import Path
from typing import Optional

from rich.markup import escape

from config.settings import ContentPage, ScraperConfig, config
from src.extractors.diagnostics import Diagnostics, NullDiagnostics
from src.extractors.dom_strategies import extract_page_content
from src.extractors.page_session import PageSession
from src.utils.log import console

logger = logging.getLogger(__name__)

# Theme colour variables exposed by the site builder on :root
CSS_VARIABLES_JS = """
(count) => {
    const styles = getComputedStyle(document.documentElement);
    const vars = {};
    for (let i = 0; i < count; i++) {
        const value = styles.getPropertyValue(`--color_${i}`);
        if (value) vars[`--color_${i}`] = value.trim();
    }
    return vars;
}
"""


class ContentPageExtractor:
    """Extracts the content of configured non-product pages."""

    def __init__(
        self,
        scraper_config: Optional[ScraperConfig] = None,
        diagnostics: Optional[Diagnostics] = None,
        screenshot_dir: Optional[Path] = None,
    ):
        self.config = scraper_config or config.scraper
        self.diagnostics = diagnostics or NullDiagnostics()
        self.screenshot_dir = screenshot_dir

    async def extract_page(
        self, session: PageSession, page: ContentPage
    ) -> Optional[dict]:
        """Extract one content page; returns None if the page fails to load."""
        url = self.config.content_url(page)
        console.print(f"\n[cyan]Extracting page: {page.name} ({url})[/cyan]")

        try:
            await session.navigate(url)
            await session.wait_for_network_idle(self.config.content_network_idle_timeout_ms)
            await session.settle(self.config.content_settle_seconds)

            snapshot = await session.snapshot()
            data = extract_page_content(snapshot.document, snapshot.url or url)
            data["url"] = url
            data["cssVars"] = await session.evaluate(CSS_VARIABLES_JS, 70) or {}
        except Exception as e:
            logger.error("Error extracting page %s: %s", page.name, e)
            console.print(f"  [bold red]✗ Error extracting {page.name}: {escape(str(e))}[/bold red]")
            return None

        await self.diagnostics.screenshot(session, page.name, directory=self.screenshot_dir)

        console.print(
            f"  [green]✓[/green] {len(data['sections'])} sections, "
            f"{len(data['images'])} images"
        )
        return data
