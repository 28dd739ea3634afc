"""
File loader for raw extraction output, the canonical catalog, content pages
and downloaded images.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import aiofiles
import aiohttp
from rich.markup import escape

from config.settings import StorageConfig, config
from src.exceptions import AssetFetchError
from src.loaders.asset_fetcher import AssetFetcher, is_absolute_http_url
from src.utils.log import console

logger = logging.getLogger(__name__)

_WIX_FILL = re.compile(r"/v1/fill/[^/]+/")
_WIX_FULL_SIZE = "/v1/fill/w_800,h_800,al_c,q_85/"


def image_extension(url: str) -> str:
    """Best-effort extension from the URL; does not look at the bytes."""
    if ".png" in url:
        return ".png"
    if ".webp" in url:
        return ".webp"
    return ".jpg"


def full_size_image_url(url: str) -> str:
    """Rewrite a Wix static image URL to its 800x800 rendition."""
    if "wixstatic.com" in url:
        return _WIX_FILL.sub(_WIX_FULL_SIZE, url, count=1)
    return url


def absolute_image_url(url: str) -> str:
    """Resolve protocol-relative URLs; everything else is left as-is."""
    if url.startswith("//"):
        return "https:" + url
    return url


@dataclass
class ImageDownloadReport:
    """Counts for one image download phase."""

    attempted: int = 0
    succeeded: int = 0
    failed: list = field(default_factory=list)  # [{"path", "url", "error"}]

    def merge(self, other: "ImageDownloadReport") -> None:
        self.attempted += other.attempted
        self.succeeded += other.succeeded
        self.failed.extend(other.failed)


class FileLoader:
    """Reads and writes pipeline artefacts under the storage directories."""

    def __init__(self, storage_config: Optional[StorageConfig] = None):
        self.config = storage_config or config.storage

    # ------------------------------------------------------------------
    # JSON files
    # ------------------------------------------------------------------

    async def write_json(self, path: Path, data) -> Path:
        # NaN / Infinity are not JSON; fail before the old file is truncated
        text = json.dumps(data, indent=2, ensure_ascii=False, allow_nan=False)
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(text)
        return path

    async def read_json(self, path: Path):
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            return json.loads(await f.read(), parse_constant=lambda name: None)

    async def save_raw_products(self, valid: list[dict], failed: list[dict]) -> None:
        """Write valid raw records, and failed ones to a separate file."""
        path = await self.write_json(self.config.raw_products_path, valid)
        console.print(f"[green]✓ Saved {len(valid)} valid products to {path}[/green]")

        if failed:
            path = await self.write_json(self.config.failed_products_path, failed)
            console.print(
                f"[yellow]⚠ {len(failed)} products failed (saved to {path})[/yellow]"
            )
        elif self.config.failed_products_path.exists():
            self.config.failed_products_path.unlink()

    async def load_raw_products(self) -> list:
        path = self.config.raw_products_path
        data = await self.read_json(path)
        if not isinstance(data, list):
            raise ValueError(f"{path} does not contain a JSON array")
        return data

    async def save_catalog(self, products: list[dict]) -> Path:
        """Replace the catalog file with the given products."""
        path = await self.write_json(self.config.catalog_path, products)
        console.print(f"[green]✓ Catalog saved to {path} ({len(products)} products)[/green]")
        return path

    async def save_page(self, name: str, data: dict) -> Path:
        return await self.write_json(self.config.pages_dir / f"{name}.json", data)

    async def save_design_tokens(self, tokens: dict) -> Path:
        return await self.write_json(self.config.data_dir / "design-tokens.json", tokens)

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    async def _download_all(
        self, jobs: list[tuple[str, Path]], session: aiohttp.ClientSession
    ) -> ImageDownloadReport:
        """Download (url, destination) pairs with a bounded worker pool."""
        report = ImageDownloadReport(attempted=len(jobs))
        fetcher = AssetFetcher(
            session,
            max_redirects=self.config.max_redirects,
            timeout_seconds=self.config.image_timeout_seconds,
        )
        semaphore = asyncio.Semaphore(max(1, self.config.image_concurrency))

        async def run(url: str, destination: Path) -> None:
            label = f"{destination.parent.name}/{destination.name}"
            async with semaphore:
                try:
                    await fetcher.fetch(url, destination)
                except AssetFetchError as e:
                    report.failed.append({"path": str(destination), "url": url, "error": str(e)})
                    console.print(f"  [red]✗[/red] {label}: {escape(str(e))}")
                    return
            report.succeeded += 1
            console.print(f"  [green]✓[/green] {label}")

        await asyncio.gather(*(run(url, dest) for url, dest in jobs))
        return report

    def product_image_jobs(self, product: dict) -> list[tuple[str, Path]]:
        """(url, destination) pairs for one raw product's images."""
        slug = product.get("slug") or ""
        product_dir = self.config.get_product_dir(slug)
        jobs = []
        for index, image in enumerate(product.get("images") or []):
            src = image.get("src") if isinstance(image, dict) else image
            url = full_size_image_url(absolute_image_url(src or ""))
            jobs.append((url, product_dir / f"img-{index}{image_extension(url)}"))
        return jobs

    async def download_product_images(self, products: list[dict]) -> ImageDownloadReport:
        """Download every valid product's images into assets/products/<slug>/."""
        jobs = []
        for product in products:
            product_jobs = self.product_image_jobs(product)
            if not product_jobs:
                console.print(
                    f"[yellow]No images to download for {product.get('name')}[/yellow]"
                )
                continue
            self.config.get_product_dir(product["slug"]).mkdir(parents=True, exist_ok=True)
            jobs.extend(product_jobs)

        async with aiohttp.ClientSession() as session:
            return await self._download_all(jobs, session)

    async def download_page_images(self, name: str, page_data: dict) -> ImageDownloadReport:
        """Download a content page's images, skipping icons under 50x50."""
        page_dir = self.config.images_dir / name
        jobs = []
        for index, image in enumerate(page_data.get("images") or []):
            url = absolute_image_url(image.get("src") or "")
            if not is_absolute_http_url(url):
                continue
            if image.get("width", 0) < 50 and image.get("height", 0) < 50:
                continue
            jobs.append((url, page_dir / f"img-{index}{image_extension(url)}"))

        if not jobs:
            return ImageDownloadReport()
        page_dir.mkdir(parents=True, exist_ok=True)

        async with aiohttp.ClientSession() as session:
            return await self._download_all(jobs, session)
