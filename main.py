#!/usr/bin/env python3
"""
Storefront Catalog ETL - Main Entry Point

Crawls a hosted storefront's listing and product pages, downloads product
images, and normalizes everything into the static site's catalog file.

Usage:
    python main.py                    # Crawl + cleanup (full run)
    python main.py --crawl-only       # Crawl and save raw records only
    python main.py --cleanup-only     # Rebuild the catalog from raw records
"""
import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from config.settings import PipelineConfig, build_config
from src.extractors.category_extractor import listing_from_arg
from src.pipeline import StorefrontPipeline
from src.utils.log import console, setup_logging


class CustomHelpFormatter(argparse.RawDescriptionHelpFormatter):
    """Custom formatter that preserves formatting and adds width."""

    def __init__(self, prog):
        super().__init__(prog, max_help_position=40, width=100)


def parse_args(argv=None):
    """Parse command line arguments."""

    epilog = """
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
EXAMPLES
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
  Basic Usage:
    python main.py                          Crawl everything, then build the catalog
    python main.py --crawl-only             Crawl and save data/products-raw.json
    python main.py --cleanup-only           Rebuild data/products.json from raw data

  Listings:
    python main.py --listing "Mugs=/category/mugs" --listing "Hats=/category/hats"

  Debugging & Testing:
    python main.py --headless false         Watch the browser crawl
    python main.py --no-images              Skip image downloads (faster)
    python main.py --pages                  Also extract home/about/policy pages

━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
DATA OUTPUT
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    ./data/products-raw.json     Valid raw records from the last crawl
    ./data/products-failed.json  Records needing manual follow-up
    ./data/products.json         Canonical catalog read by the site
    ./data/pages/<name>.json     Content pages (--pages)
    ./data/debug/                Screenshots and HTML dumps
    ./assets/products/<slug>/    Downloaded product images
"""

    parser = argparse.ArgumentParser(
        prog="python main.py",
        description="""
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
                        STOREFRONT CATALOG ETL PIPELINE
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
Crawls a JavaScript-rendered storefront, including:
  • Product cards from every configured listing page
  • Product details (description, images, options, JSON-LD offers)
  • Product images (full-size renditions)

The result is a sorted, normalized catalog file for the static site.
""",
        epilog=epilog,
        formatter_class=CustomHelpFormatter,
    )

    # Phase options group
    phase_group = parser.add_argument_group(
        "Phase Options", "Choose which phases to run (default: crawl + cleanup)"
    )
    phases = phase_group.add_mutually_exclusive_group()

    phases.add_argument(
        "--crawl-only",
        action="store_true",
        help="Crawl and save raw records; skip catalog cleanup",
    )

    phases.add_argument(
        "--cleanup-only",
        action="store_true",
        help="Rebuild the catalog from the last raw extraction file",
    )

    # Crawl options group
    crawl_group = parser.add_argument_group(
        "Crawl Options", "Control what is crawled"
    )

    crawl_group.add_argument(
        "--listing",
        type=str,
        action="append",
        default=None,
        metavar="NAME=URL",
        help="Listing page to crawl; repeatable (default: the configured listings)",
    )

    crawl_group.add_argument(
        "--pages",
        action="store_true",
        help="Also extract the content pages (home, about, policies)",
    )

    crawl_group.add_argument(
        "--no-images",
        action="store_true",
        help="Skip image downloads (faster, metadata only)",
    )

    # Browser options group
    browser_group = parser.add_argument_group(
        "Browser Options", "Control the browser behavior"
    )

    browser_group.add_argument(
        "--headless",
        type=str,
        default=None,
        choices=["true", "false"],
        metavar="BOOL",
        help="Run browser invisibly (default: true). Set 'false' to watch.",
    )

    # Storage options group
    storage_group = parser.add_argument_group(
        "Storage Options", "Control where data is saved"
    )

    storage_group.add_argument(
        "--output",
        "-o",
        type=str,
        default=None,
        metavar="DIR",
        help="Project root for data/, assets/ and logs/ (default: this directory)",
    )

    args = parser.parse_args(argv)

    try:
        args.listing = [listing_from_arg(value) for value in args.listing or []]
    except ValueError as e:
        parser.error(str(e))

    return args


def create_config(args) -> PipelineConfig:
    """Create pipeline configuration from arguments."""
    return build_config(
        base_dir=Path(args.output) if args.output else None,
        headless=None if args.headless is None else args.headless.lower() == "true",
        download_images=False if args.no_images else None,
        listings=args.listing or None,
    )


async def run_pipeline(config: PipelineConfig, args) -> dict:
    """Run the ETL pipeline with given config."""
    pipeline = StorefrontPipeline(config, include_pages=args.pages)
    return await pipeline.run(
        crawl=not args.cleanup_only,
        cleanup=not args.crawl_only,
    )


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)
    config = create_config(args)
    setup_logging(config.logging)

    console.print(f"[dim]Site:[/dim] {config.scraper.base_url}")
    console.print(f"[dim]Headless mode:[/dim] {config.scraper.headless}")
    console.print(f"[dim]Download images:[/dim] {config.storage.download_images}")
    console.print(f"[dim]Content pages:[/dim] {args.pages}")

    try:
        result = asyncio.run(run_pipeline(config, args))

        if result["success"]:
            console.print(
                "\n[bold green]═══════════════════════════════════════════[/bold green]"
            )
            console.print(
                "[bold green]       PIPELINE COMPLETED SUCCESSFULLY     [/bold green]"
            )
            console.print(
                "[bold green]═══════════════════════════════════════════[/bold green]"
            )
            if result.get("catalog_path"):
                console.print(f"\n[green]Catalog saved to: {result['catalog_path']}[/green]")
            return 0
        else:
            console.print(
                f"\n[bold red]Pipeline failed: {result.get('error')}[/bold red]"
            )
            return 1

    except KeyboardInterrupt:
        console.print("\n[yellow]Pipeline cancelled by user[/yellow]")
        return 130
    except Exception as e:
        console.print(f"\n[bold red]Unexpected error: {e}[/bold red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
