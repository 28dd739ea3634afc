"""
Best-effort debug artefacts (screenshots, HTML dumps, JSON) for crawl misses.

Diagnostics are a side channel: every method logs and swallows its own
failures so that capturing evidence can never change an extraction result.
"""

import json
import logging
import re
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def debug_name(value: str) -> str:
    """Filesystem-safe name for a debug artefact."""
    name = re.sub(r"[^\w-]+", "-", value.lower()).strip("-")
    return name[:80] or "page"


class Diagnostics:
    """Writes debug artefacts under a single directory."""

    def __init__(self, debug_dir: Path):
        self.debug_dir = Path(debug_dir)

    async def screenshot(self, session, name: str, directory: Optional[Path] = None) -> Optional[Path]:
        path = (directory or self.debug_dir) / f"{debug_name(name)}.png"
        if await session.screenshot(path):
            return path
        return None

    async def dump_html(self, session, name: str) -> Optional[Path]:
        path = self.debug_dir / f"{debug_name(name)}.html"
        try:
            html = await session.content()
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(html, encoding="utf-8")
            return path
        except Exception as e:
            logger.warning("Could not dump HTML for %s: %s", name, e)
            return None

    def write_json(self, name: str, data) -> Optional[Path]:
        path = self.debug_dir / f"{debug_name(name)}.json"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
            return path
        except Exception as e:
            logger.warning("Could not write debug data %s: %s", name, e)
            return None

    async def capture_page(self, session, name: str, extra: Optional[dict] = None) -> None:
        """Screenshot + HTML dump (+ optional JSON) of the current page."""
        await self.screenshot(session, name)
        await self.dump_html(session, name)
        if extra is not None:
            self.write_json(name, extra)


class NullDiagnostics(Diagnostics):
    """Diagnostics that record nothing."""

    def __init__(self):
        super().__init__(Path("."))

    async def screenshot(self, session, name: str, directory: Optional[Path] = None) -> Optional[Path]:
        return None

    async def dump_html(self, session, name: str) -> Optional[Path]:
        return None

    def write_json(self, name: str, data) -> Optional[Path]:
        return None
