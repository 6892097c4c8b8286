"""
Rasterization of rendered HTML into PDF or PNG artifacts with headless Chromium.

Each call launches its own browser through Playwright and closes it on every
exit path, including timeouts and task cancellation, so a failing render
never leaves a browser process behind or shares state with another render.

The capture sequence is:
    about:blank -> set_content(html) -> document.readyState == "complete"
    -> short settle delay -> page.pdf() / page.screenshot()

Only after a buffer has been captured is anything written to the output
directory.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence
from uuid import uuid4

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright
from starlette.concurrency import run_in_threadpool

from .errors import RasterizationError
from .models import ArtifactMode
from .utils import ensure_directory, sanitize_label

logger = logging.getLogger(__name__)

_READY_STATE_SCRIPT = "() => document.readyState === 'complete'"

PAGE_FORMAT_KEY = "page_format"
PAGE_ORIENTATION_KEY = "page_orientation"


@dataclass(frozen=True)
class PageSetup:
    """
    Output geometry of an artifact.

    Margins are always zero: layouts own all spacing through their CSS.
    """

    format: str = "A4"
    landscape: bool = False
    viewport_width: int = 1240
    viewport_height: int = 1754

    def with_overrides(self, context: Mapping[str, Any]) -> "PageSetup":
        """Apply per-template ``page_format`` / ``page_orientation`` context keys."""
        changes = {}
        page_format = context.get(PAGE_FORMAT_KEY)
        if isinstance(page_format, str) and page_format.strip():
            changes["format"] = page_format.strip()
        orientation = context.get(PAGE_ORIENTATION_KEY)
        if isinstance(orientation, str) and orientation.strip().lower() in {"landscape", "portrait"}:
            changes["landscape"] = orientation.strip().lower() == "landscape"
        return replace(self, **changes) if changes else self


def artifact_file_name(business_name: str, mode: ArtifactMode) -> str:
    """Build a collision-resistant artifact name: business name, unix time and a random suffix."""
    safe_name = sanitize_label(business_name, fallback="poster")
    return f"{safe_name}_{int(time.time())}_{uuid4().hex[:8]}{mode.extension}"


class BrowserRasterizer:
    """
    Converts HTML into artifacts on disk.

    Attributes:
        output_dir: Directory receiving the artifacts
        timeout_seconds: Upper bound for launch, load and capture together
        settle_delay_ms: Grace period after the document reports ``complete``,
            letting web fonts and embedded images finish decoding
        page_setup: Default output geometry
        browser_args: Extra Chromium command-line switches
    """

    def __init__(
        self,
        output_dir: Path,
        timeout_seconds: float = 30.0,
        settle_delay_ms: int = 300,
        page_setup: PageSetup = PageSetup(),
        browser_args: Optional[Sequence[str]] = None,
    ) -> None:
        self.output_dir = ensure_directory(Path(output_dir))
        self.timeout_seconds = timeout_seconds
        self.settle_delay_ms = settle_delay_ms
        self.page_setup = page_setup
        self.browser_args = list(browser_args or [])

    async def rasterize(
        self,
        html: str,
        output_base_name: str,
        mode: ArtifactMode = ArtifactMode.PDF,
        page_setup: Optional[PageSetup] = None,
    ) -> Path:
        """
        Capture ``html`` and write it to a new file in the output directory.

        Args:
            html: Complete HTML document
            output_base_name: Business name the file name is derived from
            mode: PDF or PNG capture
            page_setup: Geometry for this artifact (defaults to the rasterizer's)

        Returns:
            Path of the written artifact

        Raises:
            RasterizationError: On launch, navigation, capture or write failure;
                ``retryable`` is set when the deadline was exceeded
        """
        setup = page_setup or self.page_setup
        started = time.monotonic()
        try:
            payload = await asyncio.wait_for(self._capture(html, mode, setup), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            logger.error(f"Rasterization timed out after {self.timeout_seconds}s for '{output_base_name}'")
            raise RasterizationError("rendering timed out", retryable=True) from exc
        except PlaywrightError as exc:
            logger.error(f"Headless browser failed for '{output_base_name}': {exc}")
            raise RasterizationError("failed to generate artifact") from exc

        if not payload:
            raise RasterizationError("headless browser returned an empty artifact")

        path = await run_in_threadpool(self._persist, payload, output_base_name, mode)
        logger.info(f"Artifact written to {path} in {time.monotonic() - started:.2f}s")
        return path

    async def _capture(self, html: str, mode: ArtifactMode, setup: PageSetup) -> bytes:
        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(headless=True, args=self.browser_args)
            try:
                context = await browser.new_context(
                    viewport={"width": setup.viewport_width, "height": setup.viewport_height},
                )
                page = await context.new_page()
                await page.goto("about:blank")
                await page.set_content(html, wait_until="load")
                await page.wait_for_function(_READY_STATE_SCRIPT)
                if self.settle_delay_ms:
                    await page.wait_for_timeout(self.settle_delay_ms)

                if mode is ArtifactMode.PDF:
                    return await page.pdf(
                        format=setup.format,
                        landscape=setup.landscape,
                        print_background=True,
                        prefer_css_page_size=True,
                        margin={"top": "0", "right": "0", "bottom": "0", "left": "0"},
                    )
                return await page.screenshot(full_page=True, type="png")
            finally:
                await browser.close()

    def _persist(self, payload: bytes, output_base_name: str, mode: ArtifactMode) -> Path:
        path = self.output_dir / artifact_file_name(output_base_name, mode)
        created = False
        try:
            with path.open("xb") as handle:
                created = True
                handle.write(payload)
        except OSError as exc:
            logger.error(f"Failed to write artifact {path}: {exc}")
            if created:
                path.unlink(missing_ok=True)
            raise RasterizationError("failed to write artifact") from exc
        return path
