"""
Headless-browser rasterization of SVG markup.

The Slides service only accepts PNG, JPEG and GIF images, so SVG sources are
loaded into a Chromium page with pyppeteer and the ``<svg>`` element is
screenshotted.  One browser is shared by every render in a run; each render
gets its own page.
"""
import asyncio
import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pyppeteer import launch

logger = logging.getLogger(__name__)

# Device pixels per CSS pixel; 3x approximates 300 dpi
DEFAULT_SCALE = 3
VIEWPORT = {"width": 1280, "height": 720}


@dataclass
class RenderedImage:
    path: Path
    width: float   # CSS pixels
    height: float  # CSS pixels


class RenderError(RuntimeError):
    """Raised when the browser could not produce an image."""


class BrowserRenderer:
    """Render HTML fragments to PNG files in *tmp_dir*."""

    def __init__(self, tmp_dir: Path, *, scale: float = DEFAULT_SCALE, debug: bool = False):
        self.tmp_dir = Path(tmp_dir)
        self.scale = scale
        self.debug = debug
        self._browser = None
        self._launch_lock = asyncio.Lock()

    async def start(self) -> None:
        # Concurrent renders share one browser
        async with self._launch_lock:
            if self._browser is None:
                self._browser = await launch(headless=True, args=["--no-sandbox", "--disable-gpu"])

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None

    async def screenshot(
        self,
        html: str,
        selector: str,
        *,
        name: str,
        script_urls=(),
        style_urls=(),
        script: Optional[str] = None,
        script_args=(),
    ) -> RenderedImage:
        """Load *html*, optionally run *script*, and screenshot the first *selector* match."""
        await self.start()
        page = await self._browser.newPage()
        try:
            await page.setViewport({**VIEWPORT, "deviceScaleFactor": self.scale})
            await page.setContent(html)
            for url in style_urls:
                await page.addStyleTag({"url": url})
            for url in script_urls:
                await page.addScriptTag({"url": url})
            if script:
                await page.evaluate(script, *script_args)

            element = await page.querySelector(selector)
            if element is None:
                raise RenderError(f"nothing matched {selector!r}")
            box = await element.boundingBox()
            if not box or box["width"] <= 0 or box["height"] <= 0:
                raise RenderError(f"{selector!r} rendered with an empty box")

            path = self.tmp_dir / f"{name}.png"
            await element.screenshot({"path": str(path), "omitBackground": True})
            if self.debug:
                logger.info("Rendered %s (%.0fx%.0f px)", path.name, box["width"], box["height"])
            return RenderedImage(path, box["width"], box["height"])
        finally:
            await page.close()

    async def render_svg(self, svg: str) -> RenderedImage:
        name = "svg-" + hashlib.md5(svg.encode("utf-8")).hexdigest()
        html = (
            "<!DOCTYPE html><html><head><style>"
            "html,body{margin:0;padding:0;background:transparent}"
            "svg{display:block}"
            f"</style></head><body>{svg}</body></html>"
        )
        return await self.screenshot(html, "svg", name=name)
