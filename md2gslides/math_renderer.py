#!/usr/bin/env python3
"""
Math renderer - LaTeX to PNG through KaTeX in the shared headless browser.
"""

import hashlib
import html
import logging
from typing import Dict

from .image_renderer import BrowserRenderer, RenderedImage

logger = logging.getLogger(__name__)

KATEX_VERSION = "0.16.11"
KATEX_CSS = f"https://cdn.jsdelivr.net/npm/katex@{KATEX_VERSION}/dist/katex.min.css"
KATEX_JS = f"https://cdn.jsdelivr.net/npm/katex@{KATEX_VERSION}/dist/katex.min.js"

_PAGE = """<!DOCTYPE html>
<html><head><style>
html, body {{ margin: 0; padding: 0; background: transparent; }}
#math {{ display: inline-block; padding: 4px; font-size: {font_size}px; color: {color}; }}
</style></head>
<body><span id="math">{fallback}</span></body></html>
"""

_RENDER_SCRIPT = """(tex, display) => {
    katex.render(tex, document.getElementById('math'), {
        displayMode: display,
        throwOnError: true,
    });
}"""


class MathRenderer:
    """
    Render LaTeX expressions to transparent PNG images.

    Results are cached per expression for the lifetime of the renderer, so a
    formula repeated across slides is only rasterized once.
    """

    def __init__(self, browser: BrowserRenderer, *, font_size: int = 32,
                 color: str = "#000000", debug: bool = False):
        self.browser = browser
        self.font_size = font_size
        self.color = color
        self.debug = debug
        self._cache: Dict[str, RenderedImage] = {}

    async def render_to_png(self, latex: str, display_mode: bool = True) -> RenderedImage:
        """
        Render *latex* and return the PNG path with its size in CSS pixels.

        Raises:
            RenderError: If KaTeX produced nothing to capture.
            pyppeteer.errors.PageError: If KaTeX rejects the expression.
        """
        cache_key = hashlib.md5(f"{display_mode}:{latex}".encode("utf-8")).hexdigest()
        if cache_key in self._cache:
            return self._cache[cache_key]

        if self.debug:
            logger.info("Rendering math: %s", latex[:50])

        page = _PAGE.format(font_size=self.font_size, color=self.color, fallback=html.escape(latex))
        rendered = await self.browser.screenshot(
            page,
            "#math",
            name=f"math-{cache_key}",
            style_urls=[KATEX_CSS],
            script_urls=[KATEX_JS],
            script=_RENDER_SCRIPT,
            script_args=(latex, display_mode),
        )
        self._cache[cache_key] = rendered
        return rendered
