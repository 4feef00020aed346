"""
Media resolution: the pass between extraction and request generation.

Every image on every slide ends up either with a URL the Slides service can
fetch, or removed from its slide with a warning.  Images are independent of
each other, so they are resolved concurrently; blocking HTTP calls run in
worker threads.
"""
import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urlparse

import requests

from .image_renderer import BrowserRenderer, RenderedImage
from .math_renderer import MathRenderer
from .models import BodyDefinition, ImageDefinition, SlideDefinition
from .paths import is_remote, local_path
from .upload import download, file_image_size, image_size, upload_local_file

logger = logging.getLogger(__name__)

MAX_CONCURRENT_RENDERS = 4


class MediaError(RuntimeError):
    """An image that cannot be made available to the Slides service."""


def _is_svg(url: str) -> bool:
    return urlparse(url).path.lower().endswith(".svg")


class MediaResolver:
    """
    Resolve deferred and local images in place.

    Parameters
    ----------
    tmp_dir
        Where rendered PNG files are written.
    use_fileio
        Upload local files to temporary public hosting.  Without it, local
        images cannot be referenced by the service and are dropped.
    renderer
        Browser used for SVG and math; created on first use when omitted.
    """

    def __init__(
        self,
        tmp_dir: Path,
        *,
        use_fileio: bool = False,
        renderer: Optional[BrowserRenderer] = None,
        debug: bool = False,
    ):
        self.tmp_dir = Path(tmp_dir)
        self.use_fileio = use_fileio
        self.debug = debug
        self._owns_renderer = renderer is None
        self.renderer = renderer or BrowserRenderer(self.tmp_dir, debug=debug)
        self.math = MathRenderer(self.renderer, debug=debug)
        self._semaphore: Optional[asyncio.Semaphore] = None

    async def resolve(self, slides: Sequence[SlideDefinition]) -> None:
        """Resolve every image on *slides*; failed images are removed from their slide."""
        pending: List[Tuple[SlideDefinition, Optional[BodyDefinition], ImageDefinition]] = [
            (slide, body, image)
            for slide in slides
            for body, image in list(slide.iter_images())
        ]
        if not pending:
            return

        self._semaphore = asyncio.Semaphore(MAX_CONCURRENT_RENDERS)
        try:
            results = await asyncio.gather(
                *(self.resolve_image(image) for _, _, image in pending),
                return_exceptions=True,
            )
        finally:
            if self._owns_renderer:
                await self.renderer.close()

        for (slide, body, image), result in zip(pending, results):
            if not isinstance(result, Exception):
                continue
            label = image.url or f"{image.type} source"
            logger.warning("Slide %s: dropping image %s (%s)", slide.object_id, label, result)
            if body is None:
                slide.background_image = None
            else:
                body.images.remove(image)

        for slide in slides:
            slide.bodies = [body for body in slide.bodies if not body.is_empty()]

    async def resolve_image(self, image: ImageDefinition) -> ImageDefinition:
        if image.is_deferred:
            self._apply(image, await self._render(image.source, image.type))
        elif image.url is None:
            raise MediaError("image has neither a URL nor a source")
        elif _is_svg(image.url):
            self._apply(image, await self._render(await self._read_svg(image.url), "svg"))

        path = local_path(image.url)
        if path is not None:
            await self._publish_local(image, path)
        elif is_remote(image.url) and image.width is None and image.height is None:
            await self._probe_remote(image)
        return image

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _apply(image: ImageDefinition, rendered: RenderedImage) -> None:
        image.url = rendered.path.resolve().as_uri()
        if image.width is None and image.height is None:
            image.width, image.height = rendered.width, rendered.height

    async def _render(self, source: str, kind: Optional[str]) -> RenderedImage:
        async with self._semaphore:
            if kind == "math":
                return await self.math.render_to_png(source.strip())
            if kind == "svg":
                return await self.renderer.render_svg(source)
        raise MediaError(f"unsupported image source type {kind!r}")

    async def _read_svg(self, url: str) -> str:
        path = local_path(url)
        if path is not None:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        data = await asyncio.to_thread(download, url)
        return data.decode("utf-8")

    async def _publish_local(self, image: ImageDefinition, path: Path) -> None:
        if not path.is_file():
            raise MediaError(f"file not found: {path}")
        if image.width is None and image.height is None:
            size = await asyncio.to_thread(file_image_size, path)
            if size is not None:
                image.width, image.height = size
        if not self.use_fileio:
            raise MediaError("local images need --use-fileio to be uploaded")
        image.url = await asyncio.to_thread(upload_local_file, path)

    async def _probe_remote(self, image: ImageDefinition) -> None:
        try:
            data = await asyncio.to_thread(download, image.url)
        except requests.RequestException as exc:
            # the service fetches the image itself; an unknown size only affects fitting
            logger.debug("Could not probe size of %s: %s", image.url, exc)
            return
        size = image_size(data)
        if size is not None:
            image.width, image.height = size
