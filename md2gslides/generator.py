#!/usr/bin/env python3
"""
Main module that ties together extraction, media resolution, layout matching
and request generation against one Google Slides presentation.
"""

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .config import DeckOptions
from .css_utils import StyleSheet
from .gslide_renderer import GSlideRenderer
from .layout_matcher import LayoutMatcher
from .markdown_parser import extract_slides
from .media import MediaResolver
from .models import SlideDefinition
from .paths import prepare_workspace

logger = logging.getLogger(__name__)

PRESENTATION_URL = "https://docs.google.com/presentation/d/{}"
MAX_WORKERS = 8


def build_services(credentials):
    """Slides v1 and Drive v3 clients for *credentials*."""
    slides = build("slides", "v1", credentials=credentials, cache_discovery=False)
    drive = build("drive", "v3", credentials=credentials, cache_discovery=False)
    return slides, drive


def build_requests(
    slides: Sequence[SlideDefinition],
    presentation: Dict,
    renderer: Optional[GSlideRenderer] = None,
) -> List[Dict]:
    """One combined batch for *slides* against *presentation* (no network access).

    Per-slide request lists are computed in parallel and concatenated in
    slide order.
    """
    renderer = renderer or GSlideRenderer()
    matcher = LayoutMatcher(presentation)

    def _slide_requests(slide: SlideDefinition) -> List[Dict]:
        return renderer.generate(matcher.match(slide), slide)

    with ThreadPoolExecutor(max_workers=MAX_WORKERS) as pool:
        per_slide = list(pool.map(_slide_requests, slides))
    return [request for requests in per_slide for request in requests]


class SlideGenerator:
    """
    Generate slides from Markdown into one Google Slides presentation.

    Use :meth:`new_presentation`, :meth:`copy_presentation` or
    :meth:`for_presentation` to obtain an instance.
    """

    def __init__(self, slides_service, presentation_id: str, *, drive_service=None, debug: bool = False):
        self.slides_service = slides_service
        self.drive_service = drive_service
        self.presentation_id = presentation_id
        self.debug = debug
        self.renderer = GSlideRenderer(debug=debug)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def for_presentation(cls, credentials, presentation_id: str, **kwargs) -> "SlideGenerator":
        slides, drive = build_services(credentials)
        return cls(slides, presentation_id, drive_service=drive, **kwargs)

    @classmethod
    def new_presentation(cls, credentials, title: Optional[str] = None, **kwargs) -> "SlideGenerator":
        slides, drive = build_services(credentials)
        body = {"title": title or f"md2gslides {time.strftime('%Y-%m-%d %H:%M:%S')}"}
        presentation = slides.presentations().create(body=body).execute()
        logger.info("Created presentation %s", presentation["presentationId"])
        return cls(slides, presentation["presentationId"], drive_service=drive, **kwargs)

    @classmethod
    def copy_presentation(cls, credentials, presentation_id: str, title: Optional[str] = None,
                          **kwargs) -> "SlideGenerator":
        slides, drive = build_services(credentials)
        body = {"name": title} if title else {}
        copy = drive.files().copy(fileId=presentation_id, body=body).execute()
        logger.info("Copied presentation %s to %s", presentation_id, copy["id"])
        return cls(slides, copy["id"], drive_service=drive, **kwargs)

    # ------------------------------------------------------------------
    # Remote presentation helpers
    # ------------------------------------------------------------------

    def fetch_presentation(self) -> Dict:
        return self.slides_service.presentations().get(presentationId=self.presentation_id).execute()

    def submit(self, requests: List[Dict]) -> Optional[Dict]:
        """Apply *requests* as one atomic batch."""
        if not requests:
            return None
        try:
            response = (
                self.slides_service.presentations()
                .batchUpdate(presentationId=self.presentation_id, body={"requests": requests})
                .execute()
            )
        except HttpError as e:
            logger.error("Google Slides API error: %s", e)
            raise
        if self.debug:
            logger.info("✓ Executed batch – %s requests", len(requests))
        return response

    def erase(self) -> None:
        """Delete every slide currently in the presentation."""
        presentation = self.fetch_presentation()
        requests = [
            {"deleteObject": {"objectId": slide["objectId"]}}
            for slide in presentation.get("slides", [])
        ]
        if requests:
            logger.info("Erasing %s existing slides", len(requests))
        self.submit(requests)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_from_markdown(
        self,
        markdown_text: str,
        *,
        options: Optional[DeckOptions] = None,
        stylesheet: Optional[StyleSheet] = None,
        base_dir: Optional[Path] = None,
        use_fileio: bool = False,
        tmp_dir: Optional[Path] = None,
        keep_tmp: bool = False,
    ) -> str:
        """
        Append the slides described by *markdown_text* and return the presentation id.

        Pages are created in one batch and filled in a second one, after the
        presentation is re-read so speaker notes ids are known.
        """
        slides = list(extract_slides(
            markdown_text, stylesheet=stylesheet, options=options, base_dir=base_dir
        ))
        logger.info("Extracted %s slides", len(slides))

        workspace = prepare_workspace(tmp_dir, keep_tmp=keep_tmp)
        await MediaResolver(workspace, use_fileio=use_fileio, debug=self.debug).resolve(slides)

        presentation = await asyncio.to_thread(self.fetch_presentation)
        matcher = LayoutMatcher(presentation)
        creation = [
            request
            for slide in slides
            for request in self.renderer.creation_requests(matcher.match(slide))
        ]
        await asyncio.to_thread(self.submit, creation)

        presentation = await asyncio.to_thread(self.fetch_presentation)
        matcher = LayoutMatcher(presentation)

        def _content(slide: SlideDefinition) -> List[Dict]:
            return self.renderer.content_requests(matcher.match(slide), slide)

        with ThreadPoolExecutor(max_workers=MAX_WORKERS) as pool:
            per_slide = list(pool.map(_content, slides))
        content = [request for requests in per_slide for request in requests]
        await asyncio.to_thread(self.submit, content)

        if self.debug:
            logger.info("Presentation %s: %s creation + %s content requests",
                        self.presentation_id, len(creation), len(content))
        return self.presentation_id


def main(argv=None):
    """Command-line entry point for md2gslides."""
    import argparse
    import json
    import sys
    import webbrowser

    from . import __version__
    from .auth import get_credentials
    from .markdown_parser import read_deck_options

    def _build_parser() -> argparse.ArgumentParser:
        p = argparse.ArgumentParser(prog="md2gslides", description="Convert Markdown to Google Slides.")
        p.add_argument("file", nargs="?", type=Path, help="Markdown file to convert (default: stdin)")
        p.add_argument("--user", "-u", default="default", help="Account to authorize as (token store key)")
        p.add_argument("--append", "-a", metavar="ID", help="Append slides to an existing presentation")
        p.add_argument("--erase", "-e", action="store_true", help="Erase existing slides before appending")
        p.add_argument("--style", "-s", help="Theme name (default, dark, …) or path to a .css file")
        p.add_argument("--highlight-style", help="Pygments style for code blocks (default, monokai, …)")
        p.add_argument("--title", "-t", help="Title of a newly created presentation")
        p.add_argument("--copy", "-c", metavar="ID", help="Copy this presentation and use it as the template")
        p.add_argument("--use-fileio", action="store_true", help="Upload local images to temporary public hosting")
        p.add_argument("--dry-run", action="store_true", help="Print the request batch as JSON and exit")
        p.add_argument("--no-browser", action="store_true", help="Do not open the presentation when done")
        p.add_argument("--keep-tmp", action="store_true", help="Keep rendered images after the run")
        p.add_argument("--debug", action="store_true", help="Enable verbose logging")
        p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
        return p

    args = _build_parser().parse_args(argv)
    if args.debug:
        logging.getLogger("md2gslides").setLevel(logging.DEBUG)

    if args.file:
        if not args.file.exists():
            logger.error(f"Markdown file '{args.file}' not found")
            sys.exit(1)
        markdown_text = args.file.read_text(encoding="utf-8")
        base_dir = args.file.resolve().parent
    else:
        markdown_text = sys.stdin.read()
        base_dir = Path.cwd()

    options = read_deck_options(markdown_text).override(
        style=args.style, highlight_style=args.highlight_style, title=args.title
    )

    if args.dry_run:
        slides = list(extract_slides(markdown_text, options=options, base_dir=base_dir))
        json.dump(build_requests(slides, {}), sys.stdout, indent=2)
        sys.stdout.write("\n")
        return

    try:
        credentials = get_credentials(args.user)
        if args.append:
            generator = SlideGenerator.for_presentation(credentials, args.append, debug=args.debug)
        elif args.copy:
            generator = SlideGenerator.copy_presentation(credentials, args.copy, options.title, debug=args.debug)
        else:
            generator = SlideGenerator.new_presentation(credentials, options.title, debug=args.debug)

        if args.erase or not args.append:
            generator.erase()

        presentation_id = asyncio.run(generator.generate_from_markdown(
            markdown_text,
            options=options,
            base_dir=base_dir,
            use_fileio=args.use_fileio,
            keep_tmp=args.keep_tmp,
        ))
    except Exception as exc:
        logger.error("Unable to generate slides: %s", exc)
        if args.debug:
            logger.exception(exc)
        sys.exit(1)

    url = PRESENTATION_URL.format(presentation_id)
    print(f"View your presentation at: {url}")
    if not args.no_browser:
        webbrowser.open(url)


if __name__ == "__main__":
    main()
