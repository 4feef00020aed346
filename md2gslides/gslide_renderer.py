"""Google Slides request generation for md2gslides.

Turns a bound :class:`~md2gslides.models.SlideDefinition` into the ordered
list of ``batchUpdate`` requests that builds it:

- page creation (``createSlide`` with placeholder id mappings) and text
  boxes for placeholders the layout does not provide,
- background, title, subtitle and body text, each inserted in full before
  any style or bullet range targets it,
- images, videos and tables placed inside the body boxes,
- speaker notes, once the notes shape id is known.

Design notes
------------
1.  Creation and content are separate request lists.  Speaker notes ids are
    assigned by the service, so content for an existing page is generated
    after re-reading the presentation.
2.  Text offsets in the model are code points; the API counts UTF-16 code
    units, so every index is converted here.
3.  ``createParagraphBullets`` strips the leading tabs that encode nesting.
    Later bullet ranges in the same shape are shifted by the tabs removed
    by earlier ones.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Union

from .layout_matcher import (
    BODY,
    DEFAULT_PAGE_WIDTH,
    EMU_PER_PT,
    SUBTITLE,
    TITLE,
    BoundLayout,
    Box,
    body_key,
)
from .models import (
    ImageDefinition,
    ListMarker,
    SlideDefinition,
    TableDefinition,
    TextDefinition,
    VideoDefinition,
)

logger = logging.getLogger(__name__)

EMU_PER_PX = 9525
BULLET_PRESETS = {
    "unordered": "BULLET_DISC_CIRCLE_SQUARE",
    "ordered": "NUMBERED_DIGIT_ALPHA_ROMAN",
}
BIG_FONT_MIN_PT = 24
BIG_FONT_MAX_PT = 120
# share of the body box given to media when the body also has text
MEDIA_SHARE_WITH_TEXT = 0.5


def _utf16_offsets(text: str) -> List[int]:
    """``offsets[i]`` is the UTF-16 index of code point ``i``; one extra entry for the end."""
    offsets = [0]
    total = 0
    for char in text:
        total += 2 if ord(char) > 0xFFFF else 1
        offsets.append(total)
    return offsets


def _leading_tabs(text: str, start: int, end: int) -> int:
    """Number of paragraph-leading tab characters in ``text[start:end]``."""
    count = 0
    at_line_start = True
    for char in text[start:end]:
        if at_line_start and char == "\t":
            count += 1
            continue
        at_line_start = char == "\n"
    return count


class GSlideRenderer:
    """Build Slides API requests for bound slides.

    The renderer holds no per-slide state; every method is safe to call from
    several threads at once.
    """

    def __init__(self, *, debug: bool = False) -> None:
        self.debug = debug

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate(self, bound: BoundLayout, slide: SlideDefinition) -> List[Dict]:
        """All requests for one slide: creation followed by content."""
        return self.creation_requests(bound) + self.content_requests(bound, slide)

    def creation_requests(self, bound: BoundLayout) -> List[Dict]:
        """Create the page and any text boxes the layout cannot provide."""
        if bound.page_exists:
            return []

        if bound.layout_id:
            layout_reference = {"layoutId": bound.layout_id}
        else:
            layout_reference = {"predefinedLayout": bound.predefined_layout or "BLANK"}

        create_slide: Dict = {
            "objectId": bound.slide_id,
            "slideLayoutReference": layout_reference,
        }
        mappings = bound.placeholder_id_mappings()
        if mappings:
            create_slide["placeholderIdMappings"] = mappings
        requests: List[Dict] = [{"createSlide": create_slide}]

        for placeholder in bound.shapes_to_create():
            if self.debug:
                logger.info("Slide %s: creating text box %s", bound.slide_id, placeholder.object_id)
            requests.append({
                "createShape": {
                    "objectId": placeholder.object_id,
                    "shapeType": "TEXT_BOX",
                    "elementProperties": self._create_element_properties(placeholder.box, bound.slide_id),
                }
            })
        return requests

    def content_requests(self, bound: BoundLayout, slide: SlideDefinition) -> List[Dict]:
        """Fill a created page with the slide's content."""
        requests: List[Dict] = []

        if slide.background_image is not None:
            requests.extend(self._background_requests(bound.slide_id, slide.background_image))

        for key, text in ((TITLE, slide.title), (SUBTITLE, slide.subtitle)):
            if text is not None and not text.is_empty():
                requests.extend(self._text_requests(bound.object_id(key), text, box=bound.box(key)))

        for index, body in enumerate(slide.bodies):
            key = body_key(index)
            box = bound.box(key)
            if body.has_text():
                requests.extend(self._text_requests(bound.object_id(key), body.text, box=box))
            media: List[Union[ImageDefinition, VideoDefinition]] = [*body.images, *body.videos]
            if media and box is not None:
                media_box = box.lower(MEDIA_SHARE_WITH_TEXT) if body.has_text() else box
                requests.extend(self._media_requests(bound.slide_id, media, media_box))

        if slide.tables:
            requests.extend(self._table_requests(bound, slide))

        if slide.notes is not None and not slide.notes.is_empty():
            if bound.notes_id:
                requests.extend(self._text_requests(bound.notes_id, slide.notes))
            else:
                logger.info("Slide %s: speaker notes id not known yet; skipping notes", bound.slide_id)

        return requests

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def _text_requests(
        self,
        object_id: Optional[str],
        text: TextDefinition,
        *,
        box: Optional[Box] = None,
        cell: Optional[Dict] = None,
    ) -> List[Dict]:
        if object_id is None or text.is_empty():
            return []
        offsets = _utf16_offsets(text.raw_text)

        def _target() -> Dict:
            target: Dict = {"objectId": object_id}
            if cell is not None:
                target["cellLocation"] = dict(cell)
            return target

        requests: List[Dict] = [{
            "insertText": {**_target(), "insertionIndex": 0, "text": text.raw_text}
        }]

        if text.big and cell is None:
            requests.extend(self._big_text_requests(object_id, text, box))

        for run in sorted(text.text_runs, key=lambda r: r.start):
            style = run.style.to_api()
            if not style:
                continue
            requests.append({
                "updateTextStyle": {
                    **_target(),
                    "textRange": {
                        "type": "FIXED_RANGE",
                        "startIndex": offsets[run.start],
                        "endIndex": offsets[run.end],
                    },
                    "style": style,
                    "fields": ",".join(style.keys()),
                }
            })

        requests.extend(self._bullet_requests(_target, text.raw_text, text.list_markers, offsets))
        return requests

    def _bullet_requests(
        self,
        target,
        raw_text: str,
        markers: Sequence[ListMarker],
        offsets: List[int],
    ) -> List[Dict]:
        requests = []
        removed = 0
        for marker in sorted(markers, key=lambda m: m.start):
            requests.append({
                "createParagraphBullets": {
                    **target(),
                    "textRange": {
                        "type": "FIXED_RANGE",
                        "startIndex": offsets[marker.start] - removed,
                        "endIndex": offsets[marker.end] - removed,
                    },
                    "bulletPreset": BULLET_PRESETS[marker.kind],
                }
            })
            removed += _leading_tabs(raw_text, marker.start, marker.end)
        return requests

    def _big_text_requests(self, object_id: str, text: TextDefinition, box: Optional[Box]) -> List[Dict]:
        longest = max((len(line) for line in text.raw_text.replace("\u000b", "\n").split("\n")), default=1)
        width_pt = (box.width if box else DEFAULT_PAGE_WIDTH * 0.9) / EMU_PER_PT
        font_size = width_pt / (max(longest, 1) * 0.6)
        font_size = float(int(min(max(font_size, BIG_FONT_MIN_PT), BIG_FONT_MAX_PT)))
        return [
            {
                "updateTextStyle": {
                    "objectId": object_id,
                    "textRange": {"type": "ALL"},
                    "style": {"fontSize": {"magnitude": font_size, "unit": "PT"}},
                    "fields": "fontSize",
                }
            },
            {
                "updateParagraphStyle": {
                    "objectId": object_id,
                    "textRange": {"type": "ALL"},
                    "style": {"alignment": "CENTER"},
                    "fields": "alignment",
                }
            },
        ]

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    def _background_requests(self, slide_id: str, image: ImageDefinition) -> List[Dict]:
        if not image.url:
            logger.warning("Slide %s: background image was never resolved; skipping", slide_id)
            return []
        return [{
            "updatePageProperties": {
                "objectId": slide_id,
                "pageProperties": {
                    "pageBackgroundFill": {"stretchedPictureFill": {"contentUrl": image.url}}
                },
                "fields": "pageBackgroundFill.stretchedPictureFill.contentUrl",
            }
        }]

    def _media_requests(
        self,
        slide_id: str,
        media: Sequence[Union[ImageDefinition, VideoDefinition]],
        box: Box,
    ) -> List[Dict]:
        requests: List[Dict] = []
        slots = box.split_columns(len(media), gap=box.width * 0.02)
        image_count = 0
        video_count = 0
        for item, slot in zip(media, slots):
            if isinstance(item, ImageDefinition):
                if not item.url:
                    logger.warning("Slide %s: image was never resolved; skipping", slide_id)
                    continue
                image_count += 1
                requests.append({
                    "createImage": {
                        "objectId": f"{slide_id}-image-{image_count}",
                        "url": item.url,
                        "elementProperties": self._create_element_properties(
                            self._fit(item.width, item.height, slot, item), slide_id
                        ),
                    }
                })
            else:
                video_count += 1
                object_id = f"{slide_id}-video-{video_count}"
                width, height = item.width, item.height
                if width is None and height is None:
                    width, height = 1600, 900
                requests.append({
                    "createVideo": {
                        "objectId": object_id,
                        "source": "YOUTUBE",
                        "id": item.id,
                        "elementProperties": self._create_element_properties(
                            self._fit(width, height, slot), slide_id
                        ),
                    }
                })
                if item.auto_play:
                    requests.append({
                        "updateVideoProperties": {
                            "objectId": object_id,
                            "videoProperties": {"autoPlay": True},
                            "fields": "autoPlay",
                        }
                    })
        return requests

    @staticmethod
    def _fit(
        width_px: Optional[float],
        height_px: Optional[float],
        slot: Box,
        image: Optional[ImageDefinition] = None,
    ) -> Box:
        """Scale a pixel size into *slot* keeping the aspect ratio, centred plus offsets."""
        pad = (image.padding if image else 0) * EMU_PER_PX
        area = Box(slot.x + pad, slot.y + pad, max(slot.width - 2 * pad, 1), max(slot.height - 2 * pad, 1))

        if width_px and height_px:
            width, height = width_px * EMU_PER_PX, height_px * EMU_PER_PX
            scale = min(area.width / width, area.height / height)
            width, height = width * scale, height * scale
        elif width_px:
            width, height = min(width_px * EMU_PER_PX, area.width), area.height
        elif height_px:
            width, height = area.width, min(height_px * EMU_PER_PX, area.height)
        else:
            width, height = area.width, area.height

        x = area.x + (area.width - width) / 2
        y = area.y + (area.height - height) / 2
        if image is not None:
            x += image.offset_x * EMU_PER_PX
            y += image.offset_y * EMU_PER_PX
        return Box(x, y, width, height)

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def _table_requests(self, bound: BoundLayout, slide: SlideDefinition) -> List[Dict]:
        box = bound.box(BODY)
        if box is None:
            return []
        if slide.has_body_text():
            box = box.lower(MEDIA_SHARE_WITH_TEXT)
        requests: List[Dict] = []
        slots = box.split_columns(len(slide.tables), gap=box.width * 0.02)
        for number, (table, slot) in enumerate(zip(slide.tables, slots), start=1):
            requests.extend(self._create_table_requests(f"{bound.slide_id}-table-{number}", table, slot, bound.slide_id))
        return requests

    def _create_table_requests(self, object_id: str, table: TableDefinition, box: Box, slide_id: str) -> List[Dict]:
        requests: List[Dict] = [{
            "createTable": {
                "objectId": object_id,
                "elementProperties": self._create_element_properties(box, slide_id),
                "rows": table.rows,
                "columns": table.columns,
            }
        }]
        if self.debug:
            logger.info("Table %s: %sx%s", object_id, table.rows, table.columns)

        # Row-major so every cell's text lands before its styles
        for row_index, row in enumerate(table.cells):
            for column_index, cell in enumerate(row):
                requests.extend(self._text_requests(
                    object_id, cell, cell={"rowIndex": row_index, "columnIndex": column_index}
                ))
        return requests

    # ------------------------------------------------------------------
    # Geometry helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _create_element_properties(box: Box, slide_id: str) -> Dict:
        """Create standard element properties for Google Slides shapes."""
        return {
            "pageObjectId": slide_id,
            "size": {
                "width": {"magnitude": round(box.width), "unit": "EMU"},
                "height": {"magnitude": round(box.height), "unit": "EMU"},
            },
            "transform": {
                "scaleX": 1,
                "scaleY": 1,
                "translateX": round(box.x),
                "translateY": round(box.y),
                "unit": "EMU",
            },
        }
