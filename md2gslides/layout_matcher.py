"""
Layout selection and placeholder binding.

A slide's content shape picks one of the standard Google Slides layouts
(``TITLE_AND_BODY``, ``TITLE_AND_TWO_COLUMNS``…).  The layout's placeholders
are then bound to deterministic object ids derived from the slide id, so the
same slide always binds to the same identifiers, before and after the page
exists.  Anything the template cannot provide gets a generated id and a
default box; the request generator creates a text box for it.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .models import SlideDefinition

logger = logging.getLogger(__name__)

DEFAULT_PAGE_WIDTH = 9144000   # EMU, 10in
DEFAULT_PAGE_HEIGHT = 5143500  # EMU, 16:9
EMU_PER_PT = 12700

TITLE = "TITLE"
SUBTITLE = "SUBTITLE"
BODY = "BODY"

_TITLE_TYPES = ("TITLE", "CENTERED_TITLE")


class BindingStatus(enum.Enum):
    BOUND = "bound"
    PARTIALLY_BOUND = "partially_bound"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class Box:
    """Axis-aligned rectangle in EMU."""
    x: float
    y: float
    width: float
    height: float

    def split_columns(self, count: int, gap: float = 0) -> List["Box"]:
        if count <= 1:
            return [self]
        width = (self.width - gap * (count - 1)) / count
        return [Box(self.x + i * (width + gap), self.y, width, self.height) for i in range(count)]

    def lower(self, fraction: float) -> "Box":
        """Bottom *fraction* of the box."""
        height = self.height * fraction
        return Box(self.x, self.y + self.height - height, self.width, height)


@dataclass
class BoundPlaceholder:
    key: str
    object_id: str
    box: Box
    # id of the layout placeholder this maps to; None when no template element exists
    layout_placeholder_id: Optional[str] = None
    # element already present on the page
    exists: bool = False


@dataclass
class BoundLayout:
    slide_id: str
    layout_name: str
    status: BindingStatus
    layout_id: Optional[str] = None
    predefined_layout: Optional[str] = None
    placeholders: Dict[str, BoundPlaceholder] = field(default_factory=dict)
    missing: List[str] = field(default_factory=list)
    notes_id: Optional[str] = None
    page_exists: bool = False
    page_size: Tuple[float, float] = (DEFAULT_PAGE_WIDTH, DEFAULT_PAGE_HEIGHT)

    def object_id(self, key: str) -> Optional[str]:
        placeholder = self.placeholders.get(key)
        return placeholder.object_id if placeholder else None

    def box(self, key: str) -> Optional[Box]:
        placeholder = self.placeholders.get(key)
        return placeholder.box if placeholder else None

    def placeholder_id_mappings(self) -> List[Dict]:
        mappings = []
        for placeholder in self.placeholders.values():
            if placeholder.layout_placeholder_id and not placeholder.exists:
                mappings.append({
                    "layoutPlaceholderObjectId": placeholder.layout_placeholder_id,
                    "objectId": placeholder.object_id,
                })
        return mappings

    def shapes_to_create(self) -> List[BoundPlaceholder]:
        """Placeholders with text content that neither the template nor the page provides."""
        return [
            self.placeholders[key]
            for key in self.missing
            if key in self.placeholders and not self.placeholders[key].exists
        ]


@dataclass
class LayoutRule:
    """One content-shape rule; rules are tried in ascending priority."""
    name: str
    layout: str
    priority: int
    condition: Callable[[SlideDefinition], bool]


def _big_title(slide: SlideDefinition) -> bool:
    return slide.has_title() and slide.title.big


def _only_title(slide: SlideDefinition) -> bool:
    return (
        slide.has_title()
        and not slide.has_subtitle()
        and not slide.bodies
        and not slide.tables
    )


LAYOUT_RULES: List[LayoutRule] = sorted([
    LayoutRule("table", "TITLE_ONLY", 10, lambda s: bool(s.tables)),
    LayoutRule(
        "background",
        "BLANK",
        20,
        lambda s: s.background_image is not None and not s.has_title() and not s.has_body_text(),
    ),
    LayoutRule("two-columns", "TITLE_AND_TWO_COLUMNS", 30, lambda s: len(s.bodies) >= 2),
    LayoutRule(
        "title-slide",
        "TITLE",
        40,
        lambda s: s.has_title() and s.has_subtitle() and not s.bodies,
    ),
    LayoutRule("main-point", "MAIN_POINT", 50, lambda s: _only_title(s) and _big_title(s)),
    LayoutRule("section-header", "SECTION_HEADER", 60, _only_title),
    LayoutRule(
        "big-number",
        "BIG_NUMBER",
        70,
        lambda s: not s.has_title()
        and len(s.bodies) == 1
        and s.bodies[0].has_text()
        and s.bodies[0].text.big,
    ),
    LayoutRule(
        "section-description",
        "SECTION_TITLE_AND_DESCRIPTION",
        80,
        lambda s: s.has_title() and s.has_subtitle() and s.has_body_text(),
    ),
    LayoutRule("title-and-body", "TITLE_AND_BODY", 90, lambda s: s.has_title() and s.has_body_text()),
    LayoutRule("title-and-media", "TITLE_ONLY", 100, lambda s: s.has_title() and s.has_media()),
], key=lambda rule: rule.priority)


def body_key(index: int) -> str:
    return BODY if index == 0 else f"{BODY}-{index + 1}"


def placeholder_object_id(slide_id: str, key: str) -> str:
    """Deterministic element id for a logical placeholder of *slide_id*."""
    if key == TITLE:
        return f"{slide_id}-title"
    if key == SUBTITLE:
        return f"{slide_id}-subtitle"
    if key == BODY:
        return f"{slide_id}-element"
    if key.startswith(f"{BODY}-"):
        return f"{slide_id}-element-{key.split('-', 1)[1]}"
    raise ValueError(f"unknown placeholder key: {key}")


def select_layout(slide: SlideDefinition) -> str:
    for rule in LAYOUT_RULES:
        if rule.condition(slide):
            logger.debug("Slide %s matched layout rule %s", slide.object_id, rule.name)
            return rule.layout
    return "BLANK"


def _magnitude(dimension: Optional[Dict], default: float) -> float:
    if not dimension or "magnitude" not in dimension:
        return default
    if dimension.get("unit") == "PT":
        return dimension["magnitude"] * EMU_PER_PT
    return dimension["magnitude"]


def page_size(presentation: Dict) -> Tuple[float, float]:
    size = presentation.get("pageSize") or {}
    return (
        _magnitude(size.get("width"), DEFAULT_PAGE_WIDTH),
        _magnitude(size.get("height"), DEFAULT_PAGE_HEIGHT),
    )


def element_box(element: Dict) -> Optional[Box]:
    """Bounding box of a page element, or ``None`` if it has no size."""
    size = element.get("size")
    if not size:
        return None
    transform = element.get("transform") or {}
    factor = EMU_PER_PT if transform.get("unit") == "PT" else 1
    width = _magnitude(size.get("width"), 0) * transform.get("scaleX", 1)
    height = _magnitude(size.get("height"), 0) * transform.get("scaleY", 1)
    return Box(
        transform.get("translateX", 0) * factor,
        transform.get("translateY", 0) * factor,
        width,
        height,
    )


class LayoutMatcher:
    """
    Bind slides against the layout catalog of one presentation.

    The presentation is the ``presentations.get`` response and is treated as
    read-only.  :meth:`match` is a pure function of the slide and that data.
    """

    def __init__(self, presentation: Dict):
        self.presentation = presentation
        self.page_size = page_size(presentation)
        self._layouts = {
            layout.get("layoutProperties", {}).get("name"): layout
            for layout in presentation.get("layouts", [])
        }
        self._pages = {page["objectId"]: page for page in presentation.get("slides", [])}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def match(self, slide: SlideDefinition) -> BoundLayout:
        layout_name = select_layout(slide)
        layout = self._layouts.get(layout_name)
        status = BindingStatus.BOUND
        predefined = None

        if layout is None:
            logger.info(
                "Layout %s not in presentation; slide %s falls back to BLANK",
                layout_name, slide.object_id,
            )
            status = BindingStatus.FALLBACK
            layout = self._layouts.get("BLANK")
            if layout is None:
                predefined = "BLANK"

        bound = BoundLayout(
            slide_id=slide.object_id,
            layout_name=layout_name,
            status=status,
            layout_id=layout["objectId"] if layout else None,
            predefined_layout=predefined,
            page_size=self.page_size,
        )

        page = self._pages.get(slide.object_id)
        if page is not None:
            bound.page_exists = True
            bound.layout_id = page.get("slideProperties", {}).get("layoutObjectId", bound.layout_id)
            bound.notes_id = (
                page.get("slideProperties", {})
                .get("notesPage", {})
                .get("notesProperties", {})
                .get("speakerNotesObjectId")
            )

        template = self._template_placeholders(layout)
        page_elements = {e["objectId"]: e for e in (page or {}).get("pageElements", [])}
        for key, has_text in self._required_keys(slide):
            self._bind(bound, key, has_text, template, page_elements, slide)

        if bound.missing and bound.status is BindingStatus.BOUND:
            bound.status = BindingStatus.PARTIALLY_BOUND
        if bound.missing:
            logger.debug("Slide %s: no template placeholder for %s", slide.object_id, bound.missing)
        return bound

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _required_keys(slide: SlideDefinition) -> List[Tuple[str, bool]]:
        keys = []
        if slide.title is not None:
            keys.append((TITLE, slide.has_title()))
        if slide.subtitle is not None:
            keys.append((SUBTITLE, slide.has_subtitle()))
        for index, body in enumerate(slide.bodies):
            keys.append((body_key(index), body.has_text()))
        if slide.tables and not slide.bodies:
            # tables are positioned in the first body region
            keys.append((BODY, False))
        return keys

    @staticmethod
    def _template_placeholders(layout: Optional[Dict]) -> Dict[str, Tuple[str, Optional[Box]]]:
        """Map logical keys to ``(layout element id, box)`` for a layout page."""
        found: Dict[str, Tuple[str, Optional[Box]]] = {}
        bodies = []
        for element in (layout or {}).get("pageElements", []):
            placeholder = element.get("shape", {}).get("placeholder")
            if not placeholder:
                continue
            kind = placeholder.get("type")
            if kind in _TITLE_TYPES and TITLE not in found:
                found[TITLE] = (element["objectId"], element_box(element))
            elif kind == "SUBTITLE" and SUBTITLE not in found:
                found[SUBTITLE] = (element["objectId"], element_box(element))
            elif kind == "BODY":
                bodies.append((placeholder.get("index", 0), element))
        bodies.sort(key=lambda item: (item[0], (element_box(item[1]) or Box(0, 0, 0, 0)).x))
        for index, (_, element) in enumerate(bodies):
            found[body_key(index)] = (element["objectId"], element_box(element))
        return found

    def default_box(self, key: str, slide: SlideDefinition) -> Box:
        width, height = self.page_size
        margin = width * 0.05
        inner = width - 2 * margin
        if key == TITLE:
            return Box(margin, height * 0.05, inner, height * 0.15)
        if key == SUBTITLE:
            return Box(margin, height * 0.22, inner, height * 0.1)
        top = height * 0.35 if slide.has_subtitle() else height * 0.25
        region = Box(margin, top, inner, height * 0.93 - top)
        count = max(len(slide.bodies), 1)
        index = 0 if key == BODY else int(key.split("-", 1)[1]) - 1
        return region.split_columns(count, gap=margin / 2)[min(index, count - 1)]

    def _bind(
        self,
        bound: BoundLayout,
        key: str,
        has_text: bool,
        template: Dict[str, Tuple[str, Optional[Box]]],
        page_elements: Dict[str, Dict],
        slide: SlideDefinition,
    ) -> None:
        object_id = placeholder_object_id(slide.object_id, key)
        layout_id, box = template.get(key, (None, None))

        existing = page_elements.get(object_id)
        if existing is not None:
            bound.placeholders[key] = BoundPlaceholder(
                key,
                object_id,
                element_box(existing) or box or self.default_box(key, slide),
                layout_placeholder_id=layout_id,
                exists=True,
            )
            return

        bound.placeholders[key] = BoundPlaceholder(
            key,
            object_id,
            box or self.default_box(key, slide),
            layout_placeholder_id=layout_id,
        )
        if layout_id is None and has_text:
            bound.missing.append(key)
