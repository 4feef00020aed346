"""
Data models for md2gslides.

These dataclasses are the intermediate representation between the Markdown
extractor and the Google Slides request generator.  All text offsets are
Python string indices (code points) into ``TextDefinition.raw_text``.
"""
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Iterator, List, Optional, Tuple


@dataclass(frozen=True)
class StyleDefinition:
    """
    A fixed set of character-level formatting effects.

    ``None`` means "not specified", so styles can be layered with :meth:`merge`.
    """
    bold: Optional[bool] = None
    italic: Optional[bool] = None
    underline: Optional[bool] = None
    strikethrough: Optional[bool] = None
    small_caps: Optional[bool] = None
    font_family: Optional[str] = None
    font_size: Optional[float] = None  # points
    foreground_color: Optional[Dict[str, Any]] = None
    background_color: Optional[Dict[str, Any]] = None
    link: Optional[str] = None
    baseline_offset: Optional[str] = None  # SUPERSCRIPT / SUBSCRIPT

    def merge(self, other: Optional["StyleDefinition"]) -> "StyleDefinition":
        """Return a copy of this style with every field set on *other* applied on top."""
        if other is None:
            return self
        updates = {
            f.name: getattr(other, f.name)
            for f in fields(other)
            if getattr(other, f.name) is not None
        }
        return replace(self, **updates) if updates else self

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def to_api(self) -> Dict[str, Any]:
        """Translate to a Slides API ``TextStyle`` object."""
        style: Dict[str, Any] = {}
        for key in ("bold", "italic", "underline", "strikethrough"):
            value = getattr(self, key)
            if value is not None:
                style[key] = value
        if self.small_caps is not None:
            style["smallCaps"] = self.small_caps
        if self.font_family is not None:
            style["fontFamily"] = self.font_family
        if self.font_size is not None:
            style["fontSize"] = {"magnitude": self.font_size, "unit": "PT"}
        if self.foreground_color is not None:
            style["foregroundColor"] = self.foreground_color
        if self.background_color is not None:
            style["backgroundColor"] = self.background_color
        if self.link is not None:
            style["link"] = {"url": self.link}
        if self.baseline_offset is not None:
            style["baselineOffset"] = self.baseline_offset
        return style

    # dict-valued fields make the generated hash unusable
    __hash__ = None  # type: ignore[assignment]


@dataclass
class TextRun:
    """A contiguous ``[start, end)`` span carrying one fixed style."""
    start: int
    end: int
    style: StyleDefinition


@dataclass
class ListMarker:
    """A ``[start, end)`` span of list paragraphs sharing one bullet preset."""
    start: int
    end: int
    kind: str  # "ordered" or "unordered"
    nesting_depth: int = 0


@dataclass
class TextDefinition:
    raw_text: str = ""
    text_runs: List[TextRun] = field(default_factory=list)
    list_markers: List[ListMarker] = field(default_factory=list)
    big: bool = False

    def is_empty(self) -> bool:
        return not self.raw_text

    def validate(self) -> None:
        """Raise ``ValueError`` if any range is out of bounds or ranges overlap."""
        length = len(self.raw_text)
        for label, ranges in (("text run", self.text_runs), ("list marker", self.list_markers)):
            previous_end = 0
            for r in sorted(ranges, key=lambda item: item.start):
                if not 0 <= r.start < r.end <= length:
                    raise ValueError(
                        f"{label} [{r.start}, {r.end}) outside text of length {length}"
                    )
                if r.start < previous_end:
                    raise ValueError(f"overlapping {label} at offset {r.start}")
                previous_end = r.end
        for marker in self.list_markers:
            if marker.kind not in ("ordered", "unordered"):
                raise ValueError(f"unknown list kind: {marker.kind}")


@dataclass
class ImageDefinition:
    """
    An image placed in a body or as the slide background.

    Either ``url`` is set, or ``source`` + ``type`` describe content that still
    has to be rasterized (``type`` is ``"svg"`` or ``"math"``).  Sizes and
    offsets are in CSS pixels.
    """
    url: Optional[str] = None
    source: Optional[str] = None
    type: Optional[str] = None
    width: Optional[float] = None
    height: Optional[float] = None
    padding: float = 0
    offset_x: float = 0
    offset_y: float = 0

    @property
    def is_deferred(self) -> bool:
        return self.url is None and self.source is not None


@dataclass
class VideoDefinition:
    id: str
    width: Optional[float] = None
    height: Optional[float] = None
    auto_play: bool = False


@dataclass
class BodyDefinition:
    images: List[ImageDefinition] = field(default_factory=list)
    videos: List[VideoDefinition] = field(default_factory=list)
    text: Optional[TextDefinition] = None

    def has_text(self) -> bool:
        return self.text is not None and not self.text.is_empty()

    def is_empty(self) -> bool:
        return not self.has_text() and not self.images and not self.videos


@dataclass
class TableDefinition:
    rows: int
    columns: int
    cells: List[List[TextDefinition]] = field(default_factory=list)

    def validate(self) -> None:
        if self.rows < 1 or self.columns < 1:
            raise ValueError(f"table must be at least 1x1, got {self.rows}x{self.columns}")
        if len(self.cells) != self.rows:
            raise ValueError(f"table declares {self.rows} rows but has {len(self.cells)}")
        for index, row in enumerate(self.cells):
            if len(row) != self.columns:
                raise ValueError(
                    f"table row {index} has {len(row)} cells, expected {self.columns}"
                )
            for cell in row:
                cell.validate()


@dataclass
class SlideDefinition:
    """One slide as extracted from the Markdown source."""
    object_id: str
    title: Optional[TextDefinition] = None
    subtitle: Optional[TextDefinition] = None
    notes: Optional[TextDefinition] = None
    bodies: List[BodyDefinition] = field(default_factory=list)
    tables: List[TableDefinition] = field(default_factory=list)
    background_image: Optional[ImageDefinition] = None

    def has_title(self) -> bool:
        return self.title is not None and not self.title.is_empty()

    def has_subtitle(self) -> bool:
        return self.subtitle is not None and not self.subtitle.is_empty()

    def has_body_text(self) -> bool:
        return any(body.has_text() for body in self.bodies)

    def has_media(self) -> bool:
        return any(body.images or body.videos for body in self.bodies)

    def is_empty(self) -> bool:
        return (
            not self.has_title()
            and not self.has_subtitle()
            and all(body.is_empty() for body in self.bodies)
            and not self.tables
            and self.background_image is None
        )

    def iter_images(self) -> Iterator[Tuple[Optional[BodyDefinition], ImageDefinition]]:
        """Yield ``(owning body or None for the background, image)`` pairs."""
        if self.background_image is not None:
            yield None, self.background_image
        for body in self.bodies:
            for image in body.images:
                yield body, image

    def validate(self) -> None:
        for text in (self.title, self.subtitle, self.notes):
            if text is not None:
                text.validate()
        for body in self.bodies:
            if body.text is not None:
                body.text.validate()
        for table in self.tables:
            table.validate()
