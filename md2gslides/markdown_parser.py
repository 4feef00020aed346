"""
Markdown → SlideDefinition extraction.

The document is tokenized once with markdown-it-py and the block token
stream is walked in order.  A slide accumulates titles, body columns,
tables, media and speaker notes until a slide boundary is reached, at which
point it is finalized and yielded.
"""
import logging
import re
import uuid
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup
from markdown_it import MarkdownIt
from markdown_it.token import Token
from mdit_py_plugins.attrs import attrs_plugin
from mdit_py_plugins.dollarmath import dollarmath_plugin
from mdit_py_plugins.front_matter import front_matter_plugin

from .config import DeckOptions
from .css_utils import StyleSheet, parse_inline_style
from .highlight import highlight
from .markdown_plugins.speaker_notes import speaker_notes_plugin
from .markdown_plugins.video import parse_attr_list, video_plugin, youtube_id
from .models import (
    BodyDefinition,
    ImageDefinition,
    SlideDefinition,
    StyleDefinition,
    TableDefinition,
    TextDefinition,
    VideoDefinition,
)
from .paths import resolve_image_url
from .text_builder import TextBuilder

logger = logging.getLogger(__name__)

MONOSPACE = StyleDefinition(font_family="Courier New")
BOLD = StyleDefinition(bold=True)
ITALIC = StyleDefinition(italic=True)

# Inline markdown tokens that open/close a style marker
_MARKDOWN_STYLES = {
    "em": ITALIC,
    "strong": BOLD,
    "s": StyleDefinition(strikethrough=True),
}

# Inline HTML tags understood inside paragraphs; ``None`` = style from attributes only
_HTML_STYLES: Dict[str, Optional[StyleDefinition]] = {
    "b": BOLD,
    "strong": BOLD,
    "i": ITALIC,
    "em": ITALIC,
    "u": StyleDefinition(underline=True),
    "s": StyleDefinition(strikethrough=True),
    "del": StyleDefinition(strikethrough=True),
    "strike": StyleDefinition(strikethrough=True),
    "code": MONOSPACE,
    "sup": StyleDefinition(baseline_offset="SUPERSCRIPT"),
    "sub": StyleDefinition(baseline_offset="SUBSCRIPT"),
    "small": StyleDefinition(small_caps=True),
    "span": None,
    "a": None,
}

_DIMENSION_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*(?:px)?\s*$", re.IGNORECASE)
_ATTRS_ONLY_RE = re.compile(r"^\{([^{}]*)\}$")
_TRAILING_ATTRS_RE = re.compile(r"\s*\{([^{}]*)\}\s*$")
_HTML_TAG_RE = re.compile(r"^<(/)?([A-Za-z][A-Za-z0-9-]*)\b[^>]*?(/)?>$", re.DOTALL)
_HTML_COMMENT_RE = re.compile(r"<!--(.*?)-->", re.DOTALL)
_STYLE_BLOCK_RE = re.compile(r"^\s*<style\b", re.IGNORECASE)


def create_parser() -> MarkdownIt:
    """markdown-it-py instance with every syntax extension the extractor understands."""
    return (
        MarkdownIt("commonmark", {"html": True, "typographer": False})
        .enable(["table", "strikethrough"])
        .use(front_matter_plugin)              # YAML deck options
        .use(attrs_plugin, spans=True)         # ![](x){.background}  [text]{.highlight}
        .use(dollarmath_plugin, double_inline=False)
        .use(speaker_notes_plugin)             # ??? note lines
        .use(video_plugin)                     # @[youtube](id)
    )


def _classes(attrs: Dict) -> List[str]:
    return str(attrs.get("class") or "").split()


def _px(value, default=None):
    if value is None:
        return default
    match = _DIMENSION_RE.match(str(value))
    if not match:
        logger.warning("Ignoring non-numeric image dimension %r", value)
        return default
    return float(match.group(1))


def _split_trailing_attrs(children: Sequence[Token]) -> Tuple[List[Token], Dict[str, str]]:
    """Strip a trailing ``{...}`` attribute list from heading inline content."""
    children = list(children)
    if not children or children[-1].type != "text":
        return children, {}
    match = _TRAILING_ATTRS_RE.search(children[-1].content)
    if not match:
        return children, {}
    children[-1] = Token("text", "", 0, content=children[-1].content[: match.start()])
    return children, parse_attr_list(match.group(1))


class _SlideState:
    """Content accumulated for the slide currently being built."""

    def __init__(self) -> None:
        self.title: Optional[TextBuilder] = None
        self.subtitle: Optional[TextBuilder] = None
        self.notes = TextBuilder()
        self.bodies: List[Tuple[BodyDefinition, TextBuilder]] = []
        self.tables: List[TableDefinition] = []
        self.background_image: Optional[ImageDefinition] = None

    def body(self) -> Tuple[BodyDefinition, TextBuilder]:
        if not self.bodies:
            self.new_body()
        return self.bodies[-1]

    def new_body(self) -> None:
        self.bodies.append((BodyDefinition(), TextBuilder()))

    def has_title(self) -> bool:
        return self.title is not None and not self.title.is_empty()

    def has_subtitle(self) -> bool:
        return self.subtitle is not None and not self.subtitle.is_empty()

    def has_body_content(self) -> bool:
        if self.tables:
            return True
        return any(
            not builder.is_empty() or body.images or body.videos
            for body, builder in self.bodies
        )

    def has_content(self) -> bool:
        return (
            self.has_title()
            or self.has_subtitle()
            or self.has_body_content()
            or self.background_image is not None
        )

    def finish(self, object_id: str) -> SlideDefinition:
        slide = SlideDefinition(object_id=object_id)
        if self.has_title():
            slide.title = self.title.build(strip_trailing_newline=True)
        if self.has_subtitle():
            slide.subtitle = self.subtitle.build(strip_trailing_newline=True)
        if not self.notes.is_empty():
            slide.notes = self.notes.build(strip_trailing_newline=True)
        for body, builder in self.bodies:
            if not builder.is_empty():
                body.text = builder.build()
            if not body.is_empty():
                slide.bodies.append(body)
        slide.tables = list(self.tables)
        slide.background_image = self.background_image
        return slide


class SlideExtractor:
    """
    Convert Markdown into :class:`SlideDefinition` objects.

    A fresh extractor state is used for every call to :meth:`extract`; the
    returned iterator is lazy and can only be consumed once.
    """

    def __init__(
        self,
        *,
        stylesheet: Optional[StyleSheet] = None,
        options: Optional[DeckOptions] = None,
        base_dir: Optional[Path] = None,
        id_prefix: Optional[str] = None,
    ):
        self.options = options or DeckOptions()
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()
        self.id_prefix = id_prefix or uuid.uuid4().hex[:8]
        self._stylesheet = stylesheet
        self.md = create_parser()

        self._handlers: Dict[str, Callable[[int], int]] = {
            "heading_open": self._heading,
            "paragraph_open": self._paragraph,
            "bullet_list_open": self._list_open,
            "ordered_list_open": self._list_open,
            "bullet_list_close": self._list_close,
            "ordered_list_close": self._list_close,
            "list_item_open": self._list_item_open,
            "list_item_close": self._list_item_close,
            "blockquote_open": self._blockquote_open,
            "blockquote_close": self._blockquote_close,
            "fence": self._code,
            "code_block": self._code,
            "math_block": self._math_block,
            "math_block_label": self._math_block,
            "hr": self._hr,
            "table_open": self._table,
            "html_block": self._html_block,
            "speaker_note": self._speaker_note,
            "front_matter": self._skip,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract(self, markdown_text: str) -> Iterator[SlideDefinition]:
        tokens = self.md.parse(markdown_text)
        if tokens and tokens[0].type == "front_matter":
            self.options = DeckOptions.from_front_matter(tokens[0].content, self.options)

        self.stylesheet = self._initial_stylesheet()
        self._tokens = tokens
        self._state = _SlideState()
        self._notes_depth = 0
        self._slide_count = 0
        self._ready: List[SlideDefinition] = []

        index = 0
        while index < len(tokens):
            token = tokens[index]
            handler = self._handlers.get(token.type)
            if handler is None:
                logger.debug("Ignoring %s token", token.type)
                index += 1
            else:
                index = handler(index)
            while self._ready:
                yield self._ready.pop(0)

        self._flush()
        while self._ready:
            yield self._ready.pop(0)

    # ------------------------------------------------------------------
    # Slide bookkeeping
    # ------------------------------------------------------------------

    def _initial_stylesheet(self) -> StyleSheet:
        if self._stylesheet is not None:
            return self._stylesheet.copy()
        try:
            return StyleSheet.for_theme(self.options.style)
        except (FileNotFoundError, ValueError) as exc:
            logger.warning("%s; continuing without a stylesheet", exc)
            return StyleSheet()

    def _flush(self) -> None:
        state = self._state
        self._state = _SlideState()
        if not state.has_content():
            if not state.notes.is_empty():
                logger.warning("Dropping speaker notes that belong to no slide content")
            return
        slide = state.finish(f"md-{self.id_prefix}-{self._slide_count}")
        self._slide_count += 1
        slide.validate()
        self._ready.append(slide)

    def _text_target(self) -> TextBuilder:
        if self._notes_depth:
            return self._state.notes
        return self._state.body()[1]

    # ------------------------------------------------------------------
    # Block handlers: each receives the token index and returns the next one
    # ------------------------------------------------------------------

    def _skip(self, index: int) -> int:
        return index + 1

    def _heading(self, index: int) -> int:
        token = self._tokens[index]
        level = int(token.tag[1:])
        inline = self._tokens[index + 1]
        children, attrs = _split_trailing_attrs(inline.children or [])
        big = "big" in _classes(attrs)
        sheet_style = self.stylesheet.style_for(token.tag)
        state = self._state

        if self._notes_depth:
            notes = state.notes
            notes.start_paragraph()
            notes.start_style("heading", BOLD)
            self._inline(children, notes, allow_media=False)
            notes.end_style("heading")
            notes.end_paragraph()
        elif level == 1:
            if self.options.slide_separator == "hr":
                if state.has_title():
                    self._flush()
            elif state.has_content():
                self._flush()
            builder = TextBuilder()
            builder.start_style("heading", sheet_style)
            self._inline(children, builder)
            builder.end_style("heading")
            builder.big = big
            if self._state.has_title():
                logger.debug("Replacing slide title")
            self._state.title = builder
        elif level == 2 and state.has_title() and not state.has_subtitle() and not state.has_body_content():
            builder = TextBuilder()
            builder.start_style("heading", sheet_style)
            self._inline(children, builder)
            builder.end_style("heading")
            builder.big = big
            state.subtitle = builder
        else:
            builder = state.body()[1]
            builder.start_paragraph()
            builder.start_style("heading", BOLD.merge(sheet_style))
            self._inline(children, builder)
            builder.end_style("heading")
            builder.end_paragraph()
            if big:
                builder.big = True

        return index + 3

    def _paragraph(self, index: int) -> int:
        inline = self._tokens[index + 1]
        attrs_only = _ATTRS_ONLY_RE.match(inline.content.strip())
        if attrs_only and not self._notes_depth:
            self._block_attributes(parse_attr_list(attrs_only.group(1)))
            return index + 3

        builder = self._text_target()
        builder.start_paragraph()
        self._inline(inline.children or [], builder, allow_media=not self._notes_depth)
        builder.end_paragraph()
        return index + 3

    def _block_attributes(self, attrs: Dict[str, str]) -> None:
        for name in _classes(attrs):
            if name == "column":
                self._state.new_body()
            elif name == "big":
                self._state.body()[1].big = True
            else:
                logger.debug("Ignoring unknown block class .%s", name)

    def _list_open(self, index: int) -> int:
        kind = "ordered" if self._tokens[index].type == "ordered_list_open" else "unordered"
        self._text_target().start_list(kind)
        return index + 1

    def _list_close(self, index: int) -> int:
        self._text_target().end_list()
        return index + 1

    def _list_item_open(self, index: int) -> int:
        self._text_target().start_list_item()
        return index + 1

    def _list_item_close(self, index: int) -> int:
        self._text_target().end_list_item()
        return index + 1

    def _blockquote_open(self, index: int) -> int:
        self._notes_depth += 1
        return index + 1

    def _blockquote_close(self, index: int) -> int:
        self._notes_depth = max(self._notes_depth - 1, 0)
        return index + 1

    def _code(self, index: int) -> int:
        token = self._tokens[index]
        info = token.info.strip().split()
        language = info[0].lower() if info else ""
        if language in ("svg", "math") and not self._notes_depth:
            self._add_image(ImageDefinition(source=token.content, type=language))
            return index + 1

        builder = self._text_target()
        builder.start_paragraph()
        builder.start_style("pre", MONOSPACE.merge(self.stylesheet.style_for("pre")))
        for text, style in highlight(token.content, language, self.options.highlight_style):
            builder.styled("token", style, text)
        builder.end_style("pre")
        builder.end_paragraph()
        return index + 1

    def _math_block(self, index: int) -> int:
        latex = self._tokens[index].content.strip()
        if latex and not self._notes_depth:
            self._add_image(ImageDefinition(source=latex, type="math"))
        return index + 1

    def _hr(self, index: int) -> int:
        if self._notes_depth:
            return index + 1
        if self.options.slide_separator == "hr":
            self._flush()
            return index + 1

        next_token = self._tokens[index + 1] if index + 1 < len(self._tokens) else None
        if not self._state.has_content():
            logger.debug("Thematic break before any content")
        elif next_token is None:
            logger.debug("Thematic break at end of document")
        elif next_token.type == "heading_open" and next_token.tag == "h1":
            logger.debug("Thematic break before a slide title")
        else:
            self._state.new_body()
        return index + 1

    def _table(self, index: int) -> int:
        rows: List[List[TextDefinition]] = []
        row: List[TextDefinition] = []
        cell: Optional[TextBuilder] = None
        tokens = self._tokens
        index += 1
        while index < len(tokens) and tokens[index].type != "table_close":
            token = tokens[index]
            if token.type == "tr_open":
                row = []
            elif token.type == "tr_close":
                rows.append(row)
            elif token.type in ("th_open", "td_open"):
                cell = TextBuilder()
                tag = token.type[:2]
                base = BOLD if tag == "th" else StyleDefinition()
                cell.start_style("cell", base.merge(self.stylesheet.style_for(tag)))
            elif token.type == "inline" and cell is not None:
                self._inline(token.children or [], cell, allow_media=False)
            elif token.type in ("th_close", "td_close") and cell is not None:
                cell.end_style("cell")
                row.append(cell.build(strip_trailing_newline=True))
                cell = None
            index += 1

        if rows and not self._notes_depth:
            columns = max(len(r) for r in rows)
            for r in rows:
                r.extend(TextDefinition() for _ in range(columns - len(r)))
            table = TableDefinition(rows=len(rows), columns=columns, cells=rows)
            self._state.tables.append(table)
        elif rows:
            logger.warning("Tables are not supported in speaker notes; dropping table")
        return index + 1

    def _html_block(self, index: int) -> int:
        content = self._tokens[index].content
        if _STYLE_BLOCK_RE.match(content):
            soup = BeautifulSoup(content, "html.parser")
            for style in soup.find_all("style"):
                self.stylesheet.merge(style.get_text())
            return index + 1

        comments = _HTML_COMMENT_RE.findall(content)
        for comment in comments:
            self._add_note(comment)
        remainder = _HTML_COMMENT_RE.sub("", content)
        text = BeautifulSoup(remainder, "html.parser").get_text().strip()
        if text:
            builder = self._text_target()
            builder.start_paragraph()
            builder.append(text)
            builder.end_paragraph()
        return index + 1

    def _speaker_note(self, index: int) -> int:
        self._add_note(self._tokens[index].content)
        return index + 1

    def _add_note(self, text: str) -> None:
        text = text.strip()
        if not text:
            return
        notes = self._state.notes
        notes.start_paragraph()
        notes.append(text)
        notes.end_paragraph()

    # ------------------------------------------------------------------
    # Inline content
    # ------------------------------------------------------------------

    def _inline(self, children: Sequence[Token], builder: TextBuilder, allow_media: bool = True) -> None:
        for child in children:
            kind = child.type
            if kind == "text":
                builder.append(child.content)
            elif kind == "softbreak":
                builder.append(" ")
            elif kind == "hardbreak":
                builder.line_break()
            elif kind.endswith("_open") and kind[:-5] in _MARKDOWN_STYLES:
                tag = kind[:-5]
                sheet_style = self.stylesheet.style_for(child.tag or tag)
                builder.start_style(tag, _MARKDOWN_STYLES[tag].merge(sheet_style))
            elif kind.endswith("_close") and kind[:-6] in _MARKDOWN_STYLES:
                builder.end_style(kind[:-6])
            elif kind == "code_inline":
                builder.styled("code", MONOSPACE.merge(self.stylesheet.style_for("code")), child.content)
            elif kind == "link_open":
                style = StyleDefinition(link=child.attrGet("href"))
                builder.start_style("link", style.merge(self.stylesheet.style_for("a")))
            elif kind == "link_close":
                builder.end_style("link")
            elif kind == "span_open":
                builder.start_style("span", self._attribute_style(child.attrs))
            elif kind == "span_close":
                builder.end_style("span")
            elif kind == "math_inline":
                builder.styled("math", ITALIC, child.content)
            elif kind == "image":
                self._image(child, allow_media)
            elif kind == "video":
                self._video(child, allow_media)
            elif kind == "html_inline":
                self._html_inline(child.content, builder)
            elif child.content:
                logger.debug("Treating %s as literal text", kind)
                builder.append(child.content)

    def _attribute_style(self, attrs: Dict) -> Optional[StyleDefinition]:
        style = self.stylesheet.style_for_classes(_classes(attrs)) or StyleDefinition()
        if attrs.get("style"):
            style = style.merge(parse_inline_style(str(attrs["style"])))
        return style

    def _html_inline(self, content: str, builder: TextBuilder) -> None:
        if content.startswith("<!--"):
            for comment in _HTML_COMMENT_RE.findall(content):
                self._add_note(comment)
            return
        match = _HTML_TAG_RE.match(content.strip())
        if not match:
            logger.debug("Ignoring inline HTML %r", content)
            return
        closing, name, self_closing = match.group(1), match.group(2).lower(), match.group(3)
        if name == "br":
            builder.line_break()
            return
        if name not in _HTML_STYLES:
            logger.debug("Ignoring unsupported inline tag <%s>", name)
            return
        key = f"html:{name}"
        if closing:
            builder.end_style(key)
            return
        if self_closing:
            return

        tag = BeautifulSoup(content, "html.parser").find(name)
        attrs = dict(tag.attrs) if tag is not None else {}
        if isinstance(attrs.get("class"), list):
            attrs["class"] = " ".join(attrs["class"])
        style = (_HTML_STYLES[name] or StyleDefinition()).merge(self.stylesheet.style_for(name))
        style = style.merge(self._attribute_style(attrs))
        if name == "a" and attrs.get("href"):
            style = style.merge(StyleDefinition(link=attrs["href"]))
        builder.start_style(key, style)

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    def _image(self, token: Token, allow_media: bool) -> None:
        attrs = dict(token.attrs)
        src = str(attrs.get("src") or "")
        url = resolve_image_url(src, base_dir=self.base_dir)
        if url is None:
            logger.warning("Dropping image with unusable URL %r", src)
            return
        image = ImageDefinition(
            url=url,
            width=_px(attrs.get("width")),
            height=_px(attrs.get("height")),
            padding=_px(attrs.get("pad"), 0),
            offset_x=_px(attrs.get("offset-x"), 0),
            offset_y=_px(attrs.get("offset-y"), 0),
        )
        if "background" in _classes(attrs):
            if self._state.background_image is not None:
                logger.warning("Slide has more than one background image; keeping the last")
            self._state.background_image = image
        elif not allow_media:
            logger.warning("Images are not supported here; dropping %s", src)
        else:
            self._add_image(image)

    def _add_image(self, image: ImageDefinition) -> None:
        self._state.body()[0].images.append(image)

    def _video(self, token: Token, allow_media: bool) -> None:
        meta = token.meta or {}
        if meta.get("service") != "youtube":
            logger.warning("Dropping video from unsupported service %r", meta.get("service"))
            return
        video_id = youtube_id(meta.get("target", ""))
        if video_id is None:
            logger.warning("Dropping video with invalid YouTube id %r", meta.get("target"))
            return
        if not allow_media:
            logger.warning("Videos are not supported here; dropping %s", video_id)
            return
        attrs = meta.get("attrs", {})
        video = VideoDefinition(
            id=video_id,
            width=_px(attrs.get("width")),
            height=_px(attrs.get("height")),
            auto_play=str(attrs.get("autoplay", "false")).lower() in ("true", "1", "yes", "autoplay"),
        )
        self._state.body()[0].videos.append(video)


def read_deck_options(markdown_text: str, defaults: Optional[DeckOptions] = None) -> DeckOptions:
    """Deck options from the document's front matter, without extracting slides."""
    tokens = create_parser().parse(markdown_text)
    if tokens and tokens[0].type == "front_matter":
        return DeckOptions.from_front_matter(tokens[0].content, defaults)
    return defaults or DeckOptions()


def extract_slides(
    markdown_text: str,
    *,
    stylesheet: Optional[StyleSheet] = None,
    options: Optional[DeckOptions] = None,
    base_dir: Optional[Path] = None,
    id_prefix: Optional[str] = None,
) -> Iterator[SlideDefinition]:
    """Lazily yield the slides described by *markdown_text*."""
    extractor = SlideExtractor(
        stylesheet=stylesheet, options=options, base_dir=base_dir, id_prefix=id_prefix
    )
    return extractor.extract(markdown_text)
