"""
Incremental construction of a :class:`~md2gslides.models.TextDefinition`.

The extractor appends text and opens/closes style markers as it walks the
token stream.  Open markers live on a stack; closing a marker moves it to the
list of finished spans.  Nothing is split while scanning: :meth:`build`
normalizes all finished spans into non-overlapping runs in one pass.
"""
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .models import ListMarker, StyleDefinition, TextDefinition, TextRun

LINE_BREAK = "\u000b"


@dataclass
class _Span:
    key: str
    start: int
    style: StyleDefinition
    order: int
    end: Optional[int] = None


class TextBuilder:
    def __init__(self) -> None:
        self._parts: List[str] = []
        self._length = 0
        self._open: List[_Span] = []
        self._closed: List[_Span] = []
        self._opened = 0
        # (kind, start offset) per open list; index 0 is the top level
        self._lists: List[Tuple[str, int]] = []
        self._markers: List[ListMarker] = []
        self._pending_indent: Optional[int] = None
        self._paragraph_start = 0
        self.big = False

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def is_empty(self) -> bool:
        return self._length == 0

    def _ends_with_newline(self) -> bool:
        return bool(self._parts) and self._parts[-1].endswith("\n")

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def append(self, text: str) -> None:
        if not text:
            return
        if self._pending_indent is not None:
            indent = "\t" * self._pending_indent
            self._pending_indent = None
            if indent:
                self._parts.append(indent)
                self._length += len(indent)
        self._parts.append(text)
        self._length += len(text)

    def line_break(self) -> None:
        self.append(LINE_BREAK)

    def start_paragraph(self) -> None:
        self._paragraph_start = self._length

    def end_paragraph(self) -> None:
        """Terminate the current paragraph if it produced any text."""
        if self._length > self._paragraph_start and not self._ends_with_newline():
            self.append("\n")
        self._paragraph_start = self._length

    # ------------------------------------------------------------------
    # Styles
    # ------------------------------------------------------------------

    def start_style(self, key: str, style: Optional[StyleDefinition]) -> None:
        """Open a style marker; an empty style is still pushed so closes pair up."""
        self._open.append(_Span(key, self._length, style or StyleDefinition(), self._opened))
        self._opened += 1

    def end_style(self, key: str) -> None:
        """Close the innermost open marker with *key*; unmatched closes are ignored."""
        for index in range(len(self._open) - 1, -1, -1):
            if self._open[index].key == key:
                span = self._open.pop(index)
                span.end = self._length
                self._closed.append(span)
                return

    def styled(self, key: str, style: Optional[StyleDefinition], text: str) -> None:
        self.start_style(key, style)
        self.append(text)
        self.end_style(key)

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    def start_list(self, kind: str) -> None:
        if self._lists and not self._ends_with_newline() and self._length:
            # nested list directly after the parent item's text
            self.append("\n")
        self._lists.append((kind, self._length))

    def end_list(self) -> None:
        if not self._lists:
            return
        kind, start = self._lists.pop()
        if self._lists or self._length <= start:
            return
        previous = self._markers[-1] if self._markers else None
        if previous is not None and previous.kind == kind and previous.end == start:
            previous.end = self._length
        else:
            self._markers.append(ListMarker(start, self._length, kind, 0))

    def start_list_item(self) -> None:
        self.start_paragraph()
        self._pending_indent = max(len(self._lists) - 1, 0)

    def end_list_item(self) -> None:
        self._pending_indent = None
        self.end_paragraph()

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _normalized_runs(self, length: int) -> List[TextRun]:
        for span in self._open:
            span.end = self._length
        spans = [s for s in self._closed + self._open if not s.style.is_empty()]
        spans = [
            (min(s.start, length), min(s.end, length), s)
            for s in sorted(spans, key=lambda s: s.order)
        ]
        spans = [(start, end, s) for start, end, s in spans if start < end]
        if not spans:
            return []

        bounds = sorted({b for start, end, _ in spans for b in (start, end)})
        runs: List[TextRun] = []
        for left, right in zip(bounds, bounds[1:]):
            style = StyleDefinition()
            for start, end, span in spans:
                if start <= left and right <= end:
                    style = style.merge(span.style)
            if style.is_empty():
                continue
            if runs and runs[-1].end == left and runs[-1].style == style:
                runs[-1].end = right
            else:
                runs.append(TextRun(left, right, style))
        return runs

    def build(self, strip_trailing_newline: bool = False) -> TextDefinition:
        """Return the finished :class:`TextDefinition` with normalized runs."""
        while self._lists:
            self.end_list()
        raw_text = self.text
        if strip_trailing_newline:
            raw_text = raw_text.rstrip("\n")
        length = len(raw_text)
        markers = [
            ListMarker(m.start, min(m.end, length), m.kind, m.nesting_depth)
            for m in self._markers
            if m.start < min(m.end, length)
        ]
        return TextDefinition(
            raw_text=raw_text,
            text_runs=self._normalized_runs(length),
            list_markers=markers,
            big=self.big,
        )
