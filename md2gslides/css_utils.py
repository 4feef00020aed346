"""
CSS utilities for md2gslides.

Turns stylesheet rules and inline ``style`` attributes into
:class:`~md2gslides.models.StyleDefinition` objects.  Only a small, fixed set
of properties has a meaning on a slide; everything else is logged and
ignored so that unsupported CSS never breaks a conversion.
"""
import logging
import re
from typing import Dict, Iterable, Mapping, Optional

import tinycss2
from PIL import ImageColor

from .models import StyleDefinition
from .theme_loader import get_css

logger = logging.getLogger(__name__)

_FONT_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(pt|px)?\s*$", re.IGNORECASE)
_PX_TO_PT = 0.75


def camel_case(name: str) -> str:
    """``font-weight`` → ``fontWeight``; already camel-cased names pass through."""
    head, *rest = name.strip().split("-")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def parse_color(value: str) -> Optional[Dict]:
    """Parse any CSS colour into a Slides ``OptionalColor`` with 0-1 channels.

    Returns ``None`` when the value cannot be resolved to RGB.
    """
    try:
        rgb = ImageColor.getrgb(value.strip())
    except (ValueError, AttributeError):
        logger.debug("Ignoring unparseable color %r", value)
        return None
    red, green, blue = rgb[:3]
    return {
        "opaqueColor": {
            "rgbColor": {"red": red / 255, "green": green / 255, "blue": blue / 255}
        }
    }


def parse_font_size(value: str) -> Optional[float]:
    """Return a size in points for ``12``, ``12pt`` or ``16px``; ``None`` otherwise."""
    match = _FONT_SIZE_RE.match(value)
    if not match:
        logger.debug("Ignoring unsupported font size %r", value)
        return None
    size = float(match.group(1))
    if (match.group(2) or "").lower() == "px":
        size *= _PX_TO_PT
    return size


def _first_family(value: str) -> str:
    return value.split(",")[0].strip().strip("'\"")


def resolve_style(declarations: Mapping[str, str]) -> StyleDefinition:
    """Resolve CSS-like declarations into a :class:`StyleDefinition`.

    Keys may be given in CSS (``font-weight``) or camel case (``fontWeight``).
    Unknown properties and unparseable values are ignored.
    """
    values = {}
    for raw_key, raw_value in declarations.items():
        key = camel_case(raw_key)
        value = str(raw_value).strip()
        lowered = value.lower()

        if key == "color":
            color = parse_color(value)
            if color is not None:
                values["foreground_color"] = color
        elif key == "backgroundColor":
            color = parse_color(value)
            if color is not None:
                values["background_color"] = color
        elif key == "fontWeight":
            if lowered in ("bold", "bolder") or (lowered.isdigit() and int(lowered) >= 600):
                values["bold"] = True
            elif lowered in ("normal", "lighter") or lowered.isdigit():
                values["bold"] = False
        elif key == "fontStyle":
            if lowered in ("italic", "oblique"):
                values["italic"] = True
            elif lowered == "underline":
                values["underline"] = True
            elif lowered == "line-through":
                values["strikethrough"] = True
            elif lowered == "normal":
                values["italic"] = False
        elif key == "textDecoration":
            if "underline" in lowered:
                values["underline"] = True
            if "line-through" in lowered:
                values["strikethrough"] = True
        elif key == "fontFamily":
            family = _first_family(value)
            if family:
                values["font_family"] = family
        elif key == "fontVariant":
            if lowered == "small-caps":
                values["small_caps"] = True
        elif key == "fontSize":
            size = parse_font_size(value)
            if size is not None:
                values["font_size"] = size
        else:
            logger.debug("Ignoring unsupported style property %s", raw_key)

    return StyleDefinition(**values)


def _declarations(tokens) -> Dict[str, str]:
    parsed: Dict[str, str] = {}
    for node in tinycss2.parse_declaration_list(tokens, skip_comments=True, skip_whitespace=True):
        if node.type == "declaration":
            parsed[node.lower_name] = tinycss2.serialize(node.value).strip()
        elif node.type == "error":
            logger.debug("CSS parse error: %s", node.message)
    return parsed


def parse_inline_style(style: str) -> StyleDefinition:
    """Resolve a ``style="..."`` attribute value."""
    return resolve_style(_declarations(style))


class StyleSheet:
    """
    Selector → declarations map built from one or more CSS sources.

    Only simple selectors are meaningful here: element names (``h1``,
    ``code``, ``pre``, ``th``) and class selectors (``.highlight``).  Later
    rules override earlier ones property by property.
    """

    def __init__(self, css: str = ""):
        self.rules: Dict[str, Dict[str, str]] = {}
        if css:
            self.merge(css)

    @classmethod
    def for_theme(cls, theme: str = "default") -> "StyleSheet":
        return cls(get_css(theme))

    def copy(self) -> "StyleSheet":
        sheet = StyleSheet()
        sheet.rules = {selector: dict(decls) for selector, decls in self.rules.items()}
        return sheet

    def merge(self, css: str) -> None:
        for rule in tinycss2.parse_stylesheet(css, skip_comments=True, skip_whitespace=True):
            if rule.type == "error":
                logger.warning("Skipping invalid CSS: %s", rule.message)
                continue
            if rule.type != "qualified-rule":
                # @media, @import, ...
                logger.debug("Skipping CSS at-rule @%s", getattr(rule, "lower_at_keyword", "?"))
                continue
            declarations = _declarations(rule.content)
            for selector in tinycss2.serialize(rule.prelude).split(","):
                selector = " ".join(selector.split())
                if selector:
                    self.rules.setdefault(selector, {}).update(declarations)

    def style_for(self, *selectors: str) -> Optional[StyleDefinition]:
        """Combined style of *selectors* (later ones win), or ``None`` if nothing applies."""
        merged: Dict[str, str] = {}
        for selector in selectors:
            merged.update(self.rules.get(selector, {}))
        if not merged:
            return None
        style = resolve_style(merged)
        return None if style.is_empty() else style

    def style_for_classes(self, classes: Iterable[str]) -> Optional[StyleDefinition]:
        return self.style_for(*(f".{name}" for name in classes))
