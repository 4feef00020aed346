"""Syntax colouring for fenced code blocks."""
import logging
from typing import List, Optional, Tuple

from pygments.lexers import get_lexer_by_name
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

from .css_utils import parse_color
from .models import StyleDefinition

logger = logging.getLogger(__name__)

DEFAULT_STYLE = "default"


def _token_style(entry) -> Optional[StyleDefinition]:
    style = StyleDefinition(
        bold=entry["bold"] or None,
        italic=entry["italic"] or None,
        underline=entry["underline"] or None,
        foreground_color=parse_color(f"#{entry['color']}") if entry["color"] else None,
    )
    return None if style.is_empty() else style


def highlight(code: str, language: str, style_name: str = DEFAULT_STYLE) -> List[Tuple[str, Optional[StyleDefinition]]]:
    """
    Split *code* into ``(text, style)`` pieces coloured by token type.

    The pieces concatenate back to *code* exactly.  An unknown *language*
    gives a single unstyled piece; an unknown *style_name* falls back to the
    Pygments default style.
    """
    if not language:
        return [(code, None)]
    try:
        lexer = get_lexer_by_name(language, stripnl=False, ensurenl=False)
    except ClassNotFound:
        logger.debug("No lexer for %r, code block left uncoloured", language)
        return [(code, None)]
    try:
        style = get_style_by_name(style_name)
    except ClassNotFound:
        logger.warning("Unknown highlight style %r, using %r", style_name, DEFAULT_STYLE)
        style = get_style_by_name(DEFAULT_STYLE)

    pieces: List[Tuple[str, Optional[StyleDefinition]]] = []
    for token_type, value in lexer.get_tokens(code):
        if not value:
            continue
        token_style = _token_style(style.style_for_token(token_type))
        if pieces and pieces[-1][1] == token_style:
            pieces[-1] = (pieces[-1][0] + value, token_style)
        else:
            pieces.append((value, token_style))
    return pieces
