"""
Stylesheet lookup for ``--style`` / front matter ``style``.

A value ending in ``.css`` is read from disk; any other value names one of
the stylesheets shipped in ``md2gslides/themes``.
"""
import logging
import re
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)

THEMES_DIR = Path(__file__).parent / "themes"
_THEME_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def available_themes() -> List[str]:
    return sorted(path.stem for path in THEMES_DIR.glob("*.css"))


def stylesheet_path(style: str) -> Path:
    """Resolve *style* to a CSS file, raising ``ValueError`` or ``FileNotFoundError``."""
    if style.lower().endswith(".css"):
        path = Path(style).expanduser()
        if not path.is_file():
            raise FileNotFoundError(f"Stylesheet {style} not found")
        return path

    # Bundled names only; no separators or dots
    if not _THEME_NAME_RE.match(style):
        raise ValueError(f"Invalid theme name: {style!r}")
    path = THEMES_DIR / f"{style}.css"
    if not path.is_file():
        raise FileNotFoundError(
            f"Theme {style!r} not found. Available themes: {', '.join(available_themes())}"
        )
    return path


def get_css(style: str = "default") -> str:
    path = stylesheet_path(style)
    logger.debug("Loading stylesheet %s", path)
    return path.read_text(encoding="utf-8")
