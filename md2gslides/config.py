"""Per-deck options and on-disk locations."""
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

SLIDE_SEPARATORS = ("heading", "hr")


@dataclass
class DeckOptions:
    """
    Options controlling how one Markdown document is split and styled.

    ``slide_separator`` is ``"heading"`` (every level-1 heading starts a
    slide; ``---`` starts a new column) or ``"hr"`` (every ``---`` starts a
    slide).  ``highlight_style`` names the Pygments style used to colour
    fenced code.
    """
    slide_separator: str = "heading"
    style: str = "default"
    highlight_style: str = "default"
    title: Optional[str] = None

    @classmethod
    def from_front_matter(cls, text: str, defaults: Optional["DeckOptions"] = None) -> "DeckOptions":
        """Overlay the YAML front matter *text* onto *defaults*."""
        options = defaults or cls()
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as exc:
            logger.warning("Ignoring invalid front matter: %s", exc)
            return options
        if not isinstance(data, dict):
            logger.warning("Ignoring front matter that is not a mapping")
            return options

        known = {f.name for f in fields(cls)}
        updates = {}
        for key, value in data.items():
            name = str(key).replace("-", "_")
            if name not in known:
                logger.debug("Ignoring unknown front matter key %s", key)
                continue
            if value is None:
                continue
            updates[name] = str(value)

        separator = updates.get("slide_separator")
        if separator is not None and separator not in SLIDE_SEPARATORS:
            logger.warning(
                "Unknown slide_separator %r, expected one of %s", separator, SLIDE_SEPARATORS
            )
            del updates["slide_separator"]
        return replace(options, **updates)

    def override(self, **kwargs) -> "DeckOptions":
        """Return a copy with every non-``None`` keyword applied."""
        return replace(self, **{k: v for k, v in kwargs.items() if v is not None})


def home_dir() -> Path:
    """Directory holding the OAuth client id and cached user tokens."""
    return Path(os.getenv("MD2GSLIDES_HOME", "~/.md2googleslides")).expanduser()


def client_id_path() -> Path:
    return home_dir() / "client_id.json"


def token_store_path() -> Path:
    return home_dir() / "credentials.json"


def service_account_path() -> Optional[str]:
    return os.getenv("GOOGLE_SLIDES_CREDENTIALS")
