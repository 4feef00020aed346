"""md2gslides – top-level package

Exposes the public API (`extract_slides`, `SlideGenerator`, etc.) **and** sets
up a minimal logging configuration so that every sub-module can call

```python
import logging
logger = logging.getLogger(__name__)
```

and honour a single environment variable `MD2GSLIDES_LOG_LEVEL`.
"""

from __future__ import annotations

import logging
import os

__version__ = "0.1.0"

# ------------------------------------------------------------------
# Default logging – honour env var, otherwise INFO.
# ------------------------------------------------------------------
LOG_LEVEL = os.getenv("MD2GSLIDES_LOG_LEVEL", "INFO").upper()
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

# Public API re-exports ------------------------------------------------
from .config import DeckOptions  # noqa: E402  (import after logger)
from .generator import SlideGenerator, build_requests  # noqa: E402
from .gslide_renderer import GSlideRenderer  # noqa: E402
from .layout_matcher import BindingStatus, BoundLayout, LayoutMatcher  # noqa: E402
from .markdown_parser import SlideExtractor, extract_slides  # noqa: E402
from .models import SlideDefinition, TextDefinition  # noqa: E402

__all__ = [
    "DeckOptions",
    "SlideGenerator",
    "build_requests",
    "GSlideRenderer",
    "BindingStatus",
    "BoundLayout",
    "LayoutMatcher",
    "SlideExtractor",
    "extract_slides",
    "SlideDefinition",
    "TextDefinition",
]
