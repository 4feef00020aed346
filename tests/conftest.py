import json
import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path so `import md2gslides` works
project_root = Path(__file__).resolve().parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

FIXTURES = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture
def presentation():
    """A presentation with the standard layouts most decks ship with."""
    return json.loads((FIXTURES / "presentation.json").read_text(encoding="utf-8"))


@pytest.fixture
def extract():
    """Extract slides with a fixed id prefix so ids are predictable."""
    from md2gslides.markdown_parser import extract_slides

    def _extract(markdown, **kwargs):
        kwargs.setdefault("id_prefix", "test")
        return list(extract_slides(markdown, **kwargs))

    return _extract
