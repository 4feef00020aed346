"""Helpers for image URLs and the scratch directory used for rendered assets.

Rendered math and SVG images are written to a temporary directory that is
removed at interpreter exit unless ``keep_tmp`` is set.
"""
from __future__ import annotations

import atexit
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

logger = logging.getLogger(__name__)

__all__ = ["prepare_workspace", "resolve_image_url", "local_path", "is_remote"]

_ALLOWED_SCHEMES = ("http", "https", "file")


def prepare_workspace(tmp_dir: Optional[str | Path] = None, *, keep_tmp: bool = False) -> Path:
    """Create (or reuse) a scratch directory and register its cleanup.

    Parameters
    ----------
    tmp_dir
        Directory to use.  A fresh ``tempfile.mkdtemp`` directory is created
        when omitted.
    keep_tmp
        Leave the directory on disk at exit for inspection.
    """
    if tmp_dir is None:
        path = Path(tempfile.mkdtemp(prefix="md2gslides_"))
    else:
        path = Path(tmp_dir).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)

    if keep_tmp:
        logger.info("Keeping rendered assets in %s", path)
    else:
        def _cleanup() -> None:
            shutil.rmtree(path, ignore_errors=True)

        atexit.register(_cleanup)

    return path


def resolve_image_url(src: str, *, base_dir: Optional[Path] = None) -> Optional[str]:
    """Return an absolute URL for an image reference, or ``None`` if unusable.

    Rules
    -----
    1. ``http``, ``https`` and ``file`` URLs are returned unchanged.
    2. Scheme-less references are paths, resolved against *base_dir* (or the
       working directory) and returned as ``file://`` URLs.
    3. Anything else (``data:``, ``ftp:``, ``javascript:``…) is rejected.
    """
    src = (src or "").strip()
    if not src:
        return None
    try:
        parsed = urlparse(src)
    except ValueError:
        logger.warning("Unparseable image URL %r", src)
        return None

    # Windows drive letters parse as one-letter schemes
    if parsed.scheme and len(parsed.scheme) > 1:
        if parsed.scheme.lower() not in _ALLOWED_SCHEMES:
            logger.warning("Unsupported image URL scheme %r in %r", parsed.scheme, src)
            return None
        if parsed.scheme.lower() in ("http", "https") and not parsed.netloc:
            logger.warning("Image URL without host: %r", src)
            return None
        return src

    root = Path(base_dir) if base_dir is not None else Path.cwd()
    return (root / unquote(src)).expanduser().resolve().as_uri()


def is_remote(url: str) -> bool:
    return urlparse(url).scheme.lower() in ("http", "https")


def local_path(url: str) -> Optional[Path]:
    """Filesystem path for a ``file://`` URL, else ``None``."""
    parsed = urlparse(url)
    if parsed.scheme.lower() != "file":
        return None
    return Path(unquote(parsed.path))
