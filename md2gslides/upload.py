"""HTTP helpers: temporary hosting for local images and remote downloads."""
import logging
from io import BytesIO
from pathlib import Path
from typing import Optional, Tuple

import requests
from PIL import Image

logger = logging.getLogger(__name__)

UPLOAD_URL = "https://tmpfiles.org/api/v1/upload"
USER_AGENT = "md2gslides"
TIMEOUT = 30


class UploadError(RuntimeError):
    pass


def upload_local_file(path: Path) -> str:
    """Upload *path* to tmpfiles.org and return a direct download URL.

    The service answers with a landing page URL; the direct link is the same
    path under ``/dl/``.
    """
    with open(path, "rb") as fh:
        response = requests.post(
            UPLOAD_URL,
            files={"file": (Path(path).name, fh)},
            headers={"User-Agent": USER_AGENT},
            timeout=TIMEOUT,
        )
    response.raise_for_status()
    try:
        url = response.json()["data"]["url"]
    except (ValueError, KeyError, TypeError) as exc:
        raise UploadError(f"Unexpected upload response for {path}: {response.text[:200]}") from exc

    url = url.replace("http://", "https://", 1)
    direct = url.replace("https://tmpfiles.org/", "https://tmpfiles.org/dl/", 1)
    logger.debug("Uploaded %s to %s", path, direct)
    return direct


def download(url: str) -> bytes:
    response = requests.get(url, headers={"User-Agent": USER_AGENT}, timeout=TIMEOUT)
    response.raise_for_status()
    return response.content


def image_size(data: bytes) -> Optional[Tuple[int, int]]:
    """Pixel size of encoded image bytes, or ``None`` if Pillow cannot read them."""
    try:
        with Image.open(BytesIO(data)) as image:
            return image.size
    except (OSError, ValueError):
        return None


def file_image_size(path: Path) -> Optional[Tuple[int, int]]:
    try:
        with Image.open(path) as image:
            return image.size
    except (OSError, ValueError):
        return None
