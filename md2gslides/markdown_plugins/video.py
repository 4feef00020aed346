"""Inline ``@[youtube](id-or-url){autoplay=true}`` syntax for embedded videos."""
import re
from typing import Dict, Optional
from urllib.parse import parse_qs, urlparse

from markdown_it import MarkdownIt
from markdown_it.rules_inline import StateInline

_VIDEO_RE = re.compile(r"@\[(?P<service>[A-Za-z]+)\]\((?P<target>[^)\s]*)\)(?:\{(?P<attrs>[^}]*)\})?")
_YOUTUBE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")
_ATTR_RE = re.compile(r"([A-Za-z][\w-]*)(?:=(\"[^\"]*\"|'[^']*'|[^\s\"']+))?")


def parse_attr_list(text: str) -> Dict[str, str]:
    """Parse ``key=value key2 .class`` style attributes; classes land under ``class``."""
    attrs: Dict[str, str] = {}
    classes = []
    for part in re.findall(r"\.[\w-]+|#[\w-]+|[A-Za-z][\w-]*=(?:\"[^\"]*\"|'[^']*'|[^\s\"']+)|[A-Za-z][\w-]*", text):
        if part.startswith("."):
            classes.append(part[1:])
        elif part.startswith("#"):
            attrs["id"] = part[1:]
        else:
            match = _ATTR_RE.fullmatch(part)
            if match:
                value = match.group(2)
                attrs[match.group(1)] = value.strip("\"'") if value is not None else "true"
    if classes:
        attrs["class"] = " ".join(classes)
    return attrs


def youtube_id(target: str) -> Optional[str]:
    """Extract a YouTube video id from a bare id or a watch/short/embed URL."""
    target = target.strip()
    if _YOUTUBE_ID_RE.match(target):
        return target
    parsed = urlparse(target)
    host = (parsed.hostname or "").lower()
    candidate = None
    if host in ("youtu.be", "www.youtu.be"):
        candidate = parsed.path.lstrip("/").split("/")[0]
    elif host.endswith("youtube.com"):
        if parsed.path == "/watch":
            candidate = parse_qs(parsed.query).get("v", [None])[0]
        elif parsed.path.startswith(("/embed/", "/shorts/", "/v/")):
            candidate = parsed.path.split("/")[2]
    if candidate and _YOUTUBE_ID_RE.match(candidate):
        return candidate
    return None


def video_plugin(md: MarkdownIt):
    """Emit a ``video`` inline token with ``meta = {service, target, attrs}``.

    The token is produced for any ``@[service](target)`` shape; validating the
    service and id is left to the consumer so it can log what was dropped.
    """

    def _video(state: StateInline, silent: bool):
        if state.src[state.pos] != "@":
            return False
        match = _VIDEO_RE.match(state.src, state.pos, state.posMax)
        if not match:
            return False
        if not silent:
            token = state.push("video", "", 0)
            token.meta = {
                "service": match.group("service").lower(),
                "target": match.group("target"),
                "attrs": parse_attr_list(match.group("attrs") or ""),
            }
            token.content = match.group(0)
        state.pos = match.end()
        return True

    md.inline.ruler.before("link", "video", _video)
