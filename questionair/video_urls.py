"""Recognise shared video links and pull out their ids."""
import re
from typing import Optional
from urllib.parse import urlparse

from .models import RecommendationType

YOUTUBE_PATTERNS = (
    re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/)([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtube\.com/shorts/([a-zA-Z0-9_-]{11})"),
)
VIMEO_PATTERNS = (
    re.compile(r"vimeo\.com/(\d+)"),
    re.compile(r"player\.vimeo\.com/video/(\d+)"),
)
TIKTOK_PATTERNS = (
    re.compile(r"tiktok\.com/@[\w.-]+/video/(\d+)"),
    re.compile(r"tiktok\.com/t/(\w+)"),
    re.compile(r"vm\.tiktok\.com/(\w+)"),
)


def _first_match(patterns, url: str) -> Optional[str]:
    for pattern in patterns:
        m = pattern.search(url)
        if m:
            return m.group(1)
    return None


def youtube_id(url: str) -> Optional[str]:
    return _first_match(YOUTUBE_PATTERNS, url)


def vimeo_id(url: str) -> Optional[str]:
    return _first_match(VIMEO_PATTERNS, url)


def tiktok_id(url: str) -> Optional[str]:
    # links we can't parse still embed through oEmbed, so fall back to the url itself
    found = _first_match(TIKTOK_PATTERNS, url)
    if found:
        return found
    return url if "tiktok.com" in url else None


_PARSERS = {
    RecommendationType.youtube: youtube_id,
    RecommendationType.vimeo: vimeo_id,
    RecommendationType.tiktok: tiktok_id,
}


def video_id(kind: RecommendationType, url: str) -> Optional[str]:
    parser = _PARSERS.get(kind)
    return parser(url) if parser else None


def detect_video(url: str) -> tuple[Optional[RecommendationType], Optional[str]]:
    """Return ``(type, id)`` for the first platform that claims ``url``."""
    for kind, parser in _PARSERS.items():
        found = parser(url)
        if found:
            return kind, found
    return None, None


def is_web_url(url: str) -> bool:
    try:
        parts = urlparse(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)
