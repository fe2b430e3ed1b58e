"""Video / playlist id validation and extraction from URLs."""
from __future__ import annotations
import re
from urllib.parse import urlparse, parse_qs

from .errors import InvalidIdentifier

_VIDEO_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")
_PLAYLIST_ID_RE = re.compile(r"^[A-Za-z0-9_-]{2,}$")

_VIDEO_URL_PATTERNS = [
    re.compile(r"youtu\.be/([A-Za-z0-9_-]{11})"),
    re.compile(r"youtube\..+?/embed/([A-Za-z0-9_-]{11})"),
    re.compile(r"youtube\..+?/v/([A-Za-z0-9_-]{11})"),
    re.compile(r"youtube\..+?/shorts/([A-Za-z0-9_-]{11})"),
]


def validate_video_id(video_id: str) -> bool:
    return bool(video_id) and bool(_VIDEO_ID_RE.match(video_id))


def validate_playlist_id(playlist_id: str) -> bool:
    return bool(playlist_id) and bool(_PLAYLIST_ID_RE.match(playlist_id))


def parse_video_id(value: str) -> str:
    """Accept a bare id or any common watch / short / embed URL."""
    value = (value or "").strip()
    if validate_video_id(value):
        return value
    query = parse_qs(urlparse(value).query)
    candidate = query.get("v", [""])[0]
    if validate_video_id(candidate):
        return candidate
    for pattern in _VIDEO_URL_PATTERNS:
        m = pattern.search(value)
        if m:
            return m.group(1)
    raise InvalidIdentifier("video", value)


def parse_playlist_id(value: str) -> str:
    value = (value or "").strip()
    if "://" not in value and validate_playlist_id(value):
        return value
    candidate = parse_qs(urlparse(value).query).get("list", [""])[0]
    if validate_playlist_id(candidate):
        return candidate
    raise InvalidIdentifier("playlist", value)
