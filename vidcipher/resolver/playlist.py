"""
Playlist pages from the list_ajax JSON endpoint.

The endpoint returns a window of up to ~200 videos around `index`; the
engine walks the index forward until a page adds nothing new.
"""
from __future__ import annotations
import logging

from .base import PlaylistInfo
from .errors import MalformedEntry
from .ids import validate_video_id
from .parsing import collect, to_int

log = logging.getLogger("vidcipher.resolver")

PAGE_STEP = 200


def parse_video_entry(entry) -> str:
    video_id = entry.get("encrypted_id") if isinstance(entry, dict) else None
    if not video_id or not validate_video_id(video_id):
        raise MalformedEntry(entry, "playlist entry without a valid video id")
    return video_id


def page_video_ids(page: dict) -> list[str]:
    return collect(page.get("video") or [], parse_video_entry, what="playlist video")


def merge_page(info: PlaylistInfo, page: dict) -> int:
    """Fold one page into `info`; returns how many new video ids it added."""
    if not info.title:
        info.title = page.get("title") or ""
        info.author = page.get("author") or ""
        info.description = page.get("description") or ""
        info.view_count = to_int(page.get("views"))
    known = set(info.video_ids)
    added = 0
    for video_id in page_video_ids(page):
        if video_id not in known:
            known.add(video_id)
            info.video_ids.append(video_id)
            added += 1
    return added
