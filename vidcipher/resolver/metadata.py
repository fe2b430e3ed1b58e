"""
Metadata extraction from the watch page and the video-info endpoint.

The watch page embeds `ytplayer.config = {...};`. Its `args` object carries
query-style string fields (title, flags, comma-separated lists, the stream
maps) and `assets.js` names the player script. Age-gated and some restricted
videos ship a page without usable args; for those the `get_video_info`
response (a query string with the same keys) fills the gaps.
"""
from __future__ import annotations
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional
from urllib.parse import urlparse

from .base import CaptionTrackInfo, VideoInfo
from .errors import MalformedEntry, RegionBlocked, RequiresPurchase, VideoUnplayable
from .parsing import collect, parse_query, split_list, to_bool, to_float, to_int

log = logging.getLogger("vidcipher.resolver")

_CONFIG_MARKER_RE = re.compile(r"ytplayer\.config\s*=\s*")
_STS_RE = re.compile(r'"sts"\s*:\s*(\d+)')
_PLAYER_JS_RE = re.compile(r'"(?:js|jsUrl)"\s*:\s*("(?:[^"\\]|\\.)+")')
_AGE_GATE_MARKER = "player-age-gate-content"
_REGION_HINTS = ("country", "region")

STREAM_KEYS = ("url_encoded_fmt_stream_map", "adaptive_fmts", "dashmpd")


@dataclass
class PlayerContext:
    """What one page load tells us: player args, player script URL, signature timestamp."""
    args: dict[str, str] = field(default_factory=dict)
    player_url: Optional[str] = None
    sts: Optional[str] = None
    age_gated: bool = False

    @property
    def has_streams(self) -> bool:
        return any(self.args.get(k) for k in STREAM_KEYS)


# ──────────────────────────────
#  Page parsing
# ──────────────────────────────
def _stringify(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def _extract_player_config(html: str) -> dict:
    m = _CONFIG_MARKER_RE.search(html)
    if not m:
        return {}
    try:
        config, _ = json.JSONDecoder().raw_decode(html, m.end())
    except ValueError as e:
        log.warning(f"ytplayer.config present but not decodable: {e}")
        return {}
    return config if isinstance(config, dict) else {}


def _search_player_url(html: str) -> Optional[str]:
    m = _PLAYER_JS_RE.search(html)
    if not m:
        return None
    try:
        return json.loads(m.group(1))
    except ValueError:
        return None


def _search_sts(html: str) -> Optional[str]:
    m = _STS_RE.search(html)
    return m.group(1) if m else None


def parse_watch_page(html: str) -> PlayerContext:
    config = _extract_player_config(html)
    args = {k: _stringify(v) for k, v in (config.get("args") or {}).items()}
    player_url = (config.get("assets") or {}).get("js") or _search_player_url(html)
    sts = _stringify(config["sts"]) if config.get("sts") else _search_sts(html)
    return PlayerContext(args=args, player_url=player_url, sts=sts,
                         age_gated=_AGE_GATE_MARKER in html)


def parse_embed_page(html: str) -> PlayerContext:
    return PlayerContext(player_url=_search_player_url(html), sts=_search_sts(html))


def merge_sources(primary: dict[str, str], secondary: dict[str, str]) -> dict[str, str]:
    """Primary wins; secondary only fills keys the primary lacks or leaves blank."""
    merged = dict(secondary)
    merged.update({k: v for k, v in primary.items() if v != ""})
    return merged


# ──────────────────────────────
#  Status
# ──────────────────────────────
def check_playability(video_id: str, data: dict[str, str]) -> None:
    """Raise the matching VideoUnplayable variant if the status fields say so."""
    reason = data.get("reason", "")
    code = data.get("errorcode") or None
    if data.get("ypc_vid") or data.get("ypc_video_rental_bar_text"):
        if not any(data.get(k) for k in STREAM_KEYS):
            raise RequiresPurchase(video_id, reason, code, preview_video_id=data.get("ypc_vid") or None)
    if data.get("status", "ok").lower() != "fail":
        return
    if any(hint in reason.lower() for hint in _REGION_HINTS):
        raise RegionBlocked(video_id, reason, code)
    raise VideoUnplayable(video_id, reason, code)


# ──────────────────────────────
#  Field decoders
# ──────────────────────────────
def parse_keyword(raw: str) -> str:
    keyword = raw.strip()
    if not keyword:
        raise MalformedEntry(raw, "blank keyword")
    return keyword


def parse_watermark(raw: str) -> str:
    url = raw.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise MalformedEntry(raw, "watermark is not an absolute URL")
    return url


def parse_keywords(raw: Optional[str]) -> list[str]:
    return list(dict.fromkeys(collect(split_list(raw), parse_keyword, what="keyword")))


def parse_watermarks(raw: Optional[str]) -> list[str]:
    return collect(split_list(raw), parse_watermark, what="watermark")


def parse_caption_entry(raw: str) -> CaptionTrackInfo:
    q = parse_query(raw)
    if not q.get("u") or not q.get("lc"):
        raise MalformedEntry(raw, "caption track without url or language")
    auto = q.get("kind") == "asr" or q.get("v", "").startswith("a.")
    return CaptionTrackInfo(url=q["u"], language=q["lc"], name=q.get("n", ""), is_auto_generated=auto)


def _parse_player_response_track(track) -> CaptionTrackInfo:
    if not isinstance(track, dict) or not track.get("baseUrl") or not track.get("languageCode"):
        raise MalformedEntry(track, "caption track without url or language")
    name = track.get("name") or {}
    label = name.get("simpleText") or "".join(r.get("text", "") for r in name.get("runs", []))
    return CaptionTrackInfo(url=track["baseUrl"], language=track["languageCode"], name=label,
                            is_auto_generated=track.get("kind") == "asr")


def parse_caption_tracks(data: dict[str, str]) -> list[CaptionTrackInfo]:
    if data.get("caption_tracks"):
        return collect(split_list(data["caption_tracks"]), parse_caption_entry, what="caption track")
    raw = data.get("player_response")
    if not raw:
        return []
    try:
        response = json.loads(raw)
    except ValueError:
        log.debug("player_response is not valid JSON, no caption tracks")
        return []
    tracks = (((response.get("captions") or {})
               .get("playerCaptionsTracklistRenderer") or {})
              .get("captionTracks") or [])
    return collect(tracks, _parse_player_response_track, what="caption track")


def extract_video_info(video_id: str, data: dict[str, str]) -> VideoInfo:
    """Everything but the streams, which need the resolver."""
    return VideoInfo(
        id=video_id,
        title=data.get("title", ""),
        author=data.get("author", ""),
        duration=timedelta(seconds=to_int(data.get("length_seconds"))),
        view_count=to_int(data.get("view_count")),
        average_rating=to_float(data.get("avg_rating")),
        keywords=parse_keywords(data.get("keywords")),
        watermarks=parse_watermarks(data.get("watermark")),
        has_closed_captions=to_bool(data.get("has_cc", "")),
        is_embedding_allowed=to_bool(data.get("allow_embed", "")),
        is_listed=to_bool(data.get("is_listed", "")),
        is_rating_allowed=to_bool(data.get("allow_ratings", "")),
        is_muted=to_bool(data.get("muted", "")),
        caption_tracks=parse_caption_tracks(data),
    )
