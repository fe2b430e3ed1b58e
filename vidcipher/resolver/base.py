"""
Core types for the vidcipher resolver.

A resolved video carries two lists:
  - streams: directly playable URLs (signature already applied) with format data
  - caption tracks: references to timed-text documents, fetched on demand
"""
from __future__ import annotations
from bisect import bisect_right
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum, IntEnum
from typing import Optional, Union


# ──────────────────────────────
#  Format enums
# ──────────────────────────────
class VideoQuality(IntEnum):
    UNKNOWN = 0
    NO_VIDEO = 1          # audio-only stream
    LOW_144 = 2
    LOW_240 = 3
    MEDIUM_360 = 4
    MEDIUM_480 = 5
    HIGH_720 = 6
    HIGH_1080 = 7
    HIGH_1440 = 8
    HIGH_2160 = 9
    HIGH_3072 = 10

    @classmethod
    def from_height(cls, height: int) -> "VideoQuality":
        for limit, quality in _HEIGHT_TIERS:
            if height <= limit:
                return quality
        return cls.HIGH_3072


_HEIGHT_TIERS = [
    (0, VideoQuality.UNKNOWN),
    (144, VideoQuality.LOW_144),
    (240, VideoQuality.LOW_240),
    (360, VideoQuality.MEDIUM_360),
    (480, VideoQuality.MEDIUM_480),
    (720, VideoQuality.HIGH_720),
    (1080, VideoQuality.HIGH_1080),
    (1440, VideoQuality.HIGH_1440),
    (2160, VideoQuality.HIGH_2160),
]


class ContainerType(Enum):
    UNKNOWN = ""
    MP4 = "mp4"
    M4A = "m4a"
    WEBM = "webm"
    TGPP = "3gp"
    FLV = "flv"
    TS = "ts"

    @property
    def extension(self) -> str:
        return self.value or "bin"


class StreamKind(Enum):
    MUXED = "muxed"
    VIDEO = "video"
    AUDIO = "audio"


# ──────────────────────────────
#  Streams
# ──────────────────────────────
@dataclass(frozen=True)
class StreamInfo:
    itag: int
    url: str
    quality: VideoQuality
    container: ContainerType
    quality_label: str                # "720p", "1080p60", "audio"
    size: int                         # bytes, always > 0 once resolved
    kind: StreamKind = StreamKind.MUXED
    mime_type: str = ""

    @property
    def file_extension(self) -> str:
        return self.container.extension

    def to_dict(self):
        return {
            "itag": self.itag,
            "url": self.url,
            "quality": self.quality.name.lower(),
            "container": self.container.name.lower(),
            "quality_label": self.quality_label,
            "extension": self.file_extension,
            "size": self.size,
            "kind": self.kind.value,
            "mime_type": self.mime_type,
        }


# ──────────────────────────────
#  Captions
# ──────────────────────────────
@dataclass(frozen=True)
class CaptionTrackInfo:
    url: str
    language: str                     # language code e.g. "en"
    name: str = ""
    is_auto_generated: bool = False

    def to_dict(self):
        return {"url": self.url, "language": self.language, "name": self.name,
                "auto_generated": self.is_auto_generated}


@dataclass(frozen=True)
class CaptionCue:
    start: timedelta
    duration: timedelta
    text: str

    @property
    def end(self) -> timedelta:
        return self.start + self.duration

    def to_dict(self):
        return {"start": self.start.total_seconds(),
                "duration": self.duration.total_seconds(),
                "text": self.text}


@dataclass
class CaptionTrack:
    """Cues sorted by start offset and non-overlapping; see captions.build_track."""
    info: CaptionTrackInfo
    cues: list[CaptionCue] = field(default_factory=list)
    _starts: list[timedelta] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        self._starts = [c.start for c in self.cues]

    def cue_at(self, offset: Union[timedelta, float, int]) -> Optional[CaptionCue]:
        if not isinstance(offset, timedelta):
            offset = timedelta(seconds=offset)
        idx = bisect_right(self._starts, offset) - 1
        if idx < 0:
            return None
        cue = self.cues[idx]
        return cue if offset < cue.end else None

    def to_dict(self):
        return {"track": self.info.to_dict(), "cues": [c.to_dict() for c in self.cues]}


# ──────────────────────────────
#  Video / playlist
# ──────────────────────────────
@dataclass
class VideoInfo:
    id: str
    title: str
    author: str
    duration: timedelta
    view_count: int = 0
    average_rating: float = 0.0
    keywords: list[str] = field(default_factory=list)
    watermarks: list[str] = field(default_factory=list)
    has_closed_captions: bool = False
    is_embedding_allowed: bool = False
    is_listed: bool = False
    is_rating_allowed: bool = False
    is_muted: bool = False
    streams: list[StreamInfo] = field(default_factory=list)
    caption_tracks: list[CaptionTrackInfo] = field(default_factory=list)

    def stream_by_itag(self, itag: int) -> Optional[StreamInfo]:
        return next((s for s in self.streams if s.itag == itag), None)

    def caption_track(self, language: str) -> Optional[CaptionTrackInfo]:
        return next((t for t in self.caption_tracks if t.language == language), None)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "duration": int(self.duration.total_seconds()),
            "view_count": self.view_count,
            "average_rating": self.average_rating,
            "keywords": self.keywords,
            "watermarks": self.watermarks,
            "flags": {
                "has_closed_captions": self.has_closed_captions,
                "embedding_allowed": self.is_embedding_allowed,
                "listed": self.is_listed,
                "rating_allowed": self.is_rating_allowed,
                "muted": self.is_muted,
            },
            "streams": [s.to_dict() for s in self.streams],
            "captions": [t.to_dict() for t in self.caption_tracks],
        }


@dataclass
class PlaylistInfo:
    id: str
    title: str = ""
    author: str = ""
    description: str = ""
    view_count: int = 0
    video_ids: list[str] = field(default_factory=list)

    def to_dict(self):
        return {
            "id": self.id, "title": self.title, "author": self.author,
            "description": self.description, "view_count": self.view_count,
            "video_ids": self.video_ids,
        }
