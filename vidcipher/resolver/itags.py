"""
Format-code (itag) table.

The host defines a finite set of itags. Each maps to a container, a
quality tier, a display label and the stream kind. Unknown itags fall
back to what the descriptor itself declares (mime type, quality label).
"""
from __future__ import annotations
import re
from typing import NamedTuple, Optional

from .base import ContainerType, StreamKind, VideoQuality

C = ContainerType
Q = VideoQuality
K = StreamKind


class ItagFormat(NamedTuple):
    container: ContainerType
    quality: VideoQuality
    label: str
    kind: StreamKind


ITAGS: dict[int, ItagFormat] = {
    # muxed
    5: ItagFormat(C.FLV, Q.LOW_240, "240p", K.MUXED),
    6: ItagFormat(C.FLV, Q.LOW_240, "270p", K.MUXED),
    13: ItagFormat(C.TGPP, Q.LOW_144, "144p", K.MUXED),
    17: ItagFormat(C.TGPP, Q.LOW_144, "144p", K.MUXED),
    18: ItagFormat(C.MP4, Q.MEDIUM_360, "360p", K.MUXED),
    22: ItagFormat(C.MP4, Q.HIGH_720, "720p", K.MUXED),
    34: ItagFormat(C.FLV, Q.MEDIUM_360, "360p", K.MUXED),
    35: ItagFormat(C.FLV, Q.MEDIUM_480, "480p", K.MUXED),
    36: ItagFormat(C.TGPP, Q.LOW_240, "240p", K.MUXED),
    37: ItagFormat(C.MP4, Q.HIGH_1080, "1080p", K.MUXED),
    38: ItagFormat(C.MP4, Q.HIGH_3072, "3072p", K.MUXED),
    43: ItagFormat(C.WEBM, Q.MEDIUM_360, "360p", K.MUXED),
    44: ItagFormat(C.WEBM, Q.MEDIUM_480, "480p", K.MUXED),
    45: ItagFormat(C.WEBM, Q.HIGH_720, "720p", K.MUXED),
    46: ItagFormat(C.WEBM, Q.HIGH_1080, "1080p", K.MUXED),
    59: ItagFormat(C.MP4, Q.MEDIUM_480, "480p", K.MUXED),
    78: ItagFormat(C.MP4, Q.MEDIUM_480, "480p", K.MUXED),
    # muxed 3D
    82: ItagFormat(C.MP4, Q.MEDIUM_360, "360p", K.MUXED),
    83: ItagFormat(C.MP4, Q.MEDIUM_480, "480p", K.MUXED),
    84: ItagFormat(C.MP4, Q.HIGH_720, "720p", K.MUXED),
    85: ItagFormat(C.MP4, Q.HIGH_1080, "1080p", K.MUXED),
    100: ItagFormat(C.WEBM, Q.MEDIUM_360, "360p", K.MUXED),
    101: ItagFormat(C.WEBM, Q.MEDIUM_480, "480p", K.MUXED),
    102: ItagFormat(C.WEBM, Q.HIGH_720, "720p", K.MUXED),
    # HLS
    91: ItagFormat(C.TS, Q.LOW_144, "144p", K.MUXED),
    92: ItagFormat(C.TS, Q.LOW_240, "240p", K.MUXED),
    93: ItagFormat(C.TS, Q.MEDIUM_360, "360p", K.MUXED),
    94: ItagFormat(C.TS, Q.MEDIUM_480, "480p", K.MUXED),
    95: ItagFormat(C.TS, Q.HIGH_720, "720p", K.MUXED),
    96: ItagFormat(C.TS, Q.HIGH_1080, "1080p", K.MUXED),
    132: ItagFormat(C.TS, Q.LOW_240, "240p", K.MUXED),
    151: ItagFormat(C.TS, Q.LOW_144, "72p", K.MUXED),
    # DASH mp4 video
    133: ItagFormat(C.MP4, Q.LOW_240, "240p", K.VIDEO),
    134: ItagFormat(C.MP4, Q.MEDIUM_360, "360p", K.VIDEO),
    135: ItagFormat(C.MP4, Q.MEDIUM_480, "480p", K.VIDEO),
    136: ItagFormat(C.MP4, Q.HIGH_720, "720p", K.VIDEO),
    137: ItagFormat(C.MP4, Q.HIGH_1080, "1080p", K.VIDEO),
    138: ItagFormat(C.MP4, Q.HIGH_2160, "2160p", K.VIDEO),
    160: ItagFormat(C.MP4, Q.LOW_144, "144p", K.VIDEO),
    212: ItagFormat(C.MP4, Q.MEDIUM_480, "480p", K.VIDEO),
    264: ItagFormat(C.MP4, Q.HIGH_1440, "1440p", K.VIDEO),
    266: ItagFormat(C.MP4, Q.HIGH_2160, "2160p", K.VIDEO),
    298: ItagFormat(C.MP4, Q.HIGH_720, "720p60", K.VIDEO),
    299: ItagFormat(C.MP4, Q.HIGH_1080, "1080p60", K.VIDEO),
    394: ItagFormat(C.MP4, Q.LOW_144, "144p", K.VIDEO),
    395: ItagFormat(C.MP4, Q.LOW_240, "240p", K.VIDEO),
    396: ItagFormat(C.MP4, Q.MEDIUM_360, "360p", K.VIDEO),
    397: ItagFormat(C.MP4, Q.MEDIUM_480, "480p", K.VIDEO),
    398: ItagFormat(C.MP4, Q.HIGH_720, "720p", K.VIDEO),
    399: ItagFormat(C.MP4, Q.HIGH_1080, "1080p", K.VIDEO),
    # DASH mp4 audio
    139: ItagFormat(C.M4A, Q.NO_VIDEO, "audio", K.AUDIO),
    140: ItagFormat(C.M4A, Q.NO_VIDEO, "audio", K.AUDIO),
    141: ItagFormat(C.M4A, Q.NO_VIDEO, "audio", K.AUDIO),
    256: ItagFormat(C.M4A, Q.NO_VIDEO, "audio", K.AUDIO),
    258: ItagFormat(C.M4A, Q.NO_VIDEO, "audio", K.AUDIO),
    325: ItagFormat(C.M4A, Q.NO_VIDEO, "audio", K.AUDIO),
    328: ItagFormat(C.M4A, Q.NO_VIDEO, "audio", K.AUDIO),
    # DASH webm video
    167: ItagFormat(C.WEBM, Q.MEDIUM_360, "360p", K.VIDEO),
    168: ItagFormat(C.WEBM, Q.MEDIUM_480, "480p", K.VIDEO),
    169: ItagFormat(C.WEBM, Q.HIGH_720, "720p", K.VIDEO),
    170: ItagFormat(C.WEBM, Q.HIGH_1080, "1080p", K.VIDEO),
    218: ItagFormat(C.WEBM, Q.MEDIUM_480, "480p", K.VIDEO),
    219: ItagFormat(C.WEBM, Q.MEDIUM_480, "480p", K.VIDEO),
    242: ItagFormat(C.WEBM, Q.LOW_240, "240p", K.VIDEO),
    243: ItagFormat(C.WEBM, Q.MEDIUM_360, "360p", K.VIDEO),
    244: ItagFormat(C.WEBM, Q.MEDIUM_480, "480p", K.VIDEO),
    245: ItagFormat(C.WEBM, Q.MEDIUM_480, "480p", K.VIDEO),
    246: ItagFormat(C.WEBM, Q.MEDIUM_480, "480p", K.VIDEO),
    247: ItagFormat(C.WEBM, Q.HIGH_720, "720p", K.VIDEO),
    248: ItagFormat(C.WEBM, Q.HIGH_1080, "1080p", K.VIDEO),
    271: ItagFormat(C.WEBM, Q.HIGH_1440, "1440p", K.VIDEO),
    272: ItagFormat(C.WEBM, Q.HIGH_2160, "2160p", K.VIDEO),
    278: ItagFormat(C.WEBM, Q.LOW_144, "144p", K.VIDEO),
    302: ItagFormat(C.WEBM, Q.HIGH_720, "720p60", K.VIDEO),
    303: ItagFormat(C.WEBM, Q.HIGH_1080, "1080p60", K.VIDEO),
    308: ItagFormat(C.WEBM, Q.HIGH_1440, "1440p60", K.VIDEO),
    313: ItagFormat(C.WEBM, Q.HIGH_2160, "2160p", K.VIDEO),
    315: ItagFormat(C.WEBM, Q.HIGH_2160, "2160p60", K.VIDEO),
    330: ItagFormat(C.WEBM, Q.LOW_144, "144p60 HDR", K.VIDEO),
    331: ItagFormat(C.WEBM, Q.LOW_240, "240p60 HDR", K.VIDEO),
    332: ItagFormat(C.WEBM, Q.MEDIUM_360, "360p60 HDR", K.VIDEO),
    333: ItagFormat(C.WEBM, Q.MEDIUM_480, "480p60 HDR", K.VIDEO),
    334: ItagFormat(C.WEBM, Q.HIGH_720, "720p60 HDR", K.VIDEO),
    335: ItagFormat(C.WEBM, Q.HIGH_1080, "1080p60 HDR", K.VIDEO),
    336: ItagFormat(C.WEBM, Q.HIGH_1440, "1440p60 HDR", K.VIDEO),
    337: ItagFormat(C.WEBM, Q.HIGH_2160, "2160p60 HDR", K.VIDEO),
    # DASH webm audio
    171: ItagFormat(C.WEBM, Q.NO_VIDEO, "audio", K.AUDIO),
    172: ItagFormat(C.WEBM, Q.NO_VIDEO, "audio", K.AUDIO),
    249: ItagFormat(C.WEBM, Q.NO_VIDEO, "audio", K.AUDIO),
    250: ItagFormat(C.WEBM, Q.NO_VIDEO, "audio", K.AUDIO),
    251: ItagFormat(C.WEBM, Q.NO_VIDEO, "audio", K.AUDIO),
}

_MIME_CONTAINERS = {
    "video/mp4": C.MP4,
    "audio/mp4": C.M4A,
    "video/webm": C.WEBM,
    "audio/webm": C.WEBM,
    "video/3gpp": C.TGPP,
    "video/x-flv": C.FLV,
    "video/mp2t": C.TS,
}

_LABEL_HEIGHT_RE = re.compile(r"(\d{3,4})p")


def container_from_mime(mime_type: str) -> ContainerType:
    base = (mime_type or "").split(";")[0].strip().lower()
    return _MIME_CONTAINERS.get(base, C.UNKNOWN)


def quality_from_label(label: str | None) -> VideoQuality:
    m = _LABEL_HEIGHT_RE.search(label or "")
    if not m:
        return Q.UNKNOWN
    return VideoQuality.from_height(int(m.group(1)))


def lookup(itag: int, *, mime_type: str = "", quality_label: Optional[str] = None) -> ItagFormat:
    """Resolve an itag, using the descriptor's own declarations for unknown codes."""
    known = ITAGS.get(itag)
    if known is not None:
        if quality_label and known.kind is not K.AUDIO:
            return known._replace(label=quality_label)
        return known
    container = container_from_mime(mime_type)
    if (mime_type or "").startswith("audio/"):
        return ItagFormat(container, Q.NO_VIDEO, "audio", K.AUDIO)
    quality = quality_from_label(quality_label)
    kind = K.VIDEO if "," not in (mime_type or "") and quality_label else K.MUXED
    return ItagFormat(container, quality, quality_label or "unknown", kind)
