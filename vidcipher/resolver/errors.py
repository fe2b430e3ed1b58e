"""
Error taxonomy for the resolver.

  TransportError      raised by the fetcher, passed through untouched
  MalformedEntry      one bad list entry, absorbed by the list builders
  InvalidIdentifier   caller passed something that is not an id or URL
  ResolutionError     everything a caller of the engine has to handle
"""
from __future__ import annotations
from typing import Optional


class TransportError(Exception):
    """A fetch failed: connection error, timeout or HTTP error status."""

    def __init__(self, url: str, message: str, status: Optional[int] = None):
        super().__init__(f"{message} ({url})")
        self.url = url
        self.status = status


class MalformedEntry(ValueError):
    def __init__(self, raw, reason: str):
        super().__init__(f"{reason}: {str(raw)[:80]!r}")
        self.raw = raw
        self.reason = reason


class InvalidIdentifier(ValueError):
    """A video or playlist id (or URL) that cannot name anything on the host."""

    def __init__(self, kind: str, value: str):
        super().__init__(f"Invalid {kind} id or URL: {value!r}")
        self.kind = kind
        self.value = value


class ResolutionError(Exception):
    pass


# ──────────────────────────────
#  Status-derived
# ──────────────────────────────
class VideoUnplayable(ResolutionError):
    """The host reports the video as unavailable, private or deleted."""

    def __init__(self, video_id: str, reason: str = "", code: Optional[str] = None):
        super().__init__(f"Video {video_id} is unplayable: {reason or 'no reason given'}"
                         + (f" (code {code})" if code else ""))
        self.video_id = video_id
        self.reason = reason
        self.code = code


class RegionBlocked(VideoUnplayable):
    pass


class RequiresPurchase(VideoUnplayable):
    def __init__(self, video_id: str, reason: str = "", code: Optional[str] = None,
                 preview_video_id: Optional[str] = None):
        super().__init__(video_id, reason or "video requires purchase", code)
        self.preview_video_id = preview_video_id


# ──────────────────────────────
#  Streams
# ──────────────────────────────
class NoStreamsAvailable(ResolutionError):
    def __init__(self, video_id: str, failures: Optional[list] = None):
        failures = failures or []
        detail = f"; {len(failures)} descriptor(s) failed" if failures else ""
        super().__init__(f"No playable streams for video {video_id}{detail}")
        self.video_id = video_id
        self.failures = failures


# ──────────────────────────────
#  Cipher extraction
# ──────────────────────────────
class CipherError(ResolutionError):
    def __init__(self, version: str, message: str, fragment: str = ""):
        text = f"[player {version}] {message}"
        if fragment:
            text += f": {fragment[:120]!r}"
        super().__init__(text)
        self.version = version
        self.fragment = fragment


class CipherProgramNotFound(CipherError):
    """The entry transformation function could not be located."""


class CipherOperationUnrecognized(CipherError):
    """A call in the entry function matched none of the known helper shapes."""
