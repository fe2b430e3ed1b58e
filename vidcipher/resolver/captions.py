"""
Timed-text (caption) documents -> CaptionTrack.

Two document formats are served:
  format 3   <timedtext><body><p t="1200" d="3400">text<br/>more</p>...
  legacy     <transcript><text start="1.2" dur="3.4">text</text>...
"""
from __future__ import annotations
import html
import logging
from datetime import timedelta

from lxml import etree

from .base import CaptionCue, CaptionTrack, CaptionTrackInfo
from .errors import MalformedEntry
from .parsing import collect

log = logging.getLogger("vidcipher.resolver")


def _element_text(el) -> str:
    parts = []
    if el.text:
        parts.append(el.text)
    for child in el:
        if child.tag == "br":
            parts.append("\n")
        elif isinstance(child.tag, str):
            parts.append("".join(child.itertext()))
        if child.tail:
            parts.append(child.tail)
    return html.unescape("".join(parts)).strip()


def _parse_p(el) -> CaptionCue:
    try:
        start = int(el.get("t"))
        duration = int(el.get("d"))
    except (TypeError, ValueError):
        raise MalformedEntry(etree.tostring(el, encoding="unicode"), "cue without t/d timing")
    return CaptionCue(start=timedelta(milliseconds=start), duration=timedelta(milliseconds=duration),
                      text=_element_text(el))


def _parse_text(el) -> CaptionCue:
    try:
        start = float(el.get("start"))
        duration = float(el.get("dur", "0"))
    except (TypeError, ValueError):
        raise MalformedEntry(etree.tostring(el, encoding="unicode"), "cue without start/dur timing")
    return CaptionCue(start=timedelta(seconds=start), duration=timedelta(seconds=duration),
                      text=_element_text(el))


def parse_cues(document: str) -> list[CaptionCue]:
    try:
        root = etree.fromstring(document.encode("utf-8"))
    except etree.XMLSyntaxError as e:
        log.warning(f"Caption document is not valid XML: {e}")
        return []
    cues = collect(root.iter("p"), _parse_p, what="caption cue")
    cues += collect(root.iter("text"), _parse_text, what="caption cue")
    return [c for c in cues if c.text]


def build_track(info: CaptionTrackInfo, cues: list[CaptionCue]) -> CaptionTrack:
    """Stable-sort by start and clip overlaps so lookups can bisect."""
    ordered = sorted(cues, key=lambda c: c.start)
    clipped = []
    for cue, nxt in zip(ordered, ordered[1:] + [None]):
        if nxt is not None and cue.end > nxt.start:
            cue = CaptionCue(start=cue.start, duration=nxt.start - cue.start, text=cue.text)
        clipped.append(cue)
    return CaptionTrack(info=info, cues=clipped)


def parse_caption_track(info: CaptionTrackInfo, document: str) -> CaptionTrack:
    return build_track(info, parse_cues(document))
