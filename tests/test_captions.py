from datetime import timedelta

from vidcipher.resolver.base import CaptionCue, CaptionTrackInfo
from vidcipher.resolver.captions import build_track, parse_caption_track, parse_cues

from conftest import CAPTION_DOCUMENT

INFO = CaptionTrackInfo(url="https://www.youtube.com/api/timedtext?lang=en", language="en", name="English")


def cue(start, duration, text="x"):
    return CaptionCue(start=timedelta(seconds=start), duration=timedelta(seconds=duration), text=text)


def test_format3_document_is_sorted_and_cleaned():
    """Format 3 cues come back sorted with markup and entities stripped"""
    track = parse_caption_track(INFO, CAPTION_DOCUMENT)
    texts = [c.text for c in track.cues]
    assert texts == [
        "Hello & welcome",
        "I was looking at my phone.\nI thought, I could just delete this.",
        "And then it replied.",
    ]
    assert track.cues[0].start == timedelta(0)
    assert track.cues[2].start == timedelta(seconds=41)


def test_overlapping_cue_is_clipped_to_next_start():
    """A cue running into the next one ends where the next starts"""
    track = parse_caption_track(INFO, CAPTION_DOCUMENT)
    assert track.cues[1].end == timedelta(seconds=41)


def test_cue_at_offsets():
    """Offset lookup honours the exclusive end and gaps between cues"""
    track = parse_caption_track(INFO, CAPTION_DOCUMENT)
    assert track.cue_at(2.5).text == "Hello & welcome"
    assert track.cue_at(timedelta(seconds=40)).text.startswith("I was looking")
    assert track.cue_at(41.05).text == "And then it replied."
    assert track.cue_at(5) is None          # end is exclusive
    assert track.cue_at(20) is None         # gap between cues
    assert track.cue_at(-1) is None
    assert track.cue_at(100) is None


def test_legacy_transcript_format():
    """Older transcript documents use seconds and double-escaped text"""
    document = """<?xml version="1.0" encoding="utf-8" ?><transcript>
<text start="1.5" dur="2">first &amp;#39;line&amp;#39;</text>
<text start="4" dur="1.25">second</text>
<text dur="3">no start</text>
</transcript>"""
    cues = parse_cues(document)
    assert [c.text for c in cues] == ["first 'line'", "second"]
    assert cues[1].duration == timedelta(seconds=1.25)


def test_invalid_document_yields_no_cues():
    """Broken XML gives an empty cue list"""
    assert parse_cues("<timedtext><body><p") == []


def test_build_track_keeps_order_of_equal_starts():
    """Cues sharing a start time keep their document order"""
    track = build_track(INFO, [cue(5, 1, "b"), cue(1, 1, "a"), cue(5, 1, "c")])
    assert [c.text for c in track.cues] == ["a", "b", "c"]
    assert track.cues[1].duration == timedelta(0)
    assert track.cue_at(5.5).text == "c"


def test_empty_track():
    """Track without cues answers None for any offset"""
    track = build_track(INFO, [])
    assert track.cue_at(0) is None
