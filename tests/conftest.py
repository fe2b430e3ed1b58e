import json
from urllib.parse import urlencode

import pytest

from vidcipher.config import Settings
from vidcipher.resolver.cipher.cache import CipherCache
from vidcipher.resolver.errors import TransportError
from vidcipher.resolver.runner import ResolverEngine

PLAYER_PATH = "/yts/jsbin/player-vflTest01/en_US/base.js"

# Trimmed-down shape of a real minified player: helper object + entry function
# + the call site that feeds it the "s" parameter.
PLAYER_SCRIPT = """var _yt_player={};(function(g){var window=this;
var Xy={kT:function(a){a.reverse()},
Qp:function(a,b){a.splice(0,b)},
$w:function(a,b){var c=a[0];a[0]=a[b%a.length];a[b%a.length]=c}};
var Lk=function(a,b){return a+b};
Go=function(a){a=a.split("");Xy.$w(a,3);Xy.kT(a,60);Xy.Qp(a,2);return a.join("")};
g.Pb=function(a,b,c){var d=new Mk(a);c&&d.set("signature",Go(c));return d.toString()};
})(_yt_player);
"""

# Go("0123456789") and Go("abcdefghij")
DECIPHERED_DIGITS = "76540213"
DECIPHERED_LETTERS = "hgfeacbd"

VIDEO_ID = "_QdPW8JrYzQ"
WATERMARKS = (",https://s.ytimg.com/yts/img/watermark/youtube_watermark-vflHX6b6E.png"
              ",https://s.ytimg.com/yts/img/watermark/youtube_hd_watermark-vflAzLcD6.png")


def stream_map(*entries):
    return ",".join(urlencode(e) for e in entries)


def videoplayback(itag, extra=""):
    return f"https://r1.googlevideo.com/videoplayback?id=v1&itag={itag}{extra}"


MUXED = stream_map(
    {"itag": "22", "url": videoplayback(22), "quality": "hd720",
     "type": 'video/mp4; codecs="avc1.64001F, mp4a.40.2"', "s": "0123456789", "sp": "signature"},
    {"itag": "18", "url": videoplayback(18), "quality": "medium",
     "type": 'video/mp4; codecs="avc1.42001E, mp4a.40.2"', "sig": "CLEARSIG"},
    {"itag": "oops", "url": videoplayback(0)},
)

ADAPTIVE = stream_map(
    {"itag": "137", "url": videoplayback(137), "clen": "1000000", "quality_label": "1080p",
     "type": 'video/mp4; codecs="avc1.640028"', "s": "abcdefghij"},
    {"itag": "140", "url": videoplayback(140), "clen": "50000",
     "type": 'audio/mp4; codecs="mp4a.40.2"', "s": "abcdefghij"},
    {"itag": "22", "url": videoplayback(22, "&dup=1"), "clen": "1"},
)

CAPTION_TRACKS = ",".join([
    urlencode({"u": f"https://www.youtube.com/api/timedtext?v={VIDEO_ID}&lang=en", "lc": "en", "n": "English", "v": ".en"}),
    urlencode({"u": f"https://www.youtube.com/api/timedtext?v={VIDEO_ID}&lang=fr", "lc": "fr", "n": "French", "v": "a.fr"}),
    urlencode({"u": "https://www.youtube.com/api/timedtext?broken=1", "n": "No language"}),
])


def normal_args(**overrides):
    args = {
        "video_id": VIDEO_ID,
        "title": "This is what happens when you reply to spam email | James Veitch",
        "author": "TED",
        "length_seconds": "589",
        "view_count": "12345678",
        "avg_rating": "4.8",
        "keywords": "TED,TED Talk,,spam,comedy,email,humor",
        "watermark": WATERMARKS,
        "has_cc": True,
        "allow_embed": "1",
        "is_listed": "1",
        "allow_ratings": "1",
        "muted": "0",
        "caption_tracks": CAPTION_TRACKS,
        "url_encoded_fmt_stream_map": MUXED,
        "adaptive_fmts": ADAPTIVE,
    }
    args.update(overrides)
    return args


def watch_page(args=None, js=PLAYER_PATH, sts=17500):
    if args is None:
        return ('<html><div id="player" class="player-age-gate-content">'
                "Sign in to confirm your age</div></html>")
    config = {"assets": {"js": js}, "sts": sts, "args": args}
    return ("<html><script>var ytplayer = ytplayer || {};"
            f"ytplayer.config = {json.dumps(config)};ytplayer.load = function() {{}};"
            "</script></html>")


def embed_page(js=PLAYER_PATH, sts=17500):
    return ("<html><script>yt.setConfig({'PLAYER_CONFIG': "
            + json.dumps({"assets": {"js": js}, "sts": sts}) + "});</script></html>")


CAPTION_DOCUMENT = """<?xml version="1.0" encoding="utf-8" ?>
<timedtext format="3"><body>
<p t="41000" d="3000">And then <s>it</s> replied.</p>
<p t="38500" d="2600">I was looking at my phone.
I thought, I could just delete this.</p>
<p t="0" d="5000">Hello &amp;amp; welcome</p>
<p t="6000">no duration</p>
<p t="9000" d="1000"></p>
</body></timedtext>
"""

DASH_MANIFEST = """<?xml version="1.0" encoding="UTF-8"?>
<MPD xmlns="urn:mpeg:DASH:schema:MPD:2011" xmlns:yt="http://youtube.com/yt/2012/10/10" type="static">
 <Period>
  <AdaptationSet mimeType="audio/mp4">
   <Representation id="140" codecs="mp4a.40.2" bandwidth="130000">
    <BaseURL yt:contentLength="1693652">https://r2.googlevideo.com/videoplayback/id/1/itag/140/clen/1693652/</BaseURL>
   </Representation>
  </AdaptationSet>
  <AdaptationSet mimeType="video/mp4">
   <Representation id="133" codecs="avc4d4015" width="426" height="240" bandwidth="250000">
    <BaseURL>https://r2.googlevideo.com/videoplayback/id/1/itag/133/clen/2400000/</BaseURL>
   </Representation>
   <Representation id="160" codecs="avc4d400c" width="256" height="144">
    <BaseURL>https://r2.googlevideo.com/videoplayback/id/1/itag/160/live/1/</BaseURL>
    <SegmentList><Initialization sourceURL="sq/0"/></SegmentList>
   </Representation>
  </AdaptationSet>
 </Period>
</MPD>
"""


class FakeFetcher:
    """Serves canned responses by URL substring, first match wins."""

    def __init__(self, routes=None, sizes=None, blobs=None):
        self.routes = list((routes or {}).items())
        self.sizes = sizes or {}
        self.blobs = blobs or {}
        self.calls = []
        self.closed = False

    def _match(self, table, url):
        for key, value in table:
            if key in url:
                return value
        raise AssertionError(f"unexpected fetch: {url}")

    async def get(self, url, *, base_url=None, headers=None, params=None):
        self.calls.append((url, params))
        value = self._match(self.routes, url)
        if callable(value):
            value = value(url, params or {})
        if isinstance(value, Exception):
            raise value
        return value

    async def get_json(self, url, *, base_url=None, headers=None, params=None):
        value = await self.get(url, params=params)
        if not isinstance(value, str):
            return value
        try:
            return json.loads(value)
        except ValueError as e:
            raise TransportError(url, f"response is not JSON: {e}") from e

    async def get_content_length(self, url, *, headers=None):
        self.calls.append((url, "HEAD"))
        return self._match(self.sizes.items(), url) if self.sizes else 0

    async def get_range(self, url, start, end, *, headers=None):
        self.calls.append((url, (start, end)))
        return self._match(self.blobs.items(), url)[start:end + 1]

    async def close(self):
        self.closed = True

    def count(self, fragment):
        return sum(1 for url, _ in self.calls if fragment in url)


DEFAULT_SIZES = {"itag=22": 5_000_000, "itag=18": 3_000_000}


@pytest.fixture
def settings():
    return Settings(base_url="https://www.youtube.com", chunk_size=10, playlist_max_pages=10)


@pytest.fixture
def make_engine(settings):
    def build(routes, sizes=None, blobs=None, cache=None):
        fetcher = FakeFetcher(routes, sizes=DEFAULT_SIZES if sizes is None else sizes, blobs=blobs)
        engine = ResolverEngine(settings=settings, fetcher=fetcher, cipher_cache=cache or CipherCache())
        return engine, fetcher
    return build
