"""
Stream descriptor parsing and resolution into playable StreamInfo records.

Descriptors come from the inline stream maps (muxed, then adaptive) and,
when the page carries no adaptive streams, from the DASH manifest. Each
descriptor may need its signature deciphered and its size looked up; a
descriptor that fails deciphering is dropped, not the whole video.
"""
from __future__ import annotations
import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from lxml import etree

from .base import StreamInfo
from .cipher.cache import CipherCache, player_version_key
from .cipher.operations import decipher
from .errors import CipherError, CipherProgramNotFound, MalformedEntry, NoStreamsAvailable
from .fetcher import Fetcher
from .itags import lookup
from .parsing import collect, parse_query, split_list, to_int

log = logging.getLogger("vidcipher.resolver")

_YT_NS = "http://youtube.com/yt/2012/10/10"
_CLEN_RE = re.compile(r"clen[/=](\d+)")
_DASH_SIGNATURE_RE = re.compile(r"/s/([\w.]+)")


@dataclass(frozen=True)
class StreamDescriptor:
    itag: int
    url: str
    signature: Optional[str] = None          # ciphered, needs the player program
    signature_param: str = "signature"
    clear_signature: Optional[str] = None    # already usable
    mime_type: str = ""
    quality_label: Optional[str] = None
    content_length: int = 0
    source: str = "muxed"                    # "muxed" | "adaptive" | "dash"

    @property
    def needs_decipher(self) -> bool:
        return bool(self.signature)


@dataclass
class StreamFailure:
    itag: int
    error: Exception


# ──────────────────────────────
#  URL helpers
# ──────────────────────────────
def set_query_param(url: str, key: str, value: str) -> str:
    parts = urlparse(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != key]
    query.append((key, value))
    return urlunparse(parts._replace(query=urlencode(query)))


def content_length_from_url(url: str) -> int:
    m = _CLEN_RE.search(url)
    return int(m.group(1)) if m else 0


# ──────────────────────────────
#  Inline descriptors
# ──────────────────────────────
def _descriptor_parser(source: str) -> Callable[[str], StreamDescriptor]:
    def parse(raw: str) -> StreamDescriptor:
        q = parse_query(raw)
        itag = to_int(q.get("itag"), default=-1)
        if itag < 0:
            raise MalformedEntry(raw, "descriptor without a valid itag")
        url = q.get("url", "")
        if not urlparse(url).scheme:
            raise MalformedEntry(raw, "descriptor without an absolute url")
        return StreamDescriptor(
            itag=itag,
            url=url,
            signature=q.get("s") or None,
            signature_param=q.get("sp") or "signature",
            clear_signature=q.get("sig") or None,
            mime_type=q.get("type", ""),
            quality_label=q.get("quality_label") or None,
            content_length=to_int(q.get("clen")),
            source=source,
        )
    return parse


def parse_stream_map(raw: Optional[str], source: str) -> list[StreamDescriptor]:
    return collect(split_list(raw), _descriptor_parser(source), what=f"{source} stream")


def parse_inline_descriptors(data: dict[str, str]) -> list[StreamDescriptor]:
    return (parse_stream_map(data.get("url_encoded_fmt_stream_map"), "muxed")
            + parse_stream_map(data.get("adaptive_fmts"), "adaptive"))


# ──────────────────────────────
#  DASH manifest
# ──────────────────────────────
def parse_dash_manifest(xml_text: str) -> list[StreamDescriptor]:
    try:
        root = etree.fromstring(xml_text.encode("utf-8"))
    except etree.XMLSyntaxError as e:
        log.warning(f"DASH manifest is not valid XML: {e}")
        return []

    descriptors = []
    for rep in root.iter("{*}Representation"):
        # segmented (live / OTF) representations cannot be read as one file
        init = next(rep.iter("{*}Initialization"), None)
        if init is not None and "sq/" in (init.get("sourceURL") or ""):
            continue
        base = next(rep.iter("{*}BaseURL"), None)
        itag = to_int(rep.get("id"), default=-1)
        if base is None or not (base.text or "").strip() or itag < 0:
            log.debug(f"Skipping DASH representation without id or BaseURL: {dict(rep.attrib)}")
            continue
        url = base.text.strip()
        size = to_int(base.get(f"{{{_YT_NS}}}contentLength")) or content_length_from_url(url)
        parent = rep.getparent()
        mime = rep.get("mimeType") or (parent.get("mimeType") if parent is not None else "") or ""
        codecs = rep.get("codecs")
        if codecs:
            mime = f'{mime}; codecs="{codecs}"'
        height = to_int(rep.get("height"))
        descriptors.append(StreamDescriptor(
            itag=itag, url=url, mime_type=mime, content_length=size, source="dash",
            quality_label=f"{height}p" if height else None,
        ))
    return descriptors


# ──────────────────────────────
#  Resolver
# ──────────────────────────────
class StreamResolver:
    """Turns descriptors into StreamInfo, deciphering signatures through the shared cache."""

    def __init__(self, fetcher: Fetcher, cipher_cache: CipherCache):
        self.fetcher = fetcher
        self.cipher_cache = cipher_cache
        self.failures: list[StreamFailure] = []

    async def _program_for(self, player_url: Optional[str]):
        if not player_url:
            raise CipherProgramNotFound("unknown", "signature present but no player script URL")
        version = player_version_key(player_url)
        return await self.cipher_cache.get_or_extract(version, lambda: self.fetcher.get(player_url))

    async def decipher_signature(self, signature: str, player_url: Optional[str]) -> str:
        program = await self._program_for(player_url)
        return decipher(program, signature)

    async def fetch_dash_descriptors(self, manifest_url: str, player_url: Optional[str]) -> list[StreamDescriptor]:
        m = _DASH_SIGNATURE_RE.search(manifest_url)
        if m:
            try:
                plain = await self.decipher_signature(m.group(1), player_url)
            except CipherError as e:
                log.warning(f"Cannot decipher DASH manifest signature, skipping manifest: {e}")
                self.failures.append(StreamFailure(itag=-1, error=e))
                return []
            manifest_url = manifest_url[:m.start()] + f"/signature/{plain}" + manifest_url[m.end():]
        xml_text = await self.fetcher.get(manifest_url)
        return parse_dash_manifest(xml_text)

    async def _final_url(self, d: StreamDescriptor, player_url: Optional[str]) -> str:
        url = d.url
        if d.clear_signature:
            url = set_query_param(url, "signature", d.clear_signature)
        elif d.needs_decipher:
            plain = await self.decipher_signature(d.signature, player_url)
            url = set_query_param(url, d.signature_param, plain)
        if d.source == "muxed" and "ratebypass" not in url:
            url = set_query_param(url, "ratebypass", "yes")
        return url

    async def _size(self, d: StreamDescriptor, url: str) -> int:
        return d.content_length or content_length_from_url(url) or await self.fetcher.get_content_length(url)

    async def resolve_one(self, d: StreamDescriptor, player_url: Optional[str]) -> Optional[StreamInfo]:
        try:
            url = await self._final_url(d, player_url)
        except CipherError as e:
            log.warning(f"Dropping stream itag={d.itag}: {e}")
            self.failures.append(StreamFailure(itag=d.itag, error=e))
            return None
        size = await self._size(d, url)
        if size <= 0:
            log.warning(f"Dropping stream itag={d.itag}: size unknown")
            return None
        fmt = lookup(d.itag, mime_type=d.mime_type, quality_label=d.quality_label)
        return StreamInfo(
            itag=d.itag, url=url, quality=fmt.quality, container=fmt.container,
            quality_label=fmt.label, size=size, kind=fmt.kind, mime_type=d.mime_type,
        )

    async def resolve(
        self,
        video_id: str,
        inline: list[StreamDescriptor],
        *,
        dash_manifest_url: Optional[str] = None,
        player_url: Optional[str] = None,
    ) -> list[StreamInfo]:
        descriptors = list(inline)
        if dash_manifest_url and not any(d.source == "adaptive" for d in inline):
            descriptors += await self.fetch_dash_descriptors(dash_manifest_url, player_url)

        unique: dict[int, StreamDescriptor] = {}
        for d in descriptors:
            unique.setdefault(d.itag, d)

        try:
            async with asyncio.TaskGroup() as tg:
                tasks = [tg.create_task(self.resolve_one(d, player_url)) for d in unique.values()]
        except ExceptionGroup as group:
            # siblings are cancelled by now; surface the first error as-is
            raise group.exceptions[0] from None
        streams = [s for s in (t.result() for t in tasks) if s is not None]
        if not streams:
            error = NoStreamsAvailable(video_id, self.failures)
            if self.failures:
                raise error from self.failures[-1].error
            raise error
        log.info(f"[{video_id}] Resolved {len(streams)} stream(s), dropped {len(unique) - len(streams)}")
        return streams
