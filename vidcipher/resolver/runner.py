"""
Resolver engine: turns a video or playlist id into resolved metadata.

Usage:
    engine = ResolverEngine()
    video = await engine.resolve_video("_QdPW8JrYzQ")
    for stream in video.streams:
        print(stream.itag, stream.quality_label, stream.url)
    await engine.close()
"""
from __future__ import annotations
import logging
from dataclasses import replace
from typing import Optional
from urllib.parse import urljoin

from vidcipher.config import Settings
from .base import CaptionTrack, CaptionTrackInfo, PlaylistInfo, StreamInfo, VideoInfo
from .captions import parse_caption_track
from .cipher.cache import CipherCache
from .errors import RegionBlocked, RequiresPurchase, VideoUnplayable
from .fetcher import Fetcher
from .ids import parse_playlist_id, parse_video_id
from .media import MediaStream
from .metadata import (
    PlayerContext, check_playability, extract_video_info, merge_sources,
    parse_embed_page, parse_watch_page,
)
from .parsing import parse_query
from .playlist import PAGE_STEP, merge_page
from .streams import StreamResolver, parse_inline_descriptors

log = logging.getLogger("vidcipher.resolver")

# el= values tried against get_video_info, in order
VIDEO_INFO_CONTEXTS = ("embedded", "detailpage")


class ResolverEngine:
    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        fetcher: Optional[Fetcher] = None,
        cipher_cache: Optional[CipherCache] = None,
    ):
        self.settings = settings or Settings.from_env()
        self.fetcher = fetcher or Fetcher(
            timeout=self.settings.timeout,
            proxy=self.settings.proxy,
            user_agent=self.settings.user_agent,
            language=self.settings.language,
        )
        self.cipher_cache = cipher_cache or CipherCache()

    async def close(self):
        await self.fetcher.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    def _url(self, path: str) -> str:
        return f"{self.settings.base_url}{path}"

    # ── page fetches ──────────────────

    async def _watch_page(self, video_id: str) -> PlayerContext:
        html = await self.fetcher.get(
            self._url("/watch"),
            params={"v": video_id, "disable_polymer": "true", "hl": self.settings.language},
        )
        return parse_watch_page(html)

    async def _embed_page(self, video_id: str) -> PlayerContext:
        html = await self.fetcher.get(self._url(f"/embed/{video_id}"), params={"hl": self.settings.language})
        return parse_embed_page(html)

    async def _video_info(self, video_id: str, el: str, sts: Optional[str] = None) -> dict[str, str]:
        params = {
            "video_id": video_id,
            "el": el,
            "eurl": f"https://youtube.googleapis.com/v/{video_id}",
            "hl": self.settings.language,
        }
        if sts:
            params["sts"] = sts
        return parse_query(await self.fetcher.get(self._url("/get_video_info"), params=params))

    async def _secondary_source(self, video_id: str, sts: Optional[str]) -> dict[str, str]:
        data: dict[str, str] = {}
        for el in VIDEO_INFO_CONTEXTS:
            data = await self._video_info(video_id, el, sts)
            if data.get("status", "ok").lower() != "fail":
                return data
            log.debug(f"[{video_id}] get_video_info el={el} failed: {data.get('reason', '')}")
        return data

    # ── public API ──────────────────

    async def check_exists(self, video_id: str) -> bool:
        video_id = parse_video_id(video_id)
        data = await self._video_info(video_id, "detailpage")
        try:
            check_playability(video_id, data)
        except (RegionBlocked, RequiresPurchase):
            return True
        except VideoUnplayable:
            return False
        return True

    async def resolve_video(self, video_id: str) -> VideoInfo:
        video_id = parse_video_id(video_id)
        log.info(f"[{video_id}] Resolving video...")

        page = await self._watch_page(video_id)
        if page.args:
            check_playability(video_id, page.args)

        data = page.args
        if page.age_gated or not page.has_streams or not page.args.get("title"):
            if not page.player_url or not page.sts:
                embed = await self._embed_page(video_id)
                page.player_url = page.player_url or embed.player_url
                page.sts = page.sts or embed.sts
            secondary = await self._secondary_source(video_id, page.sts)
            if not page.args:
                check_playability(video_id, secondary)
            data = merge_sources(page.args, secondary)
            check_playability(video_id, data)

        player_url = urljoin(self.settings.base_url + "/", page.player_url) if page.player_url else None
        info = extract_video_info(video_id, data)
        resolver = StreamResolver(self.fetcher, self.cipher_cache)
        streams = await resolver.resolve(
            video_id,
            parse_inline_descriptors(data),
            dash_manifest_url=data.get("dashmpd") or None,
            player_url=player_url,
        )
        log.info(f"[{video_id}] Resolved '{info.title}' with {len(streams)} stream(s), "
                 f"{len(info.caption_tracks)} caption track(s)")
        return replace(info, streams=streams)

    async def resolve_playlist(self, playlist_id: str) -> PlaylistInfo:
        playlist_id = parse_playlist_id(playlist_id)
        info = PlaylistInfo(id=playlist_id)
        for page_no in range(self.settings.playlist_max_pages):
            page = await self.fetcher.get_json(
                self._url("/list_ajax"),
                params={
                    "style": "json",
                    "action_get_list": "1",
                    "list": playlist_id,
                    "index": str(page_no * PAGE_STEP),
                    "hl": self.settings.language,
                },
            )
            if not isinstance(page, dict):
                break
            if merge_page(info, page) == 0:
                break
        log.info(f"[{playlist_id}] Playlist '{info.title}' with {len(info.video_ids)} video(s)")
        return info

    async def open_stream(self, stream: StreamInfo) -> MediaStream:
        return MediaStream(stream, self.fetcher, chunk_size=self.settings.chunk_size)

    async def fetch_caption_track(self, track: CaptionTrackInfo) -> CaptionTrack:
        url = urljoin(self.settings.base_url + "/", track.url)
        document = await self.fetcher.get(url, params={"fmt": "3"} if "fmt=" not in url else None)
        caption_track = parse_caption_track(track, document)
        log.info(f"Caption track [{track.language}] with {len(caption_track.cues)} cue(s)")
        return caption_track
