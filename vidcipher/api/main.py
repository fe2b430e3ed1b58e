from contextlib import asynccontextmanager
import logging

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse

from vidcipher.config import Settings, configure_logging
from vidcipher.resolver.errors import (
    CipherError, InvalidIdentifier, NoStreamsAvailable, RegionBlocked,
    RequiresPurchase, TransportError, VideoUnplayable,
)
from vidcipher.resolver.runner import ResolverEngine

log = logging.getLogger("vidcipher.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    app.state.engine = ResolverEngine(settings=settings)
    log.info("Resolver engine started")
    try:
        yield
    finally:
        await app.state.engine.close()


app = FastAPI(title="vidcipher", lifespan=lifespan)


def get_engine(request: Request) -> ResolverEngine:
    return request.app.state.engine


# --- ERROR MAPPING ---
def _error(status: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": type(exc).__name__, "detail": str(exc)})


@app.exception_handler(InvalidIdentifier)
async def bad_id(request: Request, exc: InvalidIdentifier):
    return _error(400, exc)


@app.exception_handler(VideoUnplayable)
async def unplayable(request: Request, exc: VideoUnplayable):
    return _error(403 if isinstance(exc, (RegionBlocked, RequiresPurchase)) else 404, exc)


@app.exception_handler(NoStreamsAvailable)
async def no_streams(request: Request, exc: NoStreamsAvailable):
    return _error(422, exc)


@app.exception_handler(CipherError)
async def cipher_failed(request: Request, exc: CipherError):
    log.error(f"Cipher extraction needs updating: {exc}")
    return _error(502, exc)


@app.exception_handler(TransportError)
async def upstream_failed(request: Request, exc: TransportError):
    log.warning(f"Upstream fetch failed: {exc}")
    return _error(502, exc)


# --- VIDEOS ---
@app.get("/video/{video_id}")
async def video_info(video_id: str, engine: ResolverEngine = Depends(get_engine)):
    info = await engine.resolve_video(video_id)
    return info.to_dict()


@app.get("/video/{video_id}/exists")
async def video_exists(video_id: str, engine: ResolverEngine = Depends(get_engine)):
    return {"id": video_id, "exists": await engine.check_exists(video_id)}


@app.get("/video/{video_id}/captions/{language}")
async def video_captions(video_id: str, language: str, offset: float | None = None,
                         engine: ResolverEngine = Depends(get_engine)):
    info = await engine.resolve_video(video_id)
    track_info = info.caption_track(language)
    if track_info is None:
        raise HTTPException(status_code=404, detail=f"No '{language}' caption track")
    track = await engine.fetch_caption_track(track_info)
    if offset is None:
        return track.to_dict()
    cue = track.cue_at(offset)
    return {"offset": offset, "cue": cue.to_dict() if cue else None}


@app.get("/video/{video_id}/stream/{itag}")
async def video_stream(video_id: str, itag: int, engine: ResolverEngine = Depends(get_engine)):
    info = await engine.resolve_video(video_id)
    stream = info.stream_by_itag(itag)
    if stream is None:
        raise HTTPException(status_code=404, detail=f"No stream with itag {itag}")
    media = await engine.open_stream(stream)
    return StreamingResponse(
        media, media_type=stream.mime_type.split(";")[0] or "application/octet-stream",
        headers={"Content-Length": str(stream.size)},
    )


# --- PLAYLISTS ---
@app.get("/playlist/{playlist_id}")
async def playlist_info(playlist_id: str, engine: ResolverEngine = Depends(get_engine)):
    info = await engine.resolve_playlist(playlist_id)
    return info.to_dict()
