"""
Runtime settings for vidcipher, read from the environment (and a local .env).
"""
from __future__ import annotations
import logging
import os
import sys
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

log = logging.getLogger("vidcipher.config")

DEFAULT_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning(f"{name}={raw!r} is not an integer, using {default}")
        return default


@dataclass(frozen=True)
class Settings:
    base_url: str = "https://www.youtube.com"
    timeout: int = 12
    proxy: Optional[str] = None
    user_agent: str = DEFAULT_UA
    language: str = "en"
    chunk_size: int = 10 * 1024 * 1024      # bytes per range request
    playlist_max_pages: int = 50
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            base_url=os.getenv("VIDCIPHER_BASE_URL", cls.base_url).rstrip("/"),
            timeout=_env_int("VIDCIPHER_TIMEOUT", cls.timeout),
            proxy=os.getenv("VIDCIPHER_PROXY") or None,
            user_agent=os.getenv("VIDCIPHER_USER_AGENT", DEFAULT_UA),
            language=os.getenv("VIDCIPHER_LANGUAGE", cls.language),
            chunk_size=_env_int("VIDCIPHER_CHUNK_SIZE", cls.chunk_size),
            playlist_max_pages=_env_int("VIDCIPHER_PLAYLIST_MAX_PAGES", cls.playlist_max_pages),
            log_level=os.getenv("VIDCIPHER_LOG_LEVEL", cls.log_level).upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    """Send vidcipher logs to stdout."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
