"""
HTTP fetcher for the resolver. Wraps aiohttp with common defaults,
headers, timeout, and optional proxy support. Every transport failure
surfaces as TransportError.
"""
from __future__ import annotations
import aiohttp
import asyncio
from contextlib import asynccontextmanager
from typing import Optional
from urllib.parse import urljoin

from vidcipher.config import DEFAULT_UA
from .errors import TransportError


class Fetcher:
    def __init__(self, *, timeout: int = 10, proxy: str | None = None,
                 user_agent: str = DEFAULT_UA, language: str = "en"):
        self.timeout = aiohttp.ClientTimeout(total=timeout, connect=4)
        self.proxy = proxy
        self.headers = {"User-Agent": user_agent, "Accept-Language": f"{language},en;q=0.8"}
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers=self.headers,
            )
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    @asynccontextmanager
    async def _request(self, method: str, url: str, **kwargs):
        session = await self._get_session()
        try:
            async with session.request(method, url, proxy=self.proxy, **kwargs) as resp:
                if resp.status >= 400:
                    raise TransportError(url, f"HTTP {resp.status}", status=resp.status)
                yield resp
        except aiohttp.ClientError as e:
            raise TransportError(url, f"{type(e).__name__}: {e}") from e
        except asyncio.TimeoutError as e:
            raise TransportError(url, "request timed out") from e

    # ── convenience methods ──────────────────

    async def get(
        self,
        url: str,
        *,
        base_url: str | None = None,
        headers: dict | None = None,
        params: dict | None = None,
    ) -> str:
        full = urljoin(base_url, url) if base_url else url
        async with self._request("GET", full, headers=headers or {}, params=params) as resp:
            return await resp.text()

    async def get_json(
        self,
        url: str,
        *,
        base_url: str | None = None,
        headers: dict | None = None,
        params: dict | None = None,
    ) -> dict | list:
        full = urljoin(base_url, url) if base_url else url
        async with self._request("GET", full, headers=headers or {}, params=params) as resp:
            try:
                return await resp.json(content_type=None)
            except ValueError as e:
                raise TransportError(full, f"response is not JSON: {e}") from e

    async def get_content_length(self, url: str, *, headers: dict | None = None) -> int:
        """HEAD the URL and return its Content-Length, 0 when not reported."""
        async with self._request("HEAD", url, headers=headers or {}, allow_redirects=True) as resp:
            try:
                return int(resp.headers.get("Content-Length", 0))
            except ValueError:
                return 0

    async def get_range(self, url: str, start: int, end: int, *, headers: dict | None = None) -> bytes:
        """Fetch bytes [start, end] inclusive."""
        hdrs = dict(headers or {})
        hdrs["Range"] = f"bytes={start}-{end}"
        async with self._request("GET", url, headers=hdrs) as resp:
            return await resp.read()
