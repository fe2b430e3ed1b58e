"""
Chunked, range-based reader over a resolved stream URL.

The host throttles long single requests, so the stream is read in
fixed-size byte ranges, one request per chunk.
"""
from __future__ import annotations
from typing import AsyncIterator

from .base import StreamInfo
from .fetcher import Fetcher


class MediaStream:
    def __init__(self, stream: StreamInfo, fetcher: Fetcher, *, chunk_size: int = 10 * 1024 * 1024):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.info = stream
        self.fetcher = fetcher
        self.chunk_size = chunk_size
        self.position = 0
        self._buffer = b""

    @property
    def size(self) -> int:
        return self.info.size

    async def _next_chunk(self) -> bytes:
        if self.position >= self.size:
            return b""
        end = min(self.position + self.chunk_size, self.size) - 1
        data = await self.fetcher.get_range(self.info.url, self.position, end)
        if not data:
            # server ended early; treat the stream as finished
            self.position = self.size
            return b""
        self.position += len(data)
        return data

    async def read(self, n: int = -1) -> bytes:
        """Read up to `n` bytes (everything left when n < 0)."""
        if n < 0:
            parts = [self._buffer]
            self._buffer = b""
            while True:
                chunk = await self._next_chunk()
                if not chunk:
                    break
                parts.append(chunk)
            return b"".join(parts)

        while len(self._buffer) < n:
            chunk = await self._next_chunk()
            if not chunk:
                break
            self._buffer += chunk
        data, self._buffer = self._buffer[:n], self._buffer[n:]
        return data

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iter_chunks()

    async def _iter_chunks(self) -> AsyncIterator[bytes]:
        if self._buffer:
            data, self._buffer = self._buffer, b""
            yield data
        while True:
            chunk = await self._next_chunk()
            if not chunk:
                return
            yield chunk
