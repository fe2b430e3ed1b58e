"""
Process-lifetime cache of cipher programs, keyed by player version.

A player script never changes for a given version, so entries never
expire. A version the extractor cannot read stays broken: its CipherError
is kept and re-raised, while transport failures and cancellation are not
remembered. Extraction is single-flight per key: the first caller runs it,
later callers await the same future. Everything runs on one event loop, so
the dicts need no lock.
"""
from __future__ import annotations
import asyncio
import logging
import re
from typing import Awaitable, Callable, Optional

from ..errors import CipherError
from .extractor import CipherProgramExtractor
from .operations import CipherProgram

log = logging.getLogger("vidcipher.cipher")

ScriptSupplier = Callable[[], Awaitable[str]]

_VERSION_PATTERNS = [
    re.compile(r"/s/player/(?P<v>[\w-]+)/"),
    re.compile(r"/player[\w]*?-(?P<v>[\w-]+)/"),
    re.compile(r"html5player-(?:[a-zA-Z]{2,3}_[a-zA-Z]{2,3}-)?(?P<v>[\w-]+)(?:/|\.js)"),
]


def player_version_key(player_url: str) -> str:
    """Derive the version key from a player script URL (the URL itself as a fallback)."""
    for pattern in _VERSION_PATTERNS:
        m = pattern.search(player_url)
        if m:
            return m.group("v")
    return player_url


class CipherCache:
    def __init__(self, extractor: Optional[CipherProgramExtractor] = None):
        self.extractor = extractor or CipherProgramExtractor()
        self._programs: dict[str, CipherProgram] = {}
        self._pending: dict[str, asyncio.Future] = {}
        self._failures: dict[str, CipherError] = {}

    def __contains__(self, version_key: str) -> bool:
        return version_key in self._programs

    def __len__(self) -> int:
        return len(self._programs)

    def get(self, version_key: str) -> Optional[CipherProgram]:
        return self._programs.get(version_key)

    async def get_or_extract(self, version_key: str, script_source_supplier: ScriptSupplier) -> CipherProgram:
        while True:
            program = self._programs.get(version_key)
            if program is not None:
                return program
            failure = self._failures.get(version_key)
            if failure is not None:
                raise failure
            pending = self._pending.get(version_key)
            if pending is None:
                break
            try:
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                # the extracting task was cancelled, not us: take over
                if pending.cancelled() and not _current_task_cancelling():
                    continue
                raise

        future = asyncio.get_running_loop().create_future()
        self._pending[version_key] = future
        try:
            source = await script_source_supplier()
            program = self.extractor.extract(source, version_key)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            if isinstance(e, CipherError):
                self._failures[version_key] = e
            future.set_exception(e)
            future.exception()      # mark retrieved; waiters re-raise it
            raise
        else:
            self._programs[version_key] = program
            future.set_result(program)
            return program
        finally:
            self._pending.pop(version_key, None)


def _current_task_cancelling() -> bool:
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0
