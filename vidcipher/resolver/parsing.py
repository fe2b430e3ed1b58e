"""
Small decoding helpers shared by the extractors.

The host packs most of its data as query strings, and lists as
comma-separated runs of entries. A single bad entry must never void
the rest of the list, so list parsing goes through collect().
"""
from __future__ import annotations
import logging
from typing import Any, Callable, Iterable, TypeVar, Union
from urllib.parse import parse_qsl

from .errors import MalformedEntry

log = logging.getLogger("vidcipher.resolver")

T = TypeVar("T")


def parse_query(raw: str) -> dict[str, str]:
    """Decode a query string, keeping the first value of repeated keys."""
    out: dict[str, str] = {}
    for key, value in parse_qsl(raw, keep_blank_values=True):
        out.setdefault(key, value)
    return out


def split_list(raw: str | None, sep: str = ",") -> list[str]:
    if not raw:
        return []
    return raw.split(sep)


def try_parse(parser: Callable[[Any], T], raw: Any) -> Union[T, MalformedEntry]:
    try:
        return parser(raw)
    except MalformedEntry as e:
        return e


def collect(raw_entries: Iterable[Any], parser: Callable[[Any], T], *, what: str) -> list[T]:
    """Parse every entry, keep the successes, log the rest."""
    results = [try_parse(parser, raw) for raw in raw_entries]
    kept = [r for r in results if not isinstance(r, MalformedEntry)]
    dropped = len(results) - len(kept)
    if dropped:
        for r in results:
            if isinstance(r, MalformedEntry):
                log.debug(f"Skipping malformed {what} entry: {r}")
        log.info(f"Parsed {len(kept)} {what} entries, skipped {dropped} malformed")
    return kept


def to_int(value, default: int = 0) -> int:
    try:
        return int(str(value).replace(",", "").strip())
    except (TypeError, ValueError):
        return default


def to_float(value, default: float = 0.0) -> float:
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return default


def to_bool(value) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes")
