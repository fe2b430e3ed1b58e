"""
Just enough JavaScript structure to read the player's cipher code.

Minified player scripts rename every identifier on each build, but the
shape of the code stays put: a function is still `name(params){...}`, a
helper object is still `var X={k:function(a,b){...},...}`. This module
cuts those pieces out with brace matching (string-literal aware) and
splits bodies into top-level statements. It is not a JS parser.
"""
from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Iterator, Optional

_QUOTES = "\"'`"
_OPENERS = {"{": "}", "(": ")", "[": "]"}
_CLOSERS = {"}", ")", "]"}

_PUNCT_SPACE_RE = re.compile(r"\s*([^\w$\s])\s*")
_SPACE_RE = re.compile(r"\s+")


def skip_string(src: str, i: int) -> int:
    """`src[i]` is a quote; return the index just past its closing quote."""
    quote = src[i]
    i += 1
    while i < len(src):
        ch = src[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        i += 1
    return len(src)


def find_block_end(src: str, open_idx: int) -> int:
    """Index of the bracket closing the one at `open_idx`, or -1."""
    stack = []
    i = open_idx
    while i < len(src):
        ch = src[i]
        if ch in _QUOTES:
            i = skip_string(src, i)
            continue
        if ch in _OPENERS:
            stack.append(_OPENERS[ch])
        elif ch in _CLOSERS:
            if not stack or stack.pop() != ch:
                return -1
            if not stack:
                return i
        i += 1
    return -1


def split_top_level(body: str, sep: str = ";") -> list[str]:
    parts = []
    depth = 0
    start = 0
    i = 0
    while i < len(body):
        ch = body[i]
        if ch in _QUOTES:
            i = skip_string(body, i)
            continue
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
        elif ch == sep and depth == 0:
            parts.append(body[start:i])
            start = i + 1
        i += 1
    parts.append(body[start:])
    return [p.strip() for p in parts if p.strip()]


def compact(stmt: str) -> str:
    """Drop whitespace that carries no meaning: `var c = a[0]` -> `var c=a[0]`."""
    return _SPACE_RE.sub(" ", _PUNCT_SPACE_RE.sub(r"\1", stmt)).strip()


def normalize_statement(stmt: str, params: list[str]) -> str:
    """Compact a statement and replace parameter names with @0, @1, ..."""
    out = compact(stmt)
    for idx, name in enumerate(params):
        out = re.sub(rf"(?<![\w$.]){re.escape(name)}(?![\w$])", f"@{idx}", out)
    return out


@dataclass
class JsFunction:
    name: str
    params: list[str]
    body: str
    statements: list[str] = field(default_factory=list)

    @classmethod
    def from_parts(cls, name: str, params: str, body: str) -> "JsFunction":
        names = [p.strip() for p in params.split(",") if p.strip()]
        return cls(name=name, params=names, body=body, statements=split_top_level(body))

    def shape(self) -> list[str]:
        return [normalize_statement(s, self.params) for s in self.statements]

    @property
    def source(self) -> str:
        return f"function {self.name}({','.join(self.params)}){{{self.body}}}"


def _name_boundary(name: str) -> str:
    return rf"(?:^|(?<=[^\w$.])){re.escape(name)}"


def function_at(source: str, name: str, params: str, open_idx: int) -> Optional[JsFunction]:
    """Build the function whose body opens with the `{` at `open_idx`."""
    close_idx = find_block_end(source, open_idx)
    if close_idx < 0:
        return None
    return JsFunction.from_parts(name, params, source[open_idx + 1:close_idx])


def iter_functions(source: str, name: str) -> Iterator[JsFunction]:
    """Every `function name(..){` / `[var ]name=function(..){`, in source order.

    Minified scripts reuse short names across scopes, so callers pick the
    definition by shape rather than trusting the first one.
    """
    pattern = re.compile(
        rf"(?:(?:^|(?<=[^\w$.]))function\s+{re.escape(name)}"
        rf"|{_name_boundary(name)}\s*=\s*function)"
        rf"\s*\((?P<params>[^)]*)\)\s*\{{"
    )
    for m in pattern.finditer(source):
        fn = function_at(source, name, m.group("params"), m.end() - 1)
        if fn is not None:
            yield fn


def find_function(source: str, name: str) -> Optional[JsFunction]:
    return next(iter_functions(source, name), None)


_MEMBER_RE = re.compile(
    r"""^["']?(?P<key>[\w$]+)["']?\s*:\s*function\s*\((?P<params>[^)]*)\)\s*\{""",
)


def _object_members(body: str) -> dict[str, JsFunction]:
    members: dict[str, JsFunction] = {}
    for member in split_top_level(body, ","):
        mm = _MEMBER_RE.match(member)
        if not mm:
            continue
        end = find_block_end(member, mm.end() - 1)
        if end < 0:
            continue
        members[mm.group("key")] = JsFunction.from_parts(
            mm.group("key"), mm.group("params"), member[mm.end():end])
    return members


def iter_objects(source: str, name: str) -> Iterator[dict[str, JsFunction]]:
    """Function-valued members of every `name={...}` literal, in source order."""
    for m in re.finditer(rf"{_name_boundary(name)}\s*=\s*\{{", source):
        open_idx = m.end() - 1
        close_idx = find_block_end(source, open_idx)
        if close_idx >= 0:
            yield _object_members(source[open_idx + 1:close_idx])


def find_object(source: str, name: str) -> Optional[dict[str, JsFunction]]:
    return next(iter_objects(source, name), None)
