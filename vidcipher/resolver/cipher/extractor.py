"""
Recovers the signature cipher program from a player script.

Two steps, both driven by code shape rather than identifier names:

  1. locate the entry function: one parameter, split into a char array,
     a chain of helper calls, joined back. Known call sites narrow the
     search first; a structural scan is the fallback.
  2. classify every helper the entry function calls with the registered
     CipherHelperMatcher strategies (reverse / splice / swap).

When the host changes its generated code, add or adjust a matcher here.
"""
from __future__ import annotations
import logging
import re
from typing import Iterator, Optional

from ..errors import CipherOperationUnrecognized, CipherProgramNotFound
from .jsparse import JsFunction, compact, function_at, iter_functions, iter_objects
from .operations import CipherOperation, CipherProgram, Reverse, SpliceFromIndex, SwapAt

log = logging.getLogger("vidcipher.cipher")


# ──────────────────────────────
#  Helper matchers
# ──────────────────────────────
class CipherHelperMatcher:
    name: str

    def matches(self, helper: JsFunction) -> bool:
        raise NotImplementedError

    def build(self, argument: int) -> CipherOperation:
        raise NotImplementedError


_MATCHERS: list[CipherHelperMatcher] = []


def register_matcher(matcher):
    """Decorator to register a helper matcher class."""
    global _MATCHERS
    _MATCHERS = [m for m in _MATCHERS if m.name != matcher.name]
    _MATCHERS.append(matcher())
    return matcher


def default_matchers() -> list[CipherHelperMatcher]:
    return list(_MATCHERS)


@register_matcher
class ReverseMatcher(CipherHelperMatcher):
    # function(a){a.reverse()}
    name = "reverse"
    _shape = re.compile(r"^(?:return )?@0\.reverse\(\)$")

    def matches(self, helper: JsFunction) -> bool:
        shape = helper.shape()
        return len(helper.params) >= 1 and len(shape) == 1 and bool(self._shape.match(shape[0]))

    def build(self, argument: int) -> CipherOperation:
        return Reverse()


@register_matcher
class SpliceMatcher(CipherHelperMatcher):
    # function(a,b){a.splice(0,b)}
    name = "splice"
    _shape = re.compile(r"^(?:return )?@0\.splice\(0,@1\)$")

    def matches(self, helper: JsFunction) -> bool:
        shape = helper.shape()
        return len(helper.params) >= 2 and len(shape) == 1 and bool(self._shape.match(shape[0]))

    def build(self, argument: int) -> CipherOperation:
        return SpliceFromIndex(argument)


@register_matcher
class SwapMatcher(CipherHelperMatcher):
    # function(a,b){var c=a[0];a[0]=a[b%a.length];a[b%a.length]=c}
    name = "swap"
    _save = re.compile(r"^var (?P<tmp>[\w$]+)=@0\[0\]$")
    _move = re.compile(r"^@0\[0\]=@0\[@1(?:%@0\.length)?\]$")
    _restore = re.compile(r"^@0\[@1(?:%@0\.length)?\]=(?P<tmp>[\w$]+)$")

    def matches(self, helper: JsFunction) -> bool:
        shape = helper.shape()
        if len(helper.params) < 2 or len(shape) != 3:
            return False
        save = self._save.match(shape[0])
        restore = self._restore.match(shape[2])
        return (save is not None and restore is not None
                and bool(self._move.match(shape[1]))
                and save.group("tmp") == restore.group("tmp"))

    def build(self, argument: int) -> CipherOperation:
        return SwapAt(argument)


# ──────────────────────────────
#  Entry function location
# ──────────────────────────────
_ENTRY_CALL_PATTERNS = [
    re.compile(r"\b[cs]\s*&&\s*[adf]\.set\([^,]+\s*,\s*encodeURIComponent\s*\(\s*(?P<name>[\w$]+)\("),
    re.compile(r"\.set\(\s*[^,]+\s*,\s*encodeURIComponent\s*\(\s*(?P<name>[\w$]+)\("),
    re.compile(r"[\"']signature[\"']\s*,\s*(?P<name>[\w$]+)\("),
    re.compile(r"\.sig\s*\|\|\s*(?P<name>[\w$]+)\("),
]

# any one-parameter function whose first statement is `p=p.split("")`
_SPLIT_ENTRY_RE = re.compile(
    r"""(?:(?:^|(?<=[^\w$.]))function\s+(?P<decl>[\w$]+)|(?:^|(?<=[^\w$.]))(?P<assign>[\w$]+)\s*=\s*function)"""
    r"""\s*\(\s*(?P<param>[\w$]+)\s*\)\s*(?P<open>\{)\s*(?P=param)\s*=\s*(?P=param)\.split\(\s*(?:""|'')\s*\)"""
)

_SPLIT_SHAPE = re.compile(r"""^@0=@0\.split\((?:""|'')\)$""")
_JOIN_SHAPE = re.compile(r"""^return @0\.join\((?:""|'')\)$""")


def _is_entry_shape(fn: JsFunction) -> bool:
    if len(fn.params) != 1 or len(fn.statements) < 2:
        return False
    shape = fn.shape()
    return bool(_SPLIT_SHAPE.match(shape[0])) and bool(_JOIN_SHAPE.match(shape[-1]))


def _candidates(source: str) -> Iterator[JsFunction]:
    """Definitions reached from known call sites first, then every split/join-shaped function."""
    seen = set()
    for pattern in _ENTRY_CALL_PATTERNS:
        for m in pattern.finditer(source):
            name = m.group("name")
            if name not in seen:
                seen.add(name)
                yield from iter_functions(source, name)
    for m in _SPLIT_ENTRY_RE.finditer(source):
        fn = function_at(source, m.group("decl") or m.group("assign"), m.group("param"), m.start("open"))
        if fn is not None:
            yield fn


# ──────────────────────────────
#  Extractor
# ──────────────────────────────
class CipherProgramExtractor:
    def __init__(self, matchers: Optional[list[CipherHelperMatcher]] = None):
        self.matchers = list(matchers) if matchers is not None else default_matchers()

    def locate_entry(self, source: str, version: str) -> JsFunction:
        tried = []
        for fn in _candidates(source):
            if _is_entry_shape(fn):
                log.debug(f"[{version}] Cipher entry function: {fn.name}")
                return fn
            if fn.name not in tried:
                tried.append(fn.name)
        raise CipherProgramNotFound(
            version, "cipher entry function not found",
            fragment=f"candidates tried: {', '.join(tried) or 'none'}")

    def extract(self, source: str, version: str) -> CipherProgram:
        entry = self.locate_entry(source, version)
        param = re.escape(entry.params[0])
        call_re = re.compile(
            rf"""^(?P<obj>[\w$]+)(?:\.(?P<attr>[\w$]+)|\[["'](?P<key>[\w$]+)["']\])"""
            rf"""\({param}(?:,(?P<arg>\d+))?\)$"""
        )
        calls = []
        for stmt in entry.statements[1:-1]:
            m = call_re.match(compact(stmt))
            if not m:
                raise CipherOperationUnrecognized(version, "entry statement is not a helper call", stmt)
            calls.append((m.group("obj"), m.group("attr") or m.group("key"), int(m.group("arg") or 0), stmt))

        wanted: dict[str, set[str]] = {}
        for obj, method, _, _ in calls:
            wanted.setdefault(obj, set()).add(method)
        helpers = {obj: self._helper_object(source, obj, methods, version) for obj, methods in wanted.items()}

        classified: dict[tuple[str, str], CipherHelperMatcher] = {}
        program: list[CipherOperation] = []
        for obj, method, arg, stmt in calls:
            key = (obj, method)
            if key not in classified:
                classified[key] = self._classify(helpers[obj][method], obj, method, version)
            program.append(classified[key].build(arg))

        log.info(f"[{version}] Extracted cipher program with {len(program)} operation(s)")
        return tuple(program)

    def _helper_object(self, source, obj, methods, version) -> dict[str, JsFunction]:
        """The first `obj={...}` literal defining every method the entry calls."""
        found = False
        for members in iter_objects(source, obj):
            found = True
            if methods <= members.keys():
                return members
        if not found:
            raise CipherOperationUnrecognized(version, f"helper object {obj} not found")
        missing = ", ".join(f"{obj}.{m}" for m in sorted(methods))
        raise CipherOperationUnrecognized(version, f"helper {missing} not found")

    def _classify(self, helper: JsFunction, obj, method, version) -> CipherHelperMatcher:
        for matcher in self.matchers:
            if matcher.matches(helper):
                return matcher
        raise CipherOperationUnrecognized(version, f"helper {obj}.{method} has an unknown shape", helper.source)


def extract_cipher_program(source: str, version: str) -> CipherProgram:
    return CipherProgramExtractor().extract(source, version)
