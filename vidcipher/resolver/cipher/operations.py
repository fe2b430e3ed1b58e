"""
Cipher operations and the executor that applies them.

A cipher program is an ordered tuple of operations over the signature's
characters. Execution is pure: the token is copied, transformed and joined.
"""
from __future__ import annotations
from dataclasses import dataclass


class CipherOperation:
    def apply(self, chars: list[str]) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class Reverse(CipherOperation):
    def apply(self, chars: list[str]) -> None:
        chars.reverse()


@dataclass(frozen=True)
class SpliceFromIndex(CipherOperation):
    """Drop the first `index` characters (clamped to the token length)."""
    index: int

    def apply(self, chars: list[str]) -> None:
        del chars[:max(self.index, 0)]


@dataclass(frozen=True)
class SwapAt(CipherOperation):
    """Swap the first character with the one at `index % len`."""
    index: int

    def apply(self, chars: list[str]) -> None:
        if not chars:
            return
        k = self.index % len(chars)
        chars[0], chars[k] = chars[k], chars[0]


CipherProgram = tuple[CipherOperation, ...]


def decipher(program: CipherProgram, token: str) -> str:
    chars = list(token)
    for op in program:
        op.apply(chars)
    return "".join(chars)
