"""Exception taxonomy and warning records shared by the decompiler."""

from __future__ import annotations

from dataclasses import dataclass


class DecompileError(ValueError):
    """Base class for every problem raised while decompiling a chunk."""


class InvalidChunkError(DecompileError):
    """The input is not a compiled Lua 4.0 chunk."""


class RecoverableDecodeError(DecompileError):
    """A single instruction could not be translated.

    The dispatcher turns these into :class:`DecodeWarning` records and keeps
    going with the next instruction.
    """

    kind = "unsupported"


class UnsupportedPatternError(RecoverableDecodeError):
    kind = "unsupported"


class StackUnderflowError(RecoverableDecodeError):
    kind = "underflow"


class UnboundLocalReferenceError(RecoverableDecodeError):
    kind = "unbound"


class UnterminatedContextError(DecompileError):
    """A conditional block never reached its target before the function ended."""


@dataclass(frozen=True)
class DecodeWarning:
    kind: str
    line: int
    depth: int
    message: str

    def describe(self) -> str:
        return f"[{self.kind}] function depth {self.depth}, line {self.line}: {self.message}"


__all__ = [
    "DecodeWarning",
    "DecompileError",
    "InvalidChunkError",
    "RecoverableDecodeError",
    "StackUnderflowError",
    "UnboundLocalReferenceError",
    "UnsupportedPatternError",
    "UnterminatedContextError",
]
