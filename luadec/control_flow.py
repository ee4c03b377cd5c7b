"""Rebuild ``if``/``while`` blocks from conditional jumps.

Conditional jumps in a Lua 4.0 body always skip forward over the guarded
code.  Every such jump opens (or widens) a pending block that remembers where
in the output the guarded code started.  When the instruction stream reaches
the jump target the block is closed: its header is spliced in at the
remembered position and ``end`` is appended, so everything emitted in between
becomes the block body.  A backward unconditional jump seen while a block is
open marks the loop tail of a ``while`` statement.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from .errors import UnsupportedPatternError, UnterminatedContextError
from .opcodes import Opcode


DEFAULT_CONDITION = "testCOND"


class OutputBuffer:
    """Growable text buffer that supports insertion at remembered offsets."""

    def __init__(self, text: str = "") -> None:
        self._text = text

    def append(self, text: str) -> None:
        self._text += text

    def splice(self, offset: int, text: str) -> None:
        if not 0 <= offset <= len(self._text):
            raise ValueError(f"splice offset {offset} outside of buffer")
        self._text = self._text[:offset] + text + self._text[offset:]

    def getvalue(self) -> str:
        return self._text

    def __len__(self) -> int:
        return len(self._text)


class ChainLink(Enum):
    NONE = "none"
    AND = "and"
    OR = "or"


class BlockKind(Enum):
    IF = "if"
    WHILE = "while"


@dataclass(frozen=True)
class CondElem:
    """One test taken from a single conditional jump."""

    operands: Tuple[str, ...]
    jump: Opcode
    line: int
    dest: int
    # combining chained tests into and/or expressions is not attempted yet
    chain: ChainLink = ChainLink.NONE


@dataclass
class Context:
    kind: BlockKind
    dest: int
    splice_offset: int
    conditions: List[CondElem] = field(default_factory=list)


class ControlFlowReconstructor:
    """Context stack for the blocks of one function body."""

    def __init__(self, buffer: OutputBuffer, *, placeholder: str = DEFAULT_CONDITION) -> None:
        self._buffer = buffer
        self._placeholder = placeholder
        self._contexts: List[Context] = []
        self.opened = 0
        self.closed = 0

    @property
    def contexts(self) -> Tuple[Context, ...]:
        return tuple(self._contexts)

    def innermost(self) -> Optional[Context]:
        return self._contexts[-1] if self._contexts else None

    # ------------------------------------------------------------------
    # jump handling
    # ------------------------------------------------------------------
    def conditional_jump(
        self, jump: Opcode, displacement: int, line: int, operands: Tuple[str, ...]
    ) -> CondElem:
        # displacement is relative to the instruction after the jump
        dest = displacement + line + 1
        elem = CondElem(operands=tuple(operands), jump=jump, line=line, dest=dest)

        current = self.innermost()
        if current is None or current.dest > dest:
            self._contexts.append(
                Context(
                    kind=BlockKind.IF,
                    dest=dest,
                    splice_offset=len(self._buffer),
                    conditions=[elem],
                )
            )
            self.opened += 1
        else:
            current.conditions.append(elem)
            current.dest = dest
        return elem

    def unconditional_jump(self, displacement: int, line: int) -> None:
        current = self.innermost()
        if displacement < 0 and current is not None:
            current.kind = BlockKind.WHILE
            return
        direction = "backward" if displacement < 0 else "forward"
        raise UnsupportedPatternError(
            f"{direction} JMP at line {line} (displacement {displacement}) is not supported"
        )

    # ------------------------------------------------------------------
    # block closing
    # ------------------------------------------------------------------
    def close_pending(self, line: int) -> int:
        """Close every block that targets ``line``; return how many were closed."""

        count = 0
        while self._contexts and self._contexts[-1].dest == line:
            self._close(self._contexts.pop())
            count += 1
        return count

    def _close(self, context: Context) -> None:
        self._buffer.splice(context.splice_offset, self.prologue(context))
        self._buffer.append("end\n")
        self.closed += 1

    def prologue(self, context: Context) -> str:
        condition = self.condition_text(context)
        if context.kind is BlockKind.WHILE:
            return f"while {condition} do\n"
        return f"if {condition} then\n"

    def condition_text(self, context: Context) -> str:
        return self._placeholder

    def finish(self) -> None:
        if self._contexts:
            pending = ", ".join(str(context.dest) for context in self._contexts)
            raise UnterminatedContextError(
                f"{len(self._contexts)} block(s) still open at function end (targets: {pending})"
            )


__all__ = [
    "BlockKind",
    "ChainLink",
    "CondElem",
    "Context",
    "ControlFlowReconstructor",
    "DEFAULT_CONDITION",
    "OutputBuffer",
]
