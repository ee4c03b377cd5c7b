"""Representation utilities for raw Lua 4.0 instruction words."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .opcodes import Opcode, OperandMode, operand_mode


WORD_SIZE = 4

SIZE_OP = 6
SIZE_B = 9
SIZE_U = 32 - SIZE_OP
SIZE_A = SIZE_U - SIZE_B

POS_U = SIZE_OP
POS_S = SIZE_OP
POS_B = SIZE_OP
POS_A = SIZE_OP + SIZE_B

MASK_OP = (1 << SIZE_OP) - 1
MAXARG_U = (1 << SIZE_U) - 1
MAXARG_S = MAXARG_U >> 1
MAXARG_A = (1 << SIZE_A) - 1
MAXARG_B = (1 << SIZE_B) - 1


@dataclass(frozen=True)
class InstructionWord:
    """A single 32-bit instruction located at ``offset`` (0-based index)."""

    offset: int
    raw: int

    @property
    def opcode_value(self) -> int:
        return self.raw & MASK_OP

    @property
    def opcode(self) -> Optional[Opcode]:
        try:
            return Opcode(self.opcode_value)
        except ValueError:
            return None

    @property
    def u(self) -> int:
        return (self.raw >> POS_U) & MAXARG_U

    @property
    def s(self) -> int:
        return self.u - MAXARG_S

    @property
    def a(self) -> int:
        return (self.raw >> POS_A) & MAXARG_A

    @property
    def b(self) -> int:
        return (self.raw >> POS_B) & MAXARG_B

    @property
    def line(self) -> int:
        return self.offset + 1

    def operands(self) -> Tuple[int, ...]:
        opcode = self.opcode
        if opcode is None:
            return ()
        mode = operand_mode(opcode)
        if mode is OperandMode.U:
            return (self.u,)
        if mode is OperandMode.S:
            return (self.s,)
        if mode is OperandMode.AB:
            return (self.a, self.b)
        return ()

    def mnemonic(self) -> str:
        opcode = self.opcode
        if opcode is None:
            return f"OP_{self.opcode_value:02d}"
        return opcode.name

    def format(self) -> str:
        operands = " ".join(str(value) for value in self.operands())
        text = f"{self.line:6d}: {self.raw:08X}    {self.mnemonic():<12}"
        if operands:
            text += f" {operands}"
        return text.rstrip()


def encode(opcode: Opcode, *operands: int) -> int:
    """Assemble a raw instruction word for ``opcode``.

    The number of ``operands`` must match the opcode's encoding: one value for
    U and S opcodes, two for A/B opcodes and none otherwise.
    """

    mode = operand_mode(opcode)
    expected = {OperandMode.NONE: 0, OperandMode.U: 1, OperandMode.S: 1, OperandMode.AB: 2}[mode]
    if len(operands) != expected:
        raise ValueError(
            f"{opcode.name} expects {expected} operand(s), got {len(operands)}"
        )
    raw = int(opcode)
    if mode is OperandMode.U:
        (value,) = operands
        if not 0 <= value <= MAXARG_U:
            raise ValueError(f"U operand {value} out of range")
        raw |= value << POS_U
    elif mode is OperandMode.S:
        (value,) = operands
        if not -MAXARG_S <= value <= MAXARG_S:
            raise ValueError(f"S operand {value} out of range")
        raw |= (value + MAXARG_S) << POS_S
    elif mode is OperandMode.AB:
        a, b = operands
        if not 0 <= a <= MAXARG_A or not 0 <= b <= MAXARG_B:
            raise ValueError(f"A/B operands ({a}, {b}) out of range")
        raw |= (a << POS_A) | (b << POS_B)
    return raw


def read_instructions(code: bytes, byteorder: str = "little") -> Tuple[List[InstructionWord], int]:
    """Decode a raw code blob into instruction words.

    A trailing partial word is not an error at this level; the number of
    bytes that could not be decoded is returned alongside the words so the
    caller can decide how to report it.
    """

    remainder = len(code) % WORD_SIZE
    usable = len(code) - remainder
    instructions: List[InstructionWord] = []
    for idx in range(0, usable, WORD_SIZE):
        raw = int.from_bytes(code[idx : idx + WORD_SIZE], byteorder)
        instructions.append(InstructionWord(idx // WORD_SIZE, raw))
    return instructions, remainder


__all__ = [
    "InstructionWord",
    "MAXARG_S",
    "MAXARG_U",
    "WORD_SIZE",
    "encode",
    "read_instructions",
]
