"""Opcode table for the Lua 4.0 virtual machine.

The numbering follows ``lopcodes.h`` of the 4.0 release.  Each opcode carries
exactly one operand encoding which the instruction decoder consults when a
word is split into its fields.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Dict, FrozenSet


class Opcode(IntEnum):
    END = 0
    RETURN = 1
    CALL = 2
    TAILCALL = 3
    PUSHNIL = 4
    POP = 5
    PUSHINT = 6
    PUSHSTRING = 7
    PUSHNUM = 8
    PUSHNEGNUM = 9
    PUSHUPVALUE = 10
    GETLOCAL = 11
    GETGLOBAL = 12
    GETTABLE = 13
    GETDOTTED = 14
    GETINDEXED = 15
    PUSHSELF = 16
    CREATETABLE = 17
    SETLOCAL = 18
    SETGLOBAL = 19
    SETTABLE = 20
    SETLIST = 21
    SETMAP = 22
    ADD = 23
    ADDI = 24
    SUB = 25
    MULT = 26
    DIV = 27
    POW = 28
    CONCAT = 29
    MINUS = 30
    NOT = 31
    JMPNE = 32
    JMPEQ = 33
    JMPLT = 34
    JMPLE = 35
    JMPGT = 36
    JMPGE = 37
    JMPT = 38
    JMPF = 39
    JMPONT = 40
    JMPONF = 41
    JMP = 42
    PUSHNILJMP = 43
    FORPREP = 44
    FORLOOP = 45
    LFORPREP = 46
    LFORLOOP = 47
    CLOSURE = 48


class OperandMode(Enum):
    """Operand layout of an instruction word."""

    NONE = "none"
    U = "u"
    S = "s"
    AB = "ab"


_U_OPCODES = (
    Opcode.RETURN,
    Opcode.PUSHNIL,
    Opcode.POP,
    Opcode.PUSHSTRING,
    Opcode.PUSHNUM,
    Opcode.PUSHNEGNUM,
    Opcode.PUSHUPVALUE,
    Opcode.GETLOCAL,
    Opcode.GETGLOBAL,
    Opcode.GETDOTTED,
    Opcode.GETINDEXED,
    Opcode.PUSHSELF,
    Opcode.CREATETABLE,
    Opcode.SETLOCAL,
    Opcode.SETGLOBAL,
    Opcode.SETMAP,
    Opcode.CONCAT,
)

_S_OPCODES = (
    Opcode.PUSHINT,
    Opcode.ADDI,
    Opcode.JMPNE,
    Opcode.JMPEQ,
    Opcode.JMPLT,
    Opcode.JMPLE,
    Opcode.JMPGT,
    Opcode.JMPGE,
    Opcode.JMPT,
    Opcode.JMPF,
    Opcode.JMPONT,
    Opcode.JMPONF,
    Opcode.JMP,
    Opcode.FORPREP,
    Opcode.FORLOOP,
    Opcode.LFORPREP,
    Opcode.LFORLOOP,
)

_AB_OPCODES = (
    Opcode.CALL,
    Opcode.TAILCALL,
    Opcode.SETTABLE,
    Opcode.SETLIST,
    Opcode.CLOSURE,
)


def _build_mode_table() -> Dict[Opcode, OperandMode]:
    table: Dict[Opcode, OperandMode] = {opcode: OperandMode.NONE for opcode in Opcode}
    for opcode in _U_OPCODES:
        table[opcode] = OperandMode.U
    for opcode in _S_OPCODES:
        table[opcode] = OperandMode.S
    for opcode in _AB_OPCODES:
        table[opcode] = OperandMode.AB
    return table


OPERAND_MODES: Dict[Opcode, OperandMode] = _build_mode_table()

# Conditional jumps that consume two operands (relational tests).
COMPARISON_JUMPS: FrozenSet[Opcode] = frozenset(
    {
        Opcode.JMPNE,
        Opcode.JMPEQ,
        Opcode.JMPLT,
        Opcode.JMPLE,
        Opcode.JMPGT,
        Opcode.JMPGE,
    }
)

# Conditional jumps that consume a single truth value.
TEST_JUMPS: FrozenSet[Opcode] = frozenset(
    {Opcode.JMPT, Opcode.JMPF, Opcode.JMPONT, Opcode.JMPONF}
)

CONDITIONAL_JUMPS: FrozenSet[Opcode] = COMPARISON_JUMPS | TEST_JUMPS

_INVERTED: Dict[Opcode, Opcode] = {
    Opcode.JMPNE: Opcode.JMPEQ,
    Opcode.JMPEQ: Opcode.JMPNE,
    Opcode.JMPLT: Opcode.JMPGE,
    Opcode.JMPGE: Opcode.JMPLT,
    Opcode.JMPLE: Opcode.JMPGT,
    Opcode.JMPGT: Opcode.JMPLE,
    Opcode.JMPT: Opcode.JMPF,
    Opcode.JMPF: Opcode.JMPT,
    Opcode.JMPONT: Opcode.JMPONF,
    Opcode.JMPONF: Opcode.JMPONT,
}


def operand_mode(opcode: Opcode) -> OperandMode:
    return OPERAND_MODES[opcode]


def invert_jump(opcode: Opcode) -> Opcode:
    """Return the jump testing the opposite condition of ``opcode``.

    Opcodes without a logical opposite map to themselves.
    """

    return _INVERTED.get(opcode, opcode)


__all__ = [
    "COMPARISON_JUMPS",
    "CONDITIONAL_JUMPS",
    "OPERAND_MODES",
    "Opcode",
    "OperandMode",
    "TEST_JUMPS",
    "invert_jump",
    "operand_mode",
]
