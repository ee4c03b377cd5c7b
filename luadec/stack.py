"""Symbolic operand stack used while replaying a function body.

Instead of runtime values every slot holds the source text of the expression
that produced it together with a tag describing how the text came about.  The
tags steer later decisions, for example whether a closure assigned to a
global should become a named ``function`` definition.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import List

from .errors import StackUnderflowError


class ValueKind(Enum):
    INT = auto()
    STRING = auto()
    STRING_GLOBAL = auto()
    STRING_LOCAL = auto()
    STRING_PUSHSELF = auto()
    NIL = auto()
    CLOSURE_TEXT = auto()
    TABLE_BRACE_OPEN = auto()


@dataclass
class StackValue:
    text: str
    kind: ValueKind = ValueKind.STRING_GLOBAL
    # remaining literal elements, only meaningful for TABLE_BRACE_OPEN
    count: int = 0

    def render(self) -> str:
        """Return the text suitable for embedding inside a larger expression."""

        if self.kind is ValueKind.CLOSURE_TEXT:
            return self.text.rstrip("\n")
        return self.text


class ValueStack:
    """Operand stack of one function body."""

    def __init__(self) -> None:
        self._values: List[StackValue] = []

    def push(self, value: StackValue) -> None:
        self._values.append(value)

    def push_text(self, text: str, kind: ValueKind = ValueKind.STRING_GLOBAL) -> StackValue:
        value = StackValue(text, kind)
        self._values.append(value)
        return value

    def pop(self) -> StackValue:
        if not self._values:
            raise StackUnderflowError("pop from an empty stack")
        return self._values.pop()

    def pop_many(self, count: int) -> List[StackValue]:
        """Pop ``count`` values and return them in push order."""

        if count > len(self._values):
            raise StackUnderflowError(
                f"need {count} value(s) but only {len(self._values)} on the stack"
            )
        if count <= 0:
            return []
        items = self._values[-count:]
        del self._values[-count:]
        return items

    def peek(self, index_from_top: int = 0) -> StackValue:
        if not 0 <= index_from_top < len(self._values):
            raise StackUnderflowError(
                f"peek {index_from_top} below the bottom of a {len(self._values)} slot stack"
            )
        return self._values[-1 - index_from_top]

    def slot(self, index: int) -> StackValue:
        """Return the value stored at absolute slot ``index`` (0 = bottom)."""

        if not 0 <= index < len(self._values):
            raise StackUnderflowError(
                f"slot {index} outside of a {len(self._values)} slot stack"
            )
        return self._values[index]

    def set_slot(self, index: int, value: StackValue) -> None:
        self.slot(index)
        self._values[index] = value

    def depth(self) -> int:
        return len(self._values)

    def clear(self) -> None:
        self._values.clear()

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self):
        return iter(list(self._values))


def binary_expression(left: StackValue, operator: str, right: StackValue, *, wrap: bool = False) -> StackValue:
    """Combine two operands into a computed expression value.

    Multiplicative and power operators are always parenthesised; additive
    ones are left bare and rely on left associativity.
    """

    text = f"{left.render()} {operator} {right.render()}"
    if wrap:
        text = f"( {text} )"
    return StackValue(text, ValueKind.STRING_GLOBAL)


__all__ = ["StackValue", "ValueKind", "ValueStack", "binary_expression"]
