"""Reconstruction of table constructors.

A constructor such as ``{ 1, 2; x = 3 }`` is compiled into ``CREATETABLE``
followed by one or more flushes (``SETLIST`` for the positional part,
``SETMAP`` for the keyed part).  Between the flushes the table is represented
on the stack by an open brace marker that buffers the text rendered so far
and counts how many elements are still expected.
"""

from __future__ import annotations

from typing import Callable, List, Optional

from .literals import is_lua_identifier, unquote_string
from .stack import StackValue, ValueKind, ValueStack


def render_table_key(key: StackValue) -> str:
    """Render the key part of a ``key = value`` constructor entry."""

    if key.kind is ValueKind.STRING:
        name = unquote_string(key.text)
        if is_lua_identifier(name):
            return name
        if key.text.startswith("[["):
            # ``[[[`` would open a long string
            return f"[ {key.text} ]"
        return f"[{key.text}]"
    return f"[{key.render()}]"


class TableAccumulator:
    """Drive the open brace marker through ``CREATETABLE``/``SETLIST``/``SETMAP``."""

    def __init__(self, stack: ValueStack, report: Optional[Callable[[str], None]] = None) -> None:
        self._stack = stack
        self._report = report or (lambda message: None)

    def create(self, size: int) -> None:
        if size == 0:
            self._stack.push(StackValue("{}", ValueKind.STRING_GLOBAL))
            return
        self._stack.push(StackValue("{ ", ValueKind.TABLE_BRACE_OPEN, count=size))

    def set_list(self, target_index: int, count: int) -> None:
        if target_index != 0:
            self._report(f"SETLIST with nonzero target index {target_index} is not fully supported")

        values = self._stack.pop_many(count)
        entries = ", ".join(value.render() for value in values)

        if self._stack.depth() and self._stack.peek().kind is ValueKind.TABLE_BRACE_OPEN:
            brace = self._stack.pop()
            if brace.count > count:
                brace.text += entries + ";"
                brace.count -= count
                self._stack.push(brace)
                return
            self._stack.push(StackValue(brace.text + entries + " }", ValueKind.STRING_GLOBAL))
            return

        self._report("SETLIST without an open table constructor")
        self._stack.push(StackValue("{ " + entries + " }", ValueKind.STRING_GLOBAL))

    def set_map(self, count: int) -> None:
        pairs: List[str] = []
        for _ in range(count):
            value = self._stack.pop()
            key = self._stack.pop()
            pairs.append(f"{render_table_key(key)} = {value.render()}")
        pairs.reverse()

        marker = self._find_marker()
        if marker is None:
            self._report("SETMAP without an open table constructor")
            self._stack.push(StackValue("{ " + ", ".join(pairs) + " }", ValueKind.STRING_GLOBAL))
            return

        # entries already rendered above the marker belong to the same literal
        extras = [value.render() for value in self._stack.pop_many(marker)]
        brace = self._stack.pop()
        entries = ", ".join(extras + pairs)

        brace.count -= count
        if brace.count > 0:
            brace.text += entries + ", "
            self._stack.push(brace)
            return
        self._stack.push(StackValue(brace.text + entries + " }", ValueKind.STRING_GLOBAL))

    def _find_marker(self) -> Optional[int]:
        """Return how many values sit above the innermost open marker."""

        for distance in range(self._stack.depth()):
            if self._stack.peek(distance).kind is ValueKind.TABLE_BRACE_OPEN:
                return distance
        return None


__all__ = ["TableAccumulator", "render_table_key"]
