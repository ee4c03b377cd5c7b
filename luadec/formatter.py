"""Indentation pass over the raw text produced by the decompiler.

The decompiler emits one statement per line without any indentation.  The
:class:`Formatter` re-scans that text with :func:`luadec.lexer.tokenize` and
rebuilds it: block bodies and table constructors are indented, table entries
are placed one per line and closing braces are aligned with the line that
opened them.
"""

from __future__ import annotations

from typing import List

from .lexer import Token, TokenKind, tokenize


class Formatter:
    """Stateful layout pass; call :meth:`reset` between unrelated inputs."""

    def __init__(self, indent: str = "\t") -> None:
        self._indent_unit = indent
        self._indent = 0
        self._table_depth = 0
        self._parts: List[str] = []

    def reset(self) -> None:
        self._indent = 0
        self._table_depth = 0
        self._parts = []

    def is_within_table(self) -> bool:
        return self._table_depth > 0

    @property
    def indent_level(self) -> int:
        return self._indent

    def format(self, text: str) -> str:
        """Format ``text`` and return everything formatted since the last reset."""

        for token in tokenize(text, self.is_within_table):
            self._handle(token)
        return self.getvalue()

    def getvalue(self) -> str:
        return "".join(self._parts)

    # ------------------------------------------------------------------
    # token handlers
    # ------------------------------------------------------------------
    def _handle(self, token: Token) -> None:
        kind = token.kind
        if kind in (TokenKind.FUNCTION_START, TokenKind.CONDITION_START):
            self._write(token.text)
            self._increase()
        elif kind is TokenKind.FOR_LOOP_START:
            self._write(self._for_header(token.text))
            self._increase()
        elif kind is TokenKind.BLOCK_END:
            self._block_end(token.text)
        elif kind is TokenKind.TABLE_EMPTY:
            self._write("{}")
        elif kind is TokenKind.TABLE_START:
            self._write("{")
            self._increase()
            self._table_depth += 1
            self._write(self._newline())
        elif kind is TokenKind.TABLE_END:
            self._table_end(token.text)
        elif kind in (TokenKind.COMMA, TokenKind.SEMICOLON):
            self._write(token.text.strip(" \t"))
            self._write(self._newline())
        elif kind is TokenKind.NEWLINE:
            self._write(self._newline())
        else:
            self._write(token.text)

    def _for_header(self, text: str) -> str:
        head, _, tail = text.partition("\n")
        return head + self._newline() + tail.lstrip(" \t")

    def _block_end(self, text: str) -> None:
        self._remove_trailing_indent()
        self._write("end")
        self._decrease()
        if text.endswith("\n"):
            self._write(self._newline())

    def _table_end(self, text: str) -> None:
        closing = text.replace(" ", "").replace("\t", "")
        if closing.count(")") > 1:
            closing = closing.replace(")", "", 1)
        self._decrease()
        if self._table_depth > 0:
            self._table_depth -= 1
        self._write(self._newline() + closing)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _write(self, text: str) -> None:
        if text:
            self._parts.append(text)

    def _newline(self) -> str:
        return "\n" + self._indent_unit * self._indent

    def _increase(self) -> None:
        self._indent += 1

    def _decrease(self) -> None:
        if self._indent > 0:
            self._indent -= 1

    def _remove_trailing_indent(self) -> None:
        unit = self._indent_unit
        if not unit or not self._parts:
            return
        last = self._parts[-1]
        if last.endswith(unit):
            trimmed = last[: -len(unit)]
            if trimmed:
                self._parts[-1] = trimmed
            else:
                self._parts.pop()


def format_source(text: str, indent: str = "\t") -> str:
    return Formatter(indent).format(text)


__all__ = ["Formatter", "format_source"]
