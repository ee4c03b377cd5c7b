"""Helpers for rendering constants as Lua source literals."""

from __future__ import annotations

import re
from typing import FrozenSet


LUA_KEYWORDS: FrozenSet[str] = frozenset(
    {
        "and",
        "break",
        "do",
        "else",
        "elseif",
        "end",
        "for",
        "function",
        "if",
        "in",
        "local",
        "nil",
        "not",
        "or",
        "repeat",
        "return",
        "then",
        "until",
        "while",
    }
)

_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def escape_lua_string(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("\"", "\\\"")
    return f'"{escaped}"'


def quote_string(text: str) -> str:
    """Render a string constant.

    Strings spanning lines or containing tabs keep their raw layout inside a
    ``[[...]]`` long string; everything else becomes a quoted literal.
    """

    if "\n" in text or "\t" in text:
        return f"[[{text}]]"
    return escape_lua_string(text)


def unquote_string(text: str) -> str:
    if len(text) >= 4 and text.startswith("[[") and text.endswith("]]"):
        return text[2:-2]
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        return text[1:-1].replace("\\\"", "\"").replace("\\\\", "\\")
    return text


def is_lua_identifier(text: str) -> bool:
    return bool(_IDENTIFIER_PATTERN.match(text)) and text not in LUA_KEYWORDS


def trim_number(text: str) -> str:
    """Drop trailing fractional zeros from a fixed-point numeral.

    ``"2.500000"`` becomes ``"2.5"`` and ``"3.000000"`` becomes ``"3."``: the
    decimal point itself is kept.  Numerals without a point are returned
    unchanged, and trimming is idempotent.
    """

    if "." not in text:
        return text
    return text.rstrip("0")


def format_number(value: float) -> str:
    # fixed notation with six decimals, then trimmed
    return trim_number("%f" % value)


__all__ = [
    "LUA_KEYWORDS",
    "escape_lua_string",
    "format_number",
    "is_lua_identifier",
    "quote_string",
    "trim_number",
    "unquote_string",
]
