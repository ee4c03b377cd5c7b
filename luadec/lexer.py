"""Token classifier for re-scanning generated Lua text.

The scanner is deliberately coarse: it only distinguishes the pieces the
layout formatter reacts to (block headers and terminators, table braces,
separators and newlines) and passes everything else through in small
chunks.  Separators are only reported as such while the caller says it is
inside a table constructor, which is why :func:`tokenize` takes a callback
instead of a flag and is consumed lazily.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Iterator, List, Optional, Pattern, Tuple


class TokenKind(Enum):
    COMMENT = auto()
    STRING = auto()
    FUNCTION_START = auto()
    CONDITION_START = auto()
    FOR_LOOP_START = auto()
    BLOCK_END = auto()
    TABLE_EMPTY = auto()
    TABLE_START = auto()
    TABLE_END = auto()
    COMMA = auto()
    SEMICOLON = auto()
    NAME = auto()
    NEWLINE = auto()
    OTHER = auto()


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str


# Tried in order at every position; the first match wins.
_RULES: List[Tuple[TokenKind, Pattern[str]]] = [
    (TokenKind.COMMENT, re.compile(r"--\[\[.*?\]\]|--[^\n]*", re.DOTALL)),
    (
        TokenKind.STRING,
        re.compile(r"\[\[.*?\]\]|\"(?:\\.|[^\"\\\n])*\"|'(?:\\.|[^'\\\n])*'", re.DOTALL),
    ),
    (TokenKind.FUNCTION_START, re.compile(r"function\b[^\n]*")),
    (TokenKind.CONDITION_START, re.compile(r"(?:if|while)\b[^\n]*")),
    (TokenKind.FOR_LOOP_START, re.compile(r"for\b[^\n]*\n[ \t]*do\b")),
    (TokenKind.BLOCK_END, re.compile(r"end\b[ \t]*\n?")),
    (TokenKind.TABLE_EMPTY, re.compile(r"\{[ \t]*\}")),
    (TokenKind.TABLE_START, re.compile(r"\{[ \t]*")),
    (TokenKind.TABLE_END, re.compile(r"[ \t]*\}[ \t)]*")),
    (TokenKind.COMMA, re.compile(r",[ \t]*")),
    (TokenKind.SEMICOLON, re.compile(r";[ \t]*")),
    (TokenKind.NAME, re.compile(r"\w+")),
    (TokenKind.NEWLINE, re.compile(r"\n")),
]

_SEPARATORS = (TokenKind.COMMA, TokenKind.SEMICOLON)


def _match_at(text: str, pos: int) -> Optional[Tuple[TokenKind, str]]:
    for kind, pattern in _RULES:
        match = pattern.match(text, pos)
        if match and match.end() > pos:
            return kind, match.group(0)
    return None


def tokenize(text: str, is_within_table: Callable[[], bool] = lambda: False) -> Iterator[Token]:
    """Yield the tokens of ``text``.

    ``is_within_table`` is queried whenever a separator is found; outside of
    table constructors commas and semicolons are plain characters.
    """

    pos = 0
    length = len(text)
    while pos < length:
        matched = _match_at(text, pos)
        if matched is None:
            yield Token(TokenKind.OTHER, text[pos])
            pos += 1
            continue
        kind, lexeme = matched
        if kind in _SEPARATORS and not is_within_table():
            kind = TokenKind.OTHER
        yield Token(kind, lexeme)
        pos += len(lexeme)


__all__ = ["Token", "TokenKind", "tokenize"]
