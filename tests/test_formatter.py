"""Unit tests covering the lexer and the layout formatter."""

from __future__ import annotations

import pytest

from luadec.formatter import Formatter, format_source
from luadec.lexer import Token, TokenKind, tokenize


def kinds(text, within_table=False):
    return [token.kind for token in tokenize(text, lambda: within_table)]


def test_tokenize_block_headers_and_terminators() -> None:
    tokens = list(tokenize("if testCOND then\nx = 1\nend\n"))

    assert tokens[0].kind is TokenKind.CONDITION_START
    assert tokens[0].text == "if testCOND then"
    assert tokens[1].kind is TokenKind.NEWLINE
    assert tokens[-1].kind is TokenKind.BLOCK_END
    assert tokens[-1].text == "end\n"


def test_tokenize_for_header_spans_do_line() -> None:
    tokens = list(tokenize("for for0 = a, b, c\ndo\n"))

    assert tokens[0].kind is TokenKind.FOR_LOOP_START
    assert tokens[0].text == "for for0 = a, b, c\ndo"


def test_keywords_inside_identifiers_are_names() -> None:
    tokens = list(tokenize("endless = format"))

    assert tokens[0] == Token(TokenKind.NAME, "endless")
    assert tokens[-1].text == "format"
    assert TokenKind.BLOCK_END not in [token.kind for token in tokens]


def test_separators_depend_on_table_state() -> None:
    assert TokenKind.COMMA not in kinds("f(a, b)")
    assert TokenKind.COMMA in kinds("a, b", within_table=True)
    assert TokenKind.SEMICOLON in kinds("a; b", within_table=True)


def test_strings_and_comments_are_single_tokens() -> None:
    tokens = list(tokenize('x = "{ a, end }" -- if then\n'))

    assert [token.kind for token in tokens if token.kind in (TokenKind.STRING, TokenKind.COMMENT)] == [
        TokenKind.STRING,
        TokenKind.COMMENT,
    ]


def test_if_block_body_is_indented() -> None:
    assert format_source("if testCOND then\nx = 1\nend\n") == "if testCOND then\n\tx = 1\nend\n"


def test_for_loop_body_is_indented() -> None:
    text = format_source("for for0 = a, b, c\ndo\nx = 1\nend\n")
    assert text == "for for0 = a, b, c\ndo\n\tx = 1\nend\n"


def test_empty_for_loop_keeps_layout() -> None:
    assert format_source("for for0 = a, b, c\ndo\nend\n") == "for for0 = a, b, c\ndo\nend\n"


def test_nested_blocks() -> None:
    text = format_source("function f()\nif testCOND then\nx = 1\nend\nend\n")
    assert text == "function f()\n\tif testCOND then\n\t\tx = 1\n\tend\nend\n"


def test_table_entries_are_placed_on_their_own_lines() -> None:
    assert format_source("t = { 1, 2 }\n") == "t = {\n\t1,\n\t2\n}\n"


def test_mixed_table_separators() -> None:
    text = format_source("t = { 1, 2; x = 3 }\n")
    assert text == "t = {\n\t1,\n\t2;\n\tx = 3\n}\n"


def test_empty_table_stays_inline() -> None:
    assert format_source("t = {}\n") == "t = {}\n"


def test_table_close_drops_one_of_several_parentheses() -> None:
    assert format_source("f({ 1 }))\n") == "f({\n\t1\n})\n"


def test_commas_outside_tables_are_untouched() -> None:
    source = 'print(a, b, "c, d")\n'
    assert format_source(source) == source


def test_custom_indent_unit() -> None:
    formatter = Formatter(indent="  ")
    assert formatter.format("if testCOND then\nx = 1\nend\n") == "if testCOND then\n  x = 1\nend\n"


def test_reset_discards_previous_output() -> None:
    formatter = Formatter()
    formatter.format("if testCOND then\n")
    assert formatter.indent_level == 1

    formatter.reset()
    assert formatter.indent_level == 0
    assert not formatter.is_within_table()
    assert formatter.format("x = 1\n") == "x = 1\n"


def test_output_accumulates_until_reset() -> None:
    formatter = Formatter()
    formatter.format("a = 1\n")
    assert formatter.format("b = 2\n") == "a = 1\nb = 2\n"


@pytest.mark.parametrize("source", ["end\n", "x = 1\nend\nend\n"])
def test_unbalanced_ends_do_not_go_negative(source):
    formatter = Formatter()
    formatter.format(source)
    assert formatter.indent_level == 0
