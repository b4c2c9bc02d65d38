from __future__ import annotations
import pytest

from storyquery.expression.errors import LexError
from storyquery.expression.lexer import tokenize
from storyquery.expression.values import UNDEFINED


def _types(expr):
    return [t.typ for t in tokenize(expr)]

def _pairs(expr):
    return [(t.typ, t.val) for t in tokenize(expr)[:-1]]


def test_ends_with_eof_and_skips_whitespace():
    toks = tokenize("  a \t\n ")
    assert [t.typ for t in toks] == ["ID", "EOF"]
    assert toks[0].pos == 2
    assert toks[-1].pos == 7

def test_longest_operator_first():
    assert _pairs("a === b") == [("ID", "a"), ("OP", "==="), ("ID", "b")]
    assert _pairs("a !== b")[1] == ("OP", "!==")
    assert _pairs("a == b")[1] == ("OP", "==")
    assert _pairs("a != b")[1] == ("OP", "!=")
    assert _pairs("a <= b")[1] == ("OP", "<=")
    assert _pairs("a >= b")[1] == ("OP", ">=")

def test_single_equals_is_loose_equality():
    assert _pairs("a = 1")[1] == ("OP", "==")

def test_logical_operators_and_word_forms():
    assert _types("a && b || !c")[:-1] == ["ID", "AND", "ID", "OR", "NOT", "ID"]
    assert _pairs("a AND b OR NOT c") == [
        ("ID", "a"), ("AND", "&&"), ("ID", "b"), ("OR", "||"), ("NOT", "!"), ("ID", "c"),
    ]
    # lowercase words are ordinary identifiers
    assert _pairs("and or not") == [("ID", "and"), ("ID", "or"), ("ID", "not")]

def test_numbers_integer_and_decimal():
    assert _pairs("42 3.25 .5") == [("NUM", 42), ("NUM", 3.25), ("NUM", 0.5)]
    assert isinstance(tokenize("42")[0].val, int)

def test_number_followed_by_dot_member_is_not_decimal():
    assert _types("1.x")[:-1] == ["NUM", "DOT", "ID"]

def test_no_exponent_form():
    # `1e5` is a number followed by an identifier
    assert _pairs("1e5") == [("NUM", 1), ("ID", "e5")]

def test_string_escapes_both_quotes():
    toks = tokenize(r'"a\"b\n\t\\" ' + r"'it\'s'")
    assert toks[0].typ == "STR" and toks[0].val == 'a"b\n\t\\'
    assert toks[1].val == "it's"

def test_keywords():
    assert _pairs("true false null undefined") == [
        ("BOOL", True), ("BOOL", False), ("NULL", None), ("UNDEFINED", UNDEFINED),
    ]

def test_operator_function_keywords_are_canonical():
    assert _pairs("contains starts ends startsWith gte") == [
        ("OPFUNC", "contains"),
        ("OPFUNC", "startsWith"),
        ("OPFUNC", "endsWith"),
        ("OPFUNC", "startsWith"),
        ("OPFUNC", "gte"),
    ]

def test_identifiers_with_sigils_and_digits():
    assert _pairs("$state _x a1") == [("ID", "$state"), ("ID", "_x"), ("ID", "a1")]

def test_regex_literal_desugars_to_regex_call():
    assert _pairs(r"~dragon\s+slain~i") == [
        ("ID", "regex"), ("LPAREN", "("), ("STR", r"dragon\s+slain"), ("COMMA", ","), ("STR", "i"), ("RPAREN", ")"),
    ]

def test_regex_literal_without_flags_and_escaped_tilde():
    assert _pairs(r"~a\~b~") == [("ID", "regex"), ("LPAREN", "("), ("STR", "a~b"), ("RPAREN", ")")]

def test_arrow_and_punctuation():
    assert _types("xs.some(x => x[0]: 1)")[:-1] == [
        "ID", "DOT", "ID", "LPAREN", "ID", "ARROW", "ID", "LBRACK", "NUM", "RBRACK", "COLON", "NUM", "RPAREN",
    ]

@pytest.mark.parametrize("expr, pos, msg", [
    ('"abc', 0, "Unterminated string"),
    ("a && 'x", 5, "Unterminated string"),
    ("~abc", 0, "Unterminated regex"),
    ("a # b", 2, "Unexpected character"),
])
def test_lex_errors_carry_position(expr, pos, msg):
    with pytest.raises(LexError) as ei:
        tokenize(expr)
    assert ei.value.position == pos
    assert msg in str(ei.value)
    assert f"at position {pos}" in str(ei.value)

def test_lex_error_is_value_error():
    with pytest.raises(ValueError):
        tokenize("@")

def test_operator_keyword_tokens_keep_source_spelling():
    toks = tokenize("starts ends contains")
    assert [(t.val, t.raw) for t in toks[:-1]] == [
        ("startsWith", "starts"), ("endsWith", "ends"), ("contains", "contains"),
    ]
