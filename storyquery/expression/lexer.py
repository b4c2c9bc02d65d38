from __future__ import annotations
from typing import Any, List, Tuple

from .errors import LexError
from .values import UNDEFINED

# =============================================================================
# Tokens
# =============================================================================

class Token:
    __slots__ = ("typ", "val", "pos", "raw")
    def __init__(self, typ: str, val: Any, pos: int, raw: str | None = None) -> None:
        self.typ = typ
        self.val = val
        self.pos = pos
        # source spelling; differs from val for aliases such as `starts`
        self.raw = raw
    def __repr__(self) -> str:
        return f"Token({self.typ!r}, {self.val!r}, pos={self.pos})"


# Word-form operators and literal keywords. Case-sensitive on purpose:
# lowercase `and` / `or` stay usable as field names.
KEYWORDS: dict[str, Tuple[str, Any]] = {
    "true": ("BOOL", True),
    "false": ("BOOL", False),
    "null": ("NULL", None),
    "undefined": ("UNDEFINED", UNDEFINED),
    "AND": ("AND", "&&"),
    "OR": ("OR", "||"),
    "NOT": ("NOT", "!"),
}

# Operator-function keywords, reserved for the object-query syntax.
# The value is the canonical operator name.
OPERATOR_FUNCS: dict[str, str] = {
    "contains": "contains",
    "includes": "includes",
    "startsWith": "startsWith",
    "starts": "startsWith",
    "endsWith": "endsWith",
    "ends": "endsWith",
    "match": "match",
    "regex": "regex",
    "gt": "gt",
    "lt": "lt",
    "gte": "gte",
    "lte": "lte",
}

_THREE_CHAR = {"===": "OP", "!==": "OP"}
_TWO_CHAR = {
    "&&": "AND",
    "||": "OR",
    "==": "OP",
    "!=": "OP",
    "<=": "OP",
    ">=": "OP",
    "=>": "ARROW",
}
_ONE_CHAR = {
    "+": "OP",
    "-": "OP",
    "*": "OP",
    "/": "OP",
    "%": "OP",
    "<": "OP",
    ">": "OP",
    "!": "NOT",
    "(": "LPAREN",
    ")": "RPAREN",
    "[": "LBRACK",
    "]": "RBRACK",
    ".": "DOT",
    ",": "COMMA",
    ":": "COLON",
    "=": "OP",
}

_DIGITS = set("0123456789")
_IDENT_START = set("_$abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ")
_IDENT_CONT = _IDENT_START.union(_DIGITS)
_REGEX_FLAGS = set("gimsuvy")
_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "\\": "\\", '"': '"', "'": "'"}

# =============================================================================
# Readers
# =============================================================================

def _read_while(s: str, i: int, pred) -> Tuple[str, int]:
    j = i
    n = len(s)
    while j < n and pred(s[j]):
        j += 1
    return s[i:j], j

def _read_string(s: str, i: int) -> Tuple[str, int]:
    quote = s[i]
    start = i
    i += 1
    out: List[str] = []
    n = len(s)
    esc = False
    while i < n:
        ch = s[i]
        i += 1
        if esc:
            out.append(_ESCAPES.get(ch, ch))
            esc = False
        elif ch == "\\":
            esc = True
        elif ch == quote:
            return "".join(out), i
        else:
            out.append(ch)
    raise LexError("Unterminated string literal", start)

def _read_number(s: str, i: int) -> Tuple[int | float, int]:
    int_part, j = _read_while(s, i, lambda c: c in _DIGITS)
    n = len(s)
    # fractional part only when a digit follows the dot, so `1.x` stays member access
    if j + 1 < n and s[j] == "." and s[j + 1] in _DIGITS:
        frac, j = _read_while(s, j + 1, lambda c: c in _DIGITS)
        return float(f"{int_part or '0'}.{frac}"), j
    return int(int_part), j

def _read_regex(s: str, i: int) -> Tuple[str, str, int]:
    """Read `~pattern~flags` starting at the opening tilde."""
    start = i
    i += 1
    out: List[str] = []
    n = len(s)
    while i < n:
        ch = s[i]
        if ch == "\\" and i + 1 < n:
            nxt = s[i + 1]
            # an escaped delimiter is a literal tilde; other escapes belong to the pattern
            out.append(nxt if nxt == "~" else ch + nxt)
            i += 2
            continue
        if ch == "~":
            flags, j = _read_while(s, i + 1, lambda c: c in _REGEX_FLAGS)
            return "".join(out), flags, j
        out.append(ch)
        i += 1
    raise LexError("Unterminated regex literal", start)

# =============================================================================
# Tokenizer
# =============================================================================

def tokenize(expr: str) -> List[Token]:
    """
    Turn an expression into tokens, terminated by an EOF token.

    `~pattern~flags` literals are desugared here into the tokens of
    `regex("pattern", "flags")`, so the parser never sees them.
    """
    s = expr
    i = 0
    n = len(s)
    toks: List[Token] = []
    while i < n:
        ch = s[i]
        if ch.isspace():
            i += 1; continue

        if ch == "~":
            pattern, flags, j = _read_regex(s, i)
            toks.append(Token("ID", "regex", i))
            toks.append(Token("LPAREN", "(", i))
            toks.append(Token("STR", pattern, i))
            if flags:
                toks.append(Token("COMMA", ",", i))
                toks.append(Token("STR", flags, i))
            toks.append(Token("RPAREN", ")", i))
            i = j; continue

        # longest operator first
        tri = s[i:i+3]
        if tri in _THREE_CHAR:
            toks.append(Token(_THREE_CHAR[tri], tri, i)); i += 3; continue
        two = s[i:i+2]
        if two in _TWO_CHAR:
            toks.append(Token(_TWO_CHAR[two], two, i)); i += 2; continue

        # numbers before '.', so `.5` is a number
        if ch in _DIGITS or (ch == "." and i + 1 < n and s[i + 1] in _DIGITS):
            val, j = _read_number(s, i)
            toks.append(Token("NUM", val, i))
            i = j; continue

        if ch in _ONE_CHAR:
            # a lone '=' is loose equality
            val = "==" if ch == "=" else ch
            toks.append(Token(_ONE_CHAR[ch], val, i)); i += 1; continue

        if ch in ("'", '"'):
            val, j = _read_string(s, i)
            toks.append(Token("STR", val, i))
            i = j; continue

        if ch in _IDENT_START:
            raw, j = _read_while(s, i, lambda c: c in _IDENT_CONT)
            if raw in KEYWORDS:
                typ, val = KEYWORDS[raw]
                toks.append(Token(typ, val, i))
            elif raw in OPERATOR_FUNCS:
                toks.append(Token("OPFUNC", OPERATOR_FUNCS[raw], i, raw))
            else:
                toks.append(Token("ID", raw, i))
            i = j; continue

        raise LexError(f"Unexpected character {ch!r}", i)

    toks.append(Token("EOF", None, n))
    return toks
