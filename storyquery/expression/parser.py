from __future__ import annotations
from typing import List, Optional

from .errors import ParseError
from .lexer import Token, tokenize
from .nodes import (
    ArrayLiteral,
    ArrowFunction,
    Binary,
    Call,
    Identifier,
    Literal,
    Logical,
    MemberAccess,
    Node,
    ObjectQuery,
    Unary,
)
from .values import to_str

_EQUALITY = ("==", "!=", "===", "!==")
_RELATIONAL = ("<", "<=", ">", ">=")
_ADDITIVE = ("+", "-")
_MULTIPLICATIVE = ("*", "/", "%")
_LITERALS = ("NUM", "STR", "BOOL", "NULL", "UNDEFINED")

# =============================================================================
# Parser (recursive descent, precedence climbing)
# =============================================================================

class Parser:
    def __init__(self, tokens: List[Token]) -> None:
        self.toks = tokens
        self.i = 0

    def _peek(self, offset: int = 0) -> Token:
        j = min(self.i + offset, len(self.toks) - 1)
        return self.toks[j]

    def _eat(self, typ: Optional[str] = None) -> Token:
        t = self._peek()
        if typ and t.typ != typ:
            raise ParseError(f"Expected {typ}, got {t.typ}", t.pos)
        self.i += 1
        return t

    def _at_op(self, ops) -> bool:
        t = self._peek()
        return t.typ == "OP" and t.val in ops

    def parse(self) -> Node:
        node = self._parse_or()
        if self._peek().typ != "EOF":
            t = self._peek()
            raise ParseError(f"Unexpected token after expression: {t.typ}", t.pos)
        return node

    # or := and ('||' and)*
    def _parse_or(self) -> Node:
        left = self._parse_and()
        while self._peek().typ == "OR":
            self._eat("OR")
            left = Logical("||", left, self._parse_and())
        return left

    # and := equality ('&&' equality)*
    def _parse_and(self) -> Node:
        left = self._parse_equality()
        while self._peek().typ == "AND":
            self._eat("AND")
            left = Logical("&&", left, self._parse_equality())
        return left

    def _parse_equality(self) -> Node:
        left = self._parse_relational()
        while self._at_op(_EQUALITY):
            op = self._eat().val
            left = Binary(op, left, self._parse_relational())
        return left

    def _parse_relational(self) -> Node:
        left = self._parse_additive()
        while self._at_op(_RELATIONAL):
            op = self._eat().val
            left = Binary(op, left, self._parse_additive())
        return left

    def _parse_additive(self) -> Node:
        left = self._parse_multiplicative()
        while self._at_op(_ADDITIVE):
            op = self._eat().val
            left = Binary(op, left, self._parse_multiplicative())
        return left

    def _parse_multiplicative(self) -> Node:
        left = self._parse_unary()
        while self._at_op(_MULTIPLICATIVE):
            op = self._eat().val
            left = Binary(op, left, self._parse_unary())
        return left

    # unary := ('!' | '-' | '+') unary | postfix
    def _parse_unary(self) -> Node:
        if self._peek().typ == "NOT":
            self._eat("NOT")
            return Unary("!", self._parse_unary())
        if self._at_op(_ADDITIVE):
            op = self._eat().val
            return Unary(op, self._parse_unary())
        return self._parse_postfix()

    # postfix := primary ( ':' query | '.' member | '[' expr ']' | '(' args ')' )*
    def _parse_postfix(self) -> Node:
        left = self._parse_primary()
        while True:
            t = self._peek()

            if t.typ == "COLON":
                self._eat("COLON")
                op = "equals"
                if self._peek().typ == "OPFUNC":
                    op = self._eat("OPFUNC").val
                left = ObjectQuery(self._field_path(left, t), op, self._parse_unary())
                continue

            if t.typ == "DOT":
                self._eat("DOT")
                name_tok = self._peek()
                if name_tok.typ == "OPFUNC":
                    self._eat("OPFUNC")
                    if self._peek().typ == "COLON":
                        self._eat("COLON")
                        left = ObjectQuery(self._field_path(left, t), name_tok.val, self._parse_unary())
                        continue
                elif name_tok.typ == "ID":
                    self._eat("ID")
                else:
                    raise ParseError(f"Expected property name, got {name_tok.typ}", name_tok.pos)
                # aliases keep their spelling as property names: `event.starts` reads "starts"
                member = MemberAccess(left, name_tok.raw or name_tok.val)
                if self._peek().typ == "LPAREN":
                    left = Call(member, self._parse_args())
                else:
                    left = member
                continue

            if t.typ == "LBRACK":
                self._eat("LBRACK")
                index = self._parse_or()
                self._eat("RBRACK")
                left = MemberAccess(left, index, computed=True)
                continue

            if t.typ == "LPAREN" and isinstance(left, Identifier):
                left = Call(left, self._parse_args())
                continue

            return left

    def _parse_args(self) -> tuple:
        self._eat("LPAREN")
        args: List[Node] = []
        if self._peek().typ != "RPAREN":
            while True:
                args.append(self._parse_arg())
                if self._peek().typ == "COMMA":
                    self._eat("COMMA"); continue
                break
        self._eat("RPAREN")
        return tuple(args)

    # arg := ident '=>' expr | '(' ident ')' '=>' expr | expr
    def _parse_arg(self) -> Node:
        if self._peek().typ == "ID" and self._peek(1).typ == "ARROW":
            param = self._eat("ID").val
            self._eat("ARROW")
            return ArrowFunction((param,), self._parse_or())
        if (self._peek().typ == "LPAREN" and self._peek(1).typ == "ID"
                and self._peek(2).typ == "RPAREN" and self._peek(3).typ == "ARROW"):
            self._eat("LPAREN")
            param = self._eat("ID").val
            self._eat("RPAREN")
            self._eat("ARROW")
            return ArrowFunction((param,), self._parse_or())
        return self._parse_or()

    # primary := literal | identifier | '(' expr ')' | '[' items ']'
    def _parse_primary(self) -> Node:
        t = self._peek()
        if t.typ in _LITERALS:
            self._eat()
            return Literal(t.val)
        if t.typ == "ID":
            return Identifier(self._eat("ID").val)
        if t.typ == "OPFUNC":
            # outside a query, operator keywords are plain names: `regex("a+")`, `starts > 3`
            tok = self._eat("OPFUNC")
            return Identifier(tok.raw or tok.val)
        if t.typ == "LPAREN":
            self._eat("LPAREN")
            node = self._parse_or()
            self._eat("RPAREN")
            return node
        if t.typ == "LBRACK":
            return self._parse_array()
        if t.typ == "EOF":
            raise ParseError("Unexpected end of expression", t.pos)
        raise ParseError(f"Unexpected token {t.typ}", t.pos)

    def _parse_array(self) -> Node:
        self._eat("LBRACK")
        items: List[Node] = []
        if self._peek().typ != "RBRACK":
            while True:
                items.append(self._parse_or())
                if self._peek().typ == "COMMA":
                    self._eat("COMMA"); continue
                break
        self._eat("RBRACK")
        return ArrayLiteral(tuple(items))

    def _field_path(self, node: Node, at: Token) -> str:
        """Flatten the left side of a query (`a.b["c"]`) into "a.b.c"."""
        if isinstance(node, Identifier):
            return node.name
        if isinstance(node, MemberAccess):
            base = self._field_path(node.obj, at)
            if not node.computed:
                return f"{base}.{node.prop}"
            if isinstance(node.prop, Literal):
                return f"{base}.{to_str(node.prop.value)}"
        raise ParseError("Left side of a query must be a field path", at.pos)


def parse_expression(expr: str) -> Node:
    """Lex and parse `expr` into a single AST root. Raises LexError / ParseError."""
    return Parser(tokenize(expr)).parse()
