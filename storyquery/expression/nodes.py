from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Tuple, Union


@dataclass(frozen=True)
class Literal:
    value: Any

@dataclass(frozen=True)
class Identifier:
    name: str

@dataclass(frozen=True)
class MemberAccess:
    """`obj.prop` (property is a str) or `obj[expr]` (computed, property is a node)."""
    obj: "Node"
    prop: Any
    computed: bool = False

@dataclass(frozen=True)
class Call:
    callee: "Node"
    args: Tuple["Node", ...]

@dataclass(frozen=True)
class Unary:
    op: str
    operand: "Node"

@dataclass(frozen=True)
class Binary:
    op: str
    left: "Node"
    right: "Node"

@dataclass(frozen=True)
class Logical:
    op: str  # "&&" or "||"
    left: "Node"
    right: "Node"

@dataclass(frozen=True)
class ArrowFunction:
    params: Tuple[str, ...]
    body: "Node"

@dataclass(frozen=True)
class ArrayLiteral:
    items: Tuple["Node", ...]

@dataclass(frozen=True)
class ObjectQuery:
    """`field.path: value` / `field.path.op: value` record test."""
    field: str
    operator: str
    value: "Node"


Node = Union[
    Literal, Identifier, MemberAccess, Call, Unary, Binary, Logical,
    ArrowFunction, ArrayLiteral, ObjectQuery,
]

QUERY_OPERATORS = frozenset({
    "equals", "contains", "includes", "startsWith", "endsWith",
    "match", "regex", "gt", "lt", "gte", "lte",
})
