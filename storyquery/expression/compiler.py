from __future__ import annotations
from collections import ChainMap
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional, Tuple
import logging
import re

from toolz import juxt

from .builtins import compile_pattern
from .errors import EvaluationError
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
    QUERY_OPERATORS,
    Unary,
)
from .values import (
    UNDEFINED,
    arithmetic,
    compare,
    get_member,
    get_method,
    is_nullish,
    is_truthy,
    loose_equals,
    strict_equals,
    to_number,
    to_str,
)

log = logging.getLogger("storyquery.expression")

CONTEXT_KINDS = ("text", "object")

# =============================================================================
# Scopes
# =============================================================================

class ScopeChain:
    """
    Ordered (label, scope) pairs consulted by identifier lookup; first hit wins.

    Evaluators build, front to back: arrow-function locals, the input record
    (object context only), builtins, ambient bindings, host globals.
    """
    __slots__ = ("_scopes",)

    def __init__(self, scopes: Iterable[Tuple[str, Any]] = ()) -> None:
        self._scopes = tuple(scopes)

    def push(self, label: str, scope: Any) -> "ScopeChain":
        return ScopeChain(((label, scope),) + self._scopes)

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(label for label, _ in self._scopes)

    def resolve(self, name: str) -> Tuple[Any, Optional[str]]:
        for label, scope in self._scopes:
            if isinstance(scope, Mapping):
                if name in scope:
                    return scope[name], label
                continue
            val = get_member(scope, name)
            if val is not UNDEFINED:
                return val, label
        return UNDEFINED, None


@dataclass(frozen=True)
class _Frame:
    scopes: ScopeChain
    text: str
    subject: Any  # what a bare query predicate is applied to

    def with_locals(self, local: Mapping[str, Any]) -> "_Frame":
        # queries inside an arrow body may start from its parameter (`i => i.name: "Key"`)
        if isinstance(self.subject, Mapping):
            subject = ChainMap(dict(local), self.subject)
        else:
            subject = dict(local)
        return _Frame(self.scopes.push("locals", local), self.text, subject)

# =============================================================================
# Object-query predicates
# =============================================================================

def resolve_path(obj: Any, path: str) -> Any:
    cur = obj
    for part in path.split("."):
        if is_nullish(cur):
            return UNDEFINED
        cur = get_member(cur, part)
    return cur

def _query_str(x: Any) -> Optional[str]:
    return None if is_nullish(x) else to_str(x)

def _num_pair(a: Any, b: Any) -> Optional[Tuple[float, float]]:
    if is_nullish(a) or is_nullish(b):
        return None
    x, y = to_number(a), to_number(b)
    if x != x or y != y:  # NaN
        return None
    return x, y


class QueryPredicate:
    """Compiled `field: value` test. Never raises; errors and absent fields mean False."""
    __slots__ = ("field", "operator", "value")

    def __init__(self, field: str, operator: str, value: Any) -> None:
        self.field = field
        self.operator = operator
        self.value = value

    def __repr__(self) -> str:
        return f"QueryPredicate({self.field!r}, {self.operator!r}, {self.value!r})"

    def __call__(self, obj: Any) -> bool:
        if is_nullish(obj) or isinstance(obj, (str, int, float, bool)):
            return False
        try:
            return self._test(resolve_path(obj, self.field))
        except Exception as e:
            log.debug("query predicate failed", extra={"field": self.field, "error": str(e)})
            return False

    def _test(self, fv: Any) -> bool:
        if fv is UNDEFINED:
            return False
        op, value = self.operator, self.value
        if op == "equals":
            return loose_equals(fv, value)
        if op in ("contains", "includes", "startsWith", "endsWith"):
            s, v = _query_str(fv), _query_str(value)
            if s is None or v is None:
                return False
            if op == "startsWith":
                return s.startswith(v)
            if op == "endsWith":
                return s.endswith(v)
            return v in s
        if op in ("match", "regex"):
            s = _query_str(fv)
            if s is None or is_nullish(value):
                return False
            rx = value if isinstance(value, re.Pattern) else compile_pattern(to_str(value))
            return rx.search(s) is not None
        pair = _num_pair(fv, value)
        if pair is None:
            return False
        x, y = pair
        if op == "gt": return x > y
        if op == "lt": return x < y
        if op == "gte": return x >= y
        if op == "lte": return x <= y
        return False


def _settle(value: Any, frame: _Frame) -> Any:
    # a query used as an operand is tested against the current subject
    if isinstance(value, QueryPredicate):
        return value(frame.subject)
    return value

# =============================================================================
# Closures for arrow functions
# =============================================================================

class _Closure:
    __slots__ = ("params", "body", "frame")

    def __init__(self, params: Tuple[str, ...], body: Callable[[_Frame], Any], frame: _Frame) -> None:
        self.params = params
        self.body = body
        self.frame = frame

    def __call__(self, *args: Any) -> Any:
        local = {p: (args[i] if i < len(args) else UNDEFINED) for i, p in enumerate(self.params)}
        inner = self.frame.with_locals(local)
        return _settle(self.body(inner), inner)

# =============================================================================
# AST -> closures
# =============================================================================

Compiled = Callable[[_Frame], Any]

def _callee_name(node: Node) -> str:
    if isinstance(node, Identifier):
        return node.name
    if isinstance(node, MemberAccess) and not node.computed:
        return str(node.prop)
    return "expression"

def _compile_call(node: Call) -> Compiled:
    args_fn = juxt(*[_compile(a) for a in node.args])
    callee = node.callee
    name = _callee_name(callee)

    if isinstance(callee, Identifier):
        def _call_ident(f: _Frame):
            fn, scope = f.scopes.resolve(callee.name)
            if not callable(fn):
                raise EvaluationError(f"{name} is not a function")
            if scope == "builtins":
                return fn(f.text, *args_fn(f))
            return fn(*args_fn(f))
        return _call_ident

    if isinstance(callee, MemberAccess) and not callee.computed:
        obj_fn = _compile(callee.obj)
        prop = callee.prop
        def _call_method(f: _Frame):
            method = get_method(obj_fn(f), prop)
            if method is None:
                raise EvaluationError(f"{name} is not a function")
            return method(*args_fn(f))
        return _call_method

    callee_fn = _compile(callee)
    def _call_value(f: _Frame):
        fn = callee_fn(f)
        if not callable(fn):
            raise EvaluationError(f"{name} is not a function")
        return fn(*args_fn(f))
    return _call_value

def _compile_unary(node: Unary) -> Compiled:
    operand = _compile(node.operand)
    if node.op == "!":
        return lambda f: not is_truthy(_settle(operand(f), f))
    if node.op == "-":
        def _neg(f: _Frame):
            v = operand(f)
            return -v if isinstance(v, int) and not isinstance(v, bool) else -to_number(v)
        return _neg
    if node.op == "+":
        def _pos(f: _Frame):
            v = operand(f)
            return v if isinstance(v, int) and not isinstance(v, bool) else to_number(v)
        return _pos
    raise ValueError(f"Unknown unary operator {node.op!r}")

def _compile_binary(node: Binary) -> Compiled:
    lf = _compile(node.left); rf = _compile(node.right)
    op = node.op
    if op in ("+", "-", "*", "/", "%"):
        return lambda f: arithmetic(op, lf(f), rf(f))
    if op in ("<", "<=", ">", ">="):
        return lambda f: compare(op, lf(f), rf(f))
    if op == "==":
        return lambda f: loose_equals(lf(f), rf(f))
    if op == "!=":
        return lambda f: not loose_equals(lf(f), rf(f))
    if op == "===":
        return lambda f: strict_equals(lf(f), rf(f))
    if op == "!==":
        return lambda f: not strict_equals(lf(f), rf(f))
    raise ValueError(f"Unknown binary operator {op!r}")

def _compile_logical(node: Logical) -> Compiled:
    lf = _compile(node.left); rf = _compile(node.right)
    if node.op == "&&":
        def _and(f: _Frame):
            left = _settle(lf(f), f)
            return _settle(rf(f), f) if is_truthy(left) else left
        return _and
    if node.op == "||":
        def _or(f: _Frame):
            left = _settle(lf(f), f)
            return left if is_truthy(left) else _settle(rf(f), f)
        return _or
    raise ValueError(f"Unknown logical operator {node.op!r}")

def _compile(node: Node) -> Compiled:
    if isinstance(node, Literal):
        val = node.value
        return lambda f: val

    if isinstance(node, Identifier):
        name = node.name
        return lambda f: f.scopes.resolve(name)[0]

    if isinstance(node, ArrayLiteral):
        items = juxt(*[_compile(a) for a in node.items])
        return lambda f: list(items(f))

    if isinstance(node, MemberAccess):
        obj_fn = _compile(node.obj)
        if node.computed:
            key_fn = _compile(node.prop)
            return lambda f: get_member(obj_fn(f), key_fn(f))
        prop = node.prop
        return lambda f: get_member(obj_fn(f), prop)

    if isinstance(node, Call):
        return _compile_call(node)

    if isinstance(node, Unary):
        return _compile_unary(node)

    if isinstance(node, Binary):
        return _compile_binary(node)

    if isinstance(node, Logical):
        return _compile_logical(node)

    if isinstance(node, ArrowFunction):
        params = node.params
        body = _compile(node.body)
        return lambda f: _Closure(params, body, f)

    if isinstance(node, ObjectQuery):
        if node.operator not in QUERY_OPERATORS:
            raise ValueError(f"Unknown query operator {node.operator!r}")
        field, op = node.field, node.operator
        value_fn = _compile(node.value)
        return lambda f: QueryPredicate(field, op, value_fn(f))

    raise ValueError(f"Unknown AST node: {node!r}")

# =============================================================================
# Compiled evaluator
# =============================================================================

@dataclass(frozen=True)
class EvalResult:
    ok: bool
    value: Any = None
    error: Optional[EvaluationError] = None


class CompiledEvaluator:
    """
    Single-argument evaluator for one expression in one context kind.

    `text` evaluators take narrative text, `object` evaluators take a record.
    Calling it never raises: failures collapse to False. Use `run()` to see
    the error instead.
    """
    __slots__ = ("expression", "context", "target", "_fn", "_builtins", "_host_globals", "_ambient")

    def __init__(
        self,
        expression: str,
        context: str,
        target: Optional[str],
        fn: Compiled,
        *,
        builtins: Mapping[str, Callable[..., Any]],
        host_globals: Mapping[str, Any],
        ambient: Mapping[str, Any],
    ) -> None:
        self.expression = expression
        self.context = context
        self.target = target
        self._fn = fn
        self._builtins = builtins
        self._host_globals = host_globals
        self._ambient = ambient

    def __repr__(self) -> str:
        return f"CompiledEvaluator({self.expression!r}, context={self.context!r}, target={self.target!r})"

    def _frame(self, data: Any, bindings: Optional[Mapping[str, Any]]) -> _Frame:
        if self.context == "object":
            env = ChainMap(dict(bindings or {}), self._ambient, {"record": data})
            scopes = ScopeChain((
                ("record", data),
                ("builtins", self._builtins),
                ("bindings", env),
                ("globals", self._host_globals),
            ))
            return _Frame(scopes, "", data)
        text = "" if is_nullish(data) else to_str(data)
        env = ChainMap(dict(bindings or {}), self._ambient, {"text": text})
        scopes = ScopeChain((
            ("builtins", self._builtins),
            ("bindings", env),
            ("globals", self._host_globals),
        ))
        return _Frame(scopes, text, env)

    def run(self, data: Any, bindings: Optional[Mapping[str, Any]] = None) -> EvalResult:
        try:
            frame = self._frame(data, bindings)
            return EvalResult(True, _settle(self._fn(frame), frame))
        except Exception as e:
            err = e if isinstance(e, EvaluationError) else EvaluationError(f"{type(e).__name__}: {e}")
            log.debug("evaluation failed", extra={"expression": self.expression, "error": str(err)})
            return EvalResult(False, None, err)

    def __call__(self, data: Any, bindings: Optional[Mapping[str, Any]] = None) -> Any:
        res = self.run(data, bindings)
        return res.value if res.ok else False


def compile_ast(
    ast: Node,
    context: str = "text",
    target: Optional[str] = None,
    *,
    expression: str = "",
    builtins: Mapping[str, Callable[..., Any]],
    host_globals: Mapping[str, Any],
    ambient: Optional[Mapping[str, Any]] = None,
) -> CompiledEvaluator:
    if context not in CONTEXT_KINDS:
        raise ValueError(f"Unknown context kind {context!r}; expected one of {CONTEXT_KINDS}")
    fn = _compile(ast)
    return CompiledEvaluator(
        expression,
        context,
        target,
        fn,
        builtins=builtins,
        host_globals=host_globals,
        ambient=ambient if ambient is not None else {},
    )
