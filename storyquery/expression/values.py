from __future__ import annotations
from typing import Any, Callable, Dict, Mapping, Optional
import math
import re
import types

import numpy as np

# =============================================================================
# Undefined marker
# =============================================================================

class _Undefined:
    """Result of resolving something that does not exist. Falsy, distinct from None."""
    __slots__ = ()
    _instance: Optional["_Undefined"] = None

    def __new__(cls) -> "_Undefined":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "undefined"

    def __reduce__(self):
        return (_Undefined, ())


UNDEFINED = _Undefined()


def is_nullish(x: Any) -> bool:
    return x is None or x is UNDEFINED

# =============================================================================
# Coercions (loosely modelled on the scripting-host semantics triggers were written for)
# =============================================================================

_NUM_RX = re.compile(r"^\s*([+-]?((\d+(\.\d*)?)|(\.\d+))([eE][+-]?\d+)?)\s*$")

def _unbox(x: Any) -> Any:
    # numpy scalars from DataFrame rows behave like plain Python values
    if isinstance(x, np.bool_):
        return bool(x)
    if isinstance(x, np.integer):
        return int(x)
    if isinstance(x, np.floating):
        return float(x)
    return x

def is_number(x: Any) -> bool:
    x = _unbox(x)
    return isinstance(x, (int, float)) and not isinstance(x, bool)

def to_number(x: Any) -> float:
    """Number() coercion: null -> 0, undefined -> NaN, bools -> 0/1, blank strings -> 0."""
    x = _unbox(x)
    if x is None:
        return 0.0
    if x is UNDEFINED:
        return math.nan
    if isinstance(x, bool):
        return 1.0 if x else 0.0
    if isinstance(x, (int, float)):
        return float(x)
    if isinstance(x, str):
        if not x.strip():
            return 0.0
        m = _NUM_RX.match(x)
        return float(m.group(1)) if m else math.nan
    if isinstance(x, (list, tuple)) and len(x) <= 1:
        return to_number(x[0]) if x else 0.0
    return math.nan

def _format_number(x: float) -> str:
    if math.isnan(x):
        return "NaN"
    if math.isinf(x):
        return "Infinity" if x > 0 else "-Infinity"
    if x == int(x) and abs(x) < 1e21:
        return str(int(x))
    return repr(x)

def to_str(x: Any) -> str:
    """String coercion used by text operators and string concatenation."""
    x = _unbox(x)
    if x is None:
        return "null"
    if x is UNDEFINED:
        return "undefined"
    if isinstance(x, bool):
        return "true" if x else "false"
    if isinstance(x, float):
        return _format_number(x)
    if isinstance(x, (list, tuple)):
        return ",".join("" if is_nullish(v) else to_str(v) for v in x)
    return str(x)

def is_truthy(x: Any) -> bool:
    x = _unbox(x)
    if x is None or x is UNDEFINED or x is False:
        return False
    if isinstance(x, (int, float)):
        return not (x == 0 or (isinstance(x, float) and math.isnan(x)))
    if isinstance(x, str):
        return x != ""
    # containers are truthy even when empty
    return True

# =============================================================================
# Equality / arithmetic / relational
# =============================================================================

def _kind(x: Any) -> str:
    if x is UNDEFINED: return "undefined"
    if x is None: return "null"
    if isinstance(x, bool): return "boolean"
    if isinstance(x, (int, float)): return "number"
    if isinstance(x, str): return "string"
    return "object"

def strict_equals(a: Any, b: Any) -> bool:
    a, b = _unbox(a), _unbox(b)
    ka, kb = _kind(a), _kind(b)
    if ka != kb:
        return False
    if ka == "object":
        return a is b or a == b
    return a == b

def loose_equals(a: Any, b: Any) -> bool:
    a, b = _unbox(a), _unbox(b)
    ka, kb = _kind(a), _kind(b)
    if ka == kb:
        return strict_equals(a, b)
    if is_nullish(a) or is_nullish(b):
        return is_nullish(a) and is_nullish(b)
    if ka == "object" or kb == "object":
        # compare the primitive form of the container
        if ka == "object" and isinstance(a, (list, tuple)):
            return loose_equals(to_str(a), b)
        if kb == "object" and isinstance(b, (list, tuple)):
            return loose_equals(a, to_str(b))
        return False
    return to_number(a) == to_number(b)

def add(a: Any, b: Any) -> Any:
    a, b = _unbox(a), _unbox(b)
    if isinstance(a, str) or isinstance(b, str):
        return to_str(a) + to_str(b)
    if isinstance(a, (list, tuple)) or isinstance(b, (list, tuple)):
        return to_str(a) + to_str(b)
    return _narrow(to_number(a) + to_number(b), a, b)

def _narrow(result: float, *operands: Any) -> Any:
    # keep integer results integral when every operand was an int
    if all(isinstance(o, int) and not isinstance(o, bool) for o in operands) and result == result:
        if not math.isinf(result):
            return int(result)
    return result

def arithmetic(op: str, a: Any, b: Any) -> Any:
    if op == "+":
        return add(a, b)
    a, b = _unbox(a), _unbox(b)
    x, y = to_number(a), to_number(b)
    if op == "-":
        return _narrow(x - y, a, b)
    if op == "*":
        return _narrow(x * y, a, b)
    if op == "/":
        if y == 0:
            if x == 0 or math.isnan(x):
                return math.nan
            return math.copysign(math.inf, x) * math.copysign(1.0, y)
        q = x / y
        return _narrow(q, a, b) if math.isfinite(q) and q == int(q) else q
    if op == "%":
        if y == 0 or math.isinf(x) or math.isnan(x) or math.isnan(y):
            return math.nan
        return _narrow(math.fmod(x, y), a, b)
    raise ValueError(f"Unknown arithmetic operator {op!r}")

def compare(op: str, a: Any, b: Any) -> bool:
    a, b = _unbox(a), _unbox(b)
    if isinstance(a, str) and isinstance(b, str):
        x, y = a, b
    else:
        x, y = to_number(a), to_number(b)
        if math.isnan(x) or math.isnan(y):
            return False
    if op == "<": return x < y
    if op == "<=": return x <= y
    if op == ">": return x > y
    if op == ">=": return x >= y
    raise ValueError(f"Unknown comparison operator {op!r}")

# =============================================================================
# Member access and host methods
# =============================================================================

def _list_index(seq, key: Any) -> Any:
    idx = to_number(key) if not isinstance(key, int) else key
    if isinstance(idx, float):
        if not math.isfinite(idx) or idx != int(idx):
            return UNDEFINED
        idx = int(idx)
    if 0 <= idx < len(seq):
        return seq[idx]
    return UNDEFINED

def get_member(obj: Any, key: Any) -> Any:
    """obj[key] / obj.key with undefined for anything missing."""
    if is_nullish(obj):
        return UNDEFINED
    if isinstance(obj, Mapping):
        if key in obj:
            return obj[key]
        skey = to_str(key)
        if skey in obj:
            return obj[skey]
        return UNDEFINED
    if isinstance(obj, (str, list, tuple)):
        if key == "length":
            return len(obj)
        if isinstance(key, str) and not _NUM_RX.match(key):
            return UNDEFINED
        return _list_index(obj, key)
    # private attributes of host objects stay hidden; mapping keys like `_id` do not
    if isinstance(key, str) and not key.startswith("_"):
        try:
            return getattr(obj, key)
        except AttributeError:
            return UNDEFINED
    return UNDEFINED


def _list_find(seq, fn):
    for v in seq:
        if is_truthy(fn(v)):
            return v
    return UNDEFINED

def _index_of(container, needle) -> int:
    if isinstance(container, str):
        return container.find(to_str(needle))
    for i, v in enumerate(container):
        if strict_equals(v, needle):
            return i
    return -1

def _includes(container, needle) -> bool:
    if isinstance(container, str):
        return to_str(needle) in container
    return any(strict_equals(v, needle) for v in container)

def _split(s: str, sep: Any = UNDEFINED, limit: Any = UNDEFINED) -> list:
    if sep is UNDEFINED:
        parts = [s]
    elif isinstance(sep, re.Pattern):
        parts = sep.split(s)
    elif to_str(sep) == "":
        parts = list(s)
    else:
        parts = s.split(to_str(sep))
    if limit is not UNDEFINED:
        parts = parts[: int(to_number(limit))]
    return parts

_LIST_METHODS: Dict[str, Callable[..., Any]] = {
    "some": lambda seq, fn: any(is_truthy(fn(v)) for v in seq),
    "every": lambda seq, fn: all(is_truthy(fn(v)) for v in seq),
    "filter": lambda seq, fn: [v for v in seq if is_truthy(fn(v))],
    "map": lambda seq, fn: [fn(v) for v in seq],
    "find": _list_find,
    "includes": _includes,
    "indexOf": _index_of,
    "join": lambda seq, sep=",": to_str(sep).join("" if is_nullish(v) else to_str(v) for v in seq),
}

_STR_METHODS: Dict[str, Callable[..., Any]] = {
    "toLowerCase": lambda s: s.lower(),
    "toUpperCase": lambda s: s.upper(),
    "trim": lambda s: s.strip(),
    "includes": _includes,
    "startsWith": lambda s, x: s.startswith(to_str(x)),
    "endsWith": lambda s, x: s.endswith(to_str(x)),
    "indexOf": _index_of,
    "split": _split,
}

_MAP_METHODS: Dict[str, Callable[..., Any]] = {
    "keys": lambda m: list(m.keys()),
    "values": lambda m: list(m.values()),
    "has": lambda m, k: k in m,
}

def get_method(obj: Any, name: str) -> Optional[Callable[..., Any]]:
    """Resolve `obj.name(...)` to a callable with the receiver already bound."""
    if is_nullish(obj):
        return None
    table: Optional[Dict[str, Callable[..., Any]]] = None
    if isinstance(obj, str):
        table = _STR_METHODS
    elif isinstance(obj, (list, tuple)):
        table = _LIST_METHODS
    elif isinstance(obj, Mapping):
        table = _MAP_METHODS
    if table is not None and name in table:
        fn = table[name]
        return lambda *args: fn(obj, *args)
    member = get_member(obj, name)
    return member if callable(member) else None

# =============================================================================
# Host globals
# =============================================================================

def _js_round(x: Any) -> float:
    return math.floor(to_number(x) + 0.5)

def _regexp(pattern: Any, flags: Any = "") -> re.Pattern:
    from .builtins import compile_pattern
    return compile_pattern(to_str(pattern), "" if is_nullish(flags) else to_str(flags))

Math = types.SimpleNamespace(
    abs=lambda x: abs(to_number(x)),
    min=lambda *xs: min((to_number(x) for x in xs), default=math.inf),
    max=lambda *xs: max((to_number(x) for x in xs), default=-math.inf),
    floor=lambda x: math.floor(to_number(x)),
    ceil=lambda x: math.ceil(to_number(x)),
    round=_js_round,
    sqrt=lambda x: math.sqrt(to_number(x)) if to_number(x) >= 0 else math.nan,
    pow=lambda x, y: to_number(x) ** to_number(y),
)

DEFAULT_HOST_GLOBALS: Dict[str, Any] = {
    "Math": Math,
    "Number": to_number,
    "String": to_str,
    "Boolean": is_truthy,
    "RegExp": _regexp,
}
