from __future__ import annotations
from functools import lru_cache, partial
from typing import Any, Callable, Dict, Iterator, Optional
import logging
import re

from .similarity import find_best_match, fuzzy_match
from .values import is_nullish, to_number, to_str

log = logging.getLogger("storyquery.expression")

# Builtins are text predicates: the evaluator always passes the current text
# as the first argument, whatever the call looks like in the expression.
BuiltinFn = Callable[..., Any]

# =============================================================================
# Pattern helpers
# =============================================================================

_FLAG_MAP = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}

def _re_flags(flags: str) -> int:
    out = 0
    for ch in flags or "":
        out |= _FLAG_MAP.get(ch, 0)
    return out

@lru_cache(maxsize=256)
def compile_pattern(pattern: str, flags: str = "") -> re.Pattern:
    """Compile (and memoize) a pattern. `g`, `u`, `v`, `y` flags are accepted and ignored."""
    return re.compile(pattern, _re_flags(flags))

def pattern_cache_info():
    return compile_pattern.cache_info()

def _word_rx(word: Any) -> re.Pattern:
    # whole word: not preceded or followed by a word character
    return compile_pattern(r"(?<!\w)" + re.escape(to_str(word)) + r"(?!\w)", "i")

def _text(x: Any) -> str:
    return "" if is_nullish(x) else to_str(x)

def _term_hit(text: str, term: Any) -> bool:
    if isinstance(term, bool):
        return term
    if isinstance(term, re.Pattern):
        return term.search(text) is not None
    if is_nullish(term):
        return False
    return to_str(term).lower() in text.lower()

def _positions(rx: re.Pattern, text: str) -> Iterator[int]:
    return (m.start() for m in rx.finditer(text))

# =============================================================================
# Text predicates
# =============================================================================

def fn_regex(text, pattern, flags: Any = "") -> bool:
    text = _text(text)
    if isinstance(pattern, re.Pattern):
        return pattern.search(text) is not None
    try:
        rx = compile_pattern(to_str(pattern), _text(flags))
    except re.error as e:
        log.debug("invalid regex", extra={"pattern": to_str(pattern), "error": str(e)})
        return False
    return rx.search(text) is not None

def fn_any(text, *terms) -> bool:
    text = _text(text)
    return any(_term_hit(text, t) for t in terms)

def fn_all(text, *terms) -> bool:
    text = _text(text)
    return all(_term_hit(text, t) for t in terms)

def fn_none(text, *terms) -> bool:
    return not fn_any(text, *terms)

def fn_count(text, term) -> int:
    text = _text(text)
    rx = term if isinstance(term, re.Pattern) else _word_rx(term)
    return sum(1 for _ in rx.finditer(text))

def fn_near(text, word1, word2, max_distance: Any = None, *, default_distance: int = 50) -> bool:
    """True if any occurrence of word1 starts within max_distance chars of an occurrence of word2."""
    text = _text(text)
    limit = default_distance if is_nullish(max_distance) else to_number(max_distance)
    second = list(_positions(_word_rx(word2), text))
    if not second:
        return False
    for a in _positions(_word_rx(word1), text):
        for b in second:
            if abs(b - a) <= limit:
                return True
    return False

def fn_sequence(text, *words) -> bool:
    """Greedy, first fit per word: each search starts just after the previous match."""
    text = _text(text)
    last = -1
    for word in words:
        m = _word_rx(word).search(text, last + 1)
        if m is None:
            return False
        last = m.start()
    return True

# =============================================================================
# Fuzzy matching
# =============================================================================

_TOKEN_RX = re.compile(r"\w+")

def _candidates(text: str, word: str) -> Iterator[str]:
    # only tokens within +/-2 chars of the target length can plausibly match
    lo = max(1, len(word) - 2)
    hi = len(word) + 2
    return (tok for tok in _TOKEN_RX.findall(text) if lo <= len(tok) <= hi)

def _threshold(threshold: Any, default: float) -> float:
    return default if is_nullish(threshold) else to_number(threshold)

def fn_fuzzy(text, word, threshold: Any = None, *, default_threshold: float = 0.8) -> bool:
    text, word = _text(text), _text(word)
    th = _threshold(threshold, default_threshold)
    return any(fuzzy_match(tok, word, th) for tok in _candidates(text, word))

def fn_fuzzy_find(text, word, threshold: Any = None, *, default_threshold: float = 0.8) -> Optional[str]:
    text, word = _text(text), _text(word)
    hit = find_best_match(word, _candidates(text, word), _threshold(threshold, default_threshold))
    return hit[0] if hit is not None else None

def fn_fuzzy_any(text, candidates, threshold: Any = None, *, default_threshold: float = 0.8) -> bool:
    if not isinstance(candidates, (list, tuple)):
        return False
    return any(
        fn_fuzzy(text, c, threshold, default_threshold=default_threshold)
        for c in candidates
    )

# =============================================================================
# Builtin table
# =============================================================================

def build_builtins(fuzzy_threshold: float = 0.8, near_max_distance: int = 50) -> Dict[str, BuiltinFn]:
    """Name -> function table, with configured defaults bound in."""
    return {
        "regex": fn_regex,
        "any": fn_any,
        "all": fn_all,
        "none": fn_none,
        "count": fn_count,
        "near": partial(fn_near, default_distance=near_max_distance),
        "sequence": fn_sequence,
        "seq": fn_sequence,
        "fuzzy": partial(fn_fuzzy, default_threshold=fuzzy_threshold),
        "fuzzyFind": partial(fn_fuzzy_find, default_threshold=fuzzy_threshold),
        "fuzzyAny": partial(fn_fuzzy_any, default_threshold=fuzzy_threshold),
    }

BUILTIN_FUNCS: Dict[str, BuiltinFn] = build_builtins()
