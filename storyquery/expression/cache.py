from __future__ import annotations
from typing import Callable, Dict, Optional, Tuple

from .compiler import CompiledEvaluator

CacheKey = Tuple[str, str, Optional[str]]


class ExpressionCache:
    """
    Compiled evaluators keyed by (expression text, context kind, target kind).

    Keys are content-addressed, so clearing is only about memory. Failed
    compiles are never stored: a corrected expression compiles on retry.
    `max_entries=0` means unbounded; otherwise the oldest entry is evicted.
    """

    def __init__(self, max_entries: int = 0) -> None:
        if max_entries < 0:
            raise ValueError("max_entries must be >= 0")
        self.max_entries = max_entries
        self._entries: Dict[CacheKey, CompiledEvaluator] = {}
        self._stats = {"hits": 0, "misses": 0, "compiles": 0, "failures": 0}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def get(self, expression: str, context: str, target: Optional[str] = None) -> Optional[CompiledEvaluator]:
        return self._entries.get((expression, context, target))

    def get_or_compile(
        self,
        expression: str,
        context: str,
        target: Optional[str],
        compile_fn: Callable[[str, str, Optional[str]], CompiledEvaluator],
    ) -> CompiledEvaluator:
        """Return the cached evaluator or compile, store and return a new one.

        Errors raised by `compile_fn` propagate and nothing is stored.
        """
        key = (expression, context, target)
        hit = self._entries.get(key)
        if hit is not None:
            self._stats["hits"] += 1
            return hit
        self._stats["misses"] += 1
        try:
            evaluator = compile_fn(expression, context, target)
        except Exception:
            self._stats["failures"] += 1
            raise
        self._stats["compiles"] += 1
        if self.max_entries and len(self._entries) >= self.max_entries:
            # dicts keep insertion order: the first key is the oldest
            self._entries.pop(next(iter(self._entries)))
        self._entries[key] = evaluator
        return evaluator

    def clear(self) -> int:
        n = len(self._entries)
        self._entries.clear()
        return n

    def stats(self) -> Dict[str, int]:
        return {**self._stats, "entries": len(self._entries)}
