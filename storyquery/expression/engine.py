from __future__ import annotations
from typing import Any, Callable, Dict, Mapping, Optional, TYPE_CHECKING
import logging

from .builtins import build_builtins, pattern_cache_info
from .cache import ExpressionCache
from .compiler import CONTEXT_KINDS, CompiledEvaluator, compile_ast
from .context import extract_recent_story
from .errors import ExpressionError
from .parser import parse_expression
from .values import DEFAULT_HOST_GLOBALS

if TYPE_CHECKING:
    from ..config_model.model import RootCfg

log = logging.getLogger("storyquery.expression")


class ExpressionEngine:
    """
    Compiles and evaluates trigger expressions.

    One engine owns one expression cache and one set of ambient bindings
    (`state`, `info`, ... namespaces visible to expressions as bare names).
    Sessions that run side by side should each use their own engine; compiled
    evaluators themselves are read-only and can be shared.
    """

    def __init__(
        self,
        *,
        bindings: Optional[Mapping[str, Any]] = None,
        host_globals: Optional[Mapping[str, Any]] = None,
        builtins: Optional[Mapping[str, Callable[..., Any]]] = None,
        default_context: str = "text",
        default_target: Optional[str] = "card",
        fuzzy_threshold: float = 0.8,
        near_max_distance: int = 50,
        cache_max_entries: int = 0,
        log_failures: bool = True,
        title_field: str = "title",
    ) -> None:
        if default_context not in CONTEXT_KINDS:
            raise ValueError(f"Unknown context kind {default_context!r}")
        self.default_context = default_context
        self.default_target = default_target
        self.log_failures = log_failures
        # record field the finder falls back to when a query is a plain title
        self.title_field = title_field
        self.cache = ExpressionCache(cache_max_entries)
        self.builtins: Dict[str, Callable[..., Any]] = dict(
            builtins if builtins is not None
            else build_builtins(fuzzy_threshold=fuzzy_threshold, near_max_distance=near_max_distance)
        )
        self.host_globals: Dict[str, Any] = dict(
            host_globals if host_globals is not None else DEFAULT_HOST_GLOBALS
        )
        # cached evaluators hold a reference to this dict, so it is updated in place
        self._bindings: Dict[str, Any] = dict(bindings or {})

    @classmethod
    def from_config(cls, cfg: "RootCfg", **overrides: Any) -> "ExpressionEngine":
        from ..utils.log import get_logger

        get_logger("storyquery", level=cfg.logging.level, structured_json=cfg.logging.structured_json)
        kwargs: Dict[str, Any] = {
            "default_context": cfg.engine.default_context,
            "default_target": cfg.engine.default_target,
            "cache_max_entries": cfg.engine.cache_max_entries,
            "log_failures": cfg.engine.log_failures,
            "fuzzy_threshold": cfg.builtins.fuzzy_threshold,
            "near_max_distance": cfg.builtins.near_max_distance,
            "title_field": cfg.records.title_field,
        }
        kwargs.update(overrides)
        return cls(**kwargs)

    # ---- ambient bindings ----

    @property
    def bindings(self) -> Mapping[str, Any]:
        return self._bindings

    def set_bindings(self, **namespaces: Any) -> None:
        """Add or replace namespaces, e.g. `engine.set_bindings(state=state, info=info)`."""
        self._bindings.update(namespaces)

    def replace_bindings(self, bindings: Mapping[str, Any]) -> None:
        self._bindings.clear()
        self._bindings.update(bindings)

    # ---- compilation ----

    def _compile_uncached(self, expression: str, context: str, target: Optional[str]) -> CompiledEvaluator:
        ast = parse_expression(expression)
        return compile_ast(
            ast,
            context,
            target,
            expression=expression,
            builtins=self.builtins,
            host_globals=self.host_globals,
            ambient=self._bindings,
        )

    def compile(
        self,
        expression: str,
        context: Optional[str] = None,
        target: Optional[str] = None,
    ) -> CompiledEvaluator:
        """Strict compile through the cache. Raises LexError / ParseError / ValueError."""
        ctx = context or self.default_context
        if ctx not in CONTEXT_KINDS:
            raise ValueError(f"Unknown context kind {ctx!r}")
        return self.cache.get_or_compile(expression, ctx, target, self._compile_uncached)

    def parse(
        self,
        expression: str,
        context: Optional[str] = None,
        target: Optional[str] = None,
    ) -> Optional[CompiledEvaluator]:
        """Soft compile: the evaluator, or None when the expression is invalid."""
        try:
            return self.compile(expression, context, target)
        except (ExpressionError, ValueError, TypeError, RecursionError) as e:
            if self.log_failures:
                log.warning(
                    "expression invalid",
                    extra={"expression": expression, "context": context or self.default_context, "error": str(e)},
                )
            return None

    def parse_text_expression(self, expression: str) -> Optional[CompiledEvaluator]:
        return self.parse(expression, "text")

    def parse_object_query(self, expression: str, target: Optional[str] = None) -> Optional[CompiledEvaluator]:
        return self.parse(expression, "object", target or self.default_target)

    def validate(self, expression: str, context: Optional[str] = None) -> Optional[str]:
        """None when `expression` compiles, else the error message."""
        try:
            self.compile(expression, context)
        except (ExpressionError, ValueError, TypeError, RecursionError) as e:
            return str(e)
        return None

    # ---- evaluation ----

    def evaluate(self, expression: str, data: Any, bindings: Optional[Mapping[str, Any]] = None) -> Any:
        """Text for strings (and None), record query for anything else. None if the expression is invalid."""
        if data is None or isinstance(data, str):
            return self.evaluate_text(expression, data, bindings)
        return self.evaluate_object(expression, data, bindings=bindings)

    def evaluate_text(self, expression: str, text: Optional[str], bindings: Optional[Mapping[str, Any]] = None) -> Any:
        evaluator = self.parse_text_expression(expression)
        return evaluator(text, bindings) if evaluator is not None else None

    def evaluate_object(
        self,
        expression: str,
        obj: Any,
        target: Optional[str] = None,
        bindings: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        evaluator = self.parse_object_query(expression, target)
        return evaluator(obj, bindings) if evaluator is not None else None

    def evaluate_story(self, expression: str, full_text: str, bindings: Optional[Mapping[str, Any]] = None) -> Any:
        """Evaluate against the `Recent Story:` section of a full context text."""
        return self.evaluate_text(expression, extract_recent_story(full_text), bindings)

    # ---- cache ----

    def clear_cache(self) -> int:
        n = self.cache.clear()
        log.debug("expression cache cleared", extra={"entries": n})
        return n

    def cache_stats(self) -> Dict[str, int]:
        """Expression cache counters plus the process-wide compiled-pattern cache."""
        patterns = pattern_cache_info()
        return {
            **self.cache.stats(),
            "pattern_hits": patterns.hits,
            "pattern_misses": patterns.misses,
            "pattern_entries": patterns.currsize,
        }


# =============================================================================
# Module-level convenience (one lazily created engine)
# =============================================================================

_default_engine: Optional[ExpressionEngine] = None

def get_default_engine() -> ExpressionEngine:
    global _default_engine
    if _default_engine is None:
        _default_engine = ExpressionEngine()
    return _default_engine

def reset_default_engine() -> None:
    global _default_engine
    _default_engine = None

def parse(expression: str, context: Optional[str] = None, target: Optional[str] = None) -> Optional[CompiledEvaluator]:
    return get_default_engine().parse(expression, context, target)

def evaluate(expression: str, data: Any, bindings: Optional[Mapping[str, Any]] = None) -> Any:
    return get_default_engine().evaluate(expression, data, bindings)
