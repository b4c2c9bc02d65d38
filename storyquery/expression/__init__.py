from __future__ import annotations

# Public API re-exports (keep small & stable)
from .engine import (
    ExpressionEngine,
    get_default_engine,
    reset_default_engine,
    parse,
    evaluate,
)
from .compiler import CompiledEvaluator, EvalResult, QueryPredicate
from .cache import ExpressionCache
from .context import extract_recent_story
from .errors import ExpressionError, LexError, ParseError, EvaluationError
from .values import UNDEFINED
