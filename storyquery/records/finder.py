from __future__ import annotations
from typing import Any, Callable, Iterable, List, Mapping, Optional, Union

import pandas as pd

from ..expression.engine import ExpressionEngine
from ..expression.values import is_truthy, strict_equals

Record = Mapping[str, Any]
Query = Union[str, Mapping[str, Any], Callable[[Record], Any]]


def _frame_records(df: pd.DataFrame) -> List[dict]:
    # NaN/NaT cells read as null inside expressions
    return df.astype(object).where(df.notna(), None).to_dict(orient="records")


def _title_predicate(title: Any, title_field: str) -> Callable[[Record], bool]:
    def _pred(rec: Record) -> bool:
        return rec is not None and strict_equals(rec.get(title_field), title)
    return _pred


def build_predicate(
    engine: ExpressionEngine,
    query: Query,
    *,
    target: Optional[str] = "card",
    title_field: Optional[str] = None,
) -> Callable[[Record], bool]:
    """
    Turn a query into a record predicate.

    Strings are compiled as object queries; one that does not compile is taken
    as a plain title and matched exactly against `title_field`
    (the engine's `title_field` unless given). A mapping
    carrying `title_field` matches by that title. Callables are used as is.
    """
    title_field = title_field or engine.title_field
    if callable(query):
        return lambda rec: is_truthy(query(rec))
    if isinstance(query, Mapping):
        if title_field not in query:
            raise ValueError(f"Query mapping needs a {title_field!r} key")
        return _title_predicate(query[title_field], title_field)
    try:
        evaluator = engine.compile(query, "object", target)
    except ValueError:  # LexError, ParseError and unknown operators
        return _title_predicate(query, title_field)
    return lambda rec: is_truthy(evaluator(rec))


def find_records(
    engine: ExpressionEngine,
    query: Query,
    records: Union[Iterable[Record], pd.DataFrame],
    first: bool = False,
    target: Optional[str] = "card",
    title_field: Optional[str] = None,
):
    """
    Records matching `query`.

    - `first=True`: the first match, or None.
    - DataFrame input: the matching rows as a DataFrame (original index kept).
    - otherwise: a list of matching records, in input order.
    """
    pred = build_predicate(engine, query, target=target, title_field=title_field)

    if isinstance(records, pd.DataFrame):
        rows = _frame_records(records)
        mask = [pred(r) for r in rows]
        if first:
            for row, keep in zip(rows, mask):
                if keep:
                    return row
            return None
        return records.loc[pd.Series(mask, index=records.index, dtype=bool)]

    if first:
        return next((r for r in records if pred(r)), None)
    return [r for r in records if pred(r)]
