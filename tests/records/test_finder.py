from __future__ import annotations
import numpy as np
import pandas as pd

from storyquery.expression import ExpressionEngine
from storyquery.records.finder import build_predicate, find_records


def test_find_all_matches_in_order(engine, cards):
    out = find_records(engine, 'type: "item"', cards)
    assert [c["title"] for c in out] == ["Iron Key", "Old Sword"]

def test_find_first(engine, cards):
    assert find_records(engine, "level.gte: 5", cards, first=True)["title"] == "Old Sword"
    assert find_records(engine, "level.gt: 100", cards, first=True) is None

def test_combined_query_and_host_methods(engine, cards):
    out = find_records(engine, 'type: "item" && tags.includes("quest")', cards)
    assert [c["title"] for c in out] == ["Iron Key"]

def test_invalid_query_falls_back_to_title(engine, cards):
    assert find_records(engine, "Old Sword", cards, first=True)["name"] == "Sword"
    assert find_records(engine, "No Such Card", cards) == []

def test_title_fallback_field_is_configurable(engine):
    recs = [{"label": "Harbor Gate"}, {"label": "Mill"}]
    assert find_records(engine, "Harbor Gate", recs, title_field="label") == [recs[0]]

def test_null_fields_never_match_numeric_queries(engine, cards):
    out = find_records(engine, "level.lt: 100", cards)
    assert "Harbor" not in [c["title"] for c in out]

def test_callable_query(engine, cards):
    out = find_records(engine, lambda c: c.get("level") == 5, cards)
    assert [c["title"] for c in out] == ["Mira"]

def test_dataframe_input_returns_filtered_frame(engine):
    df = pd.DataFrame(
        {
            "title": ["A", "B", "C"],
            "type": ["item", "npc", "item"],
            "level": [1.0, np.nan, 7.0],
        },
        index=[10, 11, 12],
    )
    out = find_records(engine, 'type: "item" && level.gt: 2', df)
    assert isinstance(out, pd.DataFrame)
    assert list(out.index) == [12]
    # NaN reads as null: equals null, not a number
    assert list(find_records(engine, "level: null", df)["title"]) == ["B"]
    first = find_records(engine, "level.gte: 1", df, first=True)
    assert first["title"] == "A" and isinstance(first, dict)

def test_build_predicate_object_target(engine):
    pred = build_predicate(engine, 'name.contains: "ir"', target="location")
    assert pred({"name": "Mira"}) is True
    assert ("name.contains: \"ir\"", "object", "location") in engine.cache

def test_mapping_query_matches_by_title(engine, cards):
    assert find_records(engine, {"title": "Mira"}, cards, first=True)["level"] == 5

def test_single_word_title_compiles_as_field_lookup(engine, cards):
    # a bare identifier is a valid query: it reads the record's `Mira` field
    assert find_records(engine, "Mira", cards) == []
    assert find_records(engine, {"title": "Mira"}, cards) == [cards[2]]

def test_title_field_defaults_to_engine_setting():
    eng = ExpressionEngine(title_field="label")
    recs = [{"label": "Harbor Gate"}, {"title": "Harbor Gate"}]
    assert find_records(eng, "Harbor Gate", recs) == [recs[0]]
    assert find_records(eng, "Harbor Gate", recs, title_field="title") == [recs[1]]
