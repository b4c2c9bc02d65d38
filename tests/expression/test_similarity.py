from __future__ import annotations
import pytest

from storyquery.expression.similarity import find_best_match, fuzzy_match, levenshtein, similarity


@pytest.mark.parametrize("a, b, d", [
    ("", "", 0),
    ("", "abc", 3),
    ("abc", "", 3),
    ("kitten", "sitting", 3),
    ("flaw", "lawn", 2),
    ("same", "same", 0),
])
def test_levenshtein(a, b, d):
    assert levenshtein(a, b) == d
    assert levenshtein(b, a) == d

def test_similarity_bounds_and_empty():
    assert similarity("", "") == 1.0
    assert similarity("abc", "") == 0.0
    assert similarity("abc", "abc") == 1.0
    assert similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)

def test_fuzzy_match_is_case_insensitive_and_inclusive():
    assert fuzzy_match("DRAGON", "dragon", 1.0)
    # 1 edit over 5 chars = 0.8 exactly
    assert fuzzy_match("sword", "swore", 0.8)
    assert not fuzzy_match("sword", "swore", 0.81)

def test_find_best_match():
    assert find_best_match("dragon", ["drake", "dragons", "wagon"]) == ("dragons", pytest.approx(6 / 7))
    assert find_best_match("x", []) is None

def test_find_best_match_threshold_case_and_ties():
    assert find_best_match("Dragon", ["DRAGON", "dragons"]) == ("DRAGON", 1.0)
    assert find_best_match("dragon", ["dragons"], 0.9) is None
    # equal scores: the first candidate is kept
    assert find_best_match("cat", ["bat", "hat"])[0] == "bat"
    # a score equal to the threshold qualifies
    assert find_best_match("sword", ["swore"], 0.8)[0] == "swore"
