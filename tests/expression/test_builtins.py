from __future__ import annotations
import re
import pytest

from storyquery.expression.builtins import (
    BUILTIN_FUNCS,
    build_builtins,
    compile_pattern,
    fn_all,
    fn_any,
    fn_count,
    fn_fuzzy,
    fn_fuzzy_any,
    fn_fuzzy_find,
    fn_near,
    fn_none,
    fn_regex,
    fn_sequence,
)

TEXT = "The broken old sword lay there, and the sword-bearer wept."


def test_any_all_none_are_case_insensitive_substring_tests():
    assert fn_any(TEXT, "dragon", "SWORD")
    assert not fn_any(TEXT, "dragon", "castle")
    assert fn_all(TEXT, "broken", "Wept")
    assert not fn_all(TEXT, "broken", "dragon")
    assert fn_none(TEXT, "dragon", "castle")
    assert not fn_none(TEXT, "dragon", "sword")

def test_any_all_accept_pattern_terms():
    rx = compile_pattern(r"sw\w+d", "i")
    assert fn_any(TEXT, "dragon", rx)
    assert fn_all(TEXT, rx, "old")
    assert not fn_none(TEXT, rx)

def test_any_with_no_terms():
    assert fn_any(TEXT) is False
    assert fn_all(TEXT) is True
    assert fn_none(TEXT) is True

def test_count_whole_words_only():
    assert fn_count("gold gold gold coins", "gold") == 3
    assert fn_count("golden goldfish gold", "gold") == 1
    assert fn_count("Gold, GOLD; gold.", "gold") == 3

def test_count_with_pattern_counts_every_match():
    assert fn_count("a1 b22 c333", compile_pattern(r"\d")) == 6

def test_near_within_distance():
    text = "the broken old sword lay there"
    assert fn_near(text, "sword", "broken", 20)
    assert not fn_near(text, "sword", "broken", 5)
    assert not fn_near(text, "sword", "dragon", 100)

def test_near_default_distance():
    far = "sword " + "x" * 80 + " shield"
    assert not fn_near(far, "sword", "shield")
    assert fn_near(far, "sword", "shield", None, default_distance=200)

def test_near_checks_every_occurrence_pair():
    text = "sword " + "." * 100 + " shield sword"
    assert fn_near(text, "sword", "shield", 10)

def test_sequence_in_order():
    assert fn_sequence("she opened the heavy door", "opened", "door")
    assert not fn_sequence("the door was already opened", "opened", "door")

def test_sequence_is_greedy_first_fit():
    # first "a" is used, then "b" must come after it
    assert fn_sequence("a b a", "a", "b", "a")
    assert not fn_sequence("b a", "a", "b")

def test_sequence_requires_whole_words():
    assert not fn_sequence("doors opened", "door", "opened")

def test_whole_word_matches_next_to_punctuation():
    text = "He drew his sword, then the (sword) gleamed."
    assert fn_count(text, "sword") == 2
    assert fn_near(text, "sword", "gleamed", 30)
    assert not fn_count("swordsman", "sword")

def test_regex_soft_fails_on_invalid_pattern():
    assert fn_regex("abc", "(unclosed") is False

def test_regex_flags():
    assert fn_regex("The Dragon Slain", r"dragon\s+slain", "i")
    assert not fn_regex("The Dragon Slain", r"dragon\s+slain")
    # unsupported flags are ignored
    assert fn_regex("abc", "B", "gi")

def test_regex_accepts_compiled_pattern():
    assert fn_regex("abc", re.compile("b"))

def test_fuzzy_threshold_bounds():
    text = "The Wizzard cast a spell"
    assert fn_fuzzy(text, "wizard")
    assert not fn_fuzzy(text, "wizard", 1.0)
    assert fn_fuzzy(text, "wizzard", 1.0)
    # zero threshold: any token of comparable length qualifies
    assert fn_fuzzy(text, "qqqqq", 0.0)

def test_fuzzy_length_window_prunes_tokens():
    # "a" is too short to be compared with "abcdef"
    assert not fn_fuzzy("a", "abcdef", 0.0)

def test_fuzzy_find_returns_best_token_or_none():
    text = "the dragn and the dragoon"
    assert fn_fuzzy_find(text, "dragon") == "dragoon"
    assert fn_fuzzy_find(text, "dragon", 0.99) is None
    assert fn_fuzzy_find("Dragon!", "dragon", 1.0) == "Dragon"

def test_fuzzy_find_prefers_higher_score():
    # "swords" scores 5/6, "sword" scores 1.0
    assert fn_fuzzy_find("swords and a sword", "sword") == "sword"

def test_fuzzy_any():
    assert fn_fuzzy_any("a wizzard appears", ["dragon", "wizard"])
    assert not fn_fuzzy_any("a wizzard appears", ["dragon", "troll"])
    assert not fn_fuzzy_any("a wizzard appears", "wizard")

def test_builtin_table_names_and_aliases():
    assert set(BUILTIN_FUNCS) == {
        "regex", "any", "all", "none", "count", "near", "sequence", "seq",
        "fuzzy", "fuzzyFind", "fuzzyAny",
    }
    assert BUILTIN_FUNCS["seq"] is BUILTIN_FUNCS["sequence"]

def test_build_builtins_binds_configured_defaults():
    strict = build_builtins(fuzzy_threshold=1.0, near_max_distance=3)
    assert not strict["fuzzy"]("wizzard", "wizard")
    assert BUILTIN_FUNCS["fuzzy"]("wizzard", "wizard")
    assert not strict["near"]("a bb c", "a", "c")
    assert strict["near"]("a c", "a", "c")

def test_builtins_tolerate_null_text():
    assert fn_any(None, "x") is False
    assert fn_count(None, "x") == 0
