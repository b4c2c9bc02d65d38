from __future__ import annotations

from storyquery.expression.context import extract_recent_story, strip_authors_notes


def test_extract_recent_story_stops_at_markers():
    full = "Memory: x\nRecent Story:\n  She opened the door.  %@COM@% ignored"
    assert extract_recent_story(full) == "She opened the door."

def test_extract_recent_story_strips_authors_notes():
    full = "Recent Story: a [Author’s note: secret] b"
    assert "secret" not in extract_recent_story(full)
    assert extract_recent_story(full).startswith("a")

def test_extract_recent_story_missing_header():
    assert extract_recent_story("no header here") == ""
    assert extract_recent_story(None) == ""

def test_strip_authors_notes_case_insensitive():
    assert strip_authors_notes("x [author's NOTE: y] z") == "x   z"
