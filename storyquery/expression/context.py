from __future__ import annotations
import re

from toolz import pipe

_RECENT_STORY_RX = re.compile(r"Recent\s*Story\s*:\s*([\s\S]*?)(?=%@GEN@%|%@COM@%|$)", re.I)
_AUTHORS_NOTE_RX = re.compile(r"\[Author['’]s\s*note:[^\]]*\]", re.I)


def strip_authors_notes(text: str) -> str:
    return _AUTHORS_NOTE_RX.sub(" ", text)


def extract_recent_story(full_text: str) -> str:
    """
    Narrative text after the `Recent Story:` header, up to the next
    `%@GEN@%` / `%@COM@%` marker, without author's notes.
    Returns "" when there is no such header.
    """
    m = _RECENT_STORY_RX.search(full_text or "")
    if not m:
        return ""
    return pipe(m.group(1), strip_authors_notes, str.strip)
