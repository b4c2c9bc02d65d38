from __future__ import annotations
from typing import Iterable, Optional, Tuple


def levenshtein(a: str, b: str) -> int:
    if a == b: return 0
    if not a: return len(b)
    if not b: return len(a)
    # DP with two rows
    prev = list(range(len(b) + 1))
    cur = [0] * (len(b) + 1)
    for i, ca in enumerate(a, 1):
        cur[0] = i
        for j, cb in enumerate(b, 1):
            cost = 0 if ca == cb else 1
            cur[j] = min(prev[j] + 1,       # deletion
                         cur[j-1] + 1,       # insertion
                         prev[j-1] + cost)   # substitution
        prev, cur = cur, prev
    return prev[-1]


def similarity(a: str, b: str) -> float:
    """1 - distance / longest length; two empty strings are identical."""
    a = a or ""
    b = b or ""
    m = max(len(a), len(b))
    if m == 0:
        return 1.0
    return 1.0 - (levenshtein(a, b) / float(m))


def fuzzy_match(s: str, pattern: str, threshold: float = 0.8) -> bool:
    return similarity((s or "").lower(), (pattern or "").lower()) >= float(threshold)


def find_best_match(
    target: str, candidates: Iterable[str], threshold: float = 0.0
) -> Optional[Tuple[str, float]]:
    """Highest-scoring candidate (case-insensitive) at or above threshold; first wins ties."""
    target = (target or "").lower()
    best: Optional[str] = None
    best_score = -1.0
    for cand in candidates:
        score = similarity((cand or "").lower(), target)
        if score >= threshold and score > best_score:
            best, best_score = cand, score
    return (best, best_score) if best is not None else None
