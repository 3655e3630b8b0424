"""Fuzzy text correlation between email-extracted text and API records.

Email rendering mangles whitespace and sometimes truncates comments, so the
text pulled from an email rarely equals the comment body the Figma API
returns. Matching normalizes both sides and scores them by containment or
Levenshtein distance.
"""

import re

DEFAULT_THRESHOLD = 0.8

_WHITESPACE = re.compile(r"\s+")


def normalize(text: str) -> str:
    """Lowercase, collapse runs of whitespace, and trim."""
    return _WHITESPACE.sub(" ", text.lower()).strip()


def levenshtein(a: str, b: str) -> int:
    """Minimum number of single-character edits turning ``a`` into ``b``."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Score two strings in [0, 1] after normalization.

    Exact match scores 1.0, containment scores len(shorter)/len(longer),
    anything else scores 1 - distance/max_length.
    """
    a, b = normalize(a), normalize(b)
    if a == b:
        return 1.0
    longer, shorter = (a, b) if len(a) >= len(b) else (b, a)
    if shorter in longer:
        return len(shorter) / len(longer)
    return 1 - levenshtein(a, b) / len(longer)


def fuzzy_find_text(needle: str, haystack: list[str], threshold: float = DEFAULT_THRESHOLD) -> str | None:
    """Return the candidate most similar to ``needle``, or None below ``threshold``.

    Ties keep the earliest candidate.
    """
    best: str | None = None
    best_score = 0.0
    for candidate in haystack:
        score = similarity(needle, candidate)
        if score >= threshold and score > best_score:
            best, best_score = candidate, score
    return best
