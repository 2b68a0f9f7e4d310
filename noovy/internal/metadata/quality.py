"""
Heuristic that tells an author biography apart from a synopsis of the work.

Providers regularly return the author's biography in the description field,
mostly for older French titles. A text counts as a biography when at least two
distinct markers of authorial life facts appear in it.
"""
import re

from noovy.util.text import fold_accents

BIOGRAPHY_MARKERS: dict[str, re.Pattern[str]] = {
    name: re.compile(pattern)
    for name, pattern in {
        "born": r"\b(was )?born (in|on|at)\b",
        "died": r"\bdied (in|on|at)\b",
        "studied": r"\b(studied|educated) (at|in)\b",
        "graduated": r"\bgraduated from\b",
        "career": r"\b(his|her) (career|life|wife|husband|father|mother)\b",
        "author_of": r"\b(is|was) (the|an|a) (author|writer|novelist|poet)\b",
        "biography": r"\bbiograph(y|ie)\b",
        "ne": r"\bnee? (en|a)\b",
        "mort": r"\b(mort|morte|decede|decedee) (en|a|le)\b",
        "etudes": r"\b(a etudie|fait ses etudes|etudes a)\b",
        "famille": r"\b(son pere|sa mere|son epouse|son mari|sa carriere|sa vie)\b",
        "ecrivain": r"\best (un|une) (ecrivain|ecrivaine|romancier|romanciere|poete|auteur)\b",
    }.items()
}

MIN_MARKERS = 2


def biography_markers(text: str | None) -> set[str]:
    """Names of the biography markers found in text."""
    if not text:
        return set()
    folded = fold_accents(text)
    return {name for name, pattern in BIOGRAPHY_MARKERS.items() if pattern.search(folded)}


def is_author_biography(text: str | None) -> bool:
    return len(biography_markers(text)) >= MIN_MARKERS
