"""Theme classification and overlap checks for pending suggestions."""

from __future__ import annotations

from typing import Iterable

from .models import Suggestion, Theme

SIMILAR_OVERLAP_RATIO = 0.5
POSITIONAL_OVERLAP_CHARS = 10

_SHORTER_RATIO = 0.7
_LONGER_RATIO = 1.5

# Checked in order; the first rule that matches wins.
_THEME_KEYWORDS: tuple[tuple[Theme, tuple[str, ...]], ...] = (
    (Theme.GRAMMAR, ("grammar", "grammatical", "tense", "agreement", "spelling", "punctuation", "typo", "article")),
    (Theme.CLARITY, ("clarity", "clear", "clarif", "ambigu", "confusing", "readab", "understand")),
    (Theme.CONCISENESS, ("concise", "redundan", "wordy", "shorter", "brevity", "unnecessary", "repetit")),
    (Theme.STYLE, ("style", "tone", "formal", "voice", "passive", "active", "engaging")),
    (Theme.WORD_CHOICE, ("word choice", "vocabulary", "synonym", "precise", "specific word", "stronger word", "verb")),
    (Theme.STRUCTURE, ("structure", "flow", "transition", "reorder", "split", "combine", "paragraph")),
)


def categorize_theme(suggestion: Suggestion) -> Theme:
    """Bucket *suggestion* into a :class:`Theme` using its explanation and length change."""

    explanation = (suggestion.explanation or "").lower()
    original_length = len(suggestion.original_text or "")
    suggested_length = len(suggestion.suggested_text or "")
    for theme, keywords in _THEME_KEYWORDS:
        if any(keyword in explanation for keyword in keywords):
            return theme
        if theme is Theme.CONCISENESS and original_length and suggested_length < original_length * _SHORTER_RATIO:
            return theme
        if theme is Theme.STRUCTURE and original_length and suggested_length > original_length * _LONGER_RATIO:
            return theme
    return Theme.GENERAL


def is_similar(candidate: Suggestion, existing: Suggestion) -> bool:
    """Same theme and overlapping by at least half of the shorter span."""

    if candidate.position is None or existing.position is None:
        return False
    if candidate.theme != existing.theme:
        return False
    overlap = candidate.position.overlap(existing.position)
    if overlap <= 0:
        return False
    shorter = min(candidate.position.length, existing.position.length)
    return overlap >= shorter * SIMILAR_OVERLAP_RATIO


def has_positional_overlap(candidate: Suggestion, existing: Suggestion) -> bool:
    """Theme-agnostic guard against suggestions sharing more than a few characters."""

    if candidate.position is None or existing.position is None:
        return False
    return candidate.position.overlap(existing.position) > POSITIONAL_OVERLAP_CHARS


def rejection_reason(candidate: Suggestion, pending: Iterable[Suggestion], plain_text: str) -> str | None:
    """Return why *candidate* may not join *pending*, or ``None`` when it may."""

    if candidate.position is None:
        return "unanchored"
    if candidate.original_text not in plain_text:
        return "stale"
    if candidate.suggested_text == candidate.original_text:
        return "no_change"
    for existing in pending:
        if is_similar(candidate, existing):
            return "similar"
        if has_positional_overlap(candidate, existing):
            return "overlap"
    return None


def accepts(candidate: Suggestion, pending: Iterable[Suggestion], plain_text: str) -> bool:
    return rejection_reason(candidate, pending, plain_text) is None


__all__ = [
    "POSITIONAL_OVERLAP_CHARS",
    "SIMILAR_OVERLAP_RATIO",
    "accepts",
    "categorize_theme",
    "has_positional_overlap",
    "is_similar",
    "rejection_reason",
]
