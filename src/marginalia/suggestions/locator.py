"""Anchor suggestion text onto offsets inside the document's plain text.

The tiers run from strict to loose and the first hit wins. The fuzzy tiers
(``first_last_word``, ``keyword``, ``middle_fragment``) can land on a
plausible but wrong span when short words repeat; callers treat them as
best effort.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Literal

from .models import TextPosition

LOGGER = logging.getLogger(__name__)

MatchTier = Literal["exact", "case_insensitive", "first_last_word", "keyword", "middle_fragment"]

_WORD_PATTERN = re.compile(r"\w+")
_MIN_KEYWORD_LENGTH = 4
_MIN_FRAGMENT_LENGTH = 5


def find_text_position(plain_text: str, search_text: str) -> TextPosition | None:
    """Return the span of *search_text* inside *plain_text*, or ``None``."""

    located = locate_with_tier(plain_text, search_text)
    return located[0] if located is not None else None


def locate_with_tier(plain_text: str, search_text: str) -> tuple[TextPosition, MatchTier] | None:
    """Like :func:`find_text_position` but also report which tier matched."""

    if not plain_text or not search_text or not search_text.strip():
        return None
    for tier, strategy in _STRATEGIES:
        position = strategy(plain_text, search_text)
        if position is None:
            continue
        start = max(0, position.start)
        end = min(len(plain_text), position.end)
        if start >= end:
            continue
        if tier != "exact":
            LOGGER.debug("Anchored %r via %s match at %s-%s", search_text[:40], tier, start, end)
        return TextPosition(start, end), tier
    LOGGER.debug("Unable to anchor %r in %s chars of text", search_text[:40], len(plain_text))
    return None


def _exact(plain_text: str, search_text: str) -> TextPosition | None:
    index = plain_text.find(search_text)
    if index == -1:
        return None
    return TextPosition(index, index + len(search_text))


def _case_insensitive(plain_text: str, search_text: str) -> TextPosition | None:
    match = _search_folded(plain_text, search_text)
    if match is None:
        return None
    return TextPosition(match.start(), match.end())


def _first_last_word(plain_text: str, search_text: str) -> TextPosition | None:
    words = _WORD_PATTERN.findall(search_text)
    if len(words) < 2:
        return None
    first = _search_folded(plain_text, words[0])
    if first is None:
        return None
    window_end = first.end() + 2 * len(search_text)
    last = _search_folded(plain_text, words[-1], first.end(), window_end)
    if last is None:
        return None
    return TextPosition(first.start(), last.end())


def _keyword(plain_text: str, search_text: str) -> TextPosition | None:
    keyword = next((word for word in _WORD_PATTERN.findall(search_text) if len(word) >= _MIN_KEYWORD_LENGTH), None)
    if keyword is None:
        return None
    match = _search_folded(plain_text, keyword)
    if match is None:
        return None
    start = match.start()
    return TextPosition(start, min(len(plain_text), start + len(search_text)))


def _middle_fragment(plain_text: str, search_text: str) -> TextPosition | None:
    length = len(search_text)
    head = length // 4
    tail_start = (length * 3) // 4
    fragment = search_text[head:tail_start]
    if len(fragment.strip()) < _MIN_FRAGMENT_LENGTH:
        return None
    match = _search_folded(plain_text, fragment)
    if match is None:
        return None
    start = max(0, match.start() - head)
    end = min(len(plain_text), match.end() + (length - tail_start))
    return TextPosition(start, end)


def _search_folded(plain_text: str, needle: str, start: int = 0, end: int | None = None) -> re.Match[str] | None:
    """Case-insensitive search whose offsets index into *plain_text* itself."""

    pattern = re.compile(re.escape(needle), re.IGNORECASE)
    return pattern.search(plain_text, start, len(plain_text) if end is None else end)

_STRATEGIES: tuple[tuple[MatchTier, Callable[[str, str], TextPosition | None]], ...] = (
    ("exact", _exact),
    ("case_insensitive", _case_insensitive),
    ("first_last_word", _first_last_word),
    ("keyword", _keyword),
    ("middle_fragment", _middle_fragment),
)


__all__ = ["MatchTier", "find_text_position", "locate_with_tier"]
