"""Markup normalization, tokenization, and content analysis helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass

__all__ = [
    "DEFAULT_PLACEHOLDER",
    "ContentAnalysis",
    "ContentChange",
    "analyze_content",
    "compare_analyses",
    "count_words",
    "plain_offset_to_markup",
    "to_plain_text",
    "tokenize",
]

DEFAULT_PLACEHOLDER = "Start writing your document here..."

_TAG_PATTERN = re.compile(r"<[^>]*>?")
_TOKEN_PATTERN = re.compile(r"\w+|\s+|[^\w\s]")
_WORD_PATTERN = re.compile(r"\S+")
_SENTENCE_END_PATTERN = re.compile(r"[.!?]+")
_BLOCK_PATTERN = re.compile(r"<(p|div)\b[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)

_SUBSTANTIAL_MIN_CHARS = 50
_SUBSTANTIAL_MIN_WORDS = 8


def to_plain_text(markup: str) -> str:
    """Strip every markup tag from *markup*.

    A dangling ``<`` with no closing bracket swallows the rest of the string,
    so the output never contains ``<`` and the function is idempotent.
    """

    if not markup:
        return ""
    return _TAG_PATTERN.sub("", markup)


def tokenize(text: str) -> list[str]:
    """Split *text* into word runs, whitespace runs, and single symbols.

    ``"".join(tokenize(text)) == text`` holds for every input.
    """

    if not text:
        return []
    return _TOKEN_PATTERN.findall(text)


def count_words(text: str) -> int:
    return len(_WORD_PATTERN.findall(text or ""))


def plain_offset_to_markup(markup: str, offset: int) -> int:
    """Translate a plain-text offset into the matching offset inside *markup*.

    An offset sitting on a tag boundary resolves to the next text character.
    Offsets past the end of the plain text map to the end of *markup*.
    """

    markup = markup or ""
    offset = max(0, offset)
    plain_seen = 0
    cursor = 0
    for match in _TAG_PATTERN.finditer(markup):
        text_length = match.start() - cursor
        if plain_seen + text_length > offset:
            return cursor + (offset - plain_seen)
        plain_seen += text_length
        cursor = match.end()
    return min(len(markup), cursor + (offset - plain_seen))


@dataclass(slots=True, frozen=True)
class ContentAnalysis:
    """Immutable snapshot describing a document state."""

    length: int = 0
    word_count: int = 0
    line_count: int = 0
    sentence_count: int = 0
    block_count: int = 0
    is_empty: bool = True
    is_placeholder: bool = False
    has_substantial_content: bool = False

    @classmethod
    def empty(cls) -> "ContentAnalysis":
        return cls()


@dataclass(slots=True, frozen=True)
class ContentChange:
    """Magnitude of the change between two :class:`ContentAnalysis` snapshots."""

    char_delta: int
    word_delta: int
    line_delta: int
    is_significant: bool
    is_paste: bool


def analyze_content(markup: str, *, placeholder: str = DEFAULT_PLACEHOLDER) -> ContentAnalysis:
    """Compute a :class:`ContentAnalysis` for the given markup."""

    plain = to_plain_text(markup or "").strip()
    block_count = len(_BLOCK_PATTERN.findall(markup or ""))
    if not plain:
        return ContentAnalysis(block_count=block_count)

    is_placeholder = plain == placeholder
    words = count_words(plain)
    lines = [line for line in plain.split("\n") if line.strip()]
    sentences = len(_SENTENCE_END_PATTERN.findall(plain))
    if not _SENTENCE_END_PATTERN.search(plain[-1]):
        sentences += 1
    substantial = (
        not is_placeholder
        and len(plain) >= _SUBSTANTIAL_MIN_CHARS
        and words >= _SUBSTANTIAL_MIN_WORDS
    )
    return ContentAnalysis(
        length=len(plain),
        word_count=words,
        line_count=max(len(lines), block_count),
        sentence_count=sentences,
        block_count=block_count,
        is_empty=False,
        is_placeholder=is_placeholder,
        has_substantial_content=substantial,
    )


def compare_analyses(
    previous: ContentAnalysis | None,
    current: ContentAnalysis,
    *,
    significant_chars: int = 20,
    significant_words: int = 5,
    significant_lines: int = 0,
    paste_chars: int = 100,
    paste_words: int = 15,
) -> ContentChange:
    """Measure how far *current* moved away from *previous*."""

    baseline = previous or ContentAnalysis.empty()
    char_delta = abs(current.length - baseline.length)
    word_delta = abs(current.word_count - baseline.word_count)
    line_delta = abs(current.line_count - baseline.line_count)
    significant = (
        char_delta > significant_chars
        or word_delta > significant_words
        or line_delta > significant_lines
    )
    paste = char_delta > paste_chars and word_delta > paste_words
    return ContentChange(
        char_delta=char_delta,
        word_delta=word_delta,
        line_delta=line_delta,
        is_significant=significant,
        is_paste=paste,
    )
