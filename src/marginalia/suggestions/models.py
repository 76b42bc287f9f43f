"""Dataclasses describing writing suggestions and their anchors."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum


class Theme(str, Enum):
    """Heuristic category of a suggestion's intent, used for de-duplication."""

    GRAMMAR = "grammar"
    CLARITY = "clarity"
    CONCISENESS = "conciseness"
    STYLE = "style"
    WORD_CHOICE = "word-choice"
    STRUCTURE = "structure"
    GENERAL = "general"


@dataclass(slots=True, frozen=True)
class TextPosition:
    """Half-open ``[start, end)`` range into a document's plain text."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return max(0, self.end - self.start)

    def overlap(self, other: "TextPosition") -> int:
        """Return the number of characters shared with *other*."""

        return max(0, min(self.end, other.end) - max(self.start, other.start))


@dataclass(slots=True, frozen=True)
class RawSuggestion:
    """Provider output before it has been anchored to the document."""

    original_text: str
    suggested_text: str
    explanation: str


@dataclass(slots=True, frozen=True)
class Suggestion:
    """A proposed edit anchored (or not yet anchored) to the plain text."""

    id: str
    original_text: str
    suggested_text: str
    explanation: str
    position: TextPosition | None = None
    theme: Theme = Theme.GENERAL

    def with_position(self, position: TextPosition | None) -> "Suggestion":
        return replace(self, position=position)


__all__ = ["RawSuggestion", "Suggestion", "TextPosition", "Theme"]
