"""Pending suggestion set plus accept/reject mutations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator

from ..editor.document_model import DocumentState
from ..editor.text import plain_offset_to_markup
from ..services.telemetry import emit
from .dedup import rejection_reason
from .locator import find_text_position
from .models import Suggestion

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class AcceptResult:
    """Outcome of :meth:`SuggestionStore.accept`."""

    suggestion: Suggestion | None
    applied: bool
    content: str


class SuggestionStore:
    """Ordered collection of anchored, non-overlapping suggestions.

    Entries keep insertion order. When a batch pushes the store past its
    ceiling, the most recently added entries are the ones dropped.
    """

    def __init__(self) -> None:
        self._items: list[Suggestion] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Suggestion]:
        return iter(list(self._items))

    def __contains__(self, suggestion_id: object) -> bool:
        return any(item.id == suggestion_id for item in self._items)

    @property
    def suggestions(self) -> tuple[Suggestion, ...]:
        return tuple(self._items)

    def get(self, suggestion_id: str) -> Suggestion | None:
        return next((item for item in self._items if item.id == suggestion_id), None)

    def add(self, suggestions: Iterable[Suggestion], plain_text: str, max_suggestions: int) -> list[Suggestion]:
        """Append the candidates that pass de-duplication, then enforce the ceiling.

        Each candidate is checked against stored entries and against earlier
        members of the same batch. Returns the suggestions that were kept.
        """

        admitted: list[Suggestion] = []
        dropped: dict[str, int] = {}
        for candidate in suggestions:
            reason = rejection_reason(candidate, [*self._items, *admitted], plain_text)
            if reason is not None:
                dropped[reason] = dropped.get(reason, 0) + 1
                LOGGER.debug("Dropping suggestion %s (%s)", candidate.id, reason)
                continue
            admitted.append(candidate)

        limit = max(0, max_suggestions)
        merged = [*self._items, *admitted]
        overflow = merged[limit:]
        self._items = merged[:limit]
        if overflow:
            dropped["capacity"] = dropped.get("capacity", 0) + len(overflow)
        if dropped:
            emit("suggestions.dropped", {"reasons": dropped})
        overflow_ids = {item.id for item in overflow}
        return [item for item in admitted if item.id not in overflow_ids]

    def remove(self, suggestion_id: str) -> Suggestion | None:
        for index, item in enumerate(self._items):
            if item.id == suggestion_id:
                return self._items.pop(index)
        return None

    def reject(self, suggestion_id: str) -> Suggestion | None:
        removed = self.remove(suggestion_id)
        if removed is not None:
            emit("suggestions.rejected", {"suggestion_id": suggestion_id, "theme": removed.theme.value})
        return removed

    def clear(self) -> None:
        self._items.clear()

    def accept(self, suggestion_id: str, document: DocumentState) -> AcceptResult:
        """Apply a suggestion to *document* and remove it from the store.

        Only the occurrence at the recorded position is replaced. When that
        spot no longer holds the original text, the first occurrence in the
        markup is used instead; if there is none, the document is untouched.
        """

        suggestion = self.remove(suggestion_id)
        if suggestion is None:
            return AcceptResult(suggestion=None, applied=False, content=document.content)

        updated = _replace_at_anchor(document.content, suggestion)
        if updated is None:
            LOGGER.warning("Suggestion %s no longer matches the document; discarding", suggestion.id)
            return AcceptResult(suggestion=suggestion, applied=False, content=document.content)

        document.update_content(updated)
        emit(
            "suggestions.accepted",
            {
                "suggestion_id": suggestion.id,
                "theme": suggestion.theme.value,
                "document_id": document.document_id,
                "version_id": document.version_id,
            },
        )
        return AcceptResult(suggestion=suggestion, applied=True, content=updated)

    def reanchor(self, plain_text: str) -> list[Suggestion]:
        """Re-resolve positions against *plain_text* and drop entries that vanished.

        Re-resolved entries go through the same overlap filter as new ones, so an
        entry that now collides with an earlier kept one is dropped too.
        """

        kept: list[Suggestion] = []
        removed: list[Suggestion] = []
        for item in self._items:
            position = item.position
            if position is None or plain_text[position.start : position.end] != item.original_text:
                position = find_text_position(plain_text, item.original_text)
            candidate = item.with_position(position)
            if rejection_reason(candidate, kept, plain_text) is not None:
                removed.append(item)
                continue
            kept.append(candidate)
        self._items = kept
        if removed:
            LOGGER.debug("Dropped %s stale suggestion(s) after an edit", len(removed))
        return removed


def _replace_at_anchor(markup: str, suggestion: Suggestion) -> str | None:
    original = suggestion.original_text
    if suggestion.position is not None:
        start = plain_offset_to_markup(markup, suggestion.position.start)
        if markup[start : start + len(original)] == original:
            return markup[:start] + suggestion.suggested_text + markup[start + len(original) :]
    index = markup.find(original)
    if index == -1:
        return None
    return markup[:index] + suggestion.suggested_text + markup[index + len(original) :]


__all__ = ["AcceptResult", "SuggestionStore"]
