"""Editing session wiring a document to the suggestion lifecycle engine."""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Callable, Iterable

from ..ai.provider import SuggestionContext, SuggestionProvider, coerce_raw_suggestions
from ..services.documents import DocumentStore
from ..suggestions.dedup import categorize_theme
from ..suggestions.locator import find_text_position
from ..suggestions.models import RawSuggestion, Suggestion
from ..suggestions.scheduler import (
    SchedulerConfig,
    SchedulerPhase,
    SchedulerState,
    SuggestionScheduler,
    TriggerDecision,
    max_suggestions,
)
from ..suggestions.store import AcceptResult, SuggestionStore
from .document_model import DocumentState
from .text import ContentAnalysis, analyze_content

LOGGER = logging.getLogger(__name__)


class EditingSession:
    """Owns the suggestion store and scheduler for one open document.

    All methods are expected to run on the event loop thread. Provider
    responses are validated against the document text current at the time
    they arrive, not the text that was sent.
    """

    def __init__(
        self,
        document: DocumentState,
        provider: SuggestionProvider,
        *,
        config: SchedulerConfig | None = None,
        has_credential: Callable[[], bool] | bool = True,
        document_store: DocumentStore | None = None,
        suggestion_type: str = "general",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._document = document
        self._provider = provider
        self._config = config or SchedulerConfig()
        self._has_credential = has_credential
        self._document_store = document_store
        self._suggestion_type = suggestion_type
        self._clock = clock
        self._store = SuggestionStore()
        self._analysis = analyze_content(document.content)
        self._scheduler = self._build_scheduler()
        self._last_batch: list[Suggestion] = []
        self._disposed = False

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def document(self) -> DocumentState:
        return self._document

    @property
    def store(self) -> SuggestionStore:
        return self._store

    @property
    def scheduler(self) -> SuggestionScheduler:
        return self._scheduler

    @property
    def suggestions(self) -> tuple[Suggestion, ...]:
        return self._store.suggestions

    @property
    def analysis(self) -> ContentAnalysis:
        return self._analysis

    @property
    def state(self) -> SchedulerState:
        return self._scheduler.state

    @property
    def is_generating(self) -> bool:
        return self._scheduler.phase is SchedulerPhase.AWAITING_RESPONSE

    @property
    def last_error(self) -> str | None:
        return self._scheduler.state.last_error

    @property
    def last_batch(self) -> tuple[Suggestion, ...]:
        return tuple(self._last_batch)

    @property
    def max_suggestions(self) -> int:
        return max_suggestions(self._analysis.word_count, self._config)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> TriggerDecision:
        """Arm the periodic check and evaluate the content already loaded."""

        self._scheduler.start()
        return self._scheduler.on_content_changed(self._analysis)

    def update_content(self, markup: str) -> TriggerDecision | None:
        """Apply an edit coming from the editor surface."""

        if self._disposed or not self._document.update_content(markup):
            return None
        return self._content_changed()

    def switch_document(self, document: DocumentState) -> TriggerDecision:
        """Replace the active document, dropping every pending suggestion."""

        self._scheduler.dispose()
        self._store.clear()
        self._last_batch = []
        self._document = document
        self._analysis = analyze_content(document.content)
        self._disposed = False
        self._scheduler = self._build_scheduler()
        return self.start()

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._scheduler.dispose()
        self._store.clear()

    async def wait_idle(self) -> None:
        await self._scheduler.wait_idle()

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------
    def on_accept(self, suggestion_id: str) -> AcceptResult:
        result = self._store.accept(suggestion_id, self._document)
        if result.applied:
            self._persist()
            self._content_changed()
        return result

    def on_reject(self, suggestion_id: str) -> Suggestion | None:
        return self._store.reject(suggestion_id)

    def on_manual_trigger(self) -> bool:
        if self._disposed:
            return False
        return self._scheduler.trigger_now()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _build_scheduler(self) -> SuggestionScheduler:
        scheduler = SuggestionScheduler(
            self._generate,
            config=self._config,
            pending_count=lambda: len(self._store),
            has_credential=self._has_credential,
            clock=self._clock,
        )
        scheduler.prime(self._analysis)
        return scheduler

    def _content_changed(self) -> TriggerDecision:
        self._analysis = analyze_content(self._document.content)
        self._store.reanchor(self._document.plain_text)
        return self._scheduler.on_content_changed(self._analysis)

    def _persist(self) -> None:
        if self._document_store is None:
            return
        document = self._document
        self._document_store.save(document.document_id, document.title, document.content)

    async def _generate(self) -> list[Suggestion]:
        document = self._document
        scheduler = self._scheduler
        context = SuggestionContext(
            title=document.title,
            suggestion_type=self._suggestion_type,
            max_suggestions=self.max_suggestions,
        )
        response = await self._provider.generate(document.plain_text, context)
        if self._disposed or self._document is not document or self._scheduler is not scheduler:
            LOGGER.debug("Discarding suggestions for %s; session moved on", document.document_id)
            return []

        plain_text = document.plain_text
        candidates = self._anchor(coerce_raw_suggestions(response), plain_text)
        limit = max_suggestions(analyze_content(document.content).word_count, self._config)
        added = self._store.add(candidates, plain_text, limit)
        self._last_batch = added
        LOGGER.info(
            "Generated %s suggestion(s); %s kept, %s pending",
            len(candidates),
            len(added),
            len(self._store),
        )
        return added

    def _anchor(self, raw: Iterable[RawSuggestion], plain_text: str) -> list[Suggestion]:
        stamp = int(time.time() * 1000)
        anchored: list[Suggestion] = []
        for index, item in enumerate(raw):
            suggestion = Suggestion(
                id=f"{stamp}-{index}",
                original_text=item.original_text,
                suggested_text=item.suggested_text,
                explanation=item.explanation,
                position=find_text_position(plain_text, item.original_text),
            )
            if suggestion.position is None:
                LOGGER.debug("Could not anchor suggestion %s", suggestion.id)
                continue
            anchored.append(replace(suggestion, theme=categorize_theme(suggestion)))
        return anchored
