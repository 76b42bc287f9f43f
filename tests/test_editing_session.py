"""Integration tests for the editing session facade."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from marginalia.ai.errors import ProviderError
from marginalia.ai.provider import SuggestionContext
from marginalia.editor.document_model import DocumentState
from marginalia.editor.session import EditingSession
from marginalia.services.documents import InMemoryDocumentStore
from marginalia.suggestions.models import TextPosition, Theme
from marginalia.suggestions.scheduler import SchedulerConfig

FOX_SUGGESTION = {
    "originalText": "quick brown fox",
    "suggestedText": "fast brown fox",
    "explanation": "Stronger word choice",
}


class _FakeProvider:
    def __init__(self, responses: list[Any] | None = None) -> None:
        self.responses = list(responses or [])
        self.calls: list[tuple[str, SuggestionContext]] = []
        self.gate: asyncio.Event | None = None

    async def generate(self, plain_text: str, context: SuggestionContext) -> Any:
        self.calls.append((plain_text, context))
        if self.gate is not None:
            await self.gate.wait()
        response = self.responses.pop(0) if self.responses else []
        if isinstance(response, Exception):
            raise response
        return response


def _config() -> SchedulerConfig:
    return SchedulerConfig(immediate_delay=0.0, short_delay=0.01, normal_delay=0.01, periodic_interval=60.0)


def _session(document: DocumentState, provider: _FakeProvider, **kwargs: Any) -> EditingSession:
    return EditingSession(document, provider, config=_config(), **kwargs)


@pytest.mark.asyncio
async def test_manual_trigger_anchors_and_stores_suggestions(sample_document: DocumentState) -> None:
    provider = _FakeProvider(
        [[FOX_SUGGESTION, {"originalText": "purple cow", "suggestedText": "brown cow", "explanation": "x"}, "junk"]]
    )
    session = _session(sample_document, provider, suggestion_type="clarity")

    assert session.on_manual_trigger() is True
    assert session.is_generating is True
    await session.wait_idle()

    assert len(session.suggestions) == 1
    suggestion = session.suggestions[0]
    assert suggestion.position == TextPosition(4, 19)
    assert suggestion.theme is Theme.WORD_CHOICE
    assert session.last_batch == (suggestion,)
    plain_text, context = provider.calls[0]
    assert plain_text == sample_document.plain_text
    assert context.title == "Fox notes"
    assert context.suggestion_type == "clarity"
    assert context.max_suggestions == 3
    session.dispose()


@pytest.mark.asyncio
async def test_accept_updates_document_and_persists(sample_document: DocumentState) -> None:
    documents = InMemoryDocumentStore()
    provider = _FakeProvider([[FOX_SUGGESTION]])
    session = _session(sample_document, provider, document_store=documents)
    session.on_manual_trigger()
    await session.wait_idle()

    result = session.on_accept(session.suggestions[0].id)

    assert result.applied is True
    assert "fast brown fox" in sample_document.content
    assert session.suggestions == ()
    assert documents.load("doc-fox").content == sample_document.content
    session.dispose()


@pytest.mark.asyncio
async def test_reject_leaves_document_alone(sample_document: DocumentState) -> None:
    original = sample_document.content
    session = _session(sample_document, _FakeProvider([[FOX_SUGGESTION]]))
    session.on_manual_trigger()
    await session.wait_idle()

    rejected = session.on_reject(session.suggestions[0].id)

    assert rejected is not None
    assert session.suggestions == ()
    assert sample_document.content == original
    session.dispose()


@pytest.mark.asyncio
async def test_response_for_changed_text_is_dropped(sample_document: DocumentState) -> None:
    provider = _FakeProvider([[FOX_SUGGESTION]])
    provider.gate = asyncio.Event()
    session = _session(sample_document, provider)

    session.on_manual_trigger()
    await asyncio.sleep(0)
    session.update_content("<p>Completely different text about gardening and the weather this spring.</p>")
    provider.gate.set()
    await session.wait_idle()

    assert session.suggestions == ()
    session.dispose()


@pytest.mark.asyncio
async def test_failure_keeps_pending_suggestions(sample_document: DocumentState) -> None:
    provider = _FakeProvider([[FOX_SUGGESTION], ProviderError(message="Rate limited")])
    session = _session(sample_document, provider)
    session.on_manual_trigger()
    await session.wait_idle()

    assert session.on_manual_trigger() is True
    await session.wait_idle()

    assert len(session.suggestions) == 1
    assert session.last_error == "Rate limited"
    assert session.state.generation_count == 2
    session.dispose()


@pytest.mark.asyncio
async def test_switch_document_clears_store_and_ignores_late_response(sample_document: DocumentState) -> None:
    provider = _FakeProvider([[FOX_SUGGESTION], [FOX_SUGGESTION]])
    session = _session(sample_document, provider)
    session.on_manual_trigger()
    await session.wait_idle()
    assert len(session.suggestions) == 1

    provider.gate = asyncio.Event()
    session.on_accept(session.suggestions[0].id)
    session.on_manual_trigger()
    old_scheduler = session.scheduler
    await asyncio.sleep(0)

    replacement = DocumentState(content="<p>A brand new draft with the quick brown fox inside it.</p>", document_id="doc-2")
    decision = session.switch_document(replacement)
    provider.gate.set()
    await old_scheduler.wait_idle()

    assert session.document is replacement
    assert session.suggestions == ()
    assert old_scheduler.disposed is True
    assert decision.should_trigger is True
    session.dispose()


@pytest.mark.asyncio
async def test_start_evaluates_loaded_content(sample_document: DocumentState) -> None:
    session = _session(sample_document, _FakeProvider([[FOX_SUGGESTION]]))

    decision = session.start()
    assert decision.should_trigger is True
    assert decision.reason == "first_content"
    await asyncio.sleep(0.05)
    await session.wait_idle()

    assert len(session.suggestions) == 1
    session.dispose()


@pytest.mark.asyncio
async def test_missing_credentials_and_dispose_block_generation(sample_document: DocumentState) -> None:
    provider = _FakeProvider([[FOX_SUGGESTION]])
    session = _session(sample_document, provider, has_credential=False)

    assert session.on_manual_trigger() is False

    session.dispose()
    assert session.on_manual_trigger() is False
    assert session.update_content("<p>New text</p>") is None
    assert provider.calls == []


@pytest.mark.asyncio
async def test_manual_trigger_on_placeholder_keeps_first_generation_rules() -> None:
    document = DocumentState(content="<p>Start writing your document here...</p>", document_id="doc-new")
    provider = _FakeProvider([[FOX_SUGGESTION]])
    session = _session(document, provider)

    assert session.on_manual_trigger() is False
    assert provider.calls == []
    assert session.state.generation_count == 0

    decision = session.update_content("<p>Six words are typed in here now.</p>")

    assert decision is not None
    assert decision.should_trigger is True
    assert decision.reason == "first_content"
    session.dispose()
