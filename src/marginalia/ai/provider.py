"""Suggestion provider contract and the OpenAI-backed implementation."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Protocol, Sequence, TYPE_CHECKING

import httpx
from openai import OpenAIError

from ..suggestions.models import RawSuggestion
from .errors import MalformedSuggestion, ProviderError

if TYPE_CHECKING:
    from .client import AIClient

LOGGER = logging.getLogger(__name__)

MIN_PROVIDER_TEXT_LENGTH = 50

_SYSTEM_PROMPT = (
    "You are a writing assistant that reviews a document and proposes at most {max_suggestions} "
    "sentence-level improvements. Focus on {focus}. "
    "Quote the text to change exactly as it appears in the document. "
    "Respond with a JSON array only, where each item is an object with the keys "
    '"originalText", "suggestedText" and "explanation". '
    "Return an empty array when the text needs no changes."
)
_FOCUS_BY_TYPE: Mapping[str, str] = {
    "general": "grammar, clarity, word choice, conciseness and readability",
    "grammar": "grammar, spelling and punctuation",
    "clarity": "clarity and readability",
    "conciseness": "removing redundancy and wordiness",
    "style": "tone and style",
}
_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


@dataclass(slots=True, frozen=True)
class SuggestionContext:
    """Extra information passed along with the plain text."""

    title: str | None = None
    suggestion_type: str = "general"
    max_suggestions: int = 3


class SuggestionProvider(Protocol):
    """Anything that can turn plain text into raw writing suggestions."""

    async def generate(self, plain_text: str, context: SuggestionContext) -> list[RawSuggestion]:  # pragma: no cover - protocol stub
        ...


class OpenAISuggestionProvider:
    """Requests suggestions from an OpenAI-compatible chat model."""

    def __init__(self, client: "AIClient", *, temperature: float = 0.7, max_tokens: int = 500) -> None:
        self._client = client
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def generate(self, plain_text: str, context: SuggestionContext) -> list[RawSuggestion]:
        """Ask the model for suggestions on *plain_text*.

        Raises:
            ProviderError: when the request fails after retries.
        """

        if len(plain_text) < MIN_PROVIDER_TEXT_LENGTH:
            return []
        messages = self._build_messages(plain_text, context)
        try:
            response_text = await self._client.complete_chat(
                messages,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except (OpenAIError, httpx.HTTPError) as exc:
            LOGGER.warning("Suggestion request failed: %s", exc)
            raise ProviderError.from_exception(exc) from exc
        return parse_suggestions(response_text)

    async def check_credentials(self) -> bool:
        """Return ``True`` when the configured API key can list models."""

        try:
            await self._client.list_models(force_refresh=True)
        except (OpenAIError, httpx.HTTPError) as exc:
            LOGGER.info("API key check failed: %s", exc)
            return False
        return True

    def _build_messages(self, plain_text: str, context: SuggestionContext) -> list[dict[str, str]]:
        focus = _FOCUS_BY_TYPE.get(context.suggestion_type, _FOCUS_BY_TYPE["general"])
        system_prompt = _SYSTEM_PROMPT.format(max_suggestions=max(1, context.max_suggestions), focus=focus)
        header = f"Document title: {context.title}\n\n" if context.title else ""
        user_prompt = f"{header}Please review this text and suggest improvements:\n\n{plain_text}"
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]


def parse_suggestions(text: str) -> list[RawSuggestion]:
    """Parse a model response into raw suggestions.

    Anything that is not a JSON array (optionally fenced, or wrapped in a
    ``{"suggestions": [...]}`` object) yields an empty list.
    """

    payload = _load_json(text)
    if isinstance(payload, Mapping):
        payload = payload.get("suggestions")
    if not isinstance(payload, list):
        if text and text.strip():
            LOGGER.warning("Suggestion response is not an array; ignoring it")
        return []
    return list(_iter_valid(payload))


def _load_json(text: str) -> Any:
    if not text or not text.strip():
        return None
    candidates = [text.strip()]
    fenced = _FENCE_PATTERN.search(text)
    if fenced:
        candidates.insert(0, fenced.group(1).strip())
    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    return None


def coerce_raw_suggestions(response: Any) -> list[RawSuggestion]:
    """Normalize whatever a provider returned into valid raw suggestions.

    Non-list responses become an empty list; malformed items are dropped.
    """

    if not isinstance(response, (list, tuple)):
        if response is not None:
            LOGGER.warning("Provider returned %s instead of a list; ignoring it", type(response).__name__)
        return []
    return list(_iter_valid(response))


def _iter_valid(items: Sequence[Any]) -> Iterable[RawSuggestion]:
    for index, item in enumerate(items):
        try:
            yield _coerce_item(item)
        except MalformedSuggestion as exc:
            LOGGER.debug("Skipping suggestion %s: %s", index, exc.message)


def _coerce_item(item: Any) -> RawSuggestion:
    if isinstance(item, RawSuggestion):
        if item.original_text and item.suggested_text and item.original_text != item.suggested_text:
            return item
        raise MalformedSuggestion(message="Suggestion has empty or unchanged text")
    if not isinstance(item, Mapping):
        raise MalformedSuggestion(message="Suggestion item is not an object")
    original = _first_string(item, "originalText", "original_text", "original")
    suggested = _first_string(item, "suggestedText", "suggested_text", "suggestion")
    explanation = _first_string(item, "explanation", "reason")
    if not original or not suggested or not explanation:
        raise MalformedSuggestion(message="Suggestion item is missing required fields")
    if original == suggested:
        raise MalformedSuggestion(message="Suggested text is identical to the original")
    return RawSuggestion(original_text=original, suggested_text=suggested, explanation=explanation)


def _first_string(item: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = item.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return ""


__all__ = [
    "MIN_PROVIDER_TEXT_LENGTH",
    "OpenAISuggestionProvider",
    "SuggestionContext",
    "SuggestionProvider",
    "coerce_raw_suggestions",
    "parse_suggestions",
]
