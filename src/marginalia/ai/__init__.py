"""AI client, suggestion provider, and error types."""

from .client import AIClient, AIStreamEvent, ClientSettings
from .errors import MalformedSuggestion, ProviderError, SuggestionEngineError

__all__ = [
    "AIClient",
    "AIStreamEvent",
    "ClientSettings",
    "MalformedSuggestion",
    "ProviderError",
    "SuggestionEngineError",
]
