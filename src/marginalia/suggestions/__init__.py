"""Suggestion lifecycle: anchoring, de-duplication, scheduling, and storage."""

from .models import RawSuggestion, Suggestion, TextPosition, Theme
from .scheduler import SchedulerConfig, SuggestionScheduler, TriggerDecision, evaluate_trigger
from .store import AcceptResult, SuggestionStore

__all__ = [
    "AcceptResult",
    "RawSuggestion",
    "SchedulerConfig",
    "Suggestion",
    "SuggestionScheduler",
    "SuggestionStore",
    "TextPosition",
    "Theme",
    "TriggerDecision",
    "evaluate_trigger",
]
