"""Error types raised by suggestion providers and parsers.

Only :class:`ProviderError` crosses the scheduler boundary, where it is
recorded as state instead of propagating. :class:`MalformedSuggestion` never
leaves the parser. A suggestion that cannot be anchored is not an error at
all; the locator returns ``None`` and the item is dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


class ErrorCode:
    """Constants for machine-readable error codes."""

    PROVIDER_FAILED = "provider_failed"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    MISSING_CREDENTIALS = "missing_credentials"
    MALFORMED_RESPONSE = "malformed_response"
    MALFORMED_SUGGESTION = "malformed_suggestion"
    DOCUMENT_NOT_FOUND = "document_not_found"


@dataclass
class SuggestionEngineError(Exception):
    """Base exception with a stable code and a user-facing message."""

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    retryable: ClassVar[bool] = False

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return self.message


@dataclass
class ProviderError(SuggestionEngineError):
    """The suggestion provider failed or returned unusable data."""

    error_code: str = field(default=ErrorCode.PROVIDER_FAILED)
    message: str = field(default="Failed to generate suggestions")
    details: dict[str, Any] = field(default_factory=dict)

    retryable: ClassVar[bool] = True

    @classmethod
    def from_exception(cls, exc: BaseException, *, code: str = ErrorCode.PROVIDER_FAILED) -> "ProviderError":
        message = str(exc).strip() or exc.__class__.__name__
        error = cls(error_code=code, message=message, details={"type": exc.__class__.__name__})
        error.__cause__ = exc
        return error


@dataclass
class MalformedSuggestion(SuggestionEngineError):
    """A single provider item lacked fields or proposed no change."""

    error_code: str = field(default=ErrorCode.MALFORMED_SUGGESTION)
    message: str = field(default="Suggestion payload is malformed")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class DocumentNotFoundError(SuggestionEngineError):
    """The document store has no document with the requested id."""

    error_code: str = field(default=ErrorCode.DOCUMENT_NOT_FOUND)
    message: str = field(default="The requested document was not found")
    details: dict[str, Any] = field(default_factory=dict)

    document_id: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.document_id is not None:
            result["document_id"] = self.document_id
        return result


__all__ = [
    "DocumentNotFoundError",
    "ErrorCode",
    "MalformedSuggestion",
    "ProviderError",
    "SuggestionEngineError",
]
