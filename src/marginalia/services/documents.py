"""Document store interface consumed by editing sessions."""

from __future__ import annotations

import logging
from typing import Dict, Protocol

from ..ai.errors import DocumentNotFoundError
from ..editor.document_model import DocumentState

LOGGER = logging.getLogger(__name__)


class DocumentStore(Protocol):
    """Persistence collaborator; the engine only reads and writes ``content``."""

    def load(self, document_id: str) -> DocumentState:  # pragma: no cover - protocol stub
        ...

    def save(self, document_id: str, title: str, content: str) -> DocumentState:  # pragma: no cover - protocol stub
        ...

    def delete(self, document_id: str) -> bool:  # pragma: no cover - protocol stub
        ...


class InMemoryDocumentStore:
    """Dictionary-backed :class:`DocumentStore` for tests and the CLI."""

    def __init__(self) -> None:
        self._documents: Dict[str, DocumentState] = {}

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._documents

    def load(self, document_id: str) -> DocumentState:
        document = self._documents.get(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id=document_id)
        return document

    def save(self, document_id: str, title: str, content: str) -> DocumentState:
        document = self._documents.get(document_id)
        if document is None:
            document = DocumentState(content=content, title=title, document_id=document_id)
            self._documents[document_id] = document
        else:
            document.title = title
            document.update_content(content)
        document.dirty = False
        LOGGER.debug("Saved document %s (version %s)", document_id, document.version_id)
        return document

    def delete(self, document_id: str) -> bool:
        return self._documents.pop(document_id, None) is not None


__all__ = ["DocumentStore", "InMemoryDocumentStore"]
