"""Dataclasses representing the live document an editing session works on."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from .text import to_plain_text


@dataclass(slots=True)
class DocumentState:
    """Markup content plus version metadata for one open document."""

    content: str = ""
    title: str = "Untitled document"
    document_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    version_id: int = 1
    dirty: bool = False

    @property
    def plain_text(self) -> str:
        return to_plain_text(self.content)

    def update_content(self, new_content: str) -> bool:
        """Replace the markup; returns ``False`` when nothing changed."""

        if new_content == self.content:
            return False
        self.content = new_content
        self.dirty = True
        self.version_id += 1
        return True
