"""Shared pytest fixtures."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from marginalia.editor.document_model import DocumentState


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in list(os.environ):
        if name.startswith("MARGINALIA_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MARGINALIA_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def sample_document() -> DocumentState:
    return DocumentState(
        content="<p>The quick brown fox jumps over the lazy dog near the river bank today.</p>",
        title="Fox notes",
        document_id="doc-fox",
    )
