"""Tests covering the command line entry point."""

from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Any

import pytest

from marginalia import app
from marginalia.ai.provider import SuggestionContext
from marginalia.services.settings import SecretVault, Settings, SettingsStore


class _StubClient:
    def __init__(self, settings: Any) -> None:
        self.settings = settings
        self.closed = False

    async def aclose(self) -> None:
        self.closed = True


class _StubProvider:
    credentials_ok = True

    def __init__(self, client: Any, *, temperature: float = 0.7) -> None:
        self.client = client
        self.temperature = temperature

    async def generate(self, plain_text: str, context: SuggestionContext) -> list[dict[str, str]]:
        return [
            {
                "originalText": "quick brown fox",
                "suggestedText": "fast brown fox",
                "explanation": "Stronger word choice",
            }
        ]

    async def check_credentials(self) -> bool:
        return self.credentials_ok


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(app, "configure_logging", lambda *args, **kwargs: None)


def test_diff_command_prints_inline_markers(capsys: pytest.CaptureFixture[str]) -> None:
    assert app.main(["diff", "The cat sat.", "The dog sat."]) == 0

    assert capsys.readouterr().out.strip() == "The [-cat-]{+dog+} sat."


def test_dump_settings_redacts_api_key(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    settings_path = tmp_path / "settings.json"
    SettingsStore(settings_path).save(Settings(api_key="sk-live-123456"))

    exit_code = app.main(["--settings-path", str(settings_path), "--set", "model=gpt-test", "--dump-settings"])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert payload["settings"]["api_key"] == "sk**********56"
    assert payload["settings"]["model"] == "gpt-test"
    assert payload["meta"]["cli_overrides"] == ["model"]
    assert payload["meta"]["secret_backend"] == "fernet"
    assert payload["meta"]["scheduler"]["periodic_interval"] == 90.0


def test_dump_settings_writes_to_stream(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json", vault=SecretVault(key_path=tmp_path / "key"))
    buffer = io.StringIO()

    app._dump_settings(Settings(api_key="abc"), store, overrides={"base_url": "x"}, stream=buffer)

    payload = json.loads(buffer.getvalue())
    assert payload["settings"]["api_key"] == "***"
    assert payload["meta"]["path"] == str(tmp_path / "settings.json")


def test_invalid_override_exits_with_usage_error(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        app.main(["--set", "nonsense", "diff", "a", "b"])

    assert excinfo.value.code == 2
    assert "Invalid --set override" in capsys.readouterr().err


def test_coerce_cli_overrides_uses_field_types() -> None:
    overrides = app._coerce_cli_overrides(
        [
            "temperature=0.2",
            "max_suggestions=5",
            "suggestions_enabled=no",
            "organization=none",
            "default_headers={\"X-App\": \"cli\"}",
            "model=gpt-4o",
        ]
    )

    assert overrides == {
        "temperature": 0.2,
        "max_suggestions": 5,
        "suggestions_enabled": False,
        "organization": None,
        "default_headers": {"X-App": "cli"},
        "model": "gpt-4o",
    }


@pytest.mark.parametrize("entry", ["model", "=value", "unknown_field=1", "suggestions_enabled=maybe", "max_suggestions=x"])
def test_coerce_cli_overrides_rejects_bad_entries(entry: str) -> None:
    with pytest.raises(ValueError):
        app._coerce_cli_overrides([entry])


def test_suggest_requires_api_key(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    draft = tmp_path / "draft.html"
    draft.write_text("<p>Some text</p>", encoding="utf-8")

    exit_code = app.main(["--settings-path", str(tmp_path / "settings.json"), "suggest", str(draft)])

    assert exit_code == 2
    assert "No API key configured" in capsys.readouterr().err


def test_suggest_prints_anchored_suggestions(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(app, "AIClient", _StubClient)
    monkeypatch.setattr(app, "OpenAISuggestionProvider", _StubProvider)
    monkeypatch.setenv("MARGINALIA_API_KEY", "sk-test")
    draft = tmp_path / "draft.html"
    draft.write_text(
        "<p>The quick brown fox jumps over the lazy dog near the river bank today.</p>",
        encoding="utf-8",
    )

    exit_code = app.main(["--settings-path", str(tmp_path / "settings.json"), "suggest", str(draft)])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "1. [word-choice] @4-19" in output
    assert "[-quick-]{+fast+} brown fox" in output
    assert "Stronger word choice" in output


def test_main_without_command_returns_usage_error(tmp_path: Path) -> None:
    assert app.main(["--settings-path", str(tmp_path / "settings.json")]) == 2


@pytest.mark.parametrize(("accepted", "exit_code"), [(True, 0), (False, 1)])
def test_check_reports_credential_status(
    accepted: bool,
    exit_code: int,
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    clients: list[_StubClient] = []

    def _client_factory(settings: Any) -> _StubClient:
        client = _StubClient(settings)
        clients.append(client)
        return client

    monkeypatch.setattr(app, "AIClient", _client_factory)
    monkeypatch.setattr(app, "OpenAISuggestionProvider", _StubProvider)
    monkeypatch.setattr(_StubProvider, "credentials_ok", accepted)
    monkeypatch.setenv("MARGINALIA_API_KEY", "sk-test")

    assert app.main(["--settings-path", str(tmp_path / "settings.json"), "check"]) == exit_code

    captured = capsys.readouterr()
    if accepted:
        assert "API key accepted" in captured.out
    else:
        assert "API key rejected" in captured.err
    assert clients[0].closed is True


def test_check_without_api_key_is_usage_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert app.main(["--settings-path", str(tmp_path / "settings.json"), "check"]) == 2
    assert "No API key configured" in capsys.readouterr().err
