"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from marginalia.services.settings import SecretVault, Settings, SettingsStore, redact_secret


def _store(tmp_path: Path) -> SettingsStore:
    return SettingsStore(tmp_path / "settings.json", vault=SecretVault(key_path=tmp_path / "settings.key"))


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    assert _store(tmp_path).load() == Settings()


def test_save_and_load_roundtrip_encrypts_api_key(tmp_path: Path) -> None:
    store = _store(tmp_path)
    original = Settings(
        base_url="https://example.com/v1",
        api_key="sk-super-secret",
        model="gpt-4.1-mini",
        organization="acme",
        suggestion_frequency="high",
        max_suggestions=4,
        default_headers={"X-Test": "1"},
        metadata={"env": "dev"},
    )

    path = store.save(original)
    raw = json.loads(path.read_text(encoding="utf-8"))
    reloaded = _store(tmp_path).load()

    assert "sk-super-secret" not in path.read_text(encoding="utf-8")
    assert raw["api_key_ciphertext"].startswith("fernet:")
    assert reloaded == original


def test_load_ignores_plaintext_api_key_without_rewriting(tmp_path: Path) -> None:
    target = tmp_path / "settings.json"
    body = json.dumps({"api_key": "plain-key", "model": "gpt-4o"})
    target.write_text(body, encoding="utf-8")

    loaded = _store(tmp_path).load()

    assert loaded.api_key == ""
    assert loaded.model == "gpt-4o"
    assert target.read_text(encoding="utf-8") == body


def test_load_ignores_unknown_fields_and_bad_json(tmp_path: Path) -> None:
    target = tmp_path / "settings.json"
    target.write_text(json.dumps({"model": "gpt-4o", "theme": "dark", "version": 1}), encoding="utf-8")
    assert _store(tmp_path).load().model == "gpt-4o"

    target.write_text("{not json", encoding="utf-8")
    assert _store(tmp_path).load() == Settings()


def test_unknown_frequency_falls_back_to_normal(tmp_path: Path) -> None:
    target = tmp_path / "settings.json"
    target.write_text(json.dumps({"suggestion_frequency": "Hourly", "version": 1}), encoding="utf-8")

    loaded = _store(tmp_path).load()

    assert loaded.suggestion_frequency == "normal"
    assert json.loads(target.read_text(encoding="utf-8"))["suggestion_frequency"] == "normal"


def test_env_overrides_take_precedence(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.save(Settings(base_url="https://local", api_key="abc"))
    monkeypatch.setenv("MARGINALIA_BASE_URL", "https://env-base")
    monkeypatch.setenv("MARGINALIA_API_KEY", "env-key")
    monkeypatch.setenv("MARGINALIA_SUGGESTIONS_ENABLED", "off")
    monkeypatch.setenv("MARGINALIA_MAX_SUGGESTIONS", "5")
    monkeypatch.setenv("MARGINALIA_TEMPERATURE", "not-a-number")

    overridden = _store(tmp_path).load()

    assert overridden.base_url == "https://env-base"
    assert overridden.api_key == "env-key"
    assert overridden.suggestions_enabled is False
    assert overridden.max_suggestions == 5
    assert overridden.temperature == Settings().temperature


def test_cli_overrides_apply_before_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("MARGINALIA_MODEL", "env-model")

    loaded = _store(tmp_path).load(overrides={"model": "cli-model", "suggestion_type": "grammar", "bogus": 1})

    assert loaded.model == "env-model"
    assert loaded.suggestion_type == "grammar"


def test_settings_convert_to_runtime_configs() -> None:
    settings = Settings(
        api_key="k",
        suggestion_frequency="low",
        suggestions_enabled=False,
        max_suggestions=2,
        max_suggestions_cap=6,
        default_headers={"X-App": "marginalia"},
    )

    client_settings = settings.client_settings()
    scheduler_config = settings.scheduler_config()

    assert client_settings.api_key == "k"
    assert client_settings.default_headers == {"X-App": "marginalia"}
    assert scheduler_config.periodic_interval == 180.0
    assert scheduler_config.enabled is False
    assert scheduler_config.base_suggestions == 2
    assert scheduler_config.max_suggestions_cap == 6
    assert Settings().has_api_key is False
    assert settings.has_api_key is True


def test_secret_vault_rejects_foreign_tokens(tmp_path: Path) -> None:
    vault = SecretVault(key_path=tmp_path / "vault.key")
    token = vault.encrypt("hunter2")

    assert vault.decrypt(token) == "hunter2"
    assert vault.decrypt("") == ""
    with pytest.raises(ValueError):
        vault.decrypt("rot13:abc")
    with pytest.raises(ValueError):
        vault.decrypt("fernet:not-a-token")


def test_undecryptable_key_loads_as_empty(tmp_path: Path) -> None:
    _store(tmp_path).save(Settings(api_key="secret"))
    other_vault = SecretVault(key_path=tmp_path / "other.key")

    loaded = SettingsStore(tmp_path / "settings.json", vault=other_vault).load()

    assert loaded.api_key == ""


def test_redact_secret() -> None:
    assert redact_secret("") == ""
    assert redact_secret("abcd") == "****"
    assert redact_secret("sk-123456") == "sk*****56"
