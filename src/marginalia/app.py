"""Command line entry point for the Marginalia suggestion engine."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from .ai.client import AIClient
from .ai.provider import OpenAISuggestionProvider
from .editor.diffing import diff_texts, format_inline, render_segments
from .editor.document_model import DocumentState
from .editor.session import EditingSession
from .services.documents import InMemoryDocumentStore
from .services.settings import Settings, SettingsStore, redact_secret
from .suggestions.models import Suggestion
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure file and console logging for CLI runs."""

    level = logging_utils.resolve_level(debug)
    logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the ``marginalia`` console script."""

    args = _parse_cli_args(argv)
    debug = _env_flag("MARGINALIA_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("MARGINALIA_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)
    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return 0
    if args.command == "diff":
        print(_inline_diff(args.original, args.suggested))
        return 0
    if args.command == "suggest":
        return _suggest_command(settings, Path(args.file))
    if args.command == "check":
        return _check_command(settings)
    print("Nothing to do; pass --dump-settings or a subcommand.", file=sys.stderr)
    return 2


def _suggest_command(settings: Settings, path: Path, *, stream: TextIO | None = None) -> int:
    destination = stream or sys.stdout
    if not settings.has_api_key:
        print("No API key configured; set MARGINALIA_API_KEY or use --set api_key=...", file=sys.stderr)
        return 2
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        print(f"Unable to read {path}: {exc}", file=sys.stderr)
        return 1

    client = AIClient(settings.client_settings())
    provider = OpenAISuggestionProvider(client, temperature=settings.temperature)
    suggestions, error = asyncio.run(_run_suggest(settings, provider, client, path.stem, content))
    if error:
        print(f"Suggestion request failed: {error}", file=sys.stderr)
        return 1
    _print_suggestions(suggestions, destination)
    return 0


def _check_command(settings: Settings, *, stream: TextIO | None = None) -> int:
    destination = stream or sys.stdout
    if not settings.has_api_key:
        print("No API key configured; set MARGINALIA_API_KEY or use --set api_key=...", file=sys.stderr)
        return 2
    client = AIClient(settings.client_settings())
    provider = OpenAISuggestionProvider(client, temperature=settings.temperature)
    if asyncio.run(_run_check(provider, client)):
        destination.write(f"API key accepted by {settings.base_url}\n")
        return 0
    print(f"API key rejected or endpoint unreachable: {settings.base_url}", file=sys.stderr)
    return 1


async def _run_check(provider: OpenAISuggestionProvider, client: AIClient) -> bool:
    try:
        return await provider.check_credentials()
    finally:
        await client.aclose()


async def _run_suggest(
    settings: Settings,
    provider: OpenAISuggestionProvider,
    client: AIClient,
    title: str,
    content: str,
) -> tuple[tuple[Suggestion, ...], str | None]:
    document = DocumentState(content=content, title=title)
    documents = InMemoryDocumentStore()
    documents.save(document.document_id, document.title, document.content)
    session = EditingSession(
        document,
        provider,
        config=settings.scheduler_config(),
        has_credential=settings.has_api_key,
        document_store=documents,
        suggestion_type=settings.suggestion_type,
    )
    try:
        if not session.on_manual_trigger():
            _LOGGER.info("Suggestion engine is disabled or busy; nothing generated")
        await session.wait_idle()
        return session.suggestions, session.last_error
    finally:
        session.dispose()
        await client.aclose()


def _print_suggestions(suggestions: Sequence[Suggestion], stream: TextIO) -> None:
    if not suggestions:
        stream.write("No suggestions.\n")
        return
    for index, suggestion in enumerate(suggestions, start=1):
        position = suggestion.position
        where = f"{position.start}-{position.end}" if position else "?"
        stream.write(f"{index}. [{suggestion.theme.value}] @{where}\n")
        stream.write(f"   {_inline_diff(suggestion.original_text, suggestion.suggested_text)}\n")
        stream.write(f"   {suggestion.explanation}\n")


def _inline_diff(original: str, suggested: str) -> str:
    return format_inline(render_segments(diff_texts(original, suggested)))


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="marginalia",
        description="Generate inline writing suggestions or inspect the engine configuration.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.marginalia/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    commands = parser.add_subparsers(dest="command")
    suggest = commands.add_parser("suggest", help="Request suggestions for a text or HTML file.")
    suggest.add_argument("file", metavar="FILE")
    diff = commands.add_parser("diff", help="Print the word diff between two strings.")
    diff.add_argument("original", metavar="ORIGINAL")
    diff.add_argument("suggested", metavar="SUGGESTED")
    commands.add_parser("check", help="Verify that the configured API key can reach the model endpoint.")
    return parser.parse_args(argv)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        overrides[key] = _coerce_value(type_hints.get(key, fields[key].type), raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target, optional = _resolve_annotation(annotation)
    if optional and raw_value.lower() in {"none", "null"}:
        return None
    if target is bool:
        return _parse_bool(raw_value)
    if target is int:
        return int(raw_value, 10)
    if target is float:
        return float(raw_value)
    if target is dict:
        try:
            payload = json.loads(raw_value or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dict overrides must be valid JSON objects") from exc
        if not isinstance(payload, dict):
            raise ValueError("Dict overrides must be valid JSON objects")
        return payload
    return raw_value


def _resolve_annotation(annotation: Any) -> tuple[Any, bool]:
    origin = get_origin(annotation)
    if origin is None:
        return annotation, False
    if origin is dict:
        return dict, False
    args = get_args(annotation)
    members = [arg for arg in args if arg is not type(None)]
    if not members:
        return origin, False
    return members[0], len(members) != len(args)


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    payload["api_key"] = redact_secret(settings.api_key)
    metadata = {
        "path": str(store.path),
        "secret_backend": store.vault.strategy,
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
        "scheduler": asdict(settings.scheduler_config()),
    }
    json.dump({"settings": payload, "meta": metadata}, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("MARGINALIA_"))


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
