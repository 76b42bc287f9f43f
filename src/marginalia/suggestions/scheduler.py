"""Heuristic scheduler deciding when to request new writing suggestions.

The scheduler is a small state machine (idle, awaiting-response,
cooldown-after-error) driven by content-change notifications, a debounce
timer, and a periodic re-check. It never runs two generations at once; the
``in_flight`` flag is the only guard because everything runs on one event
loop.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Literal

from ..ai.errors import ProviderError
from ..editor.text import ContentAnalysis, compare_analyses
from ..services.telemetry import emit

LOGGER = logging.getLogger(__name__)

SuggestionFrequency = Literal["low", "normal", "high"]
GenerationRunner = Callable[[], Awaitable[Any]]
Clock = Callable[[], float]

FREQUENCY_INTERVALS: dict[str, float] = {"low": 180.0, "normal": 90.0, "high": 30.0}


class SchedulerPhase(str, Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting-response"
    COOLDOWN_AFTER_ERROR = "cooldown-after-error"


@dataclass(slots=True)
class SchedulerConfig:
    """Tunable thresholds and delays (seconds) for the trigger heuristics."""

    enabled: bool = True
    immediate_delay: float = 0.5
    short_delay: float = 1.0
    normal_delay: float = 2.0
    error_cooldown: float = 10.0
    rescan_after: float = 15.0
    rescan_min_words: int = 50
    periodic_interval: float = FREQUENCY_INTERVALS["normal"]
    significant_chars: int = 20
    significant_words: int = 5
    significant_lines: int = 0
    paste_chars: int = 100
    paste_words: int = 15
    first_paste_words: int = 10
    first_min_words: int = 5
    first_min_chars: int = 25
    first_fast_words: int = 10
    next_min_words: int = 8
    next_min_chars: int = 40
    base_suggestions: int = 3
    suggestions_per_hundred_words: int = 1
    max_suggestions_cap: int = 10
    manual_min_chars: int = 30

    @classmethod
    def for_frequency(cls, frequency: str, **overrides: Any) -> "SchedulerConfig":
        """Build a config whose periodic interval follows a frequency preset."""

        interval = FREQUENCY_INTERVALS.get(frequency)
        if interval is None:
            LOGGER.warning("Unknown suggestion frequency %r; using 'normal'", frequency)
            interval = FREQUENCY_INTERVALS["normal"]
        values: dict[str, Any] = {"periodic_interval": interval, **overrides}
        return cls(**values)


def max_suggestions(word_count: int, config: SchedulerConfig | None = None) -> int:
    """Ceiling on pending suggestions, scaled by document length."""

    cfg = config or SchedulerConfig()
    scaled = cfg.base_suggestions + (max(0, word_count) // 100) * cfg.suggestions_per_hundred_words
    return max(0, min(scaled, cfg.max_suggestions_cap))


@dataclass(slots=True)
class SchedulerState:
    """Per-session bookkeeping updated after every generation attempt."""

    last_analysis: ContentAnalysis | None = None
    baseline_analysis: ContentAnalysis | None = None
    last_generated_at: float | None = None
    generation_count: int = 0
    in_flight: bool = False
    last_error: str | None = None
    last_error_at: float | None = None

    def in_cooldown(self, now: float, cooldown: float) -> bool:
        if self.last_error is None or self.last_error_at is None:
            return False
        return now - self.last_error_at < cooldown


@dataclass(slots=True, frozen=True)
class TriggerDecision:
    """Outcome of the trigger predicate."""

    should_trigger: bool
    delay: float = 0.0
    reason: str = ""

    @classmethod
    def skip(cls, reason: str) -> "TriggerDecision":
        return cls(False, 0.0, reason)


def evaluate_trigger(
    current: ContentAnalysis,
    *,
    state: SchedulerState,
    config: SchedulerConfig,
    pending_count: int,
    has_credential: bool,
    now: float,
) -> TriggerDecision:
    """Decide whether *current* warrants a new suggestion request.

    Change significance is measured against the analysis captured when the
    previous generation was issued; paste detection compares against the
    last analysis seen.
    """

    blocked = _blocked_reason(state, config, has_credential=has_credential, now=now)
    if blocked is not None:
        return TriggerDecision.skip(blocked)
    if current.is_empty or current.is_placeholder:
        return TriggerDecision.skip("no_content")

    thresholds = dict(
        significant_chars=config.significant_chars,
        significant_words=config.significant_words,
        significant_lines=config.significant_lines,
        paste_chars=config.paste_chars,
        paste_words=config.paste_words,
    )
    change = compare_analyses(state.baseline_analysis, current, **thresholds)

    if state.generation_count == 0:
        pasted = compare_analyses(state.last_analysis, current, **thresholds).is_paste
        if pasted and current.word_count >= config.first_paste_words:
            return TriggerDecision(True, config.immediate_delay, "paste")
        if (
            current.word_count >= config.first_min_words
            or current.length >= config.first_min_chars
            or current.has_substantial_content
        ):
            delay = config.short_delay if current.word_count >= config.first_fast_words else config.normal_delay
            return TriggerDecision(True, delay, "first_content")
        return TriggerDecision.skip("below_first_threshold")

    if pending_count >= max_suggestions(current.word_count, config):
        return TriggerDecision.skip("at_capacity")
    if not (
        current.word_count >= config.next_min_words
        or current.length >= config.next_min_chars
        or current.has_substantial_content
    ):
        return TriggerDecision.skip("below_threshold")
    if change.is_significant:
        return TriggerDecision(True, config.short_delay, "significant_change")
    if (
        state.last_generated_at is not None
        and now - state.last_generated_at >= config.rescan_after
        and current.word_count >= config.rescan_min_words
    ):
        return TriggerDecision(True, config.normal_delay, "rescan")
    return TriggerDecision.skip("no_change")


def _blocked_reason(
    state: SchedulerState,
    config: SchedulerConfig,
    *,
    has_credential: bool,
    now: float,
    check_cooldown: bool = True,
) -> str | None:
    if not config.enabled:
        return "disabled"
    if not has_credential:
        return "missing_credentials"
    if state.in_flight:
        return "in_flight"
    if check_cooldown and state.in_cooldown(now, config.error_cooldown):
        return "cooldown"
    return None


class SuggestionScheduler:
    """Owns the debounce/periodic timers and runs one generation at a time."""

    def __init__(
        self,
        runner: GenerationRunner,
        *,
        config: SchedulerConfig | None = None,
        pending_count: Callable[[], int] | None = None,
        has_credential: Callable[[], bool] | bool = True,
        clock: Clock = time.monotonic,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._runner = runner
        self._config = config or SchedulerConfig()
        self._pending_count = pending_count or (lambda: 0)
        self._has_credential = has_credential
        self._clock = clock
        self._loop = loop
        self._state = SchedulerState()
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._periodic_handle: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[None] | None = None
        self._disposed = False

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def config(self) -> SchedulerConfig:
        return self._config

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def phase(self) -> SchedulerPhase:
        if self._state.in_flight:
            return SchedulerPhase.AWAITING_RESPONSE
        if self._state.in_cooldown(self._clock(), self._config.error_cooldown):
            return SchedulerPhase.COOLDOWN_AFTER_ERROR
        return SchedulerPhase.IDLE

    @property
    def has_pending_trigger(self) -> bool:
        return self._debounce_handle is not None

    @property
    def disposed(self) -> bool:
        return self._disposed

    # ------------------------------------------------------------------
    # Event entry points
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Arm the periodic re-check timer."""

        if self._disposed or self._periodic_handle is not None:
            return
        self._arm_periodic()

    def prime(self, analysis: ContentAnalysis) -> None:
        """Record *analysis* as the latest snapshot without evaluating a trigger."""

        if not self._disposed:
            self._state.last_analysis = analysis

    def on_content_changed(self, analysis: ContentAnalysis) -> TriggerDecision:
        """Record *analysis* and (re)start the debounce timer when warranted."""

        if self._disposed:
            return TriggerDecision.skip("disposed")
        decision = self._evaluate(analysis)
        self._state.last_analysis = analysis
        if decision.should_trigger:
            self._schedule(decision)
        else:
            LOGGER.debug("Suggestion trigger skipped: %s", decision.reason)
        return decision

    def tick(self) -> TriggerDecision:
        """Re-evaluate the latest analysis without a new edit."""

        analysis = self._state.last_analysis
        if self._disposed or analysis is None:
            return TriggerDecision.skip("disposed" if self._disposed else "no_content")
        if self.has_pending_trigger:
            return TriggerDecision.skip("pending")
        decision = self._evaluate(analysis)
        if decision.should_trigger:
            LOGGER.debug("Periodic check scheduling suggestions (%s)", decision.reason)
            self._schedule(decision)
        return decision

    def trigger_now(self) -> bool:
        """Start a generation immediately; the error cooldown does not apply.

        Empty, placeholder or very short content is refused so the first
        generation stays available for real input.
        """

        if self._disposed:
            return False
        blocked = _blocked_reason(
            self._state,
            self._config,
            has_credential=self._credential_available(),
            now=self._clock(),
            check_cooldown=False,
        )
        if blocked is not None:
            LOGGER.debug("Manual trigger ignored: %s", blocked)
            return False
        analysis = self._state.last_analysis
        if (
            analysis is None
            or analysis.is_empty
            or analysis.is_placeholder
            or analysis.length <= self._config.manual_min_chars
        ):
            LOGGER.debug("Manual trigger ignored: not enough content")
            return False
        self._cancel_debounce()
        self._launch("manual")
        return True

    async def wait_idle(self) -> None:
        """Wait for the in-flight generation, if any, to settle."""

        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})

    def dispose(self) -> None:
        """Cancel every timer and reset state; late responses are ignored."""

        if self._disposed:
            return
        self._disposed = True
        self._cancel_debounce()
        if self._periodic_handle is not None:
            self._periodic_handle.cancel()
            self._periodic_handle = None
        self._state = SchedulerState()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _evaluate(self, analysis: ContentAnalysis) -> TriggerDecision:
        return evaluate_trigger(
            analysis,
            state=self._state,
            config=self._config,
            pending_count=self._pending_count(),
            has_credential=self._credential_available(),
            now=self._clock(),
        )

    def _credential_available(self) -> bool:
        if callable(self._has_credential):
            return bool(self._has_credential())
        return bool(self._has_credential)

    def _resolve_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _schedule(self, decision: TriggerDecision) -> None:
        self._cancel_debounce()
        self._debounce_handle = self._resolve_loop().call_later(
            max(0.0, decision.delay), self._on_debounce_elapsed, decision.reason
        )

    def _cancel_debounce(self) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

    def _arm_periodic(self) -> None:
        interval = max(0.01, self._config.periodic_interval)
        self._periodic_handle = self._resolve_loop().call_later(interval, self._on_periodic)

    def _on_periodic(self) -> None:
        self._periodic_handle = None
        if self._disposed:
            return
        self.tick()
        self._arm_periodic()

    def _on_debounce_elapsed(self, reason: str) -> None:
        self._debounce_handle = None
        if self._disposed:
            return
        analysis = self._state.last_analysis
        blocked = _blocked_reason(
            self._state,
            self._config,
            has_credential=self._credential_available(),
            now=self._clock(),
        )
        if blocked is None and analysis is not None and self._state.generation_count > 0:
            if self._pending_count() >= max_suggestions(analysis.word_count, self._config):
                blocked = "at_capacity"
        if blocked is not None:
            LOGGER.debug("Debounced trigger (%s) dropped: %s", reason, blocked)
            return
        self._launch(reason)

    def _launch(self, reason: str) -> None:
        self._state.in_flight = True
        self._state.baseline_analysis = self._state.last_analysis
        self._task = self._resolve_loop().create_task(self._run(reason))

    async def _run(self, reason: str) -> None:
        started = self._clock()
        emit(
            "suggestions.generate.start",
            {"reason": reason, "generation": self._state.generation_count + 1},
        )
        error_text: str | None = None
        try:
            await self._runner()
        except ProviderError as exc:
            error_text = exc.message
            LOGGER.warning("Suggestion generation failed: %s", exc.message)
        except Exception:  # pragma: no cover
            error_text = "Failed to generate suggestions"
            LOGGER.exception("Suggestion runner raised unexpectedly")
        finally:
            self._state.in_flight = False
        if self._disposed:
            LOGGER.debug("Scheduler disposed while generating; ignoring response")
            return

        now = self._clock()
        state = self._state
        state.generation_count += 1
        state.last_generated_at = now
        if error_text is None:
            state.last_error = None
            state.last_error_at = None
        else:
            state.last_error = error_text
            state.last_error_at = now
        payload: dict[str, Any] = {
            "reason": reason,
            "status": "error" if error_text else "ok",
            "generation": state.generation_count,
            "latency_ms": round((now - started) * 1000.0, 3),
        }
        if error_text:
            payload["error"] = error_text[:200]
        emit("suggestions.generate.end", payload)


__all__ = [
    "FREQUENCY_INTERVALS",
    "GenerationRunner",
    "SchedulerConfig",
    "SchedulerPhase",
    "SchedulerState",
    "SuggestionFrequency",
    "SuggestionScheduler",
    "TriggerDecision",
    "evaluate_trigger",
    "max_suggestions",
]
