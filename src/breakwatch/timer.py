"""Break timer engine: pure logic, no I/O.

All time values are integer seconds on the caller's local-time axis (unix
seconds shifted by the local UTC offset). The engine never reads a clock;
every time-dependent call takes ``now`` explicitly so it can be driven by
synthetic timestamps in tests.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum

from .config import Settings
from .errors import InvalidBreakKindError


class BreakKind(str, Enum):
    MICRO = "micro"
    REST = "rest"
    DAILY_LIMIT = "daily_limit"

    @property
    def priority(self) -> int:
        return KIND_PRIORITY[self]


class BreakOutcome(str, Enum):
    COMPLETED = "completed"
    SNOOZED = "snoozed"
    SKIPPED = "skipped"


# Lower wins when two kinds are due (or equally close) at once.
KIND_PRIORITY: dict[BreakKind, int] = {
    BreakKind.MICRO: 0,
    BreakKind.REST: 1,
    BreakKind.DAILY_LIMIT: 2,
}

DAY_SECONDS = 86_400
DAILY_LIMIT_BREAK_SECONDS = 60


def parse_break_kind(value: str) -> BreakKind:
    """Parse 'micro', 'rest' or 'daily_limit' coming from an external command."""
    try:
        return BreakKind(value)
    except ValueError:
        raise InvalidBreakKindError(value) from None


def daily_bucket(now: int, reset_offset_seconds: int) -> int:
    """Day index for ``now``; a new day starts at the configured reset time."""
    return (now - reset_offset_seconds) // DAY_SECONDS


def seconds_until_next_reset(now: int, reset_offset_seconds: int) -> int:
    next_reset = (daily_bucket(now, reset_offset_seconds) + 1) * DAY_SECONDS + reset_offset_seconds
    return max(0, next_reset - now)


# ---- Events ----

@dataclass(frozen=True)
class EngineEvent:
    """Base for everything the engine reports back to its host."""


@dataclass(frozen=True)
class BreakDue(EngineEvent):
    kind: BreakKind


@dataclass(frozen=True)
class BreakStarted(EngineEvent):
    kind: BreakKind


@dataclass(frozen=True)
class BreakCompleted(EngineEvent):
    kind: BreakKind


@dataclass(frozen=True)
class BreakSnoozed(EngineEvent):
    kind: BreakKind
    until: int


@dataclass(frozen=True)
class DailyReset(EngineEvent):
    pass


@dataclass
class OngoingBreak:
    kind: BreakKind
    remaining_seconds: int


class BreakTimerEngine:
    """Owns the three activity counters, snoozes and the running break.

    Every structurally odd call (ticking with no break, starting a second
    break, snoozing something that is not due) is a no-op, never an error.
    """

    def __init__(self, settings: Settings, now: int):
        self._settings: Settings = copy.deepcopy(settings)
        self._micro_active: int = 0
        self._rest_active: int = 0
        self._daily_active: int = 0
        self._snooze_until: dict[BreakKind, int] = {}
        self._active_break: OngoingBreak | None = None
        self._last_reset_bucket: int = daily_bucket(now, self._reset_offset)

    # ---- Read-only properties ----

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def micro_active(self) -> int:
        return self._micro_active

    @property
    def rest_active(self) -> int:
        return self._rest_active

    @property
    def daily_active(self) -> int:
        return self._daily_active

    @property
    def last_reset_bucket(self) -> int:
        return self._last_reset_bucket

    @property
    def _reset_offset(self) -> int:
        return self._settings.daily_limit.reset_offset_seconds

    def snooze_until(self, kind: BreakKind) -> int | None:
        return self._snooze_until.get(kind)

    def is_snoozed(self, kind: BreakKind, now: int) -> bool:
        until = self._snooze_until.get(kind)
        return until is not None and now < until

    def active_break_info(self) -> tuple[BreakKind, int] | None:
        if self._active_break is None:
            return None
        return self._active_break.kind, self._active_break.remaining_seconds

    # ---- Core methods ----

    def update_settings(self, settings: Settings) -> None:
        """Swap settings. Takes effect at the next evaluation.

        A break already in progress keeps the duration it started with.
        """
        self._settings = copy.deepcopy(settings)

    def on_activity(self, active_seconds: int, now: int) -> list[EngineEvent]:
        """Feed one activity sample.

        Checks the daily rollover first, then (unless a break is running)
        advances all three counters and reports at most one due break.
        """
        events: list[EngineEvent] = []
        if self._maybe_daily_reset(now):
            events.append(DailyReset())

        if active_seconds <= 0 or self._active_break is not None:
            return events

        self._micro_active += active_seconds
        self._rest_active += active_seconds
        self._daily_active += active_seconds

        kind = self._next_due(now)
        if kind is not None:
            events.append(BreakDue(kind))
            if self._settings.strict:
                events.extend(self.start_break(kind))

        return events

    def start_break(self, kind: BreakKind) -> list[EngineEvent]:
        if self._active_break is not None:
            return []

        self._active_break = OngoingBreak(kind=kind, remaining_seconds=self._duration_for(kind))
        return [BreakStarted(kind)]

    def tick_break(self, elapsed_seconds: int) -> list[EngineEvent]:
        """Count down the running break; completes it once time runs out."""
        active = self._active_break
        if active is None:
            return []

        elapsed_seconds = max(0, elapsed_seconds)
        if elapsed_seconds >= active.remaining_seconds:
            self._active_break = None
            self._discharge(active.kind)
            return [BreakCompleted(active.kind)]

        active.remaining_seconds -= elapsed_seconds
        return []

    def snooze(self, kind: BreakKind, now: int) -> BreakSnoozed:
        """Suppress ``kind`` until now + its snooze length. Always succeeds."""
        until = now + self._snooze_seconds_for(kind)
        self._snooze_until[kind] = until
        return BreakSnoozed(kind, until)

    def next_break_eta(self, now: int) -> tuple[BreakKind, int] | None:
        """Nearest upcoming break as (kind, seconds), or None while on a break.

        A daily limit that would only trigger after the next reset is left
        out, since the rollover clears it first.
        """
        if self._active_break is not None:
            return None

        candidates: list[tuple[BreakKind, int]] = []

        micro = self._settings.micro
        if micro.enabled:
            candidates.append((BreakKind.MICRO, self._countdown(
                BreakKind.MICRO, micro.interval_seconds, self._micro_active, now)))

        rest = self._settings.rest
        if rest.enabled:
            candidates.append((BreakKind.REST, self._countdown(
                BreakKind.REST, rest.interval_seconds, self._rest_active, now)))

        daily = self._settings.daily_limit
        if daily.enabled:
            countdown = self._countdown(
                BreakKind.DAILY_LIMIT, daily.limit_seconds, self._daily_active, now)
            if countdown < seconds_until_next_reset(now, daily.reset_offset_seconds):
                candidates.append((BreakKind.DAILY_LIMIT, countdown))

        if not candidates:
            return None
        return min(candidates, key=lambda c: (c[1], c[0].priority))

    # ---- Internal ----

    def _next_due(self, now: int) -> BreakKind | None:
        """First enabled, reached, non-snoozed kind in priority order."""
        s = self._settings
        checks = (
            (BreakKind.MICRO, s.micro.enabled, self._micro_active, s.micro.interval_seconds),
            (BreakKind.REST, s.rest.enabled, self._rest_active, s.rest.interval_seconds),
            (BreakKind.DAILY_LIMIT, s.daily_limit.enabled, self._daily_active,
             s.daily_limit.limit_seconds),
        )
        for kind, enabled, counter, threshold in checks:
            if enabled and counter >= threshold and not self.is_snoozed(kind, now):
                return kind
        return None

    def _countdown(self, kind: BreakKind, threshold: int, counter: int, now: int) -> int:
        until = self._snooze_until.get(kind)
        snooze_remaining = max(0, until - now) if until is not None else 0
        return max(max(0, threshold - counter), snooze_remaining)

    def _duration_for(self, kind: BreakKind) -> int:
        if kind == BreakKind.MICRO:
            return self._settings.micro.duration_seconds
        if kind == BreakKind.REST:
            return self._settings.rest.duration_seconds
        return DAILY_LIMIT_BREAK_SECONDS

    def _snooze_seconds_for(self, kind: BreakKind) -> int:
        if kind == BreakKind.MICRO:
            return self._settings.micro.snooze_seconds
        if kind == BreakKind.REST:
            return self._settings.rest.snooze_seconds
        return self._settings.daily_limit.snooze_seconds

    def _discharge(self, kind: BreakKind) -> None:
        """Zero the counters a completed break covers (larger breaks subsume smaller)."""
        self._micro_active = 0
        if kind in (BreakKind.REST, BreakKind.DAILY_LIMIT):
            self._rest_active = 0
        if kind == BreakKind.DAILY_LIMIT:
            self._daily_active = 0

    def _maybe_daily_reset(self, now: int) -> bool:
        bucket = daily_bucket(now, self._reset_offset)
        if bucket == self._last_reset_bucket:
            return False

        self._last_reset_bucket = bucket
        self._daily_active = 0
        self._snooze_until.pop(BreakKind.DAILY_LIMIT, None)
        return True
