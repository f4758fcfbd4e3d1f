"""Runtime host: one asyncio task that owns the engine for a session.

Commands arrive on a queue and are drained before every tick. After each
tick the loop publishes an immutable RuntimeStatus snapshot; readers never
touch the engine itself.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from .config import APP_NAME, Settings
from .errors import InvalidFormatError, RuntimeNotRunningError, StorageError
from .state import StateStore
from .timer import (
    BreakCompleted,
    BreakDue,
    BreakKind,
    BreakOutcome,
    BreakSnoozed,
    BreakStarted,
    BreakTimerEngine,
    DailyReset,
    EngineEvent,
    daily_bucket,
    parse_break_kind,
)

logger = logging.getLogger(__name__)

TICK_SECONDS = 1.0
SAVE_EVERY_TICKS = 20
NOTIFY_TIMEOUT_SECONDS = 5


def local_now(clock: Callable[[], float] = time.time) -> int:
    """Unix seconds shifted by the local UTC offset (what the engine expects)."""
    ts = clock()
    offset = datetime.fromtimestamp(ts).astimezone().utcoffset()
    return int(ts) + int(offset.total_seconds() if offset else 0)


# ---- Commands ----

@dataclass(frozen=True)
class Stop:
    pass


@dataclass(frozen=True)
class UpdateSettings:
    settings: Settings


@dataclass(frozen=True)
class StartBreak:
    kind: BreakKind


@dataclass(frozen=True)
class StartPending:
    pass


@dataclass(frozen=True)
class SnoozePending:
    pass


Command = Stop | UpdateSettings | StartBreak | StartPending | SnoozePending


def parse_command(line: str) -> Command | None:
    """Turn one line of console input into a command.

    Accepts: start, snooze, break <kind>, stop/quit. Blank lines give None.
    """
    parts = line.strip().lower().split()
    if not parts:
        return None

    verb, args = parts[0], parts[1:]
    if verb in ("stop", "quit", "q"):
        return Stop()
    if verb in ("start", "s"):
        return StartPending()
    if verb in ("snooze", "z"):
        return SnoozePending()
    if verb in ("break", "b") and len(args) == 1:
        return StartBreak(parse_break_kind(args[0]))
    raise InvalidFormatError(line.strip())


@dataclass(frozen=True)
class RuntimeStatus:
    running: bool = False
    pending_break: BreakKind | None = None
    active_break: BreakKind | None = None
    remaining_seconds: int | None = None
    strict_mode: bool = False
    last_event: str = "idle"
    next_break: tuple[BreakKind, int] | None = None


# ---- Collaborators ----

class Notifier:
    """Desktop notifications through notify-send. Best effort: never raises."""

    def __init__(self, command: str = "notify-send", app_name: str = APP_NAME):
        self.command = command
        self.app_name = app_name

    def send(self, title: str, body: str) -> dict:
        try:
            result = subprocess.run(
                [self.command, "--app-name", self.app_name, title, body],
                capture_output=True,
                timeout=NOTIFY_TIMEOUT_SECONDS,
            )
            if result.returncode == 0:
                return {"success": True, "method": self.command}
            return {"success": False, "error": f"{self.command} failed: {result.stderr.decode()[:100]}"}
        except subprocess.TimeoutExpired:
            return {"success": False, "error": "Notification timed out"}
        except OSError as e:
            return {"success": False, "error": str(e)}


class OverlayPresenter:
    """Full-screen break surface. This default only logs; GUI hosts override it."""

    def open(self, kind: BreakKind, remaining_seconds: int, closable: bool) -> None:
        logger.info(f"Overlay open: {kind.value} ({remaining_seconds}s, closable={closable})")

    def close(self) -> None:
        logger.debug("Overlay closed")


# ---- Runtime ----

class BreakRuntime:
    def __init__(
        self,
        state: StateStore,
        notifier: Notifier | None = None,
        overlay: OverlayPresenter | None = None,
        clock: Callable[[], int] | None = None,
        tick_seconds: float = TICK_SECONDS,
        save_every: int = SAVE_EVERY_TICKS,
    ):
        self.state = state
        self.notifier = notifier or Notifier()
        self.overlay = overlay or OverlayPresenter()
        self.clock = clock or local_now
        self.tick_seconds = tick_seconds
        self.save_every = save_every

        self.settings: Settings = state.settings
        self.analytics = state.analytics_store()
        self.engine = BreakTimerEngine(self.settings, self.clock())
        self.pending_break: BreakKind | None = None

        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: asyncio.Task | None = None
        self._running = False
        self._ticks = 0
        self._status = RuntimeStatus(strict_mode=self.settings.strict)

    @property
    def status(self) -> RuntimeStatus:
        return self._status

    @property
    def running(self) -> bool:
        return self._running

    # ---- Control ----

    async def start(self) -> RuntimeStatus:
        """Spawn the loop as a background task (no-op when already running)."""
        if self._task is None or self._task.done():
            self._running = True
            self._task = asyncio.create_task(self.run())
        return self._status

    async def stop(self) -> RuntimeStatus:
        if self._task is None or self._task.done():
            raise RuntimeNotRunningError()
        self.send(Stop())
        await self._task
        self._task = None
        return self._status

    async def join(self) -> RuntimeStatus:
        """Wait for the loop task to finish, re-raising anything it raised."""
        if self._task is not None:
            task, self._task = self._task, None
            await task
        return self._status

    def send(self, command: Command) -> None:
        if not self._running:
            raise RuntimeNotRunningError()
        self._queue.put_nowait(command)

    async def run(self) -> None:
        """Drive the engine once per tick until a Stop command arrives."""
        self._running = True
        self._publish("runtime_started")
        logger.info(f"Runtime started (block level {self.settings.block_level.value})")
        try:
            while self._drain_commands():
                self.tick()
                await asyncio.sleep(self.tick_seconds)
        finally:
            self._running = False
            self.overlay.close()
            self.save()
            self._status = RuntimeStatus(strict_mode=self.settings.strict, last_event="runtime_stopped")
            logger.info("Runtime stopped")

    # ---- One step ----

    def tick(self) -> list[EngineEvent]:
        """Advance the session by one tick and react to what the engine reports."""
        now = self.clock()
        self._sync_state()
        if self.engine.active_break_info() is not None:
            events = self.engine.tick_break(1)
        else:
            self.analytics.record_activity(self._day(now), 1)
            events = self.engine.on_activity(1, now)

        self._react(events, now)
        self._ticks += 1
        self._publish("tick", now)

        if self.save_every and self._ticks % self.save_every == 0:
            self.save()
        return events

    def handle(self, command: Command) -> bool:
        """Apply one command. Returns False when the loop should stop."""
        now = self.clock()
        match command:
            case Stop():
                return False
            case UpdateSettings(settings=settings):
                self.settings = settings
                self.engine.update_settings(settings)
                label = "settings_updated"
            case StartBreak(kind=kind):
                label = "start_ignored"
                events = self.engine.start_break(kind)
                if events:
                    self.pending_break = None
                    self._react(events, now)
                    label = "break_started"
            case StartPending():
                label = "start_ignored"
                if self.pending_break is not None:
                    kind, self.pending_break = self.pending_break, None
                    self._react(self.engine.start_break(kind), now)
                    label = "break_started"
            case SnoozePending():
                label = "snooze_ignored"
                if self.settings.strict:
                    logger.info("Snooze ignored in strict mode")
                elif self.pending_break is not None:
                    kind, self.pending_break = self.pending_break, None
                    self.analytics.record_break(self._day(now), kind, BreakOutcome.SKIPPED)
                    self._react([self.engine.snooze(kind, now)], now)
                    label = "break_snoozed"
        self._publish(label, now)
        return True

    def save(self) -> None:
        """Write analytics into the state document and save it. Best effort.

        Settings and profiles written by other commands since the last save
        are picked up first, so only the analytics come from this session.
        """
        self._sync_state()
        self.state.apply_analytics(self.analytics)
        try:
            self.state.save()
        except StorageError as e:
            logger.warning(f"Could not save state: {e}")

    # ---- Internal ----

    def _drain_commands(self) -> bool:
        while True:
            try:
                command = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return True
            if not self.handle(command):
                return False

    def _sync_state(self) -> None:
        if not self.state.changed_on_disk() or not self.state.reload():
            return
        settings = self.state.settings
        if settings != self.settings:
            logger.info("Settings changed on disk, applying")
            self.handle(UpdateSettings(settings))

    def _day(self, now: int) -> int:
        return daily_bucket(now, self.settings.daily_limit.reset_offset_seconds)

    def _react(self, events: list[EngineEvent], now: int) -> None:
        for event in events:
            match event:
                case BreakDue(kind=kind):
                    self.pending_break = kind
                    logger.info(f"Break due: {kind.value}")
                    self._notify(f"Time for a {_label(kind)}")
                case BreakStarted(kind=kind):
                    self.pending_break = None
                    info = self.engine.active_break_info()
                    remaining = info[1] if info else 0
                    logger.info(f"Break started: {kind.value} ({remaining}s)")
                    if self.settings.notifications.overlay_enabled:
                        self.overlay.open(kind, remaining, closable=not self.settings.strict)
                    else:
                        self.overlay.close()
                case BreakCompleted(kind=kind):
                    logger.info(f"Break completed: {kind.value}")
                    self.analytics.record_break(self._day(now), kind, BreakOutcome.COMPLETED)
                    self.overlay.close()
                    self._notify("Nice work. Break complete.")
                    self.save()
                case BreakSnoozed(kind=kind, until=until):
                    logger.info(f"Break snoozed: {kind.value} until {until}")
                case DailyReset():
                    logger.info("Daily reset applied")

    def _notify(self, body: str) -> None:
        if not self.settings.notifications.desktop_enabled:
            return
        result = self.notifier.send(APP_NAME, body)
        if not result.get("success"):
            logger.debug(f"Notification failed: {result.get('error')}")

    def _publish(self, last_event: str, now: int | None = None) -> None:
        info = self.engine.active_break_info()
        self._status = RuntimeStatus(
            running=self._running,
            pending_break=self.pending_break,
            active_break=info[0] if info else None,
            remaining_seconds=info[1] if info else None,
            strict_mode=self.settings.strict,
            last_event=last_event,
            next_break=self.engine.next_break_eta(now if now is not None else self.clock()),
        )


def _label(kind: BreakKind) -> str:
    return {
        BreakKind.MICRO: "micro break",
        BreakKind.REST: "rest break",
        BreakKind.DAILY_LIMIT: "daily limit break",
    }[kind]
