"""Settings model and configuration helpers.

Settings are plain dataclasses so the engine and the profile store can hold
and compare them cheaply. The flat on-disk form lives in ``state.py``.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .errors import InvalidResetTimeError

APP_NAME = "breakwatch"
APP_ID = "io.breakwatch.Breakwatch"
DATA_DIR_ENV = "BREAKWATCH_DATA_DIR"
STATE_FILENAME = "state.json"

RESET_TIME_PATTERN = re.compile(r"^(?P<hour>\d+):(?P<minute>\d+)$")


class BlockLevel(str, Enum):
    SOFT = "soft"
    MEDIUM = "medium"
    STRICT = "strict"


@dataclass
class BreakTimerSettings:
    interval_seconds: int
    duration_seconds: int
    snooze_seconds: int
    enabled: bool = True


@dataclass
class DailyLimitSettings:
    limit_seconds: int = 14_400
    snooze_seconds: int = 1_200
    reset_hour_local: int = 4
    reset_minute_local: int = 0
    enabled: bool = True

    @property
    def reset_offset_seconds(self) -> int:
        return self.reset_hour_local * 3600 + self.reset_minute_local * 60

    @property
    def reset_time(self) -> str:
        return f"{self.reset_hour_local:02d}:{self.reset_minute_local:02d}"


@dataclass
class NotificationSettings:
    desktop_enabled: bool = True
    overlay_enabled: bool = True
    sound_enabled: bool = True
    sound_theme: str = "default"


@dataclass
class StartupSettings:
    xdg_autostart_enabled: bool = True
    systemd_user_enabled: bool = False


@dataclass
class Settings:
    micro: BreakTimerSettings = field(
        default_factory=lambda: BreakTimerSettings(180, 20, 150)
    )
    rest: BreakTimerSettings = field(
        default_factory=lambda: BreakTimerSettings(2700, 300, 180)
    )
    daily_limit: DailyLimitSettings = field(default_factory=DailyLimitSettings)
    block_level: BlockLevel = BlockLevel.MEDIUM
    notifications: NotificationSettings = field(default_factory=NotificationSettings)
    startup: StartupSettings = field(default_factory=StartupSettings)
    active_profile_id: str | None = "default"

    @property
    def strict(self) -> bool:
        return self.block_level == BlockLevel.STRICT


def parse_reset_time(value: str) -> tuple[int, int]:
    """Parse a local reset time like '04:00' into (hour, minute)."""
    match = RESET_TIME_PATTERN.match(value.strip())
    if not match:
        raise InvalidResetTimeError(value)

    hour = int(match.group("hour"))
    minute = int(match.group("minute"))
    if hour > 23 or minute > 59:
        raise InvalidResetTimeError(value)
    return hour, minute


def parse_block_level(value: str) -> BlockLevel:
    """Map a block level string to the enum. Unknown values fall back to medium."""
    try:
        return BlockLevel(value.strip().lower())
    except ValueError:
        return BlockLevel.MEDIUM


def default_data_dir() -> Path:
    """Resolve where state.json lives.

    BREAKWATCH_DATA_DIR wins, then $XDG_DATA_HOME/breakwatch, then
    ~/.local/share/breakwatch.
    """
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        return Path(override).expanduser()

    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / APP_NAME

    return Path.home() / ".local" / "share" / APP_NAME
