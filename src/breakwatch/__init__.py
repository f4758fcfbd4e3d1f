"""Break reminders driven by accumulated active time."""

from .analytics import AnalyticsStore, DailyAggregate, WeeklySummary
from .config import (
    BlockLevel,
    BreakTimerSettings,
    DailyLimitSettings,
    NotificationSettings,
    Settings,
    StartupSettings,
)
from .profiles import Profile, ProfileStore
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
)

__version__ = "0.1.0"

__all__ = [
    "AnalyticsStore",
    "BlockLevel",
    "BreakCompleted",
    "BreakDue",
    "BreakKind",
    "BreakOutcome",
    "BreakSnoozed",
    "BreakStarted",
    "BreakTimerEngine",
    "BreakTimerSettings",
    "DailyAggregate",
    "DailyLimitSettings",
    "DailyReset",
    "EngineEvent",
    "NotificationSettings",
    "Profile",
    "ProfileStore",
    "Settings",
    "StartupSettings",
    "WeeklySummary",
    "daily_bucket",
]
