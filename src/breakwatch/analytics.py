"""Per-day aggregation of active time and break outcomes.

Days are integer indexes supplied by the caller. They must come from
``timer.daily_bucket`` with the same reset offset the engine uses, or the
two will disagree about where a day ends.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from .timer import BreakKind, BreakOutcome

WEEK_DAYS = 7


@dataclass
class DailyAggregate:
    active_seconds: int = 0
    micro_done: int = 0
    rest_done: int = 0
    daily_limit_hits: int = 0
    skipped: int = 0


@dataclass
class WeeklySummary:
    total_active_seconds: int = 0
    micro_done: int = 0
    rest_done: int = 0
    daily_limit_hits: int = 0
    skipped: int = 0

    @property
    def breaks_done(self) -> int:
        return self.micro_done + self.rest_done + self.daily_limit_hits


class AnalyticsStore:
    """Sparse day index -> DailyAggregate map. Missing days read as zero."""

    def __init__(self, by_day: dict[int, DailyAggregate] | None = None):
        self._by_day: dict[int, DailyAggregate] = dict(by_day or {})

    def __len__(self) -> int:
        return len(self._by_day)

    def day(self, day_index: int) -> DailyAggregate:
        """Aggregate for one day (a fresh zero aggregate if nothing was recorded)."""
        return self._by_day.get(day_index, DailyAggregate())

    def days(self) -> list[int]:
        return sorted(self._by_day)

    def _entry(self, day_index: int) -> DailyAggregate:
        return self._by_day.setdefault(day_index, DailyAggregate())

    def record_activity(self, day_index: int, seconds: int) -> None:
        if seconds <= 0:
            return
        self._entry(day_index).active_seconds += seconds

    def record_break(self, day_index: int, kind: BreakKind, outcome: BreakOutcome) -> None:
        # Snoozed is not a terminal outcome, so it never creates a day entry.
        match (kind, outcome):
            case (BreakKind.MICRO, BreakOutcome.COMPLETED):
                self._entry(day_index).micro_done += 1
            case (BreakKind.REST, BreakOutcome.COMPLETED):
                self._entry(day_index).rest_done += 1
            case (BreakKind.DAILY_LIMIT, BreakOutcome.COMPLETED):
                self._entry(day_index).daily_limit_hits += 1
            case (_, BreakOutcome.SKIPPED):
                self._entry(day_index).skipped += 1
            case (_, BreakOutcome.SNOOZED):
                pass

    def summarize_week_ending(self, end_day_index: int) -> WeeklySummary:
        """Sum the inclusive window [end - 6, end]."""
        start = end_day_index - (WEEK_DAYS - 1)
        summary = WeeklySummary()
        for day_index, agg in self._by_day.items():
            if not start <= day_index <= end_day_index:
                continue
            summary.total_active_seconds += agg.active_seconds
            summary.micro_done += agg.micro_done
            summary.rest_done += agg.rest_done
            summary.daily_limit_hits += agg.daily_limit_hits
            summary.skipped += agg.skipped
        return summary

    # ---- Serialization ----

    def to_dict(self) -> dict[str, dict]:
        """JSON-friendly form (day indexes become string keys)."""
        return {str(day): asdict(agg) for day, agg in sorted(self._by_day.items())}

    @classmethod
    def from_dict(cls, data: dict) -> "AnalyticsStore":
        return cls({int(day): DailyAggregate(**agg) for day, agg in data.items()})
