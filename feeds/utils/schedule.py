"""Business-hours gate shared by every feed."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/Sao_Paulo"


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive weekday window expressed in fractional hours (9.5 == 09:30)."""

    start: float
    end: float

    def contains(self, hours: float) -> bool:
        return self.start <= hours <= self.end

    def label(self) -> str:
        return f"{_format_hours(self.start)}-{_format_hours(self.end)}"


def _format_hours(value: float) -> str:
    hour = int(value)
    minute = int(round((value - hour) * 60))
    return f"{hour:02d}:{minute:02d}"


class ScheduleGate:
    def __init__(self, window: TimeWindow, timezone_name: str = DEFAULT_TIMEZONE) -> None:
        self.window = window
        self.timezone_name = timezone_name
        self.tz = self._resolve_timezone(timezone_name)

    @staticmethod
    def _resolve_timezone(name: str) -> ZoneInfo:
        try:
            return ZoneInfo(name)
        except Exception:
            LOGGER.warning(
                "[WARN] invalid gate timezone '%s'; falling back to %s", name, DEFAULT_TIMEZONE
            )
            return ZoneInfo(DEFAULT_TIMEZONE)

    def local_now(self, now: datetime | None = None) -> datetime:
        """Return ``now`` in the gate timezone.

        Naive datetimes are taken to be wall-clock time in the gate timezone.
        """

        if now is None:
            return datetime.now(tz=self.tz)
        if now.tzinfo is None:
            return now.replace(tzinfo=self.tz)
        return now.astimezone(self.tz)

    def is_business_hours(self, now: datetime | None = None) -> bool:
        local = self.local_now(now)
        if local.weekday() > 4:
            return False
        return self.window.contains(local.hour + local.minute / 60)

    def should_run(self, now: datetime | None = None, has_run_before: bool = False) -> bool:
        """Always allow the first run after process start, then gate on business hours."""

        if not has_run_before:
            return True
        return self.is_business_hours(now)

    def describe(self) -> str:
        return f"Mon-Fri {self.window.label()} ({self.timezone_name})"


__all__ = ["DEFAULT_TIMEZONE", "ScheduleGate", "TimeWindow"]
