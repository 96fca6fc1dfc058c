"""
Operating Clock
===============

Source of "now" and "today" in the fixed operating timezone. Every day count
in the system is taken from a Clock so jobs and tests share one calendar.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from zoneinfo import ZoneInfo


class Clock(ABC):
    """Interface for the current time in the operating timezone."""

    @abstractmethod
    def now(self) -> datetime:
        """Timezone-aware current datetime."""

    def today(self) -> date:
        return self.now().date()


class OperatingClock(Clock):
    """Wall clock pinned to an IANA timezone (default deployment: America/Lima)."""

    def __init__(self, timezone_name: str):
        self._tz = ZoneInfo(timezone_name)

    @property
    def tz(self) -> ZoneInfo:
        return self._tz

    def now(self) -> datetime:
        return datetime.now(self._tz)
