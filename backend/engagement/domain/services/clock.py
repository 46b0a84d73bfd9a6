"""
Clock
Injectable time source so windows and dedup logic can be tested without real time passing
"""
import asyncio
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import List

import pytz


def resolve_timezone(name: str):
    """Timezone by name, UTC when unknown."""
    try:
        return pytz.timezone(name)
    except pytz.exceptions.UnknownTimeZoneError:
        return pytz.UTC


class Clock(ABC):
    """Time source used by every time-dependent service"""

    @abstractmethod
    def now(self) -> datetime:
        """Current timezone-aware time."""
        pass

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        pass

    def monotonic(self) -> float:
        """Seconds on a monotonic scale, used for TTL bookkeeping."""
        return self.now().timestamp()


class SystemClock(Clock):
    """Wall clock in the campaign timezone."""

    def __init__(self, timezone: str = "UTC"):
        self.tz = resolve_timezone(timezone)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def monotonic(self) -> float:
        return time.monotonic()


class FrozenClock(Clock):
    """
    Manually advanced clock.

    sleep() advances time instead of waiting and records the requested delays.
    """

    def __init__(self, start: datetime, timezone: str = "UTC"):
        self.tz = resolve_timezone(timezone)
        self._now = self._localize(start)
        self.sleeps: List[float] = []

    def _localize(self, moment: datetime) -> datetime:
        if moment.tzinfo is None:
            return self.tz.localize(moment)
        return moment.astimezone(self.tz)

    def now(self) -> datetime:
        return self._now

    def set(self, moment: datetime) -> None:
        self._now = self._localize(moment)

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        self._now = self._now + timedelta(seconds=seconds, **kwargs)
        return self._now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)
