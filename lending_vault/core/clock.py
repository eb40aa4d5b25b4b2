"""Time sources shared by the vault and the oracle."""

import time
from abc import ABC, abstractmethod


class Clock(ABC):
    """Source of the current timestamp in whole seconds."""

    @abstractmethod
    def now(self) -> int:
        """Return the current timestamp."""
        pass


class SystemClock(Clock):
    """Wall clock time."""

    def now(self) -> int:
        return int(time.time())


class ManualClock(Clock):
    """
    Clock that only moves when told to.

    Used by simulations and tests to step time deterministically.
    """

    def __init__(self, start: int = 0):
        if start < 0:
            raise ValueError(f"start must be non-negative, got {start}")
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        """Move time forward and return the new timestamp."""
        if seconds < 0:
            raise ValueError(f"Cannot advance time by a negative amount ({seconds})")
        self._now += seconds
        return self._now

    def set(self, timestamp: int) -> int:
        """Jump to an absolute timestamp, never backwards."""
        if timestamp < self._now:
            raise ValueError(f"Cannot move time backwards from {self._now} to {timestamp}")
        self._now = timestamp
        return self._now
