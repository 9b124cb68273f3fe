"""Delay and sound countdown timers.

Both registers decay at 60 Hz against a monotonic nanosecond clock, checked
from the run loop rather than from a timer interrupt. The decay schedule is
anchored to the last decrement, so it does not drift when the loop is
checked at a rate that is not a multiple of 60 Hz.
"""
from __future__ import annotations

import logging
from typing import Optional

logger = logging.getLogger(__name__)

TIMER_HZ = 60
NS_PER_SECOND = 1_000_000_000


class CountdownTimer:
    """One 8-bit register decremented by at most 1 per check."""

    def __init__(self, name: str, period_ns: int):
        self.name = name
        self.period_ns = period_ns
        self.value = 0
        # None until the first check after a write starts the schedule
        self._last_ns: Optional[int] = None

    def set(self, value: int):
        self.value = value & 0xFF
        self._last_ns = None

    def update(self, now_ns: int) -> bool:
        """Decrement if a full period has elapsed; returns True on a decrement."""
        if self.value == 0:
            self._last_ns = None
            return False
        if self._last_ns is None:
            self._last_ns = now_ns
            return False
        if now_ns - self._last_ns < self.period_ns:
            return False

        self.value -= 1
        self._last_ns += self.period_ns
        if now_ns - self._last_ns >= self.period_ns:
            # a stalled loop drops the missed periods instead of catching up
            logger.debug("%s timer resynced after %d ns stall", self.name,
                         now_ns - self._last_ns)
            self._last_ns = now_ns
        return True


class TimerCoordinator:
    def __init__(self, hz: int = TIMER_HZ):
        self.period_ns = period = NS_PER_SECOND // hz
        self.delay = CountdownTimer("delay", period)
        self.sound = CountdownTimer("sound", period)

    @property
    def sound_on(self) -> bool:
        return self.sound.value > 0

    def update(self, now_ns: int):
        self.delay.update(now_ns)
        self.sound.update(now_ns)

    def reset(self):
        self.delay.set(0)
        self.sound.set(0)
