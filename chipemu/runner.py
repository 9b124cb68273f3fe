"""Single-threaded run loop.

One monotonic clock read per pass drives three independent "is it due"
checks: the next instruction cycle, the 60 Hz timer decay and the next
rendered frame. Frontends are injected, so the loop runs headlessly in
tests.
"""
from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Protocol

import numpy as np

from .config import EmulatorConfig
from .errors import BoundsError, Chip8Error, StackFault
from .keyboard import KeyboardLatch
from .machine import Chip8
from .timers import NS_PER_SECOND

logger = logging.getLogger(__name__)


class Frontend(Protocol):
    def poll(self, keys: KeyboardLatch) -> bool:
        """Fill ``keys`` for the coming tick; return True to quit."""

    def render(self, pixels: np.ndarray):
        """Draw a 32x64 grid of 0/1 pixels, a copy the frontend may keep."""

    def set_tone(self, on: bool):
        """Start or stop the beep."""


class ExitReason(enum.Enum):
    QUIT = "quit"
    CYCLE_LIMIT = "cycle-limit"
    BOUNDS = "bounds"
    STACK_FAULT = "stack-fault"


@dataclass
class RunResult:
    reason: ExitReason
    cycles: int
    error: Optional[Chip8Error] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class HeadlessFrontend:
    """Frontend without a window: scripted input, recorded output.

    ``key_script`` maps a poll index to the keys held during that tick.
    """
    key_script: Dict[int, Iterable[int]] = field(default_factory=dict)
    quit_after_polls: Optional[int] = None
    quit_after_frames: Optional[int] = None
    frames: List[np.ndarray] = field(default_factory=list)
    tones: List[bool] = field(default_factory=list)
    polls: int = 0

    def poll(self, keys: KeyboardLatch) -> bool:
        for key in self.key_script.get(self.polls, ()):
            keys.press(key)
        self.polls += 1
        if self.quit_after_polls is not None and self.polls > self.quit_after_polls:
            return True
        if self.quit_after_frames is not None and len(self.frames) >= self.quit_after_frames:
            return True
        return False

    def render(self, pixels: np.ndarray):
        self.frames.append(pixels)

    def set_tone(self, on: bool):
        if not self.tones or self.tones[-1] != on:
            self.tones.append(on)


def _next_due(due: int, period: int, now: int) -> int:
    due += period
    if now - due >= period:
        # more than one period behind: resync rather than burst
        due = now + period
    return due


class Runner:
    def __init__(self, machine: Chip8, frontend: Frontend,
                 config: Optional[EmulatorConfig] = None,
                 clock: Callable[[], int] = time.perf_counter_ns,
                 sleep: Callable[[float], None] = time.sleep):
        self.machine = machine
        self.frontend = frontend
        self.config = config or EmulatorConfig()
        self._clock = clock
        self._sleep = sleep
        self._cycle_ns = NS_PER_SECOND // self.config.clock_hz
        self._frame_ns = NS_PER_SECOND // self.config.fps
        self._timer_ns = machine.timers.period_ns
        self._tone = False

    def run(self, max_cycles: Optional[int] = None) -> RunResult:
        """Run until quit, a fatal error, or ``max_cycles`` instructions."""
        machine = self.machine
        cycles = 0
        next_cycle = next_frame = next_timer = self._clock()
        try:
            while max_cycles is None or cycles < max_cycles:
                now = self._clock()
                if now >= next_cycle:
                    if self.frontend.poll(machine.keys):
                        logger.info("Quit requested after %d cycles", cycles)
                        return RunResult(ExitReason.QUIT, cycles)
                    try:
                        machine.step()
                    finally:
                        machine.keys.clear()
                    cycles += 1
                    next_cycle = _next_due(next_cycle, self._cycle_ns, now)

                machine.timers.update(now)
                self._sync_tone()
                if now >= next_timer:
                    next_timer = _next_due(next_timer, self._timer_ns, now)

                if now >= next_frame:
                    self._render()
                    next_frame = _next_due(next_frame, self._frame_ns, now)

                self._wait_until(min(next_cycle, next_frame, next_timer))
        except BoundsError as exc:
            logger.error("Halting: %s (%r)", exc, machine)
            return RunResult(ExitReason.BOUNDS, cycles, exc)
        except StackFault as exc:
            logger.error("Halting: %s (%r)", exc, machine)
            return RunResult(ExitReason.STACK_FAULT, cycles, exc)
        finally:
            self._set_tone(False)
        return RunResult(ExitReason.CYCLE_LIMIT, cycles)

    def _render(self):
        display = self.machine.display
        if display.dirty:
            self.frontend.render(display.snapshot())
            display.dirty = False

    def _sync_tone(self):
        self._set_tone(self.machine.sound_on)

    def _set_tone(self, on: bool):
        if on != self._tone:
            self._tone = on
            self.frontend.set_tone(on)

    def _wait_until(self, due_ns: int):
        delay = due_ns - self._clock()
        if delay > 0:
            self._sleep(delay / NS_PER_SECOND)
