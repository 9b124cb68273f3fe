"""Emulator configuration."""
from __future__ import annotations

import argparse
from dataclasses import dataclass, field

from .keyboard import KeyWaitPolicy
from .timers import TIMER_HZ


@dataclass
class Quirks:
    """Behaviors where CHIP-8 interpreters historically disagree."""
    key_wait: KeyWaitPolicy = KeyWaitPolicy.LAST
    # 7xkk reports carry in VF like 8xy4 does
    add_byte_sets_flag: bool = True


@dataclass
class EmulatorConfig:
    clock_hz: int = 500  # instructions per second
    timer_hz: int = TIMER_HZ
    fps: int = 60
    scale: int = 15
    tone_hz: int = 440
    threaded: bool = False
    quirks: Quirks = field(default_factory=Quirks)

    def __post_init__(self):
        for name in ("clock_hz", "timer_hz", "fps", "scale", "tone_hz"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "EmulatorConfig":
        return cls(
            clock_hz=args.clock,
            scale=args.scale,
            tone_hz=args.tone,
            threaded=args.threaded,
            quirks=Quirks(key_wait=KeyWaitPolicy(args.key_wait)),
        )
