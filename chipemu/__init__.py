"""CHIPemu: a CHIP-8 interpreter with a headless core and a pygame frontend."""
from .config import EmulatorConfig, Quirks
from .decoder import decode
from .display import Framebuffer
from .errors import (BoundsError, Chip8Error, DecodeError, InvalidOperandError,
                     RomLoadError, StackFault)
from .keyboard import KeyboardLatch, KeyWaitPolicy
from .machine import Chip8
from .rom import read_rom
from .runner import ExitReason, HeadlessFrontend, Runner, RunResult
from .timers import TimerCoordinator

__version__ = "0.2.0"

__all__ = [
    "BoundsError", "Chip8", "Chip8Error", "DecodeError", "EmulatorConfig",
    "ExitReason", "Framebuffer", "HeadlessFrontend", "InvalidOperandError",
    "KeyWaitPolicy", "KeyboardLatch", "Quirks", "RomLoadError", "RunResult",
    "Runner", "StackFault", "TimerCoordinator", "decode", "read_rom",
]
