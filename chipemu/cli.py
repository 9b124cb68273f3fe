"""Command-line entry point.

Run:
  chipemu path/to/rom [--scale 15] [--clock 500] [--tone 440] [--threaded]
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from .config import EmulatorConfig
from .errors import RomLoadError
from .keyboard import KeyWaitPolicy
from .machine import Chip8
from .rom import read_rom
from .runner import ExitReason, Runner, RunResult
from .threaded import run_threaded

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ROM_ERROR = 1
EXIT_RUN_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chipemu", description="CHIP-8 interpreter")
    parser.add_argument("rom", help="Path to CHIP-8 ROM")
    parser.add_argument("--scale", type=int, default=15,
                        help="Pixel scale factor (default 15)")
    parser.add_argument("--clock", type=int, default=500,
                        help="CPU clock in instructions per second (default 500)")
    parser.add_argument("--tone", type=int, default=440,
                        help="Beep tone frequency in Hz")
    parser.add_argument("--key-wait", choices=[p.value for p in KeyWaitPolicy],
                        default=KeyWaitPolicy.LAST.value,
                        help="Which key Fx0A takes when several are held "
                             "(default: last, the legacy scan order)")
    parser.add_argument("--threaded", action="store_true",
                        help="Run the machine on a worker thread")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging verbosity (default WARNING)")
    return parser


def exit_code(result: RunResult) -> int:
    if result.reason in (ExitReason.QUIT, ExitReason.CYCLE_LIMIT):
        return EXIT_OK
    return EXIT_RUN_ERROR


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = EmulatorConfig.from_args(args)

    try:
        rom_data = read_rom(args.rom)
    except RomLoadError as exc:
        print(exc, file=sys.stderr)
        return EXIT_ROM_ERROR

    chip8 = Chip8(quirks=config.quirks, timer_hz=config.timer_hz)
    chip8.load_rom(rom_data)

    # imported late so the core stays usable without a display
    from .frontend import PygameFrontend
    frontend = PygameFrontend(scale=config.scale, tone_hz=config.tone_hz)
    try:
        if config.threaded:
            result = run_threaded(lambda handoff: Runner(chip8, handoff, config),
                                  frontend, fps=config.fps,
                                  wait=lambda: frontend.tick(config.fps))
        else:
            result = Runner(chip8, frontend, config).run()
    except KeyboardInterrupt:
        print("\nExiting.")
        return EXIT_OK
    finally:
        frontend.close()

    if result.error is not None:
        print(f"Emulation stopped: {result.error}", file=sys.stderr)
    logger.info("Stopped (%s) after %d cycles", result.reason.value, result.cycles)
    return exit_code(result)

