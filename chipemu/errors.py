"""Exceptions raised by the CHIP-8 core.

DecodeError and InvalidOperandError are recoverable per tick; the others
terminate a run.
"""
from __future__ import annotations


class Chip8Error(Exception):
    pass


class DecodeError(Chip8Error):
    def __init__(self, opcode: int):
        super().__init__(f"Unknown opcode: {opcode:04X}")
        self.opcode = opcode


class RomLoadError(Chip8Error):
    def __init__(self, path: str, reason: str):
        super().__init__(f"Unable to load ROM {path!r}: {reason}")
        self.path = path


class BoundsError(Chip8Error):
    def __init__(self, pc: int):
        super().__init__(f"PC out of bounds: {pc:04X}")
        self.pc = pc


class InvalidOperandError(Chip8Error):
    pass


class StackFault(Chip8Error):
    pass
