"""Typed CHIP-8 instructions.

Each of the 35 opcode patterns decodes to one frozen dataclass below. The
engine dispatches on the class, the operands carry the already-extracted
nibbles, bytes and addresses.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from typing import ClassVar


@dataclass(frozen=True)
class Instruction:
    # assembler-style rendering, operands substituted by field name
    syntax: ClassVar[str] = "???"

    @property
    def mnemonic(self) -> str:
        return self.syntax.split(" ", 1)[0]

    def __str__(self) -> str:
        return self.syntax.format(**{f.name: _format_operand(f.name, getattr(self, f.name))
                                     for f in fields(self)})


def _format_operand(name: str, value: int) -> str:
    if name in ("register", "x", "y"):
        return f"V{value:X}"
    if name == "address":
        return f"0x{value:03X}"
    if name == "height":
        return str(value)
    return f"0x{value:02X}"


# ==============================
# 0x0 / 0x1 / 0x2 / 0xB: flow
# ==============================
@dataclass(frozen=True)
class ClearScreen(Instruction):  # 00E0
    syntax: ClassVar[str] = "CLS"


@dataclass(frozen=True)
class Return(Instruction):  # 00EE
    syntax: ClassVar[str] = "RET"


@dataclass(frozen=True)
class Sys(Instruction):  # 0nnn, ignored
    address: int
    syntax: ClassVar[str] = "SYS {address}"


@dataclass(frozen=True)
class Jump(Instruction):  # 1nnn
    address: int
    syntax: ClassVar[str] = "JP {address}"


@dataclass(frozen=True)
class Call(Instruction):  # 2nnn
    address: int
    syntax: ClassVar[str] = "CALL {address}"


@dataclass(frozen=True)
class JumpBase(Instruction):  # Bnnn, PC = nnn + V0
    address: int
    syntax: ClassVar[str] = "JP V0, {address}"


# ==============================
# Conditional skips
# ==============================
@dataclass(frozen=True)
class SkipEqualsByte(Instruction):  # 3xkk
    register: int
    value: int
    syntax: ClassVar[str] = "SE {register}, {value}"


@dataclass(frozen=True)
class SkipNotEqualsByte(Instruction):  # 4xkk
    register: int
    value: int
    syntax: ClassVar[str] = "SNE {register}, {value}"


@dataclass(frozen=True)
class SkipEqualsRegister(Instruction):  # 5xy0
    x: int
    y: int
    syntax: ClassVar[str] = "SE {x}, {y}"


@dataclass(frozen=True)
class SkipNotEqualsRegister(Instruction):  # 9xy0
    x: int
    y: int
    syntax: ClassVar[str] = "SNE {x}, {y}"


# ==============================
# Loads and arithmetic
# ==============================
@dataclass(frozen=True)
class LoadByte(Instruction):  # 6xkk
    register: int
    value: int
    syntax: ClassVar[str] = "LD {register}, {value}"


@dataclass(frozen=True)
class AddByte(Instruction):  # 7xkk
    register: int
    value: int
    syntax: ClassVar[str] = "ADD {register}, {value}"


@dataclass(frozen=True)
class LoadRegister(Instruction):  # 8xy0
    x: int
    y: int
    syntax: ClassVar[str] = "LD {x}, {y}"


@dataclass(frozen=True)
class Or(Instruction):  # 8xy1
    x: int
    y: int
    syntax: ClassVar[str] = "OR {x}, {y}"


@dataclass(frozen=True)
class And(Instruction):  # 8xy2
    x: int
    y: int
    syntax: ClassVar[str] = "AND {x}, {y}"


@dataclass(frozen=True)
class Xor(Instruction):  # 8xy3
    x: int
    y: int
    syntax: ClassVar[str] = "XOR {x}, {y}"


@dataclass(frozen=True)
class AddRegister(Instruction):  # 8xy4
    x: int
    y: int
    syntax: ClassVar[str] = "ADD {x}, {y}"


@dataclass(frozen=True)
class SubRegister(Instruction):  # 8xy5, Vx = Vx - Vy
    x: int
    y: int
    syntax: ClassVar[str] = "SUB {x}, {y}"


@dataclass(frozen=True)
class ShiftRight(Instruction):  # 8xy6
    register: int
    syntax: ClassVar[str] = "SHR {register}"


@dataclass(frozen=True)
class SubNRegister(Instruction):  # 8xy7, Vx = Vy - Vx
    x: int
    y: int
    syntax: ClassVar[str] = "SUBN {x}, {y}"


@dataclass(frozen=True)
class ShiftLeft(Instruction):  # 8xyE
    register: int
    syntax: ClassVar[str] = "SHL {register}"


@dataclass(frozen=True)
class LoadImmediate(Instruction):  # Annn
    address: int
    syntax: ClassVar[str] = "LD I, {address}"


@dataclass(frozen=True)
class Random(Instruction):  # Cxkk
    register: int
    mask: int
    syntax: ClassVar[str] = "RND {register}, {mask}"


@dataclass(frozen=True)
class DisplaySprite(Instruction):  # Dxyn
    x: int
    y: int
    height: int
    syntax: ClassVar[str] = "DRW {x}, {y}, {height}"


# ==============================
# Keyboard
# ==============================
@dataclass(frozen=True)
class SkipKeyPress(Instruction):  # Ex9E
    register: int
    syntax: ClassVar[str] = "SKP {register}"


@dataclass(frozen=True)
class SkipNotKeyPress(Instruction):  # ExA1
    register: int
    syntax: ClassVar[str] = "SKNP {register}"


@dataclass(frozen=True)
class LoadKeyPress(Instruction):  # Fx0A, wait for key
    register: int
    syntax: ClassVar[str] = "LD {register}, K"


# ==============================
# Timers, index and memory
# ==============================
@dataclass(frozen=True)
class LoadFromDelay(Instruction):  # Fx07
    register: int
    syntax: ClassVar[str] = "LD {register}, DT"


@dataclass(frozen=True)
class LoadDelay(Instruction):  # Fx15
    register: int
    syntax: ClassVar[str] = "LD DT, {register}"


@dataclass(frozen=True)
class LoadSound(Instruction):  # Fx18
    register: int
    syntax: ClassVar[str] = "LD ST, {register}"


@dataclass(frozen=True)
class AddI(Instruction):  # Fx1E
    register: int
    syntax: ClassVar[str] = "ADD I, {register}"


@dataclass(frozen=True)
class LoadFontSprite(Instruction):  # Fx29
    register: int
    syntax: ClassVar[str] = "LD F, {register}"


@dataclass(frozen=True)
class LoadBCD(Instruction):  # Fx33
    register: int
    syntax: ClassVar[str] = "LD B, {register}"


@dataclass(frozen=True)
class StoreRegisters(Instruction):  # Fx55, V0..Vx inclusive
    register: int
    syntax: ClassVar[str] = "LD [I], {register}"


@dataclass(frozen=True)
class LoadRegisters(Instruction):  # Fx65, V0..Vx inclusive
    register: int
    syntax: ClassVar[str] = "LD {register}, [I]"
