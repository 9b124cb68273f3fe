"""Opcode decoding.

Decoding is a two-level dispatch: the top nibble picks a group, and only the
0x0, 0x8, 0xE and 0xF groups look further at their low byte or low nibble.
Secondary selectors are never compared across groups.
"""
from __future__ import annotations

from typing import Callable, Dict

from . import instructions as ins
from .errors import DecodeError


def nibble_f000(opcode: int) -> int:
    return (opcode >> 12) & 0xF


def nibble_0f00(opcode: int) -> int:
    return (opcode >> 8) & 0xF


def nibble_00f0(opcode: int) -> int:
    return (opcode >> 4) & 0xF


def nibble_000f(opcode: int) -> int:
    return opcode & 0xF


def byte_00ff(opcode: int) -> int:
    return opcode & 0xFF


def address_0fff(opcode: int) -> int:
    return opcode & 0x0FFF


def _decode_0(opcode: int) -> ins.Instruction:
    kk = byte_00ff(opcode)
    if nibble_0f00(opcode) == 0 and kk == 0xE0:
        return ins.ClearScreen()
    if nibble_0f00(opcode) == 0 and kk == 0xEE:
        return ins.Return()
    return ins.Sys(address_0fff(opcode))


_ALU_OPS: Dict[int, Callable[[int, int], ins.Instruction]] = {
    0x0: ins.LoadRegister,
    0x1: ins.Or,
    0x2: ins.And,
    0x3: ins.Xor,
    0x4: ins.AddRegister,
    0x5: ins.SubRegister,
    0x6: lambda x, _y: ins.ShiftRight(x),
    0x7: ins.SubNRegister,
    0xE: lambda x, _y: ins.ShiftLeft(x),
}


def _decode_8(opcode: int) -> ins.Instruction:
    op = _ALU_OPS.get(nibble_000f(opcode))
    if op is None:
        raise DecodeError(opcode)
    return op(nibble_0f00(opcode), nibble_00f0(opcode))


_KEY_OPS: Dict[int, Callable[[int], ins.Instruction]] = {
    0x9E: ins.SkipKeyPress,
    0xA1: ins.SkipNotKeyPress,
}

_MISC_OPS: Dict[int, Callable[[int], ins.Instruction]] = {
    0x07: ins.LoadFromDelay,
    0x0A: ins.LoadKeyPress,
    0x15: ins.LoadDelay,
    0x18: ins.LoadSound,
    0x1E: ins.AddI,
    0x29: ins.LoadFontSprite,
    0x33: ins.LoadBCD,
    0x55: ins.StoreRegisters,
    0x65: ins.LoadRegisters,
}


def _by_low_byte(table: Dict[int, Callable[[int], ins.Instruction]]):
    def decode_group(opcode: int) -> ins.Instruction:
        op = table.get(byte_00ff(opcode))
        if op is None:
            raise DecodeError(opcode)
        return op(nibble_0f00(opcode))
    return decode_group


_GROUPS: Dict[int, Callable[[int], ins.Instruction]] = {
    0x0: _decode_0,
    0x1: lambda op: ins.Jump(address_0fff(op)),
    0x2: lambda op: ins.Call(address_0fff(op)),
    0x3: lambda op: ins.SkipEqualsByte(nibble_0f00(op), byte_00ff(op)),
    0x4: lambda op: ins.SkipNotEqualsByte(nibble_0f00(op), byte_00ff(op)),
    0x5: lambda op: ins.SkipEqualsRegister(nibble_0f00(op), nibble_00f0(op)),
    0x6: lambda op: ins.LoadByte(nibble_0f00(op), byte_00ff(op)),
    0x7: lambda op: ins.AddByte(nibble_0f00(op), byte_00ff(op)),
    0x8: _decode_8,
    0x9: lambda op: ins.SkipNotEqualsRegister(nibble_0f00(op), nibble_00f0(op)),
    0xA: lambda op: ins.LoadImmediate(address_0fff(op)),
    0xB: lambda op: ins.JumpBase(address_0fff(op)),
    0xC: lambda op: ins.Random(nibble_0f00(op), byte_00ff(op)),
    0xD: lambda op: ins.DisplaySprite(nibble_0f00(op), nibble_00f0(op), nibble_000f(op)),
    0xE: _by_low_byte(_KEY_OPS),
    0xF: _by_low_byte(_MISC_OPS),
}


def decode(opcode: int) -> ins.Instruction:
    """Decode a 16-bit opcode, raising DecodeError when nothing matches."""
    if not 0 <= opcode <= 0xFFFF:
        raise DecodeError(opcode)
    return _GROUPS[nibble_f000(opcode)](opcode)


def opcode_from_bytes(hi: int, lo: int) -> int:
    """Join two big-endian memory bytes into an opcode."""
    return (hi << 8) | lo
