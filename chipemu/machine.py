"""CHIP-8 execution engine: memory, registers, call stack and instruction semantics.

The engine is headless and single-owner. A frontend populates ``keys``
before each :meth:`Chip8.step` and reads ``display`` and ``timers`` after.
"""
from __future__ import annotations

import logging
import random
from typing import Callable, Dict, List, Optional, Type

from . import instructions as ins
from .config import Quirks
from .decoder import decode, opcode_from_bytes
from .display import Framebuffer
from .errors import BoundsError, DecodeError, InvalidOperandError, StackFault
from .keyboard import KeyboardLatch
from .timers import TIMER_HZ, TimerCoordinator

logger = logging.getLogger(__name__)

# ==============================
# Constants
# ==============================
MEM_SIZE = 4096
START_ADDRESS = 0x200
MAX_ROM_SIZE = MEM_SIZE - START_ADDRESS
FONT_ADDRESS = 0x000
FONT_GLYPH_SIZE = 5
REGISTER_COUNT = 16
FLAG = 0xF
STACK_SIZE = 16
# last PC from which a full 2-byte opcode can be fetched
MAX_PC = MEM_SIZE - 2

# Classic CHIP-8 4x5 font (each char 5 bytes)
FONTSET = bytes([
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
])


class CallStack:
    """Bounded return-address stack; ``sp`` counts the slots in use."""

    def __init__(self, size: int = STACK_SIZE):
        self.slots: List[int] = [0] * size
        self.sp = 0

    def push(self, address: int):
        if self.sp >= len(self.slots):
            raise StackFault(f"Stack overflow pushing {address:03X}")
        self.slots[self.sp] = address
        self.sp += 1

    def pop(self) -> int:
        if self.sp == 0:
            raise StackFault("Stack underflow on RET")
        self.sp -= 1
        return self.slots[self.sp]

    def __len__(self) -> int:
        return self.sp

    def clear(self):
        self.slots = [0] * len(self.slots)
        self.sp = 0


class Chip8:
    def __init__(self, quirks: Optional[Quirks] = None,
                 rng: Optional[random.Random] = None, timer_hz: int = TIMER_HZ):
        self.quirks = quirks or Quirks()
        self.rng = rng or random.Random()
        self.display = Framebuffer()
        self.timers = TimerCoordinator(timer_hz)
        self.keys = KeyboardLatch()
        self.stack = CallStack()
        self._dispatch: Dict[Type[ins.Instruction], Callable] = {
            ins.ClearScreen: self._clear_screen,
            ins.Return: self._return,
            ins.Sys: self._sys,
            ins.Jump: self._jump,
            ins.Call: self._call,
            ins.SkipEqualsByte: self._skip_equals_byte,
            ins.SkipNotEqualsByte: self._skip_not_equals_byte,
            ins.SkipEqualsRegister: self._skip_equals_register,
            ins.LoadByte: self._load_byte,
            ins.AddByte: self._add_byte,
            ins.LoadRegister: self._load_register,
            ins.Or: self._or,
            ins.And: self._and,
            ins.Xor: self._xor,
            ins.AddRegister: self._add_register,
            ins.SubRegister: self._sub_register,
            ins.ShiftRight: self._shift_right,
            ins.SubNRegister: self._subn_register,
            ins.ShiftLeft: self._shift_left,
            ins.SkipNotEqualsRegister: self._skip_not_equals_register,
            ins.LoadImmediate: self._load_immediate,
            ins.JumpBase: self._jump_base,
            ins.Random: self._random,
            ins.DisplaySprite: self._display_sprite,
            ins.SkipKeyPress: self._skip_key_press,
            ins.SkipNotKeyPress: self._skip_not_key_press,
            ins.LoadFromDelay: self._load_from_delay,
            ins.LoadKeyPress: self._load_key_press,
            ins.LoadDelay: self._load_delay,
            ins.LoadSound: self._load_sound,
            ins.AddI: self._add_i,
            ins.LoadFontSprite: self._load_font_sprite,
            ins.LoadBCD: self._load_bcd,
            ins.StoreRegisters: self._store_registers,
            ins.LoadRegisters: self._load_registers,
        }
        self.reset()

    def reset(self):
        self.memory = bytearray(MEM_SIZE)
        self.memory[FONT_ADDRESS:FONT_ADDRESS + len(FONTSET)] = FONTSET
        self.V = [0] * REGISTER_COUNT  # registers V0..VF
        self.I = 0
        self.pc = START_ADDRESS
        self.stack.clear()
        self.timers.reset()
        self.display.clear()
        self.keys.clear()
        self.skip_increment = False

    def load_rom(self, data: bytes) -> int:
        """Copy ROM bytes verbatim to 0x200, truncating at the end of memory.

        Returns the number of bytes copied.
        """
        if len(data) > MAX_ROM_SIZE:
            logger.warning("ROM is %d bytes, truncating to %d", len(data), MAX_ROM_SIZE)
            data = data[:MAX_ROM_SIZE]
        self.memory[START_ADDRESS:START_ADDRESS + len(data)] = data
        logger.debug("Loaded %d ROM bytes at %03X", len(data), START_ADDRESS)
        return len(data)

    @property
    def sound_on(self) -> bool:
        return self.timers.sound_on

    # =============== Core fetch/decode/execute cycle ===============
    def fetch_opcode(self) -> int:
        if not 0 <= self.pc <= MAX_PC:
            raise BoundsError(self.pc)
        return opcode_from_bytes(self.memory[self.pc], self.memory[self.pc + 1])

    def step(self) -> Optional[ins.Instruction]:
        """Run one tick: fetch, decode, execute, advance PC.

        Undecodable opcodes and invalid sprites are logged and skipped.
        BoundsError and StackFault propagate to the caller.
        """
        opcode = self.fetch_opcode()
        try:
            instruction = decode(opcode)
        except DecodeError as exc:
            logger.warning("%s at PC %03X, skipping", exc, self.pc)
            self._advance()
            return None

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("PC %03X: %04X %s", self.pc, opcode, instruction)
        try:
            self.execute(instruction)
        except InvalidOperandError as exc:
            logger.warning("%s: %s at PC %03X, skipping", instruction.mnemonic, exc, self.pc)
        if not self.skip_increment:
            self._advance()
        self.skip_increment = False
        return instruction

    def execute(self, instruction: ins.Instruction):
        self._dispatch[type(instruction)](instruction)

    def _advance(self, amount: int = 2):
        self.pc = (self.pc + amount) & 0xFFFF

    def _skip_if(self, condition: bool):
        # composes with the normal +2 of the tick
        if condition:
            self._advance()

    def _set_flag_result(self, register: int, result: int, flag: int):
        # VF is written last so it holds the flag even when register is VF
        self.V[register] = result & 0xFF
        self.V[FLAG] = flag

    def _addr(self, offset: int) -> int:
        return (self.I + offset) % MEM_SIZE

    # =============== Flow ===============
    def _clear_screen(self, _instruction: ins.ClearScreen):
        self.display.clear()

    def _return(self, _instruction: ins.Return):
        self.pc = self.stack.pop()
        self.skip_increment = True

    def _sys(self, _instruction: ins.Sys):
        pass  # RCA 1802 machine-code call, ignored

    def _jump(self, instruction: ins.Jump):
        self.pc = instruction.address
        self.skip_increment = True

    def _call(self, instruction: ins.Call):
        self.stack.push((self.pc + 2) & 0xFFFF)
        self.pc = instruction.address
        self.skip_increment = True

    def _jump_base(self, instruction: ins.JumpBase):
        self.pc = (instruction.address + self.V[0]) & 0xFFFF
        self.skip_increment = True

    # =============== Skips ===============
    def _skip_equals_byte(self, instruction: ins.SkipEqualsByte):
        self._skip_if(self.V[instruction.register] == instruction.value)

    def _skip_not_equals_byte(self, instruction: ins.SkipNotEqualsByte):
        self._skip_if(self.V[instruction.register] != instruction.value)

    def _skip_equals_register(self, instruction: ins.SkipEqualsRegister):
        self._skip_if(self.V[instruction.x] == self.V[instruction.y])

    def _skip_not_equals_register(self, instruction: ins.SkipNotEqualsRegister):
        self._skip_if(self.V[instruction.x] != self.V[instruction.y])

    # =============== Registers and ALU ===============
    def _load_byte(self, instruction: ins.LoadByte):
        self.V[instruction.register] = instruction.value

    def _add_byte(self, instruction: ins.AddByte):
        total = self.V[instruction.register] + instruction.value
        if self.quirks.add_byte_sets_flag:
            self._set_flag_result(instruction.register, total, 1 if total > 0xFF else 0)
        else:
            self.V[instruction.register] = total & 0xFF

    def _load_register(self, instruction: ins.LoadRegister):
        self.V[instruction.x] = self.V[instruction.y]

    def _or(self, instruction: ins.Or):
        self.V[instruction.x] |= self.V[instruction.y]

    def _and(self, instruction: ins.And):
        self.V[instruction.x] &= self.V[instruction.y]

    def _xor(self, instruction: ins.Xor):
        self.V[instruction.x] ^= self.V[instruction.y]

    def _add_register(self, instruction: ins.AddRegister):
        total = self.V[instruction.x] + self.V[instruction.y]
        self._set_flag_result(instruction.x, total, 1 if total > 0xFF else 0)

    def _sub_register(self, instruction: ins.SubRegister):
        vx, vy = self.V[instruction.x], self.V[instruction.y]
        self._set_flag_result(instruction.x, vx - vy, 1 if vx >= vy else 0)

    def _subn_register(self, instruction: ins.SubNRegister):
        vx, vy = self.V[instruction.x], self.V[instruction.y]
        self._set_flag_result(instruction.x, vy - vx, 1 if vy >= vx else 0)

    def _shift_right(self, instruction: ins.ShiftRight):
        value = self.V[instruction.register]
        self._set_flag_result(instruction.register, value >> 1, value & 0x1)

    def _shift_left(self, instruction: ins.ShiftLeft):
        value = self.V[instruction.register]
        self._set_flag_result(instruction.register, value << 1, (value & 0x80) >> 7)

    def _random(self, instruction: ins.Random):
        self.V[instruction.register] = self.rng.randint(0, 255) & instruction.mask

    # =============== Index and memory ===============
    def _load_immediate(self, instruction: ins.LoadImmediate):
        self.I = instruction.address

    def _add_i(self, instruction: ins.AddI):
        total = self.I + self.V[instruction.register]
        self.I = total & 0xFFFF
        self.V[FLAG] = 1 if total > 0xFFFF else 0

    def _load_font_sprite(self, instruction: ins.LoadFontSprite):
        self.I = FONT_ADDRESS + self.V[instruction.register] * FONT_GLYPH_SIZE

    def _load_bcd(self, instruction: ins.LoadBCD):
        val = self.V[instruction.register]
        self.memory[self._addr(0)] = val // 100
        self.memory[self._addr(1)] = (val // 10) % 10
        self.memory[self._addr(2)] = val % 10

    def _store_registers(self, instruction: ins.StoreRegisters):
        for i in range(instruction.register + 1):
            self.memory[self._addr(i)] = self.V[i]

    def _load_registers(self, instruction: ins.LoadRegisters):
        for i in range(instruction.register + 1):
            self.V[i] = self.memory[self._addr(i)]

    # =============== Display ===============
    def _display_sprite(self, instruction: ins.DisplaySprite):
        sprite = bytes(self.memory[self._addr(row)] for row in range(instruction.height))
        collision = self.display.draw(self.V[instruction.x], self.V[instruction.y], sprite)
        self.V[FLAG] = 1 if collision else 0

    # =============== Keyboard ===============
    def _skip_key_press(self, instruction: ins.SkipKeyPress):
        self._skip_if(self.keys.is_pressed(self.V[instruction.register]))

    def _skip_not_key_press(self, instruction: ins.SkipNotKeyPress):
        self._skip_if(not self.keys.is_pressed(self.V[instruction.register]))

    def _load_key_press(self, instruction: ins.LoadKeyPress):
        key = self.keys.find_pressed(self.quirks.key_wait)
        if key is None:
            # hold PC so the wait re-runs next tick with a fresh latch
            self.skip_increment = True
        else:
            self.V[instruction.register] = key

    # =============== Timers ===============
    def _load_from_delay(self, instruction: ins.LoadFromDelay):
        self.V[instruction.register] = self.timers.delay.value

    def _load_delay(self, instruction: ins.LoadDelay):
        self.timers.delay.set(self.V[instruction.register])

    def _load_sound(self, instruction: ins.LoadSound):
        self.timers.sound.set(self.V[instruction.register])

    def __repr__(self) -> str:
        return (f"Chip8(pc={self.pc:03X}, sp={self.stack.sp}, I={self.I:03X}, "
                f"V=[{' '.join(f'{v:02X}' for v in self.V)}], "
                f"DT={self.timers.delay.value}, ST={self.timers.sound.value})")
