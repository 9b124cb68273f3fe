import logging
import random

import pytest

from chipemu import instructions as ins
from chipemu.config import Quirks
from chipemu.errors import BoundsError, InvalidOperandError, StackFault
from chipemu.keyboard import KeyWaitPolicy
from chipemu.machine import (FONTSET, MAX_ROM_SIZE, MEM_SIZE, START_ADDRESS,
                             STACK_SIZE, Chip8)


@pytest.fixture
def chip8():
    return Chip8(rng=random.Random(8))


def program(*words):
    return b"".join(w.to_bytes(2, "big") for w in words)


def test_fresh_machine(chip8):
    assert chip8.pc == START_ADDRESS
    assert chip8.stack.sp == 0
    assert chip8.I == 0
    assert chip8.V == [0] * 16
    assert len(chip8.memory) == MEM_SIZE
    assert bytes(chip8.memory[:80]) == FONTSET
    assert not any(chip8.memory[80:])
    assert not chip8.display.pixels.any()


def test_load_short_rom_leaves_rest_zero(chip8):
    assert chip8.load_rom(b"Hello World!") == 12
    assert bytes(chip8.memory[START_ADDRESS:START_ADDRESS + 12]) == b"Hello World!"
    assert not any(chip8.memory[START_ADDRESS + 12:])
    assert not any(chip8.memory[80:START_ADDRESS])


def test_load_rom_exactly_filling_memory(chip8):
    data = bytes(i & 0xFF for i in range(MAX_ROM_SIZE))
    assert chip8.load_rom(data) == MAX_ROM_SIZE
    assert bytes(chip8.memory[START_ADDRESS:]) == data
    assert len(chip8.memory) == MEM_SIZE


def test_load_oversized_rom_is_truncated(chip8, caplog):
    data = b"\xAA" * (MAX_ROM_SIZE + 100)
    with caplog.at_level(logging.WARNING):
        assert chip8.load_rom(data) == MAX_ROM_SIZE
    assert "truncating" in caplog.text
    assert len(chip8.memory) == MEM_SIZE
    assert bytes(chip8.memory[START_ADDRESS:]) == data[:MAX_ROM_SIZE]
    assert bytes(chip8.memory[:80]) == FONTSET


# =============== Flow ===============
def test_jump(chip8):
    chip8.load_rom(program(0x1ABC))
    chip8.step()
    assert chip8.pc == 0xABC
    assert chip8.skip_increment is False


def test_call_pushes_return_address(chip8):
    chip8.pc = 0x240
    chip8.execute(ins.Call(0x222))
    assert chip8.pc == 0x222
    assert chip8.stack.sp == 1
    assert chip8.stack.slots[0] == 0x242
    assert chip8.skip_increment is True


def test_call_then_return_restores_pc_and_sp(chip8):
    chip8.load_rom(program(0x2300))
    chip8.memory[0x300:0x302] = program(0x00EE)
    chip8.step()
    assert chip8.pc == 0x300
    chip8.step()
    assert chip8.pc == START_ADDRESS + 2
    assert chip8.stack.sp == 0


def test_return_on_empty_stack_faults(chip8):
    with pytest.raises(StackFault):
        chip8.execute(ins.Return())


def test_call_overflow_faults(chip8):
    for _ in range(STACK_SIZE):
        chip8.execute(ins.Call(0x300))
    with pytest.raises(StackFault):
        chip8.execute(ins.Call(0x300))
    assert chip8.stack.sp == STACK_SIZE


def test_jump_base(chip8):
    chip8.V[0] = 0x10
    chip8.load_rom(program(0xB300))
    chip8.step()
    assert chip8.pc == 0x310


def test_sys_is_ignored(chip8):
    chip8.load_rom(program(0x0123))
    chip8.step()
    assert chip8.pc == START_ADDRESS + 2
    assert chip8.V == [0] * 16


@pytest.mark.parametrize("opcode, v1, v2, skipped", [
    (0x3105, 5, 0, True),
    (0x3105, 6, 0, False),
    (0x4105, 6, 0, True),
    (0x4105, 5, 0, False),
    (0x5120, 7, 7, True),
    (0x5120, 7, 8, False),
    (0x9120, 7, 8, True),
    (0x9120, 7, 7, False),
])
def test_conditional_skips(chip8, opcode, v1, v2, skipped):
    chip8.V[1], chip8.V[2] = v1, v2
    chip8.load_rom(program(opcode))
    chip8.step()
    assert chip8.pc == START_ADDRESS + (4 if skipped else 2)


# =============== ALU ===============
def test_add_register_wraps_and_sets_carry(chip8):
    for a in range(256):
        for b in range(0, 256, 7):
            chip8.V[1], chip8.V[2] = a, b
            chip8.execute(ins.AddRegister(1, 2))
            assert chip8.V[1] == (a + b) % 256
            assert chip8.V[0xF] == (1 if a + b > 255 else 0)


def test_add_byte_sets_carry_by_default(chip8):
    chip8.V[3] = 0x02
    chip8.execute(ins.AddByte(3, 0xFF))
    assert chip8.V[3] == 0x01
    assert chip8.V[0xF] == 1
    chip8.execute(ins.AddByte(3, 0x01))
    assert chip8.V[3] == 0x02
    assert chip8.V[0xF] == 0


def test_add_byte_without_flag_quirk():
    chip8 = Chip8(quirks=Quirks(add_byte_sets_flag=False))
    chip8.V[0xF] = 0x42
    chip8.V[3] = 0xFF
    chip8.execute(ins.AddByte(3, 0x02))
    assert chip8.V[3] == 0x01
    assert chip8.V[0xF] == 0x42


@pytest.mark.parametrize("vx, vy", [(10, 3), (3, 10), (5, 5), (0, 255), (255, 0)])
def test_sub_and_subn(chip8, vx, vy):
    chip8.V[1], chip8.V[2] = vx, vy
    chip8.execute(ins.SubRegister(1, 2))
    assert chip8.V[1] == (vx - vy) % 256
    assert chip8.V[0xF] == (1 if vx >= vy else 0)

    chip8.V[1], chip8.V[2] = vx, vy
    chip8.execute(ins.SubNRegister(1, 2))
    assert chip8.V[1] == (vy - vx) % 256
    assert chip8.V[0xF] == (1 if vy >= vx else 0)


def test_shifts(chip8):
    for a in range(256):
        chip8.V[1] = a
        chip8.execute(ins.ShiftRight(1))
        assert chip8.V[1] == a >> 1
        assert chip8.V[0xF] == a & 1

        chip8.V[1] = a
        chip8.execute(ins.ShiftLeft(1))
        assert chip8.V[1] == (a << 1) % 256
        assert chip8.V[0xF] == (a & 0x80) >> 7


def test_flag_wins_when_target_is_vf(chip8):
    chip8.V[0xF] = 0xFF
    chip8.V[1] = 0x01
    chip8.execute(ins.AddRegister(0xF, 1))
    assert chip8.V[0xF] == 1


@pytest.mark.parametrize("instruction, expected", [
    (ins.LoadRegister(1, 2), 0b0101),
    (ins.Or(1, 2), 0b1111),
    (ins.And(1, 2), 0b0000),
    (ins.Xor(1, 2), 0b1111),
])
def test_register_logic(chip8, instruction, expected):
    chip8.V[1], chip8.V[2] = 0b1010, 0b0101
    chip8.execute(instruction)
    assert chip8.V[1] == expected
    assert chip8.V[2] == 0b0101


def test_load_byte(chip8):
    chip8.execute(ins.LoadByte(0xC, 0x99))
    assert chip8.V[0xC] == 0x99


def test_random_masks_draw(chip8):
    chip8.rng = random.Random(1234)
    chip8.execute(ins.Random(5, 0x0F))
    assert chip8.V[5] == random.Random(1234).randint(0, 255) & 0x0F
    chip8.execute(ins.Random(5, 0x00))
    assert chip8.V[5] == 0


# =============== Index and memory ===============
def test_load_immediate_and_add_i(chip8):
    chip8.execute(ins.LoadImmediate(0x2F0))
    chip8.V[5] = 0x10
    chip8.execute(ins.AddI(5))
    assert chip8.I == 0x300
    assert chip8.V[0xF] == 0


def test_add_i_carries_past_16_bits(chip8):
    chip8.I = 0xFFFF
    chip8.V[5] = 1
    chip8.execute(ins.AddI(5))
    assert chip8.I == 0
    assert chip8.V[0xF] == 1


def test_font_sprite_address(chip8):
    chip8.V[6] = 0xA
    chip8.execute(ins.LoadFontSprite(6))
    assert chip8.I == 50
    assert bytes(chip8.memory[chip8.I:chip8.I + 5]) == bytes([0xF0, 0x90, 0xF0, 0x90, 0x90])


@pytest.mark.parametrize("value, digits", [(254, [2, 5, 4]), (7, [0, 0, 7]), (100, [1, 0, 0])])
def test_bcd(chip8, value, digits):
    chip8.I = 0x300
    chip8.V[7] = value
    chip8.execute(ins.LoadBCD(7))
    assert list(chip8.memory[0x300:0x303]) == digits
    assert chip8.I == 0x300


def test_store_registers_is_inclusive(chip8):
    chip8.I = 0x300
    chip8.V = [i + 1 for i in range(16)]
    chip8.execute(ins.StoreRegisters(5))
    assert list(chip8.memory[0x300:0x306]) == [1, 2, 3, 4, 5, 6]
    assert chip8.memory[0x306] == 0
    assert chip8.I == 0x300


def test_load_registers_is_inclusive(chip8):
    chip8.I = 0x300
    chip8.memory[0x300:0x308] = bytes([9, 8, 7, 6, 5, 4, 3, 2])
    chip8.execute(ins.LoadRegisters(5))
    assert chip8.V[:6] == [9, 8, 7, 6, 5, 4]
    assert chip8.V[6] == 0


@pytest.mark.parametrize("x", [0, 7, 15])
def test_store_then_load_restores_registers(chip8, x):
    chip8.I = 0x400
    original = [(i * 37 + 11) & 0xFF for i in range(16)]
    chip8.V = list(original)
    chip8.execute(ins.StoreRegisters(x))
    chip8.execute(ins.StoreRegisters(x))
    chip8.V = [0] * 16
    chip8.execute(ins.LoadRegisters(x))
    assert chip8.V[:x + 1] == original[:x + 1]
    assert chip8.V[x + 1:] == [0] * (15 - x)


# =============== Timers ===============
def test_timer_access(chip8):
    chip8.V[3] = 30
    chip8.execute(ins.LoadDelay(3))
    chip8.execute(ins.LoadDelay(3))
    assert chip8.timers.delay.value == 30
    chip8.execute(ins.LoadFromDelay(4))
    assert chip8.V[4] == 30

    assert not chip8.sound_on
    chip8.execute(ins.LoadSound(3))
    assert chip8.timers.sound.value == 30
    assert chip8.sound_on


# =============== Display ===============
def test_draw_font_glyph_twice(chip8):
    chip8.load_rom(program(0xD015, 0xD015, 0x00E0))
    chip8.I = 0  # glyph "0"
    chip8.step()
    assert chip8.V[0xF] == 0
    assert chip8.display.pixels[0, :4].tolist() == [1, 1, 1, 1]
    assert chip8.display.pixels[1, :4].tolist() == [1, 0, 0, 1]
    chip8.step()
    assert chip8.V[0xF] == 1
    assert not chip8.display.pixels.any()
    assert chip8.I == 0


def test_clear_screen(chip8):
    chip8.execute(ins.DisplaySprite(0, 0, 5))
    assert chip8.display.pixels.any()
    chip8.execute(ins.ClearScreen())
    assert not chip8.display.pixels.any()


def test_sprite_coordinates_come_from_registers(chip8):
    chip8.V[1], chip8.V[2] = 62, 31
    chip8.I = 0x300
    chip8.memory[0x300] = 0b11000011
    chip8.execute(ins.DisplaySprite(1, 2, 1))
    lit = {(int(y), int(x)) for y, x in zip(*chip8.display.pixels.nonzero())}
    assert lit == {(31, 62), (31, 63), (31, 4), (31, 5)}


def test_oversized_sprite_is_rejected(chip8):
    with pytest.raises(InvalidOperandError):
        chip8.execute(ins.DisplaySprite(0, 0, 16))
    assert not chip8.display.pixels.any()


def test_step_skips_invalid_sprite(chip8, monkeypatch, caplog):
    monkeypatch.setattr("chipemu.machine.decode", lambda _op: ins.DisplaySprite(0, 0, 16))
    with caplog.at_level(logging.WARNING):
        chip8.step()
    assert chip8.pc == START_ADDRESS + 2
    assert "DRW: " in caplog.text
    assert "exceeds" in caplog.text


# =============== Keyboard ===============
def test_skip_key_press(chip8):
    chip8.V[7] = 0xA
    chip8.keys.press(0xA)
    chip8.load_rom(program(0xE79E))
    chip8.step()
    assert chip8.pc == START_ADDRESS + 4


def test_skip_not_key_press(chip8):
    chip8.V[8] = 0x3
    chip8.keys.press(0xA)
    chip8.load_rom(program(0xE8A1))
    chip8.step()
    assert chip8.pc == START_ADDRESS + 4


def test_key_index_above_f_is_never_pressed(chip8):
    chip8.V[7] = 0x1A
    chip8.keys.press(0xA)
    chip8.load_rom(program(0xE79E))
    chip8.step()
    assert chip8.pc == START_ADDRESS + 2


def test_key_wait_holds_pc_until_pressed(chip8):
    chip8.load_rom(program(0xF20A))
    for _ in range(3):
        chip8.step()
        assert chip8.pc == START_ADDRESS
    chip8.keys.press(0x3)
    chip8.keys.press(0x9)
    chip8.step()
    assert chip8.V[2] == 0x9
    assert chip8.pc == START_ADDRESS + 2


def test_key_wait_lowest_policy():
    chip8 = Chip8(quirks=Quirks(key_wait=KeyWaitPolicy.LOWEST))
    chip8.keys.press(0x3)
    chip8.keys.press(0x9)
    chip8.execute(ins.LoadKeyPress(2))
    assert chip8.V[2] == 0x3


# =============== Tick ===============
def test_unknown_opcode_is_skipped(chip8, caplog):
    chip8.load_rom(program(0xFFFF, 0x6A01))
    with caplog.at_level(logging.WARNING):
        assert chip8.step() is None
    assert "FFFF" in caplog.text
    assert chip8.pc == START_ADDRESS + 2
    assert chip8.step() == ins.LoadByte(0xA, 0x01)
    assert chip8.V[0xA] == 1


def test_pc_bounds(chip8):
    chip8.pc = 4094
    chip8.memory[4094:4096] = program(0x6001)
    chip8.step()
    assert chip8.V[0] == 1
    chip8.pc = 4095
    with pytest.raises(BoundsError):
        chip8.step()


def test_skip_increment_resets_every_tick(chip8):
    chip8.load_rom(program(0x1202))
    chip8.memory[0x202:0x204] = program(0x6001)
    chip8.step()
    chip8.step()
    assert chip8.pc == 0x204
    assert chip8.skip_increment is False


def test_reset(chip8):
    chip8.load_rom(program(0x6001, 0x2300))
    chip8.step()
    chip8.step()
    chip8.reset()
    assert chip8.pc == START_ADDRESS
    assert chip8.stack.sp == 0
    assert chip8.V == [0] * 16
    assert not any(chip8.memory[START_ADDRESS:])
