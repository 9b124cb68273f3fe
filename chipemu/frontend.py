"""Pygame window, beeper and keypad for the emulator.

Keyboard mapping (common layout):

  CHIP-8  =>  Keyboard
  1 2 3 C =>  1 2 3 4
  4 5 6 D =>  Q W E R
  7 8 9 E =>  A S D F
  A 0 B F =>  Z X C V
"""
from __future__ import annotations

import logging
import sys

import numpy as np

try:
    import pygame
except Exception:
    print("This emulator requires pygame. Install with: pip install pygame", file=sys.stderr)
    raise

from .display import SCREEN_H, SCREEN_W
from .keyboard import KeyboardLatch

logger = logging.getLogger(__name__)

# Keyboard mapping: CHIP-8 key index -> pygame key
KEYMAP = {
    0x0: pygame.K_x,
    0x1: pygame.K_1,
    0x2: pygame.K_2,
    0x3: pygame.K_3,
    0x4: pygame.K_q,
    0x5: pygame.K_w,
    0x6: pygame.K_e,
    0x7: pygame.K_a,
    0x8: pygame.K_s,
    0x9: pygame.K_d,
    0xA: pygame.K_z,
    0xB: pygame.K_c,
    0xC: pygame.K_4,
    0xD: pygame.K_r,
    0xE: pygame.K_f,
    0xF: pygame.K_v,
}

PIXEL_ON = (255, 255, 255)
PIXEL_OFF = (0, 0, 0)
SAMPLE_RATE = 44100


def square_wave(tone_hz: int, sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """One loopable period-aligned buffer of a 16-bit mono square wave."""
    period = max(2, int(round(sample_rate / tone_hz)))
    t = np.arange(period * max(1, tone_hz // 10))
    wave = ((t % period) < period // 2).astype('float32') * 2 - 1
    return (wave * 32767).astype('int16')


class PygameFrontend:
    def __init__(self, scale: int = 10, tone_hz: int = 440, title: str = "CHIPemu"):
        pygame.mixer.pre_init(SAMPLE_RATE, -16, 1, 256)
        pygame.init()
        pygame.display.set_allow_screensaver(True)
        self.scale = max(1, int(scale))
        self.surface = pygame.display.set_mode(
            (SCREEN_W * self.scale, SCREEN_H * self.scale))
        pygame.display.set_caption(title)
        self.clock = pygame.time.Clock()
        self.sound = None
        self._tone = False

        # Audio setup (simple square tone)
        self.tone_hz = tone_hz
        self._init_audio()

    def _init_audio(self):
        try:
            if not pygame.mixer.get_init():
                pygame.mixer.init()
        except pygame.error as exc:
            logger.warning("Audio disabled: %s", exc)
            return
        frequency, _size, channels = pygame.mixer.get_init()
        wave = square_wave(self.tone_hz, frequency)
        if channels > 1:
            wave = np.repeat(wave[:, None], channels, axis=1)
        self.sound = pygame.sndarray.make_sound(wave)
        self.sound.set_volume(0.2)

    def poll(self, keys: KeyboardLatch) -> bool:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                return True
            if event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                return True
        # sample held state so the latch reflects the current tick
        pressed = pygame.key.get_pressed()
        for k_idx, pgk in KEYMAP.items():
            if pressed[pgk]:
                keys.press(k_idx)
        return False

    def render(self, pixels: np.ndarray):
        surf = self.surface
        surf.lock()
        surf.fill(PIXEL_OFF)
        pixel_size = self.scale
        for y, x in np.argwhere(pixels):
            rect = pygame.Rect(int(x) * pixel_size, int(y) * pixel_size,
                               pixel_size, pixel_size)
            pygame.draw.rect(surf, PIXEL_ON, rect)
        surf.unlock()
        pygame.display.flip()

    def set_tone(self, on: bool):
        if on == self._tone or self.sound is None:
            self._tone = on
            return
        self._tone = on
        if on:
            self.sound.play(loops=-1)
        else:
            self.sound.stop()

    def tick(self, fps: int):
        self.clock.tick(fps)

    def close(self):
        if self.sound is not None:
            self.sound.stop()
        pygame.quit()
