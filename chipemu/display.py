"""Monochrome framebuffer and XOR sprite compositor."""
from __future__ import annotations

import numpy as np

from .errors import InvalidOperandError

SCREEN_W, SCREEN_H = 64, 32
SPRITE_WIDTH = 8
MAX_SPRITE_HEIGHT = 15


class Framebuffer:
    """64x32 grid of 0/1 pixels, stored row-major as ``pixels[y, x]``.

    Only :meth:`clear` and :meth:`draw` mutate the grid. Both set
    ``dirty`` so the renderer knows a new frame is available.
    """

    def __init__(self, width: int = SCREEN_W, height: int = SCREEN_H):
        self.width = width
        self.height = height
        self._pixels = np.zeros((height, width), dtype=np.uint8)
        self.dirty = True

    @property
    def pixels(self) -> np.ndarray:
        view = self._pixels.view()
        view.flags.writeable = False
        return view

    def snapshot(self) -> np.ndarray:
        return self._pixels.copy()

    def clear(self):
        self._pixels.fill(0)
        self.dirty = True

    def draw(self, x: int, y: int, sprite: bytes) -> bool:
        """XOR an 8-pixel-wide sprite at (x, y), wrapping at the edges.

        ``sprite`` holds one byte per row, most significant bit leftmost.
        Returns True when any lit pixel was turned off.
        """
        height = len(sprite)
        if height > MAX_SPRITE_HEIGHT:
            raise InvalidOperandError(
                f"Sprite height {height} exceeds maximum of {MAX_SPRITE_HEIGHT}")
        self.dirty = True
        if height == 0:
            return False

        rows = np.frombuffer(bytes(sprite), dtype=np.uint8)
        bits = np.unpackbits(rows).reshape(height, SPRITE_WIDTH)
        ys = (y + np.arange(height)) % self.height
        xs = (x + np.arange(SPRITE_WIDTH)) % self.width
        region = np.ix_(ys, xs)

        collision = bool(np.any(self._pixels[region] & bits))
        self._pixels[region] ^= bits
        return collision

    def __str__(self) -> str:
        return "\n".join("".join("#" if p else "." for p in row) for row in self._pixels)
