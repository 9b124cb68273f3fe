"""Keyboard latch shared between the input collaborator and the engine."""
from __future__ import annotations

import enum
from typing import Iterable, List, Optional

KEY_COUNT = 16


class KeyWaitPolicy(enum.Enum):
    # LAST keeps the legacy behavior: a linear scan where the last active index wins.
    LAST = "last"
    LOWEST = "lowest"


class KeyboardLatch:
    """Sixteen pressed/released flags for the current tick.

    The frontend fills the latch before a tick, the engine reads it while
    executing, and the run loop clears it afterwards.
    """

    def __init__(self):
        self._keys: List[bool] = [False] * KEY_COUNT

    def __iter__(self):
        return iter(self._keys)

    def __len__(self) -> int:
        return KEY_COUNT

    def is_pressed(self, key: int) -> bool:
        # register values above 0xF never name a key
        if 0 <= key < KEY_COUNT:
            return self._keys[key]
        return False

    def press(self, key: int):
        self._keys[key] = True

    def load(self, pressed: Iterable[bool]):
        states = [bool(p) for p in pressed]
        if len(states) != KEY_COUNT:
            raise ValueError(f"expected {KEY_COUNT} key states, got {len(states)}")
        self._keys = states

    def clear(self):
        self._keys = [False] * KEY_COUNT

    def snapshot(self) -> List[bool]:
        return list(self._keys)

    def any_pressed(self) -> bool:
        return any(self._keys)

    def find_pressed(self, policy: KeyWaitPolicy = KeyWaitPolicy.LAST) -> Optional[int]:
        found = None
        for i in range(KEY_COUNT):
            if self._keys[i]:
                if policy is KeyWaitPolicy.LOWEST:
                    return i
                found = i
        return found

    def __repr__(self) -> str:
        pressed = [f"{i:X}" for i in range(KEY_COUNT) if self._keys[i]]
        return f"KeyboardLatch(pressed=[{', '.join(pressed)}])"
