"""Host the run loop on a worker thread.

The window, audio and input stay on the calling thread. The worker never
touches the frontend: framebuffer snapshots, key states and the tone flag
cross through a lock-guarded :class:`BoundaryHandoff`.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, List, Optional

import numpy as np

from .keyboard import KEY_COUNT, KeyboardLatch
from .runner import Frontend, Runner, RunResult

logger = logging.getLogger(__name__)


class BoundaryHandoff:
    """Worker-side frontend that exchanges copies with the main thread."""

    def __init__(self):
        self._lock = threading.Lock()
        self._keys: List[bool] = [False] * KEY_COUNT
        self._frame: Optional[np.ndarray] = None
        self._tone = False
        self._quit = threading.Event()

    # worker side
    def poll(self, keys: KeyboardLatch) -> bool:
        with self._lock:
            keys.load(self._keys)
        return self._quit.is_set()

    def render(self, pixels: np.ndarray):
        with self._lock:
            self._frame = pixels

    def set_tone(self, on: bool):
        with self._lock:
            self._tone = on

    # main side
    def publish_keys(self, keys: KeyboardLatch):
        snapshot = keys.snapshot()
        with self._lock:
            self._keys = snapshot

    def take_frame(self) -> Optional[np.ndarray]:
        """Return the newest frame once, or None if nothing new was drawn."""
        with self._lock:
            frame, self._frame = self._frame, None
        return frame

    @property
    def tone(self) -> bool:
        with self._lock:
            return self._tone

    def request_quit(self):
        self._quit.set()


def run_threaded(runner_factory: Callable[[BoundaryHandoff], Runner],
                 frontend: Frontend, fps: int = 60,
                 wait: Optional[Callable[[], None]] = None) -> RunResult:
    """Run a Runner on a worker thread while ``frontend`` is serviced here.

    ``runner_factory`` receives the handoff to use as the worker's frontend.
    """
    handoff = BoundaryHandoff()
    runner = runner_factory(handoff)
    outcome: dict = {}

    def work():
        try:
            outcome["result"] = runner.run()
        except BaseException as exc:  # re-raised on the calling thread
            outcome["error"] = exc
            handoff.request_quit()

    worker = threading.Thread(target=work, name="chipemu-machine", daemon=True)
    worker.start()
    logger.debug("Machine running on thread %s", worker.name)

    if wait is None:
        def wait():
            time.sleep(1.0 / fps)

    latch = KeyboardLatch()
    try:
        while worker.is_alive():
            latch.clear()
            if frontend.poll(latch):
                handoff.request_quit()
            handoff.publish_keys(latch)
            frame = handoff.take_frame()
            if frame is not None:
                frontend.render(frame)
            frontend.set_tone(handoff.tone)
            wait()
    finally:
        # the worker must not outlive a failing frontend
        handoff.request_quit()
        worker.join()
    frontend.set_tone(False)
    if "error" in outcome:
        raise outcome["error"]
    return outcome["result"]
