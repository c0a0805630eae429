"""Cancellable fixed-rate and one-shot scheduling on background threads."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class CancelToken:
    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()


class PeriodicTask:
    """Run ``action`` every ``interval_s`` on one thread until cancelled.

    Ticks are synchronous, so they never overlap. When a tick overruns its
    slot the next one starts immediately, but missed slots are not replayed.
    """

    def __init__(
        self,
        action: Callable[[], None],
        interval_s: float,
        initial_delay_s: float = 0.0,
        name: str = "periodic-task",
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self._action = action
        self._interval_s = interval_s
        self._initial_delay_s = initial_delay_s
        self._name = name
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def cancel(self, timeout_s: float = 2.0) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread() and thread.is_alive():
            thread.join(timeout=timeout_s)

    def _run(self) -> None:
        next_at = time.monotonic() + self._initial_delay_s
        while not self._stop_event.wait(max(0.0, next_at - time.monotonic())):
            try:
                self._action()
            except Exception:
                logger.exception("Periodic task %s tick failed", self._name)
            next_at = max(next_at + self._interval_s, time.monotonic())


class ThreadingScheduler:
    def call_later(self, delay_s: float, fn: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay_s, fn)
        timer.daemon = True
        timer.start()
        return timer
