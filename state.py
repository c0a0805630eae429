"""Observable slot holding the current ViewState."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from models import Initial, ViewState

logger = logging.getLogger(__name__)

StateListener = Callable[[ViewState], None]


class ViewStateStore:
    def __init__(self, initial: ViewState | None = None) -> None:
        self._lock = threading.RLock()
        self._value: ViewState = initial if initial is not None else Initial()
        self._listeners: list[StateListener] = []

    @property
    def value(self) -> ViewState:
        return self._value

    def publish(self, state: ViewState) -> None:
        # Listeners run under the lock so they see states in the order `value` takes them.
        with self._lock:
            self._value = state
            for listener in list(self._listeners):
                try:
                    listener(state)
                except Exception:
                    logger.exception("View state listener failed")

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register ``listener`` and call it once with the current value.

        Returns a function that removes the listener again.
        """
        with self._lock:
            self._listeners.append(listener)
            listener(self._value)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe
