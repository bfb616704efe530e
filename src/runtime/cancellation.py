"""
Cooperative cancellation token shared between the scheduler and worker threads.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional


class CancellationToken:
    """
    Thread-safe cancellation flag with callbacks.

    The scheduler cancels the token when it stops waiting on a cycle; the
    inference backend and HTTP client register callbacks that abort their
    in-flight work.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        with self._lock:
            if self._event.is_set():
                return
            self.reason = reason
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for cb in callbacks:
            try:
                cb()
            except Exception as e:
                logging.warning(f"[Cancel] callback error: {e}")

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Run callback when the token is cancelled (immediately if it already is).

        Returns a function that unregisters the callback.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)

                def unregister() -> None:
                    with self._lock:
                        if callback in self._callbacks:
                            self._callbacks.remove(callback)

                return unregister
        callback()
        return lambda: None

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or timeout; returns True if cancelled."""
        return self._event.wait(timeout)
