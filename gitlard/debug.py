"""Timestamped debug messages delivered to registered callbacks."""

from __future__ import annotations

import threading
import time
from typing import Callable, List, Optional

Callback = Callable[[str], None]


class DebugLog:
    """Dispatches messages, prefixed with seconds since creation, to callbacks."""

    def __init__(self, clock: Optional[Callable[[], float]] = None) -> None:
        self._clock = clock or time.perf_counter
        self._start = self._clock()
        self._callbacks: List[Callback] = []
        self._lock = threading.Lock()

    def message(self, msg: str) -> str:
        """Format ``msg`` with the elapsed time and hand it to every callback."""
        with self._lock:
            elapsed = self._clock() - self._start
            text = f"[{elapsed:12.5g}] {msg}"
            for callback in list(self._callbacks):
                callback(text)
            return text

    def add_callback(self, callback: Callback) -> None:
        """Register ``callback``; registering it twice has no further effect."""
        with self._lock:
            if callback not in self._callbacks:
                self._callbacks.append(callback)

    def remove_callback(self, callback: Callback) -> None:
        """Unregister ``callback`` if it is registered."""
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)


default_log = DebugLog()


def debug(msg: str) -> str:
    """Send ``msg`` through the process-wide debug log."""
    return default_log.message(msg)