"""Per-request cancellation and deadline handling."""
from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional

from errors import Cancelled

LOGGER = logging.getLogger(__name__)


class RequestContext:
    """Carries the cancellation flag and optional deadline of one service call.

    Outbound calls derive their socket timeout from :meth:`timeout` so no
    request outlives the context, check :meth:`raise_if_cancelled` before
    starting, and register a closer with :meth:`on_cancel` while they run.
    """

    def __init__(self, deadline_seconds: Optional[float] = None) -> None:
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []
        self._deadline: Optional[float] = None
        if deadline_seconds is not None:
            self._deadline = time.monotonic() + deadline_seconds

    def cancel(self) -> None:
        """Mark the context cancelled and run the registered callbacks once."""
        with self._lock:
            self._cancelled.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            _run_callback(callback)

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel()
            return True
        return False

    @contextmanager
    def on_cancel(self, callback: Callable[[], None]) -> Iterator[None]:
        """Run *callback* if the context is cancelled while the block executes."""
        with self._lock:
            registered = not self._cancelled.is_set()
            if registered:
                self._callbacks.append(callback)
        if not registered:
            _run_callback(callback)
        try:
            yield
        finally:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

    def remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return max(self._deadline - time.monotonic(), 0.0)

    def timeout(self, default: float) -> float:
        """Return *default* capped by the time left before the deadline."""
        remaining = self.remaining()
        if remaining is None:
            return default
        return max(min(default, remaining), 0.001)

    def wait(self, seconds: float) -> bool:
        """Block up to *seconds*; return True as soon as the context is cancelled."""
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        self._cancelled.wait(seconds)
        return self.cancelled

    def raise_if_cancelled(self, operation: str = "") -> None:
        if self.cancelled:
            raise Cancelled(f"{operation or 'operation'} cancelled")


def _run_callback(callback: Callable[[], None]) -> None:
    try:
        callback()
    except Exception:
        LOGGER.warning("Cancel callback %r failed", callback, exc_info=True)
