"""Cancellable timer scheduling used by tracking sessions.

Every scheduled callback returns a :class:`ScheduledHandle`. Cancelling a
handle is idempotent and a cancelled handle never fires again, so stopping a
session twice or receiving a late tick cannot resurrect a stopped timer.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from typing import Callable, List, Optional, Protocol, Tuple

LOGGER = logging.getLogger(__name__)

Callback = Callable[[], None]

__all__ = [
    "Scheduler",
    "ScheduledHandle",
    "ThreadingScheduler",
    "ManualScheduler",
]


class ScheduledHandle:
    """Cancellation token for a scheduled callback."""

    def __init__(self, on_cancel: Optional[Callback] = None) -> None:
        self._lock = threading.Lock()
        self._cancelled = False
        self._on_cancel = on_cancel

    @property
    def cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            on_cancel, self._on_cancel = self._on_cancel, None
        if on_cancel is not None:
            on_cancel()


class Scheduler(Protocol):
    def now(self) -> float: ...

    def call_later(self, delay_s: float, callback: Callback) -> ScheduledHandle: ...

    def call_repeating(
        self, interval_s: float, callback: Callback
    ) -> ScheduledHandle: ...


def _run_guarded(callback: Callback, handle: ScheduledHandle) -> None:
    if handle.cancelled:
        return
    try:
        callback()
    except Exception as exc:
        LOGGER.error("Scheduled callback %r failed: %s", callback, exc, exc_info=True)


class ThreadingScheduler:
    """Wall-clock scheduler backed by daemon threads."""

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay_s: float, callback: Callback) -> ScheduledHandle:
        timer_box: List[threading.Timer] = []
        handle = ScheduledHandle(on_cancel=lambda: timer_box[0].cancel())

        def _fire() -> None:
            _run_guarded(callback, handle)
            handle.cancel()

        timer = threading.Timer(max(0.0, delay_s), _fire)
        timer.daemon = True
        timer_box.append(timer)
        timer.start()
        return handle

    def call_repeating(self, interval_s: float, callback: Callback) -> ScheduledHandle:
        if interval_s <= 0:
            raise ValueError("interval_s must be greater than zero")
        stop = threading.Event()
        handle = ScheduledHandle(on_cancel=stop.set)

        def _loop() -> None:
            while not stop.wait(interval_s):
                _run_guarded(callback, handle)

        thread = threading.Thread(target=_loop, name="territory-tick", daemon=True)
        thread.start()
        return handle


class ManualScheduler:
    """Virtual-clock scheduler advanced explicitly by the host or by tests."""

    def __init__(self, start: float = 0.0) -> None:
        self._lock = threading.RLock()
        self._now = start
        self._queue: List[Tuple[float, int, Callback, ScheduledHandle, Optional[float]]] = []
        self._counter = itertools.count()

    def now(self) -> float:
        with self._lock:
            return self._now

    def call_later(self, delay_s: float, callback: Callback) -> ScheduledHandle:
        handle = ScheduledHandle()
        self._push(self.now() + max(0.0, delay_s), callback, handle, None)
        return handle

    def call_repeating(self, interval_s: float, callback: Callback) -> ScheduledHandle:
        if interval_s <= 0:
            raise ValueError("interval_s must be greater than zero")
        handle = ScheduledHandle()
        self._push(self.now() + interval_s, callback, handle, interval_s)
        return handle

    def pending(self) -> int:
        """Number of scheduled callbacks that have not been cancelled."""

        with self._lock:
            return sum(1 for entry in self._queue if not entry[3].cancelled)

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due callbacks in time order."""

        if seconds < 0:
            raise ValueError("Cannot move the clock backwards")
        with self._lock:
            target = self._now + seconds
        while True:
            with self._lock:
                if not self._queue or self._queue[0][0] > target:
                    self._now = target
                    return
                due, _, callback, handle, interval = heapq.heappop(self._queue)
                self._now = due
                if handle.cancelled:
                    continue
                if interval is not None:
                    self._push(due + interval, callback, handle, interval)
            # Callbacks run outside the lock so they may schedule or cancel.
            _run_guarded(callback, handle)
            if interval is None:
                handle.cancel()

    def _push(
        self,
        due: float,
        callback: Callback,
        handle: ScheduledHandle,
        interval: Optional[float],
    ) -> None:
        with self._lock:
            heapq.heappush(self._queue, (due, next(self._counter), callback, handle, interval))
