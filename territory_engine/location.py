"""Publish/subscribe channel between the location source and its consumers."""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

from .models import LocationSample

LOGGER = logging.getLogger(__name__)

SampleListener = Callable[[LocationSample], None]


class LocationFeed:
    """Fan location samples out to subscribers and remember the latest fix.

    Polling consumers (the path sampler) read :attr:`latest`; streaming
    consumers (exploration) subscribe a callback. Source failures are
    recoverable: they are logged and the feed waits for the next sample.
    """

    def __init__(self) -> None:
        self._log = LOGGER.getChild(self.__class__.__name__)
        self._lock = threading.Lock()
        self._listeners: List[SampleListener] = []
        self._latest: Optional[LocationSample] = None
        self._last_error: Optional[BaseException] = None

    @property
    def latest(self) -> Optional[LocationSample]:
        with self._lock:
            return self._latest

    @property
    def last_error(self) -> Optional[BaseException]:
        with self._lock:
            return self._last_error

    def subscribe(self, listener: SampleListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that unsubscribes it."""

        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            self.unsubscribe(listener)

        return _unsubscribe

    def unsubscribe(self, listener: SampleListener) -> None:
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                return

    def publish(self, sample: LocationSample) -> None:
        with self._lock:
            self._latest = sample
            self._last_error = None
            listeners = list(self._listeners)
        for listener in listeners:
            listener(sample)

    def publish_error(self, error: BaseException) -> None:
        """Record a recoverable source failure; consumers keep the last good fix."""

        with self._lock:
            self._last_error = error
        self._log.warning("Location source failed, waiting for next sample: %s", error)


__all__ = ["LocationFeed", "SampleListener"]
