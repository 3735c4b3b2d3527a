"""Throttled single-flight background fetches merged into poll ticks."""

from __future__ import annotations

import logging
import time
from concurrent.futures import CancelledError
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable
    from concurrent.futures import Executor, Future

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ChannelResult(Generic[T]):
    """Outcome of one completed fetch."""

    value: T | None
    error: BaseException | None
    started_at: float
    finished_at: float

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SideChannel(Generic[T]):
    """An expensive fetch with its own cadence.

    The channel is idle until ``request()`` launches the fetch on the
    executor, stays in flight until the future completes, and returns to
    idle when the poll loop picks up the result with ``collect()``. Requests
    while a fetch is outstanding, or sooner than ``min_interval`` after the
    previous launch, do nothing.
    """

    name: str
    fetch: Callable[[], T]
    min_interval: float
    executor: Executor
    clock: Callable[[], float] = time.monotonic
    _future: Future | None = None
    _started_at: float | None = None
    _last_launch: float | None = None

    @property
    def in_flight(self) -> bool:
        return self._future is not None

    def due(self) -> bool:
        if self._last_launch is None:
            return True
        return self.clock() - self._last_launch >= self.min_interval

    def request(self) -> bool:
        """Launch the fetch if idle and due. Returns True if launched."""
        if self._future is not None or not self.due():
            return False
        now = self.clock()
        self._last_launch = now
        self._started_at = now
        self._future = self.executor.submit(self.fetch)
        logger.debug("Launched %s fetch", self.name)
        return True

    def collect(self) -> ChannelResult[T] | None:
        """Return the finished result, or None if nothing has completed."""
        future = self._future
        if future is None or not future.done():
            return None
        started_at = self._started_at if self._started_at is not None else self.clock()
        self._future = None
        self._started_at = None
        error = CancelledError() if future.cancelled() else future.exception()
        if error is not None:
            logger.warning("%s fetch failed: %s", self.name, error)
            return ChannelResult(None, error, started_at, self.clock())
        return ChannelResult(future.result(), None, started_at, self.clock())

    def reset(self) -> None:
        """Forget the throttle so the next request launches immediately."""
        self._last_launch = None
