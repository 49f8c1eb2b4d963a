"""
Animation Scheduler - Owns every cancellable timer used by the drawing display
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from typing import Callable, List, Optional, Set, Tuple

from utils.logger import get_logger

logger = get_logger(__name__)


class TimerHandle:
    """Cancellable reference to one scheduled callback."""

    def __init__(self, owner: "Scheduler", due: float, callback: Callable[[], None]):
        self._owner = owner
        self.due = due
        self._callback = callback
        self.cancelled = False
        self.fired = False
        self._loop_handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        if not self.pending:
            return
        self.cancelled = True
        if self._loop_handle is not None:
            self._loop_handle.cancel()
        self._owner._forget(self)

    def _run(self) -> None:
        if not self.pending:
            return
        self.fired = True
        self._owner._forget(self)
        try:
            self._callback()
        except Exception as exc:
            logger.exception("Scheduled callback failed: %s", exc)


class Scheduler:
    """Base scheduler: ``schedule(delay, callback)`` and ``cancel_all()``."""

    def __init__(self) -> None:
        self._handles: Set[TimerHandle] = set()

    def now(self) -> float:
        raise NotImplementedError

    def schedule(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        raise NotImplementedError

    @property
    def pending_count(self) -> int:
        return len(self._handles)

    def cancel_all(self) -> int:
        """Cancel every pending timer and return how many were dropped."""
        handles = list(self._handles)
        for handle in handles:
            handle.cancel()
        if handles:
            logger.debug("Cancelled %d pending timers", len(handles))
        return len(handles)

    def _forget(self, handle: TimerHandle) -> None:
        self._handles.discard(handle)


class LoopScheduler(Scheduler):
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        super().__init__()
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return self._get_loop().time()

    def schedule(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._get_loop()
        delay = max(0.0, float(delay))
        handle = TimerHandle(self, loop.time() + delay, callback)
        handle._loop_handle = loop.call_later(delay, handle._run)
        self._handles.add(handle)
        return handle


class ManualScheduler(Scheduler):
    """Virtual-clock scheduler advanced explicitly.

    Timers due at the same instant fire in scheduling order. Callbacks may
    schedule further timers; those run within the same ``advance`` call when
    they fall inside the window.
    """

    def __init__(self, start: float = 0.0) -> None:
        super().__init__()
        self._now = start
        self._queue: List[Tuple[float, int, TimerHandle]] = []
        self._counter = itertools.count()

    def now(self) -> float:
        return self._now

    def schedule(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(self, self._now + max(0.0, float(delay)), callback)
        heapq.heappush(self._queue, (handle.due, next(self._counter), handle))
        self._handles.add(handle)
        return handle

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing every timer that falls due. Returns fired count."""
        target = self._now + max(0.0, seconds)
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            if not handle.pending:
                continue
            self._now = max(self._now, due)
            handle._run()
            fired += 1
        self._now = target
        return fired

    def run_until_idle(self, limit: float = 3600.0) -> float:
        """Fire timers until none remain (bounded by ``limit`` seconds). Returns elapsed time."""
        start = self._now
        while self._handles:
            next_due = min(handle.due for handle in self._handles)
            if next_due - start > limit:
                logger.warning("ManualScheduler stopped after %.1fs with %d timers pending", limit, len(self._handles))
                break
            self.advance(max(0.0, next_due - self._now))
        return self._now - start
