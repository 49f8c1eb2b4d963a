"""Periodic refresh of the authoritative drawing snapshot."""

from __future__ import annotations

import asyncio
import itertools
from typing import Callable, Optional

from backend.client import BackendError, DrawingBackendClient
from drawing.models import Snapshot
from utils.logger import get_logger

logger = get_logger(__name__)


class SnapshotPoller:
    """Polls the backend on a fixed interval and on demand.

    Failed fetches are logged and retried on the next tick. Responses that
    come back out of order, or that were requested before the latest command
    response was adopted, are discarded.
    """

    def __init__(
        self,
        client: DrawingBackendClient,
        raffle_id: int,
        on_snapshot: Callable[[Snapshot], None],
        *,
        interval: float = 5.0,
        epoch: Callable[[], int] = lambda: 0,
    ) -> None:
        self._client = client
        self._raffle_id = raffle_id
        self._on_snapshot = on_snapshot
        self._interval = interval
        self._epoch = epoch
        self._seq = itertools.count(1)
        self._last_applied_seq = 0
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._wake: Optional[asyncio.Event] = None
        self._stopped = False
        self.failures = 0
        self.discarded = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def poll(self) -> Optional[Snapshot]:
        """Fetch once and hand the snapshot over. Returns None when nothing was applied."""
        if self._stopped:
            return None
        seq = next(self._seq)
        epoch = self._epoch()
        try:
            snapshot = await self._client.get_drawing(self._raffle_id)
        except BackendError as exc:
            self.failures += 1
            logger.warning("Drawing poll failed (%d so far): %s", self.failures, exc)
            return None

        if self._stopped:
            return None
        if seq < self._last_applied_seq or epoch != self._epoch():
            self.discarded += 1
            logger.debug("Discarding stale poll response #%d", seq)
            return None

        self._last_applied_seq = seq
        self._on_snapshot(snapshot)
        return snapshot

    def poll_now(self) -> None:
        """Ask the background loop for an immediate refresh."""
        if self._wake is not None and not self._stopped:
            self._wake.set()

    async def start(self) -> None:
        if self.running:
            return
        self._stopped = False
        self._stop_event = asyncio.Event()
        self._wake = asyncio.Event()
        self._task = asyncio.create_task(self._poll_loop(), name="drawing-poller")
        logger.info("Polling raffle %s every %.1fs", self._raffle_id, self._interval)

    async def stop(self) -> None:
        """Cancel scheduled polling; late responses are dropped."""
        self._stopped = True
        if self._stop_event is not None:
            self._stop_event.set()
        if self._wake is not None:
            self._wake.set()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Drawing poller stopped")

    async def _poll_loop(self) -> None:
        assert self._stop_event is not None and self._wake is not None
        while not self._stop_event.is_set():
            try:
                await self.poll()
            except Exception as exc:
                logger.error("Drawing poll loop error: %s", exc)

            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
            self._wake.clear()
