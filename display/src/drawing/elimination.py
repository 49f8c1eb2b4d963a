"""Batch removal animation for participants eliminated by one reveal cycle."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Iterable, Optional, Tuple

from drawing.models import AnimationStage, EliminationDelta
from drawing.scheduler import Scheduler
from drawing.store import PresentationStore
from drawing.timings import AnimationTimings
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class EliminationBatch:
    cycle_id: int
    participant_ids: Tuple[int, ...]
    delta: Optional[EliminationDelta]
    on_done: Callable[["EliminationBatch"], None]
    ready: bool = False


class EliminationSequencer:
    """Runs pending -> shake -> shrink -> exit for one batch at a time.

    Batches are queued in cycle order and each one waits for ``release``
    (its digit has landed) before any stage runs. All ids of a batch move
    through the stages together.
    """

    def __init__(self, scheduler: Scheduler, store: PresentationStore, timings: AnimationTimings) -> None:
        self._scheduler = scheduler
        self._store = store
        self._timings = timings
        self._queue: Deque[EliminationBatch] = deque()
        self._running: Optional[EliminationBatch] = None

    @property
    def busy(self) -> bool:
        return self._running is not None or bool(self._queue)

    def enqueue(
        self,
        cycle_id: int,
        delta: Optional[EliminationDelta],
        known_ids: Iterable[int],
        on_done: Callable[[EliminationBatch], None],
    ) -> EliminationBatch:
        """Queue the delta of one cycle; its ids are tagged pending straight away."""
        ids: Tuple[int, ...] = ()
        if delta is not None:
            known = set(known_ids)
            ids = tuple(pid for pid in delta.eliminated_ids if pid in known)
            dropped = [pid for pid in delta.eliminated_ids if pid not in known]
            if dropped:
                logger.warning(
                    "Dropping unknown participants %s from elimination for digit %d", dropped, delta.digit_index + 1
                )
        batch = EliminationBatch(cycle_id=cycle_id, participant_ids=ids, delta=delta, on_done=on_done)
        self._queue.append(batch)
        if ids:
            self._store.set_stages(ids, AnimationStage.PENDING)
        return batch

    def release(self, cycle_id: int) -> None:
        """Mark a cycle's digit as landed and start whatever is now at the head."""
        for batch in self._queue:
            if batch.cycle_id == cycle_id:
                batch.ready = True
                break
        else:
            logger.debug("No queued elimination for cycle %d", cycle_id)
        self._pump()

    def _pump(self) -> None:
        if self._running is not None or not self._queue or not self._queue[0].ready:
            return
        batch = self._queue.popleft()
        self._running = batch
        if not batch.participant_ids:
            logger.info("Cycle %d has no eliminations; skipping removal stages", batch.cycle_id)
            self._store.record("elimination_skipped", cycle=batch.cycle_id)
            self._finish(batch)
            return
        self._scheduler.schedule(self._timings.pending_delay, lambda: self._shake(batch))

    def _shake(self, batch: EliminationBatch) -> None:
        if batch is not self._running:
            return
        self._store.set_stages(batch.participant_ids, AnimationStage.SHAKE)
        self._store.record("stage_shake", cycle=batch.cycle_id, ids=list(batch.participant_ids))
        self._scheduler.schedule(self._timings.shake_duration, lambda: self._shrink(batch))

    def _shrink(self, batch: EliminationBatch) -> None:
        if batch is not self._running:
            return
        self._store.set_stages(batch.participant_ids, AnimationStage.SHRINK)
        self._store.record("stage_shrink", cycle=batch.cycle_id, ids=list(batch.participant_ids))
        self._scheduler.schedule(self._timings.shrink_duration, lambda: self._exit(batch))

    def _exit(self, batch: EliminationBatch) -> None:
        if batch is not self._running:
            return
        self._store.set_stages(batch.participant_ids, AnimationStage.EXIT)
        self._store.record("stage_exit", cycle=batch.cycle_id, ids=list(batch.participant_ids))
        self._store.set_stages(batch.participant_ids, AnimationStage.NONE)
        self._store.record("eliminated_removed", cycle=batch.cycle_id, ids=list(batch.participant_ids))
        logger.info("Removed %d eliminated participants for cycle %d", len(batch.participant_ids), batch.cycle_id)
        self._finish(batch)

        self._store.set_stages(batch.participant_ids, AnimationStage.RECENTLY_ENTERED)
        self._scheduler.schedule(self._timings.entered_duration, lambda: self._settle_entered(batch))

    def _settle_entered(self, batch: EliminationBatch) -> None:
        still_entering = [
            pid for pid in batch.participant_ids
            if self._store.get_stage(pid) is AnimationStage.RECENTLY_ENTERED
        ]
        if still_entering:
            self._store.set_stages(still_entering, AnimationStage.NONE)

    def _finish(self, batch: EliminationBatch) -> None:
        self._running = None
        try:
            batch.on_done(batch)
        except Exception as exc:
            logger.error("Elimination completion handler failed for cycle %d: %s", batch.cycle_id, exc)
        self._pump()

    def clear(self) -> None:
        """Forget queued and running batches (timers are cancelled by the scheduler owner)."""
        self._queue.clear()
        self._running = None
