"""One-shot winner reveal overlay."""

from __future__ import annotations

from typing import Optional

from drawing.models import DrawStatus, Snapshot, WinnerStage
from drawing.scheduler import Scheduler, TimerHandle
from drawing.store import PresentationStore
from drawing.timings import AnimationTimings
from utils.logger import get_logger

logger = get_logger(__name__)


class WinnerPresenter:
    """Plays dark -> spotlight -> card reveal -> visible when a drawing completes.

    Polls that keep reporting the same completed drawing never re-fire it; the
    latch rearms only once the status leaves COMPLETED (a reset). ``replay``
    is an explicit operator action and ignores the latch.
    """

    def __init__(self, scheduler: Scheduler, store: PresentationStore, timings: AnimationTimings) -> None:
        self._scheduler = scheduler
        self._store = store
        self._timings = timings
        self._latched = False
        self._handle: Optional[TimerHandle] = None
        self.fire_count = 0

    @property
    def latched(self) -> bool:
        return self._latched

    @property
    def stage(self) -> WinnerStage:
        return self._store.get_winner_stage()

    def observe(self, snapshot: Snapshot) -> bool:
        """Feed a newly accepted snapshot. Returns True if the presentation started."""
        if snapshot.session.status is not DrawStatus.COMPLETED:
            if self._latched:
                logger.info("Drawing left COMPLETED; winner presentation rearmed")
                self.rearm()
            return False

        if self._latched:
            return False
        winner = snapshot.winner
        if winner is None:
            logger.warning("Drawing %d completed without a winner in the snapshot", snapshot.session.session_id)
            return False

        self._latched = True
        logger.info("Presenting winner %s (%s)", winner.name, snapshot.session.formatted_winning_number())
        self._play()
        return True

    def replay(self) -> bool:
        snapshot = self._store.get_snapshot()
        if snapshot is None or snapshot.winner is None:
            logger.warning("Winner replay requested but no winner is known")
            return False
        self._play()
        return True

    def dismiss(self) -> None:
        self._cancel()
        self._store.set_winner_stage(WinnerStage.HIDDEN)
        self._store.record("winner_stage", stage=WinnerStage.HIDDEN.value)

    def rearm(self) -> None:
        self._latched = False
        self._cancel()
        if self._store.get_winner_stage() is not WinnerStage.HIDDEN:
            self._store.set_winner_stage(WinnerStage.HIDDEN)

    def _play(self) -> None:
        self._cancel()
        self.fire_count += 1
        self._enter(WinnerStage.DARK, self._timings.winner_dark_duration, WinnerStage.SPOTLIGHT)

    def _enter(self, stage: WinnerStage, hold: float, next_stage: Optional[WinnerStage]) -> None:
        self._store.set_winner_stage(stage)
        self._store.record("winner_stage", stage=stage.value)
        if next_stage is None:
            self._handle = None
            return
        self._handle = self._scheduler.schedule(hold, lambda: self._advance(next_stage))

    def _advance(self, stage: WinnerStage) -> None:
        if stage is WinnerStage.SPOTLIGHT:
            self._enter(stage, self._timings.winner_spotlight_duration, WinnerStage.CARD_REVEAL)
        elif stage is WinnerStage.CARD_REVEAL:
            self._enter(stage, self._timings.winner_card_duration, WinnerStage.VISIBLE)
        else:
            self._enter(WinnerStage.VISIBLE, 0.0, None)

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
