"""
Drawing Engine - Reconciles polled snapshots with the animation pipeline
"""

from __future__ import annotations

import itertools
import random
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set, Tuple

from backend.client import DrawingBackendClient
from drawing.counters import CounterReconciler, SurvivorGlow
from drawing.diff import DiffEngine, DiffResult, describe_eliminated
from drawing.digits import DigitRevealSequencer
from drawing.elimination import EliminationBatch, EliminationSequencer
from drawing.gateway import RESET, REVEAL_NEXT, START, CommandGateway, CommandResult
from drawing.models import DrawStatus, EliminationLogEntry, Snapshot
from drawing.poller import SnapshotPoller
from drawing.scheduler import LoopScheduler, Scheduler
from drawing.store import PresentationStore
from drawing.timings import AnimationTimings
from drawing.winner import WinnerPresenter
from utils.config import get_int
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class RevealCycle:
    """Everything triggered by the revealed prefix growing in one accepted snapshot."""

    cycle_id: int
    result: DiffResult
    totals: Tuple[int, int]
    pending_positions: Set[int] = field(default_factory=set)


class DrawingEngine:
    """Owns the snapshot baseline and every sequencer of the drawing display.

    Poll responses and command responses both arrive here. A snapshot whose
    revealed digits grew starts a reveal cycle: the new digits spin first, and
    only once they have landed does the elimination batch play, after which
    the counters move and reveals unlock.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        *,
        client: Optional[DrawingBackendClient] = None,
        raffle_id: Optional[int] = None,
        scheduler: Optional[Scheduler] = None,
        store: Optional[PresentationStore] = None,
        timings: Optional[AnimationTimings] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config or {}
        self.timings = timings or AnimationTimings.from_config(self.config)
        self.scheduler = scheduler or LoopScheduler()
        self.store = store or PresentationStore()
        self.store.set_clock(self.scheduler.now)
        self.raffle_id = raffle_id if raffle_id is not None else get_int(self.config, "drawing.raffle_id", 0)

        self.diff = DiffEngine()
        self.digits = DigitRevealSequencer(self.scheduler, self.store, self.timings, rng=rng)
        self.elimination = EliminationSequencer(self.scheduler, self.store, self.timings)
        self.counters = CounterReconciler(self.scheduler, self.store, self.timings)
        self.glow = SurvivorGlow(self.scheduler, self.store, self.timings)
        self.winner = WinnerPresenter(self.scheduler, self.store, self.timings)

        self._cycles: Dict[int, RevealCycle] = {}
        self._cycle_ids = itertools.count(1)
        self._fingerprint: Optional[tuple] = None
        self._held_winner_snapshot: Optional[Snapshot] = None
        self._epoch = 0
        self._disposed = False

        self.gateway: Optional[CommandGateway] = None
        self.poller: Optional[SnapshotPoller] = None
        if client is not None:
            self.poller = SnapshotPoller(
                client,
                self.raffle_id,
                lambda snapshot: self.apply_snapshot(snapshot, source="poll"),
                interval=self.timings.poll_interval,
                epoch=lambda: self._epoch,
            )
            self.gateway = CommandGateway(
                client,
                self.raffle_id,
                self.store,
                on_snapshot=self._on_command_snapshot,
                is_pipeline_active=lambda: self.pipeline_active,
                after_success=self.poller.poll_now,
            )

        logger.info("Drawing engine initialized for raffle %s", self.raffle_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> None:
        """Fetch the first snapshot and start the background poller."""
        if self.poller is None:
            raise RuntimeError("Drawing engine has no backend client")
        await self.poller.poll()
        await self.poller.start()

    async def stop(self) -> None:
        if self.poller is not None:
            await self.poller.stop()
        self.dispose()

    def dispose(self) -> None:
        """Cancel every timer; nothing mutates the store afterwards."""
        if self._disposed:
            return
        self._disposed = True
        if self.gateway is not None:
            self.gateway.dispose()
        cancelled = self.scheduler.cancel_all()
        self.elimination.clear()
        self._cycles = {}
        self._held_winner_snapshot = None
        logger.info("Drawing engine disposed (%d timers cancelled)", cancelled)

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def pipeline_active(self) -> bool:
        return bool(self._cycles)

    # ------------------------------------------------------------------
    # Snapshot intake
    # ------------------------------------------------------------------
    def apply_snapshot(self, snapshot: Snapshot, source: str = "poll") -> bool:
        """Reconcile one snapshot. Returns False when it changed nothing."""
        if self._disposed:
            return False

        fingerprint = snapshot.fingerprint()
        if self.diff.initialized and fingerprint == self._fingerprint:
            return False

        previous = self.store.get_snapshot()
        self._fingerprint = fingerprint
        self.store.set_snapshot(snapshot)
        self.store.record(
            "snapshot_accepted",
            source=source,
            status=snapshot.session.status.value,
            revealed=snapshot.session.revealed_digits,
        )

        if not self.diff.initialized:
            self._adopt_baseline(snapshot)
            self.winner.observe(snapshot)
            return True

        result = self.diff.diff(snapshot)
        if result is None:
            if not self.pipeline_active:
                self.diff.rebaseline(snapshot)
                self.counters.update(*snapshot.eligible_totals())
        elif result.resync:
            self.store.record("resync", revealed=snapshot.session.revealed_digits)
            self.reset_presentation(snapshot)
        elif result.digits_grew:
            self._begin_cycle(snapshot, previous or snapshot, result)

        self._observe_winner(snapshot)
        return True

    def _adopt_baseline(self, snapshot: Snapshot) -> None:
        """First snapshot, start or reset: show the state as-is without animating it."""
        session = snapshot.session
        self.digits.clear(session.ticket_digits)
        for position, char in enumerate(session.revealed_digits):
            self.digits.settle(position, int(char))
        self.counters.snap(*snapshot.eligible_totals())
        self.diff.rebaseline(snapshot)

    def reset_presentation(self, snapshot: Snapshot) -> None:
        """Drop every in-flight animation and show ``snapshot`` as the new baseline."""
        cancelled = self.scheduler.cancel_all()
        self.elimination.clear()
        self._cycles = {}
        self._held_winner_snapshot = None
        self.store.clear_presentation()
        self.store.clear_log()
        self.counters.clear()
        self.glow.clear()
        self.winner.rearm()
        self.diff.clear()
        self._adopt_baseline(snapshot)
        if self.gateway is not None:
            self.gateway.release_reveal_lock()
        logger.info("Presentation reset (%d timers cancelled)", cancelled)

    # ------------------------------------------------------------------
    # Reveal cycles
    # ------------------------------------------------------------------
    def _begin_cycle(self, snapshot: Snapshot, previous: Snapshot, result: DiffResult) -> None:
        cycle_id = next(self._cycle_ids)
        cycle = RevealCycle(
            cycle_id=cycle_id,
            result=result,
            totals=snapshot.eligible_totals(),
            pending_positions=set(result.new_positions),
        )
        self._cycles[cycle_id] = cycle

        revealed = result.revealed_digits
        eliminated_ids = result.delta.eliminated_ids if result.delta else ()
        self.store.add_log_entry(EliminationLogEntry(
            digit_number=len(revealed),
            digit_value=revealed[-1],
            pattern=snapshot.session.padded_pattern("_"),
            eliminated=describe_eliminated(previous, eliminated_ids),
            remaining_count=len(result.survivors),
        ))
        self.store.record(
            "cycle_started",
            cycle=cycle_id,
            positions=list(result.new_positions),
            eliminated=list(eliminated_ids),
        )

        self.elimination.enqueue(cycle_id, result.delta, snapshot.participant_ids, self._on_batch_done)

        for position in result.new_positions:
            digit = int(revealed[position])
            started = self.digits.reveal(
                position, digit, lambda landed, cid=cycle_id: self._on_digit_landed(cid, landed)
            )
            if not started:
                self._on_digit_landed(cycle_id, position)

    def _on_digit_landed(self, cycle_id: int, position: int) -> None:
        cycle = self._cycles.get(cycle_id)
        if cycle is None:
            return
        cycle.pending_positions.discard(position)
        if cycle.pending_positions:
            return

        delta = cycle.result.delta
        self.store.record(
            "reveal_complete",
            cycle=cycle_id,
            digit_index=len(cycle.result.revealed_digits) - 1,
            digit=cycle.result.revealed_digits[-1],
            eliminations=len(delta.eliminated_ids) if delta else 0,
        )
        self.glow.apply(cycle.result.survivors)
        self.elimination.release(cycle_id)
        if self._held_winner_snapshot is not None and not self._digits_in_flight():
            held, self._held_winner_snapshot = self._held_winner_snapshot, None
            self.winner.observe(held)

    def _digits_in_flight(self) -> bool:
        return any(cycle.pending_positions for cycle in self._cycles.values())

    def _observe_winner(self, snapshot: Snapshot) -> None:
        # the overlay waits until every revealed digit has landed
        if self._digits_in_flight():
            self._held_winner_snapshot = snapshot
            return
        self._held_winner_snapshot = None
        self.winner.observe(snapshot)

    def _on_batch_done(self, batch: EliminationBatch) -> None:
        cycle = self._cycles.pop(batch.cycle_id, None)
        if cycle is None:
            return
        totals = cycle.totals
        latest = self.store.get_snapshot()
        if not self._cycles and latest is not None:
            # digit-stable snapshots accepted mid-pipeline may carry newer totals
            totals = latest.eligible_totals()
        self.counters.update(*totals)
        self.store.record("cycle_complete", cycle=batch.cycle_id, people=totals[0], tickets=totals[1])
        if not self._cycles and self.gateway is not None:
            self.gateway.release_reveal_lock()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def _on_command_snapshot(self, command: str, snapshot: Snapshot) -> None:
        if self._disposed:
            return
        # polls requested before this point are stale
        self._epoch += 1
        if command in (START, RESET):
            self._fingerprint = snapshot.fingerprint()
            self.store.set_snapshot(snapshot)
            self.store.record("session_boundary", command=command, status=snapshot.session.status.value)
            self.reset_presentation(snapshot)
            self.winner.observe(snapshot)
            return

        self.apply_snapshot(snapshot, source=command)
        if not self.pipeline_active and self.gateway is not None:
            self.gateway.release_reveal_lock()

    def _require_gateway(self) -> CommandGateway:
        if self.gateway is None:
            raise RuntimeError("Drawing engine has no backend client")
        return self.gateway

    async def start_drawing(self) -> CommandResult:
        return await self._require_gateway().start()

    async def reveal_next(self) -> CommandResult:
        return await self._require_gateway().reveal_next()

    async def reveal_digit(self, digit: int) -> CommandResult:
        return await self._require_gateway().reveal_digit(digit)

    async def reset(self) -> CommandResult:
        return await self._require_gateway().reset()

    def replay_winner(self) -> bool:
        return self.winner.replay()

    def dismiss_winner(self) -> None:
        self.winner.dismiss()

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------
    def can_reveal(self) -> bool:
        snapshot = self.store.get_snapshot()
        if self.gateway is None or snapshot is None:
            return False
        return (
            not snapshot.session.all_digits_revealed
            and snapshot.session.status is DrawStatus.DRAWING
            and self.gateway.can_issue(REVEAL_NEXT)
        )

    def view(self) -> Dict[str, Any]:
        view = self.store.serialize_view()
        view["pipelineActive"] = self.pipeline_active
        view["canReveal"] = self.can_reveal()
        return view

    def get_status(self) -> Dict[str, Any]:
        snapshot = self.store.get_snapshot()
        return {
            "raffle_id": self.raffle_id,
            "status": snapshot.session.status.value if snapshot else None,
            "revealed_digits": snapshot.session.revealed_digits if snapshot else None,
            "pipeline_active": self.pipeline_active,
            "pending_timers": self.scheduler.pending_count,
            "polling": bool(self.poller and self.poller.running),
            "poll_failures": self.poller.failures if self.poller else 0,
            "disposed": self._disposed,
        }
