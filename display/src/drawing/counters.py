"""Displayed remaining-people / remaining-tickets counters and the survivor highlight."""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from drawing.scheduler import Scheduler, TimerHandle
from drawing.store import PresentationStore
from drawing.timings import AnimationTimings
from utils.logger import get_logger

logger = get_logger(__name__)


def ease_out_cubic(t: float) -> float:
    t = min(1.0, max(0.0, t))
    return 1.0 - (1.0 - t) ** 3


def interpolation_frames(start: int, target: int, max_steps: int) -> List[int]:
    """Integer frames from ``start`` (exclusive) to ``target`` (inclusive).

    The frame count is ``min(max_steps, |target - start|)`` whatever the size
    of the jump; the last frame is always exactly ``target``.
    """
    distance = target - start
    if distance == 0:
        return []
    steps = max(1, min(max_steps, abs(distance)))
    frames = [int(round(start + distance * ease_out_cubic(i / steps))) for i in range(1, steps)]
    frames.append(target)
    return frames


class CounterReconciler:
    """Interpolates the displayed counters towards authoritative totals."""

    def __init__(self, scheduler: Scheduler, store: PresentationStore, timings: AnimationTimings) -> None:
        self._scheduler = scheduler
        self._store = store
        self._timings = timings
        self._people = 0
        self._tickets = 0
        self._target: Tuple[int, int] = (0, 0)
        self._handle: Optional[TimerHandle] = None

    @property
    def displayed(self) -> Tuple[int, int]:
        return self._people, self._tickets

    @property
    def target(self) -> Tuple[int, int]:
        return self._target

    @property
    def animating(self) -> bool:
        return self._handle is not None and self._handle.pending

    def snap(self, people: int, tickets: int) -> None:
        """Set both counters immediately (session boundaries and first load)."""
        self._cancel()
        self._target = (people, tickets)
        self._people, self._tickets = people, tickets
        self._store.set_counters(people, tickets)

    def update(self, target_people: int, target_tickets: int) -> bool:
        """Animate towards the targets. Returns False when nothing needs to move."""
        if (target_people, target_tickets) == self._target:
            if self.animating or self.displayed == self._target:
                return False

        self._cancel()
        self._target = (target_people, target_tickets)
        max_steps = self._timings.counter_max_steps
        people_frames = interpolation_frames(self._people, target_people, max_steps)
        ticket_frames = interpolation_frames(self._tickets, target_tickets, max_steps)
        if not people_frames and not ticket_frames:
            return False

        logger.info(
            "Counters %d/%d -> %d/%d",
            self._people, self._tickets, target_people, target_tickets,
        )
        self._store.record(
            "counters_target", people=target_people, tickets=target_tickets,
            from_people=self._people, from_tickets=self._tickets,
        )
        frame_count = max(len(people_frames), len(ticket_frames))
        self._schedule_frame(people_frames, ticket_frames, 0, frame_count)
        return True

    def _schedule_frame(self, people_frames: List[int], ticket_frames: List[int], index: int, count: int) -> None:
        self._handle = self._scheduler.schedule(
            self._timings.counter_step_interval,
            lambda: self._apply_frame(people_frames, ticket_frames, index, count),
        )

    def _apply_frame(self, people_frames: List[int], ticket_frames: List[int], index: int, count: int) -> None:
        # The shorter series holds its final value while the longer one finishes
        if people_frames:
            self._people = people_frames[min(index, len(people_frames) - 1)]
        if ticket_frames:
            self._tickets = ticket_frames[min(index, len(ticket_frames) - 1)]
        self._store.set_counters(self._people, self._tickets)
        if index + 1 < count:
            self._schedule_frame(people_frames, ticket_frames, index + 1, count)
        else:
            self._handle = None

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def clear(self) -> None:
        self._cancel()


class SurvivorGlow:
    """Best-effort highlight on everyone who survived a reveal, self-clearing."""

    def __init__(self, scheduler: Scheduler, store: PresentationStore, timings: AnimationTimings) -> None:
        self._scheduler = scheduler
        self._store = store
        self._timings = timings
        self._handle: Optional[TimerHandle] = None

    def apply(self, participant_ids: Iterable[int]) -> None:
        ids = tuple(participant_ids)
        if self._handle is not None:
            self._handle.cancel()
        self._store.set_glow(ids)
        self._store.record("survivors_glow", count=len(ids))
        self._handle = self._scheduler.schedule(self._timings.glow_duration, self._expire)

    def _expire(self) -> None:
        self._handle = None
        self._store.set_glow(())

    def clear(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._store.set_glow(())
