"""Flip-panel animation for newly revealed digits."""

from __future__ import annotations

import random
from typing import Callable, Dict, Optional, Set

from drawing.models import DigitPhase
from drawing.scheduler import Scheduler, TimerHandle
from drawing.store import PresentationStore
from drawing.timings import AnimationTimings
from utils.logger import get_logger

logger = get_logger(__name__)


class DigitRevealSequencer:
    """Drives one flip panel per digit position.

    A position animates at most once until ``clear()``; a value that is
    already known when first seen is settled without animation so a remount
    never replays it.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        store: PresentationStore,
        timings: AnimationTimings,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._scheduler = scheduler
        self._store = store
        self._timings = timings
        self._rng = rng or random.Random()
        self._animated: Set[int] = set()
        self._displayed: Dict[int, int] = {}
        self._spinning: Dict[int, TimerHandle] = {}

    def has_animated(self, position: int) -> bool:
        return position in self._animated

    @property
    def spinning_positions(self) -> Set[int]:
        return set(self._spinning)

    def settle(self, position: int, digit: int) -> None:
        """Show a stable value without animating it."""
        self._animated.add(position)
        self._displayed[position] = digit
        self._store.set_panel(position, DigitPhase.LANDED, digit)

    def reveal(self, position: int, digit: int, on_complete: Callable[[int], None]) -> bool:
        """Start the spin for ``position``. Returns False if that position already animated."""
        if position in self._animated:
            logger.debug("Digit position %d already animated; ignoring reveal", position)
            return False
        self._animated.add(position)

        steps = self._timings.spin_min_steps + self._rng.randrange(self._timings.spin_extra_steps + 1)
        start = self._displayed.get(position, 0)
        logger.info("Spinning digit %d towards %d over %d steps", position + 1, digit, steps)
        self._store.set_panel(position, DigitPhase.SPINNING, start)
        self._store.record("digit_spin_started", position=position, steps=steps)
        self._schedule_step(position, digit, start, 0, steps, on_complete)
        return True

    def _schedule_step(
        self,
        position: int,
        target: int,
        start: int,
        step: int,
        steps: int,
        on_complete: Callable[[int], None],
    ) -> None:
        # Each step waits slightly longer than the previous one
        delay = self._timings.spin_base_delay + step * self._timings.spin_step_increment
        self._spinning[position] = self._scheduler.schedule(
            delay, lambda: self._advance(position, target, start, step, steps, on_complete)
        )

    def _advance(
        self,
        position: int,
        target: int,
        start: int,
        step: int,
        steps: int,
        on_complete: Callable[[int], None],
    ) -> None:
        if step < steps:
            self._store.set_panel(position, DigitPhase.SPINNING, (start + step) % 10)
            self._schedule_step(position, target, start, step + 1, steps, on_complete)
            return

        self._spinning.pop(position, None)
        self._displayed[position] = target
        self._store.set_panel(position, DigitPhase.LANDED, target)
        self._store.record("digit_landed", position=position, digit=target)
        on_complete(position)

    def clear(self, width: Optional[int] = None) -> None:
        """Forget every animated position and blank the panels."""
        for handle in self._spinning.values():
            handle.cancel()
        self._spinning = {}
        self._animated = set()
        self._displayed = {}
        self._store.reset_panels(width)
