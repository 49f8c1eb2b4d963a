"""Animation pacing for the drawing display (all values in seconds)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from utils.config import get_float, get_int


@dataclass
class AnimationTimings:
    poll_interval: float = 5.0

    # Digit flip panel
    spin_min_steps: int = 20
    spin_extra_steps: int = 10
    spin_base_delay: float = 0.04
    spin_step_increment: float = 0.004

    # Elimination batch
    pending_delay: float = 0.3
    shake_duration: float = 1.2
    shrink_duration: float = 0.6
    entered_duration: float = 0.5

    # Counters and survivor highlight
    counter_max_steps: int = 30
    counter_step_interval: float = 0.03
    glow_duration: float = 2.0

    # Winner overlay
    winner_dark_duration: float = 1.0
    winner_spotlight_duration: float = 1.5
    winner_card_duration: float = 1.0

    def __post_init__(self) -> None:
        if self.pending_delay <= 0:
            # the first shake must come strictly after the digit lands
            raise ValueError("pending_delay must be greater than zero")
        if self.spin_min_steps < 1 or self.spin_extra_steps < 0:
            raise ValueError("spin step counts must be positive")
        if self.counter_max_steps < 1:
            raise ValueError("counter_max_steps must be at least 1")

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "AnimationTimings":
        defaults = cls()
        return cls(
            poll_interval=get_float(config, "drawing.poll_interval_sec", defaults.poll_interval),
            spin_min_steps=get_int(config, "animation.spin_min_steps", defaults.spin_min_steps),
            spin_extra_steps=get_int(config, "animation.spin_extra_steps", defaults.spin_extra_steps),
            spin_base_delay=get_float(config, "animation.spin_base_delay", defaults.spin_base_delay),
            spin_step_increment=get_float(config, "animation.spin_step_increment", defaults.spin_step_increment),
            pending_delay=get_float(config, "animation.pending_delay", defaults.pending_delay),
            shake_duration=get_float(config, "animation.shake_duration", defaults.shake_duration),
            shrink_duration=get_float(config, "animation.shrink_duration", defaults.shrink_duration),
            entered_duration=get_float(config, "animation.entered_duration", defaults.entered_duration),
            counter_max_steps=get_int(config, "animation.counter_max_steps", defaults.counter_max_steps),
            counter_step_interval=get_float(config, "animation.counter_step_interval", defaults.counter_step_interval),
            glow_duration=get_float(config, "animation.glow_duration", defaults.glow_duration),
            winner_dark_duration=get_float(config, "animation.winner_dark_duration", defaults.winner_dark_duration),
            winner_spotlight_duration=get_float(
                config, "animation.winner_spotlight_duration", defaults.winner_spotlight_duration
            ),
            winner_card_duration=get_float(config, "animation.winner_card_duration", defaults.winner_card_duration),
        )
