"""Eligibility diffing between consecutive accepted snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from drawing.models import EliminationDelta, Snapshot, is_range_eligible
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class DiffResult:
    """Outcome of comparing one new snapshot with the current baseline."""

    previous_digits: str
    revealed_digits: str
    survivors: Tuple[int, ...]
    delta: Optional[EliminationDelta] = None
    new_positions: Tuple[int, ...] = ()
    resync: bool = False
    regained: Tuple[int, ...] = field(default_factory=tuple)

    @property
    def digits_grew(self) -> bool:
        return bool(self.new_positions)


class DiffEngine:
    """Tracks the previous eligible set and revealed prefix.

    ``diff`` only does work when the revealed digits changed; identical or
    digit-stable snapshots return ``None`` so repeated polls never replay an
    elimination.
    """

    def __init__(self) -> None:
        self._previous_eligible: Dict[int, None] = {}
        self._revealed = ""
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def revealed_digits(self) -> str:
        return self._revealed

    @property
    def previous_eligible_ids(self) -> Tuple[int, ...]:
        return tuple(self._previous_eligible)

    def rebaseline(self, snapshot: Snapshot) -> None:
        """Adopt the snapshot as the new baseline without producing a delta."""
        self._previous_eligible = dict.fromkeys(snapshot.eligible_ids)
        self._revealed = snapshot.session.revealed_digits
        self._initialized = True
        logger.debug(
            "Diff baseline set: revealed='%s' eligible=%d", self._revealed, len(self._previous_eligible)
        )

    def clear(self) -> None:
        self._previous_eligible = {}
        self._revealed = ""
        self._initialized = False

    def diff(self, snapshot: Snapshot) -> Optional[DiffResult]:
        revealed = snapshot.session.revealed_digits
        if revealed == self._revealed:
            return None

        previous_digits = self._revealed
        current_ids = snapshot.eligible_ids
        current = set(current_ids)

        if not revealed.startswith(previous_digits):
            logger.warning(
                "Revealed digits moved from '%s' to '%s' without a reveal; resynchronizing",
                previous_digits, revealed,
            )
            self.rebaseline(snapshot)
            return DiffResult(
                previous_digits=previous_digits,
                revealed_digits=revealed,
                survivors=current_ids,
                resync=True,
            )

        eliminated = tuple(pid for pid in self._previous_eligible if pid not in current)
        regained = tuple(pid for pid in current_ids if pid not in self._previous_eligible)
        if regained:
            logger.warning("Participants %s regained eligibility without a reset; ignoring", list(regained))
        unmatched = unmatched_eligible(snapshot)
        if unmatched:
            logger.warning("Participants %s are eligible but hold no ticket matching '%s'", list(unmatched), revealed)

        delta = None
        if eliminated:
            delta = EliminationDelta(
                eliminated_ids=eliminated,
                digit_index=len(revealed) - 1,
                digit_value=revealed[-1],
            )

        self._previous_eligible = dict.fromkeys(current_ids)
        self._revealed = revealed

        return DiffResult(
            previous_digits=previous_digits,
            revealed_digits=revealed,
            survivors=current_ids,
            delta=delta,
            new_positions=tuple(range(len(previous_digits), len(revealed))),
            regained=regained,
        )


def describe_eliminated(snapshot: Snapshot, participant_ids: Tuple[int, ...]) -> List[str]:
    """Human-readable labels ("Name (start-end)") for the elimination log."""
    labels: List[str] = []
    for participant_id in participant_ids:
        participant = snapshot.get_participant(participant_id)
        if participant is None:
            labels.append(f"#{participant_id}")
            continue
        labels.append(f"{participant.name} ({participant.ticket_start}-{participant.ticket_end})")
    return labels


def unmatched_eligible(snapshot: Snapshot) -> Tuple[int, ...]:
    """Ids the backend reports eligible whose ticket range cannot match the revealed prefix."""
    session = snapshot.session
    return tuple(
        p.participant_id
        for p in snapshot.participants
        if p.is_still_eligible
        and not is_range_eligible(p.ticket_start, p.ticket_end, session.revealed_digits, session.ticket_digits)
    )
