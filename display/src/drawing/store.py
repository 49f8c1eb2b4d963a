"""In-memory presentation state for the drawing display."""

from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from drawing.models import (
    AnimationStage,
    DigitPhase,
    EliminationLogEntry,
    Participant,
    Prize,
    Snapshot,
    TimelineEvent,
    WinnerStage,
)
from utils.logger import get_logger

logger = get_logger(__name__)

# Stages that keep a participant visible among the possible winners
_IN_PLAY_STAGES = {AnimationStage.PENDING, AnimationStage.SHAKE, AnimationStage.SHRINK, AnimationStage.EXIT}


@dataclass
class DigitPanel:
    position: int
    phase: DigitPhase = DigitPhase.UNREVEALED
    digit: Optional[int] = None


class PresentationStore:
    """Volatile storage for the last accepted snapshot and everything derived from it.

    Sequencers write their piece of the view here; every write is emitted to
    registered listeners (the web server relays them to display clients).
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = lambda: 0.0,
        timeline_capacity: int = 500,
        log_capacity: int = 50,
        error_capacity: int = 5,
    ) -> None:
        self._lock = Lock()
        self._clock = clock
        self._listeners: Dict[str, List[Callable[[dict | None], None]]] = defaultdict(list)
        self._timeline: deque[TimelineEvent] = deque(maxlen=timeline_capacity)
        self._log: deque[EliminationLogEntry] = deque(maxlen=log_capacity)
        self._errors: deque[str] = deque(maxlen=error_capacity)
        self._snapshot: Optional[Snapshot] = None
        self._panels: List[DigitPanel] = []
        self._stages: Dict[int, AnimationStage] = {}
        self._glowing: Tuple[int, ...] = ()
        self._counters = {"people": 0, "tickets": 0}
        self._winner_stage = WinnerStage.HIDDEN
        self._gateway = {"busy": False, "revealLocked": False, "lastCommand": None}

    def set_clock(self, clock: Callable[[], float]) -> None:
        self._clock = clock

    # ------------------------------------------------------------------
    # Listener management
    # ------------------------------------------------------------------
    def add_listener(self, event_type: str, callback: Callable[[dict | None], None]) -> None:
        with self._lock:
            self._listeners[event_type].append(callback)
        logger.debug(f"[PresentationStore] Adding listener for event_type={event_type}, callback={callback}")

    def _emit(self, event_type: str, payload: dict | None) -> None:
        listeners = list(self._listeners.get(event_type, []))
        for callback in listeners:
            try:
                callback(payload)
            except Exception as exc:
                logger.error("Listener for %s failed: %s", event_type, exc)

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------
    def set_snapshot(self, snapshot: Snapshot) -> None:
        with self._lock:
            self._snapshot = snapshot
            width = snapshot.session.ticket_digits
            if len(self._panels) != width:
                self._panels = [DigitPanel(position=i) for i in range(width)]
        self._emit("snapshot_update", self._serialize_session(snapshot))

    def get_snapshot(self) -> Optional[Snapshot]:
        with self._lock:
            return self._snapshot

    # ------------------------------------------------------------------
    # Digit panels
    # ------------------------------------------------------------------
    def set_panel(self, position: int, phase: DigitPhase, digit: Optional[int]) -> None:
        with self._lock:
            while len(self._panels) <= position:
                self._panels.append(DigitPanel(position=len(self._panels)))
            panel = self._panels[position]
            panel.phase = phase
            panel.digit = digit
        self._emit("panel_update", {"position": position, "phase": phase.value, "digit": digit})

    def reset_panels(self, width: Optional[int] = None) -> None:
        with self._lock:
            size = width if width is not None else len(self._panels)
            self._panels = [DigitPanel(position=i) for i in range(size)]
        self._emit("panels_reset", {"width": size})

    def get_panels(self) -> List[DigitPanel]:
        with self._lock:
            return [DigitPanel(p.position, p.phase, p.digit) for p in self._panels]

    # ------------------------------------------------------------------
    # Participant animation stages
    # ------------------------------------------------------------------
    def set_stages(self, participant_ids: Iterable[int], stage: AnimationStage) -> None:
        ids = list(participant_ids)
        with self._lock:
            for participant_id in ids:
                if stage is AnimationStage.NONE:
                    self._stages.pop(participant_id, None)
                else:
                    self._stages[participant_id] = stage
        self._emit("stages_update", {"ids": ids, "stage": stage.value})

    def get_stage(self, participant_id: int) -> AnimationStage:
        with self._lock:
            return self._stages.get(participant_id, AnimationStage.NONE)

    def get_stages(self) -> Dict[int, AnimationStage]:
        with self._lock:
            return dict(self._stages)

    # ------------------------------------------------------------------
    # Counters, glow, winner overlay, gateway, errors
    # ------------------------------------------------------------------
    def set_counters(self, people: int, tickets: int) -> None:
        with self._lock:
            self._counters = {"people": people, "tickets": tickets}
        self._emit("counters_update", {"people": people, "tickets": tickets})

    def get_counters(self) -> Tuple[int, int]:
        with self._lock:
            return self._counters["people"], self._counters["tickets"]

    def set_glow(self, participant_ids: Iterable[int]) -> None:
        ids = tuple(participant_ids)
        with self._lock:
            self._glowing = ids
        self._emit("glow_update", {"ids": list(ids)})

    def get_glow(self) -> Tuple[int, ...]:
        with self._lock:
            return self._glowing

    def set_winner_stage(self, stage: WinnerStage) -> None:
        with self._lock:
            self._winner_stage = stage
            snapshot = self._snapshot
        winner = snapshot.winner if snapshot else None
        self._emit("winner_update", {
            "stage": stage.value,
            "winner": self._serialize_participant(winner, snapshot) if winner else None,
        })

    def get_winner_stage(self) -> WinnerStage:
        with self._lock:
            return self._winner_stage

    def set_gateway_state(self, *, busy: bool, reveal_locked: bool, last_command: Optional[str] = None) -> None:
        with self._lock:
            self._gateway = {
                "busy": busy,
                "revealLocked": reveal_locked,
                "lastCommand": last_command or self._gateway.get("lastCommand"),
            }
            payload = dict(self._gateway)
        self._emit("gateway_update", payload)

    def push_error(self, message: str) -> None:
        with self._lock:
            self._errors.append(message)
        logger.warning("[PresentationStore] error surfaced: %s", message)
        self._emit("error_update", {"errors": self.get_errors()})

    def dismiss_errors(self) -> None:
        with self._lock:
            self._errors.clear()
        self._emit("error_update", {"errors": []})

    def get_errors(self) -> List[str]:
        with self._lock:
            return list(self._errors)

    # ------------------------------------------------------------------
    # Timeline and elimination log
    # ------------------------------------------------------------------
    def record(self, kind: str, **details: Any) -> TimelineEvent:
        event = TimelineEvent(kind=kind, at=self._clock(), details=details)
        with self._lock:
            self._timeline.append(event)
        logger.debug("[PresentationStore] timeline %s at %.3f %s", kind, event.at, details)
        self._emit("timeline", {"kind": kind, "at": event.at, "details": details})
        return event

    def get_timeline(self, limit: Optional[int] = None, kind: Optional[str] = None) -> List[TimelineEvent]:
        with self._lock:
            items = list(self._timeline)
        if kind is not None:
            items = [item for item in items if item.kind == kind]
        if limit is not None:
            return items[-limit:]
        return items

    def add_log_entry(self, entry: EliminationLogEntry) -> None:
        with self._lock:
            self._log.append(entry)
        logger.info(
            "[PresentationStore] digit #%d=%s pattern=%s eliminated=%d remaining=%d",
            entry.digit_number, entry.digit_value, entry.pattern, len(entry.eliminated), entry.remaining_count,
        )
        self._emit("log_update", self._serialize_log_entry(entry))

    def get_log(self, limit: Optional[int] = None) -> List[EliminationLogEntry]:
        with self._lock:
            items = list(self._log)
        if limit is not None:
            return items[-limit:]
        return items

    def clear_log(self) -> None:
        with self._lock:
            self._log.clear()

    # ------------------------------------------------------------------
    # Presentation reset
    # ------------------------------------------------------------------
    def clear_presentation(self) -> None:
        """Drop every transient tag; the snapshot and log are kept."""
        with self._lock:
            self._stages = {}
            self._glowing = ()
            self._winner_stage = WinnerStage.HIDDEN
        self._emit("stages_update", {"ids": [], "stage": AnimationStage.NONE.value})
        self._emit("glow_update", {"ids": []})
        self._emit("winner_update", {"stage": WinnerStage.HIDDEN.value, "winner": None})
        logger.debug("[PresentationStore] clear_presentation called")

    # ------------------------------------------------------------------
    # Serialization helpers
    # ------------------------------------------------------------------
    def serialize_view(self) -> dict:
        """Full view state consumed by display clients."""
        with self._lock:
            snapshot = self._snapshot
            panels = [DigitPanel(p.position, p.phase, p.digit) for p in self._panels]
            stages = dict(self._stages)
            glowing = set(self._glowing)
            people, tickets = self._counters["people"], self._counters["tickets"]
            winner_stage = self._winner_stage
            gateway = dict(self._gateway)
            errors = list(self._errors)

        possible_winners: List[dict] = []
        eliminated: List[dict] = []
        if snapshot:
            for participant in snapshot.participants:
                stage = stages.get(participant.participant_id, AnimationStage.NONE)
                item = self._serialize_participant(participant, snapshot)
                item["stage"] = stage.value
                item["glowing"] = participant.participant_id in glowing
                if participant.is_still_eligible or stage in _IN_PLAY_STAGES:
                    possible_winners.append(item)
                else:
                    eliminated.append(item)

        winner = snapshot.winner if snapshot else None
        return {
            "session": self._serialize_session(snapshot) if snapshot else None,
            "panels": [
                {"position": p.position, "phase": p.phase.value, "digit": p.digit} for p in panels
            ],
            "possibleWinners": possible_winners,
            "eliminated": eliminated,
            "counters": {"people": people, "tickets": tickets},
            "winner": {
                "stage": winner_stage.value,
                "participant": self._serialize_participant(winner, snapshot) if winner else None,
            },
            "grandPrize": self._serialize_prize(snapshot.grand_prize) if snapshot and snapshot.grand_prize else None,
            "gateway": gateway,
            "errors": errors,
        }

    def _serialize_session(self, snapshot: Snapshot) -> dict:
        session = snapshot.session
        return {
            "raffleId": session.session_id,
            "name": session.name,
            "status": session.status.value,
            "ticketDigits": session.ticket_digits,
            "revealedDigits": session.revealed_digits,
            "pattern": session.padded_pattern(),
            "progress": session.progress_label,
            "winningNumber": session.formatted_winning_number(),
            "totalTicketsSold": session.total_tickets_sold,
        }

    def _serialize_participant(self, participant: Participant, snapshot: Optional[Snapshot]) -> dict:
        width = snapshot.session.ticket_digits if snapshot else 0
        return {
            "participantId": participant.participant_id,
            "name": participant.name,
            "displayName": participant.display_name,
            "avatarUrl": participant.avatar_url,
            "ticketRange": participant.ticket_range_label(width),
            "totalTickets": participant.total_tickets,
            "isStillEligible": participant.is_still_eligible,
            "isWinner": participant.is_winner,
        }

    def _serialize_prize(self, prize: Prize) -> dict:
        return {
            "prizeId": prize.prize_id,
            "name": prize.name,
            "value": prize.value,
            "imageUrl": prize.image_url,
            "isGrandPrize": prize.is_grand_prize,
        }

    def _serialize_log_entry(self, entry: EliminationLogEntry) -> dict:
        return {
            "digit": entry.digit_number,
            "value": entry.digit_value,
            "pattern": entry.pattern,
            "eliminated": list(entry.eliminated),
            "remainingCount": entry.remaining_count,
            "time": entry.logged_at.isoformat(),
        }

    def serialize_log(self, limit: Optional[int] = None) -> List[dict]:
        return [self._serialize_log_entry(entry) for entry in self.get_log(limit)]

    def serialize_timeline(self, limit: Optional[int] = None, kind: Optional[str] = None) -> List[dict]:
        return [
            {"kind": event.kind, "at": event.at, "details": event.details}
            for event in self.get_timeline(limit, kind)
        ]
