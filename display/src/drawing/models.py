"""Core data models for the raffle drawing display."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class DrawStatus(Enum):
    """Raffle states as reported by the drawing backend."""

    ACTIVE = "Active"
    DRAWING = "Drawing"
    COMPLETED = "Completed"

    @classmethod
    def parse(cls, value: Any) -> "DrawStatus":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        raise ValueError(f"Unknown drawing status: {value!r}")


class AnimationStage(Enum):
    """Transient per-participant tag owned by the elimination sequencer."""

    NONE = "none"
    PENDING = "pending"
    SHAKE = "shake"
    SHRINK = "shrink"
    EXIT = "exit"
    RECENTLY_ENTERED = "recentlyEntered"


class DigitPhase(Enum):
    UNREVEALED = "unrevealed"
    SPINNING = "spinning"
    LANDED = "landed"


class WinnerStage(Enum):
    HIDDEN = "hidden"
    DARK = "dark"
    SPOTLIGHT = "spotlight"
    CARD_REVEAL = "cardReveal"
    VISIBLE = "visible"


def _as_int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def is_range_eligible(ticket_start: Optional[int], ticket_end: Optional[int], revealed: str, width: int) -> bool:
    """Return True when any ticket in the inclusive range still matches the revealed prefix.

    Tickets are compared in their zero-padded form, the same way the drawing
    backend decides ``isStillEligible``.
    """
    if ticket_start is None or ticket_end is None:
        return False
    if not revealed:
        return True
    prefix_len = len(revealed)
    scale = 10 ** max(0, width - prefix_len)
    # Tickets sharing a prefix form one contiguous block [p*scale, (p+1)*scale - 1].
    prefix_value = int(revealed)
    block_start = prefix_value * scale
    block_end = block_start + scale - 1
    return ticket_start <= block_end and ticket_end >= block_start


@dataclass
class DrawSession:
    """Authoritative state of one raffle drawing."""

    session_id: int
    ticket_digits: int
    revealed_digits: str = ""
    status: DrawStatus = DrawStatus.ACTIVE
    winning_number: Optional[int] = None
    name: str = ""
    total_tickets_sold: int = 0

    def __post_init__(self) -> None:
        if self.ticket_digits <= 0:
            raise ValueError(f"ticket_digits must be positive, got {self.ticket_digits}")
        if len(self.revealed_digits) > self.ticket_digits:
            raise ValueError(
                f"revealed digits '{self.revealed_digits}' exceed ticket width {self.ticket_digits}"
            )
        if self.revealed_digits and not self.revealed_digits.isdigit():
            raise ValueError(f"revealed digits must be decimal, got '{self.revealed_digits}'")

    @property
    def all_digits_revealed(self) -> bool:
        return len(self.revealed_digits) >= self.ticket_digits

    @property
    def progress_label(self) -> str:
        return f"Digit {len(self.revealed_digits)} of {self.ticket_digits} revealed"

    def digit_at(self, position: int) -> Optional[int]:
        if position < len(self.revealed_digits):
            return int(self.revealed_digits[position])
        return None

    def padded_pattern(self, fill: str = "?") -> str:
        return self.revealed_digits.ljust(self.ticket_digits, fill)

    def formatted_winning_number(self) -> Optional[str]:
        if self.winning_number is None:
            return None
        return str(self.winning_number).zfill(self.ticket_digits)


@dataclass
class Participant:
    """One raffle entrant as summarized in the drawing payload."""

    participant_id: int
    ticket_start: Optional[int]
    ticket_end: Optional[int]
    total_tickets: int
    is_still_eligible: bool = True
    is_winner: bool = False
    name: str = ""
    avatar_url: Optional[str] = None

    def ticket_range_label(self, width: int) -> str:
        start = "" if self.ticket_start is None else str(self.ticket_start).zfill(width)
        end = "" if self.ticket_end is None else str(self.ticket_end).zfill(width)
        return f"{start}-{end}"

    @property
    def display_name(self) -> str:
        return self.name.split(" ")[0] if self.name else f"#{self.participant_id}"


@dataclass
class Prize:
    prize_id: int
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    value: Optional[float] = None
    display_order: int = 0
    is_grand_prize: bool = False


@dataclass
class Snapshot:
    """One fetched, point-in-time view of the drawing."""

    session: DrawSession
    participants: List[Participant] = field(default_factory=list)
    prizes: List[Prize] = field(default_factory=list)
    received_at: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "Snapshot":
        """Build a snapshot from the backend's camelCase ``data`` object."""
        if not isinstance(data, dict):
            raise ValueError("drawing payload must be an object")

        session = DrawSession(
            session_id=_as_int(data.get("raffleId")),
            name=data.get("name") or "",
            ticket_digits=_as_int(data.get("ticketDigits"), 6),
            revealed_digits=data.get("revealedDigits") or "",
            status=DrawStatus.parse(data.get("status")),
            winning_number=_as_optional_int(data.get("winningNumber")),
            total_tickets_sold=_as_int(data.get("totalTicketsSold")),
        )
        participants = [
            Participant(
                participant_id=_as_int(p.get("participantId")),
                name=p.get("name") or "",
                avatar_url=p.get("avatarUrl"),
                ticket_start=_as_optional_int(p.get("ticketStart")),
                ticket_end=_as_optional_int(p.get("ticketEnd")),
                total_tickets=_as_int(p.get("totalTickets")),
                is_still_eligible=bool(p.get("isStillEligible")),
                is_winner=bool(p.get("isWinner")),
            )
            for p in data.get("participants") or []
        ]
        participants.sort(key=lambda p: (p.ticket_start is None, p.ticket_start or 0))
        prizes = [
            Prize(
                prize_id=_as_int(p.get("prizeId")),
                name=p.get("name") or "",
                description=p.get("description"),
                image_url=p.get("imageUrl"),
                value=p.get("value"),
                display_order=_as_int(p.get("displayOrder")),
                is_grand_prize=bool(p.get("isGrandPrize")),
            )
            for p in data.get("prizes") or []
        ]
        prizes.sort(key=lambda p: p.display_order)
        return cls(session=session, participants=participants, prizes=prizes)

    @property
    def eligible_ids(self) -> Tuple[int, ...]:
        return tuple(p.participant_id for p in self.participants if p.is_still_eligible)

    @property
    def participant_ids(self) -> Tuple[int, ...]:
        return tuple(p.participant_id for p in self.participants)

    def eligible_totals(self) -> Tuple[int, int]:
        eligible = [p for p in self.participants if p.is_still_eligible]
        return len(eligible), sum(p.total_tickets for p in eligible)

    def get_participant(self, participant_id: int) -> Optional[Participant]:
        for participant in self.participants:
            if participant.participant_id == participant_id:
                return participant
        return None

    @property
    def winner(self) -> Optional[Participant]:
        for participant in self.participants:
            if participant.is_winner:
                return participant
        return None

    @property
    def grand_prize(self) -> Optional[Prize]:
        for prize in self.prizes:
            if prize.is_grand_prize:
                return prize
        return self.prizes[0] if self.prizes else None

    def fingerprint(self) -> Tuple[Any, ...]:
        """Content key used to suppress redundant renders between polls."""
        winner = self.winner
        return (
            self.session.status,
            self.session.revealed_digits,
            self.eligible_ids,
            self.participant_ids,
            self.eligible_totals(),
            winner.participant_id if winner else None,
        )


@dataclass(frozen=True)
class EliminationDelta:
    """Participants who lost eligibility with one revealed digit."""

    eliminated_ids: Tuple[int, ...]
    digit_index: int
    digit_value: str


@dataclass
class EliminationLogEntry:
    """Admin-facing record of one reveal cycle."""

    digit_number: int
    digit_value: str
    pattern: str
    eliminated: List[str]
    remaining_count: int
    logged_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class TimelineEvent:
    """Entry in the presentation timeline pushed to display clients."""

    kind: str
    at: float
    details: Dict[str, Any] = field(default_factory=dict)
