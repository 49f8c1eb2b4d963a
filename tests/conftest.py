"""Shared fixtures: payload builders and an in-memory drawing backend."""

from __future__ import annotations

import asyncio
import random
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from backend.client import BackendError
from drawing.engine import DrawingEngine
from drawing.models import Snapshot, is_range_eligible
from drawing.scheduler import ManualScheduler
from drawing.store import PresentationStore

# (participant_id, name, ticket_start, ticket_end)
Entrant = Tuple[int, str, int, int]

TEN_ENTRANTS: List[Entrant] = [
    (1, "Alice Chen", 0, 99),
    (2, "Bob Li", 1000, 1099),
    (3, "Carol Wu", 2000, 2099),
    (4, "Dan Zhao", 3000, 3099),
    (5, "Eve Sun", 3100, 3199),
    (6, "Frank Ma", 3200, 3299),
    (7, "Grace Hu", 3300, 3399),
    (8, "Heidi Xu", 3400, 3499),
    (9, "Ivan Lin", 3500, 3599),
    (10, "Judy Gao", 3600, 3699),
]


def drawing_payload(
    entrants: Sequence[Entrant] = TEN_ENTRANTS,
    revealed: str = "",
    status: str = "Drawing",
    width: int = 4,
    winning_number: Optional[int] = None,
    raffle_id: int = 7,
) -> Dict:
    """Backend-shaped ``data`` object with eligibility derived from the ticket ranges."""
    participants = []
    for pid, name, start, end in entrants:
        eligible = is_range_eligible(start, end, revealed, width)
        is_winner = winning_number is not None and start <= winning_number <= end and status == "Completed"
        participants.append({
            "participantId": pid,
            "name": name,
            "avatarUrl": None,
            "ticketStart": start,
            "ticketEnd": end,
            "totalTickets": end - start + 1,
            "isStillEligible": eligible,
            "isWinner": is_winner,
        })
    return {
        "raffleId": raffle_id,
        "name": "Spring Gala Raffle",
        "status": status,
        "ticketDigits": width,
        "revealedDigits": revealed or None,
        "winningNumber": winning_number if status == "Completed" else None,
        "totalTicketsSold": sum(end - start + 1 for _, _, start, end in entrants),
        "participants": participants,
        "prizes": [
            {"prizeId": 1, "name": "Weekend Trip", "isGrandPrize": True, "displayOrder": 1, "value": 1200},
            {"prizeId": 2, "name": "Gift Card", "isGrandPrize": False, "displayOrder": 2, "value": 50},
        ],
    }


def make_snapshot(revealed: str = "", **kwargs) -> Snapshot:
    return Snapshot.from_payload(drawing_payload(revealed=revealed, **kwargs))


class FakeDrawingBackend:
    """Async stand-in for ``DrawingBackendClient`` that plays the backend's rules.

    ``reveal_next`` appends the next digit of ``winning_number``; the drawing
    completes once every digit is known.
    """

    def __init__(
        self,
        entrants: Sequence[Entrant] = TEN_ENTRANTS,
        winning_number: int = 3412,
        width: int = 4,
        status: str = "Active",
        revealed: str = "",
    ) -> None:
        self.entrants = list(entrants)
        self.winning_number = winning_number
        self.width = width
        self.status = status
        self.revealed = revealed
        self.calls: List[Tuple[str, Optional[int]]] = []
        self.fail_next: Optional[str] = None
        self.fail_polls = False
        self.hold: Optional[asyncio.Event] = None

    def payload(self) -> Dict:
        return drawing_payload(
            self.entrants,
            revealed=self.revealed,
            status=self.status,
            width=self.width,
            winning_number=self.winning_number,
        )

    def snapshot(self) -> Snapshot:
        return Snapshot.from_payload(self.payload())

    async def _respond(self, name: str, arg: Optional[int] = None) -> Snapshot:
        self.calls.append((name, arg))
        if self.hold is not None:
            await self.hold.wait()
        if self.fail_next:
            message, self.fail_next = self.fail_next, None
            raise BackendError(message, status_code=400)
        return self.snapshot()

    async def get_drawing(self, raffle_id: int) -> Snapshot:
        if self.fail_polls:
            self.calls.append(("get", None))
            raise BackendError("connection refused")
        return await self._respond("get")

    async def start_drawing(self, raffle_id: int) -> Snapshot:
        if not self.fail_next:
            self.status = "Drawing"
            self.revealed = ""
        return await self._respond("start")

    async def reveal_next(self, raffle_id: int) -> Snapshot:
        if not self.fail_next:
            target = str(self.winning_number).zfill(self.width)
            self.revealed = target[: len(self.revealed) + 1]
            if len(self.revealed) == self.width:
                self.status = "Completed"
        return await self._respond("reveal_next")

    async def reveal_digit(self, raffle_id: int, digit: int) -> Snapshot:
        if not self.fail_next:
            self.revealed += str(digit)
            if len(self.revealed) == self.width:
                self.status = "Completed"
                self.winning_number = int(self.revealed)
        return await self._respond("reveal_digit", digit)

    async def reset_drawing(self, raffle_id: int) -> Snapshot:
        if not self.fail_next:
            self.status = "Active"
            self.revealed = ""
        return await self._respond("reset")

    async def health_check(self, raffle_id: int) -> Dict:
        return {"status": "ok", "drawing_status": self.status}

    async def close(self) -> None:
        return None


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def store(scheduler: ManualScheduler) -> PresentationStore:
    return PresentationStore(clock=scheduler.now)


@pytest.fixture
def backend() -> FakeDrawingBackend:
    return FakeDrawingBackend(status="Drawing")


@pytest.fixture
def engine(scheduler: ManualScheduler, store: PresentationStore, backend: FakeDrawingBackend) -> DrawingEngine:
    return DrawingEngine(
        {"drawing": {"raffle_id": 7}},
        client=backend,
        scheduler=scheduler,
        store=store,
        rng=random.Random(1234),
    )


def event_kinds(store: PresentationStore) -> List[str]:
    return [event.kind for event in store.get_timeline()]


def first_event(store: PresentationStore, kind: str):
    events = store.get_timeline(kind=kind)
    return events[0] if events else None
