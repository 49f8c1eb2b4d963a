"""Serialized issuance of start / reveal / reset commands."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from backend.client import BackendError, DrawingBackendClient
from drawing.models import Snapshot
from drawing.store import PresentationStore
from utils.logger import get_logger

logger = get_logger(__name__)

START = "start"
REVEAL_NEXT = "reveal_next"
REVEAL_DIGIT = "reveal_digit"
RESET = "reset"

REVEAL_COMMANDS = (REVEAL_NEXT, REVEAL_DIGIT)

_LABELS = {
    START: "start drawing",
    REVEAL_NEXT: "reveal digit",
    REVEAL_DIGIT: "reveal digit",
    RESET: "reset drawing",
}


@dataclass
class CommandResult:
    command: str
    success: bool
    error: Optional[str] = None
    snapshot: Optional[Snapshot] = None
    rejected: bool = False

    def to_dict(self) -> dict:
        return {
            "command": self.command,
            "success": self.success,
            "error": self.error,
            "rejected": self.rejected,
        }


class CommandGateway:
    """Issues one command at a time and keeps reveals locked while a reveal cycle animates.

    The HTTP call for a reveal returns long before its digit has landed and its
    eliminations have played out; the reveal lock is only released through
    ``release_reveal_lock`` once the engine reports the pipeline drained.
    """

    def __init__(
        self,
        client: DrawingBackendClient,
        raffle_id: int,
        store: PresentationStore,
        *,
        on_snapshot: Callable[[str, Snapshot], None],
        is_pipeline_active: Callable[[], bool] = lambda: False,
        after_success: Optional[Callable[[], None]] = None,
    ) -> None:
        self._client = client
        self._raffle_id = raffle_id
        self._store = store
        self._on_snapshot = on_snapshot
        self._is_pipeline_active = is_pipeline_active
        self._after_success = after_success
        self._busy = False
        self._reveal_locked = False
        self._last_command: Optional[str] = None
        self._disposed = False

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def reveal_locked(self) -> bool:
        return self._reveal_locked

    def lock_reason(self, command: str) -> Optional[str]:
        """Why ``command`` cannot be issued right now, or None when it can."""
        if self._disposed:
            return "display is shut down"
        if self._busy:
            return "another command is in progress"
        if command != RESET and (self._reveal_locked or self._is_pipeline_active()):
            return "a reveal is still animating"
        return None

    def can_issue(self, command: str) -> bool:
        return self.lock_reason(command) is None

    async def start(self) -> CommandResult:
        return await self._execute(START, lambda: self._client.start_drawing(self._raffle_id))

    async def reveal_next(self) -> CommandResult:
        return await self._execute(REVEAL_NEXT, lambda: self._client.reveal_next(self._raffle_id))

    async def reveal_digit(self, digit: int) -> CommandResult:
        if not isinstance(digit, int) or isinstance(digit, bool) or not 0 <= digit <= 9:
            message = "Digit must be between 0 and 9"
            self._store.push_error(message)
            return CommandResult(REVEAL_DIGIT, success=False, error=message, rejected=True)
        return await self._execute(REVEAL_DIGIT, lambda: self._client.reveal_digit(self._raffle_id, digit))

    async def reset(self) -> CommandResult:
        return await self._execute(RESET, lambda: self._client.reset_drawing(self._raffle_id))

    def release_reveal_lock(self) -> None:
        if self._reveal_locked:
            self._reveal_locked = False
            logger.info("Reveal pipeline drained; commands unlocked")
            self._publish()

    def dispose(self) -> None:
        self._disposed = True

    async def _execute(self, command: str, call: Callable[[], Awaitable[Snapshot]]) -> CommandResult:
        reason = self.lock_reason(command)
        if reason:
            logger.warning("Rejected %s: %s", command, reason)
            self._store.record("command_rejected", command=command, reason=reason)
            return CommandResult(command, success=False, error=reason, rejected=True)

        self._busy = True
        self._last_command = command
        if command in REVEAL_COMMANDS:
            self._reveal_locked = True
        self._publish()
        self._store.record("command_issued", command=command)

        try:
            snapshot = await call()
        except BackendError as exc:
            self._busy = False
            if command in REVEAL_COMMANDS:
                self._reveal_locked = False
            message = f"Failed to {_LABELS[command]}: {exc.message}"
            logger.error(message)
            self._store.record("command_failed", command=command, error=exc.message)
            self._store.push_error(message)
            self._publish()
            return CommandResult(command, success=False, error=message)

        self._busy = False
        if self._disposed:
            return CommandResult(command, success=True, snapshot=snapshot)
        if command == RESET:
            self._reveal_locked = False
        self._store.record("command_succeeded", command=command)
        self._on_snapshot(command, snapshot)
        self._publish()
        if self._after_success is not None:
            self._after_success()
        return CommandResult(command, success=True, snapshot=snapshot)

    def _publish(self) -> None:
        self._store.set_gateway_state(
            busy=self._busy,
            reveal_locked=self._reveal_locked,
            last_command=self._last_command,
        )
