"""Session state for conversation management."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from worldsmith.orchestration.cancellation import CancellationToken
from worldsmith.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Session:
    """A conversation session.

    A session runs at most one turn at a time. `lock` serializes turns and
    `cancel_token` is replaced at the start of every turn.
    """

    session_id: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_activity: datetime = field(default_factory=lambda: datetime.now(UTC))
    turn_count: int = 0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    cancel_token: CancellationToken | None = field(default=None, repr=False)

    @property
    def turn_active(self) -> bool:
        return self.lock.locked()

    def as_dict(self) -> dict[str, Any]:
        """Return the session as a dictionary."""
        return {
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
            "turn_count": self.turn_count,
            "turn_active": self.turn_active,
        }

    def update_activity(self) -> None:
        """Update the last activity timestamp."""
        self.last_activity = datetime.now(UTC)

    def begin_turn(self) -> CancellationToken:
        """Start a new turn and hand out its cancellation token."""
        self.turn_count += 1
        self.cancel_token = CancellationToken()
        self.update_activity()
        return self.cancel_token

    def end_turn(self) -> None:
        self.cancel_token = None
        self.update_activity()

    def cancel_turn(self) -> bool:
        """Cancel the running turn, if any."""
        if self.cancel_token is None or self.cancel_token.cancelled:
            return False
        logger.info(f"Cancelling turn {self.turn_count} for session {self.session_id}")
        self.cancel_token.cancel()
        return True
