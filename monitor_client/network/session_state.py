"""Connection state tracking for the backend RPC session."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone


class ConnectionState(enum.Enum):
    """Client-side connection lifecycle."""

    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    CLOSED = "CLOSED"


@dataclass
class ConnectionTracker:
    """In-memory connection metadata."""

    state: ConnectionState = ConnectionState.IDLE
    attempts: int = 0
    last_transition_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    def transition(self, next_state: ConnectionState) -> None:
        """Move the connection into a new state, validating allowed transitions."""

        if not self._is_valid_transition(self.state, next_state):
            raise ValueError(f"Invalid transition {self.state.value} → {next_state.value}")
        if next_state is ConnectionState.CONNECTING:
            self.attempts += 1
        elif next_state is ConnectionState.OPEN:
            self.attempts = 0
        self.state = next_state
        self.last_transition_at = datetime.now(tz=timezone.utc)

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    @staticmethod
    def _is_valid_transition(current: ConnectionState, nxt: ConnectionState) -> bool:
        allowed = {
            ConnectionState.IDLE: {ConnectionState.CONNECTING},
            ConnectionState.CONNECTING: {ConnectionState.OPEN, ConnectionState.CLOSED},
            ConnectionState.OPEN: {ConnectionState.CLOSED},
            ConnectionState.CLOSED: {ConnectionState.CONNECTING},
        }
        return nxt in allowed.get(current, set())
