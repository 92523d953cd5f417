"""Session management for the autopr server."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog

from autopr.exceptions import SessionLimitExceededError
from autopr.models import SessionState

logger = structlog.get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Session:
    """State held for one connected client.

    Only the session actor mutates these fields, and only from the single
    command task it runs at a time.
    """

    session_id: str
    codebase: str = field(default="", repr=False)
    pending_suggestion: str | None = field(default=None, repr=False)
    state: SessionState = SessionState.IDLE
    created_at: datetime = field(default_factory=_now)
    last_activity: datetime = field(default_factory=_now)

    @property
    def short_id(self) -> str:
        return self.session_id.replace("-", "")[:8]

    def touch(self) -> None:
        """Update last activity timestamp."""
        self.last_activity = _now()

    def settled_state(self) -> SessionState:
        """State to fall back to once no command is running."""
        return SessionState.READY if self.pending_suggestion is not None else SessionState.IDLE


class SessionManager:
    """Tracks the sessions of currently connected clients."""

    def __init__(self, max_sessions: int = 100):
        """Initialize the session manager.

        Args:
            max_sessions: Maximum number of concurrent sessions allowed.
        """
        self._sessions: dict[str, Session] = {}
        self._max_sessions = max_sessions

    def create_session(self) -> Session:
        """Create a new session.

        Raises:
            SessionLimitExceededError: If max sessions exceeded.
        """
        if len(self._sessions) >= self._max_sessions:
            raise SessionLimitExceededError(self._max_sessions)

        session = Session(session_id=str(uuid.uuid4()))
        self._sessions[session.session_id] = session
        logger.debug("Session created", session_id=session.session_id)
        return session

    def get_session(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        session = self._sessions.get(session_id)
        if session:
            session.touch()
        return session

    def delete_session(self, session_id: str) -> bool:
        """Delete a session.

        Returns:
            True if deleted, False if not found.
        """
        if session_id in self._sessions:
            del self._sessions[session_id]
            return True
        return False

    def list_sessions(self) -> list[Session]:
        """List all active sessions."""
        return list(self._sessions.values())
