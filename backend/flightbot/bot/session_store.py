"""
In-memory conversation sessions.

Sessions are shared by every HTTP request and WebSocket connection in the
process. Writes are last-one-wins; there is no locking.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from ..models.chat import Intent, SessionState

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ConversationSession:
    """
    Per-conversation state threaded across turns.

    ``data`` holds ``search_params`` (last search parameters),
    ``search_results`` (last result list) and ``selected_flight``.
    """
    session_id: str
    state: SessionState = SessionState.INITIAL
    data: Dict[str, Any] = field(default_factory=dict)
    previous_intent: Optional[Intent] = None
    last_message: Optional[str] = None
    timestamp: datetime = field(default_factory=_utcnow)
    action: Optional[str] = None

    def reset(self) -> None:
        self.state = SessionState.INITIAL
        self.data = {}
        self.action = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "state": self.state.value,
            "data": self.data,
            "previous_intent": self.previous_intent.value if self.previous_intent else None,
            "last_message": self.last_message,
            "timestamp": self.timestamp.isoformat(),
            "action": self.action,
        }


class SessionStore:
    """Session map with lazy idle expiry."""

    def __init__(self, idle_timeout_minutes: int = 60):
        """
        Args:
            idle_timeout_minutes: Sessions untouched for longer are dropped; 0 keeps them forever
        """
        self.idle_timeout_minutes = idle_timeout_minutes
        self._sessions: Dict[str, ConversationSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def prune(self, now: Optional[datetime] = None) -> int:
        """Drop idle sessions; returns how many were removed."""
        if self.idle_timeout_minutes <= 0:
            return 0

        cutoff = (now or _utcnow()) - timedelta(minutes=self.idle_timeout_minutes)
        expired = [sid for sid, s in self._sessions.items() if s.timestamp < cutoff]
        for session_id in expired:
            del self._sessions[session_id]

        if expired:
            logger.debug(f"Pruned {len(expired)} idle chat sessions")
        return len(expired)

    def get(self, session_id: str) -> Optional[ConversationSession]:
        return self._sessions.get(session_id)

    def get_or_create(self, session_id: str) -> ConversationSession:
        self.prune()
        session = self._sessions.get(session_id)
        if session is None:
            session = ConversationSession(session_id=session_id)
            self._sessions[session_id] = session
        return session

    def save(self, session: ConversationSession) -> None:
        self._sessions[session.session_id] = session

    def clear(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None
