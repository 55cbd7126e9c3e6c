"""Session stores for workflow state."""

import logging
import threading
from datetime import datetime, timedelta
from typing import Protocol

from legacy_keeper.workflow.models import WorkflowSession, WorkflowState

logger = logging.getLogger(__name__)

# Default lifetime of finished sessions (7 days)
DEFAULT_SESSION_TTL = 7 * 24 * 3600


class SessionStore(Protocol):
    """Keyed session storage with an atomic state swap."""

    def get(self, session_id: str) -> WorkflowSession | None:
        ...

    def put(self, session: WorkflowSession) -> None:
        ...

    def compare_and_set(
        self, session_id: str, expected_state: WorkflowState, new_session: WorkflowSession
    ) -> bool:
        ...

    def list(self) -> list[WorkflowSession]:
        ...

    def evict_expired(self, now: datetime) -> int:
        ...


class InMemorySessionStore:
    """Process-local session store guarded by a lock.

    Sessions are immutable, so readers always see a consistent snapshot.
    Writers replace whole sessions, and ``compare_and_set`` only succeeds
    when the stored session is still in the expected state.
    """

    def __init__(self, ttl_seconds: int = DEFAULT_SESSION_TTL):
        """Initialize the store.

        Args:
            ttl_seconds: Lifetime of finished (ARCHIVED or FAILED) sessions,
                measured from when they were triggered. 0 disables eviction.
        """
        self.ttl_seconds = ttl_seconds
        self._sessions: dict[str, WorkflowSession] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> WorkflowSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def put(self, session: WorkflowSession) -> None:
        with self._lock:
            self._sessions[session.session_id] = session

    def compare_and_set(
        self, session_id: str, expected_state: WorkflowState, new_session: WorkflowSession
    ) -> bool:
        with self._lock:
            current = self._sessions.get(session_id)
            if current is None or current.state != expected_state:
                return False
            self._sessions[session_id] = new_session
            return True

    def list(self) -> list[WorkflowSession]:
        with self._lock:
            return sorted(self._sessions.values(), key=lambda s: s.triggered_at)

    def evict_expired(self, now: datetime) -> int:
        """Drop finished sessions older than the TTL. In-flight sessions are kept."""
        if self.ttl_seconds <= 0:
            return 0
        cutoff = now - timedelta(seconds=self.ttl_seconds)
        with self._lock:
            expired = [
                session_id
                for session_id, session in self._sessions.items()
                if session.is_terminal and session.triggered_at < cutoff
            ]
            for session_id in expired:
                del self._sessions[session_id]
        if expired:
            logger.info(f"Evicted {len(expired)} expired workflow sessions")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
