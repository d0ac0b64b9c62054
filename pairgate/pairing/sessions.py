"""Registry of issued pairing sessions."""

import threading
from datetime import datetime

from pairgate.pairing.types import Clock, Session, utcnow


class SessionRegistry:
    """
    In-memory index of issued sessions by token.

    There is no background sweep: expired sessions are dropped when looked
    up, and all expired entries are evicted whenever a session is added or
    the registry is sized.
    """

    def __init__(self, clock: Clock = utcnow):
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def _evict_expired(self, now: datetime) -> None:
        expired = [t for t, s in self._sessions.items() if s.is_expired(now)]
        for token in expired:
            del self._sessions[token]

    def add(self, session: Session) -> None:
        with self._lock:
            self._evict_expired(self._clock())
            self._sessions[session.token] = session

    def get(self, token: str, now: datetime | None = None) -> Session | None:
        """Return the live session for ``token`` or None."""
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if session.is_expired(now or self._clock()):
                del self._sessions[token]
                return None
            return session

    def revoke(self, token: str) -> bool:
        """Forget a session. Returns True if it was present."""
        with self._lock:
            return self._sessions.pop(token, None) is not None

    def __len__(self) -> int:
        with self._lock:
            self._evict_expired(self._clock())
            return len(self._sessions)
