"""Session storage: an abstract store plus an in-memory implementation with TTL."""

import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from collections.abc import Callable

from fishtank.models import Session

logger = logging.getLogger(__name__)


class SessionNotFound(KeyError):
    """Raised when a session id is unknown or has expired."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(session_id)


class SessionStore(ABC):
    """Abstract session store. Implementations may persist across restarts."""

    @abstractmethod
    def get(self, session_id: str) -> Session | None:
        ...

    @abstractmethod
    def put(self, session: Session) -> None:
        ...

    @abstractmethod
    def delete(self, session_id: str) -> None:
        ...

    def require(self, session_id: str) -> Session:
        session = self.get(session_id) if session_id else None
        if session is None:
            raise SessionNotFound(session_id)
        return session


class InMemorySessionStore(SessionStore):
    """Process-local store.

    Entries expire ttl_sec after their last put. When max_sessions is
    reached the least recently stored session is evicted.
    """

    def __init__(
        self,
        ttl_sec: float,
        max_sessions: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self._ttl_sec = ttl_sec
        self._max_sessions = max_sessions
        self._clock = clock
        # session id -> (session, stored_at); oldest first
        self._entries: OrderedDict[str, tuple[Session, float]] = OrderedDict()

    def __len__(self) -> int:
        self._purge_expired()
        return len(self._entries)

    def _purge_expired(self) -> None:
        cutoff = self._clock() - self._ttl_sec
        while self._entries:
            session_id, (_, stored_at) = next(iter(self._entries.items()))
            if stored_at > cutoff:
                break
            del self._entries[session_id]
            logger.info("Session %s expired", session_id)

    def get(self, session_id: str) -> Session | None:
        self._purge_expired()
        entry = self._entries.get(session_id)
        return entry[0] if entry else None

    def put(self, session: Session) -> None:
        self._purge_expired()
        self._entries.pop(session.id, None)
        while len(self._entries) >= self._max_sessions:
            evicted_id, _ = self._entries.popitem(last=False)
            logger.info("Session %s evicted (store full)", evicted_id)
        self._entries[session.id] = (session, self._clock())

    def delete(self, session_id: str) -> None:
        self._entries.pop(session_id, None)
