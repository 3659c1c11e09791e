from __future__ import annotations

import time
from threading import Lock

from core.config import SESSION_IDLE_TTL_SEC, SESSION_TERMINATED_TTL_SEC
from core.state import SessionState
from interview_room.conversation.session import Session


class SessionRepository:
    """In-process session table. Nothing here survives a restart."""

    def __init__(
        self,
        idle_ttl_sec: float = SESSION_IDLE_TTL_SEC,
        terminated_ttl_sec: float = SESSION_TERMINATED_TTL_SEC,
    ):
        self._lock = Lock()
        self._sessions: dict[str, Session] = {}
        self.idle_ttl_sec = max(1.0, float(idle_ttl_sec))
        self.terminated_ttl_sec = max(1.0, float(terminated_ttl_sec))

    def add(self, session: Session) -> Session:
        with self._lock:
            self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(str(session_id or ""))

    def touch(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                session.updated_at = time.time()

    def mark_terminated(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                session.terminate()

    def evict_expired(self, now_ts: float | None = None) -> int:
        now_value = float(now_ts if now_ts is not None else time.time())
        removed = 0
        with self._lock:
            for session_id, session in list(self._sessions.items()):
                # a generation call is in flight; the engine still holds the object
                if session.state == SessionState.GENERATING:
                    continue
                ttl = self.terminated_ttl_sec if session.state == SessionState.TERMINATED else self.idle_ttl_sec
                if float(session.updated_at or 0.0) <= now_value - ttl:
                    self._sessions.pop(session_id, None)
                    removed += 1
        return removed

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions
