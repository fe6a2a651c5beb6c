"""
In-memory session store for development and tests.

Why: Keep sessions opaque to the client. The cookie carries only a random
session id; who is logged in (guardian or learner) stays server-side. For
production, use the DB-backed store in `stores_db`.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence
import secrets
import time


def _now() -> int:
    return int(time.time())


@dataclass
class SessionRecord:
    session_id: str
    sub: str
    roles: list[str]
    name: str
    learner_id: Optional[str] = None
    expires_at: Optional[int] = None
    ttl_seconds: int = 3600


class SessionStore:
    def __init__(self):
        self._data: Dict[str, SessionRecord] = {}

    def create(
        self,
        *,
        sub: str,
        roles: Sequence[str],
        name: str,
        learner_id: Optional[str] = None,
        ttl_seconds: int = 3600,
    ) -> SessionRecord:
        sid = secrets.token_urlsafe(24)
        rec = SessionRecord(
            session_id=sid,
            sub=sub,
            roles=list(roles),
            name=name,
            learner_id=learner_id,
            expires_at=_now() + ttl_seconds,
            ttl_seconds=ttl_seconds,
        )
        self._data[sid] = rec
        return rec

    def get(self, session_id: str) -> Optional[SessionRecord]:
        rec = self._data.get(session_id)
        if not rec:
            return None
        if rec.expires_at and rec.expires_at < _now():
            self._data.pop(session_id, None)
            return None
        return rec

    def delete(self, session_id: str) -> None:
        self._data.pop(session_id, None)
