"""
Server-side session store selection and session helpers.

Behavior:
    - `SESSIONS_BACKEND=db` selects the Postgres store (never under pytest);
      otherwise an in-memory store is used.
    - `open_session` creates a record and sets the opaque cookie on a response.
"""
from __future__ import annotations

from typing import Any, Optional, Sequence
import logging
import os
import sys

from fastapi.responses import Response

from backend.identity_access.stores import SessionRecord, SessionStore
from backend.web.auth_utils import SESSION_COOKIE_NAME, clear_session_cookie, set_session_cookie
from backend.web.config import current_environment


logger = logging.getLogger("moe.web.auth")

_STORE: Optional[Any] = None


def _under_pytest() -> bool:
    return "pytest" in sys.modules or bool(os.getenv("PYTEST_CURRENT_TEST"))


def get_session_store() -> Any:
    global _STORE
    if _STORE is None:
        if (not _under_pytest()) and (os.getenv("SESSIONS_BACKEND", "memory") or "").lower() == "db":
            from backend.identity_access.stores_db import DBSessionStore

            _STORE = DBSessionStore()
        else:
            _STORE = SessionStore()
    return _STORE


def set_session_store(store: Optional[Any]) -> None:
    global _STORE
    _STORE = store


def read_session(session_id: Optional[str]) -> Optional[SessionRecord]:
    if not session_id:
        return None
    try:
        return get_session_store().get(session_id)
    except Exception as exc:
        logger.warning("Session store get failed: %s", exc.__class__.__name__)
        return None


def open_session(
    response: Response,
    *,
    sub: str,
    roles: Sequence[str],
    name: str,
    learner_id: Optional[str] = None,
) -> SessionRecord:
    rec = get_session_store().create(sub=sub, roles=list(roles), name=name, learner_id=learner_id)
    env = current_environment()
    max_age = rec.ttl_seconds if env == "prod" else None
    set_session_cookie(response, rec.session_id, environment=env, max_age=max_age)
    return rec


def close_session(response: Response, session_id: Optional[str]) -> None:
    if session_id:
        try:
            get_session_store().delete(session_id)
        except Exception as exc:
            logger.warning("Session store delete failed: %s", exc.__class__.__name__)
    clear_session_cookie(response, environment=current_environment())


__all__ = [
    "SESSION_COOKIE_NAME",
    "close_session",
    "get_session_store",
    "open_session",
    "read_session",
    "set_session_store",
]
