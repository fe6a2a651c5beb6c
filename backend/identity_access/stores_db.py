"""
Database-backed SessionStore for production use (Postgres/Supabase).

Why: In-memory sessions are not durable and do not scale across instances. This
store persists sessions in Postgres while keeping the cookie opaque and
PII-minimal (no login keys or emails stored).

Security:
- Intended to be used with a service role connection string; anon clients must
  not access the `app_sessions` table.
- Only the opaque `session_id` is set in the cookie.

Note: This module uses psycopg3. It is imported only when enabled via
`SESSIONS_BACKEND=db`. Tests use the in-memory store or a fake psycopg.
"""
from __future__ import annotations

from typing import Optional, Sequence
import os
import re
import time

try:
    import psycopg
    from psycopg import sql as _sql
    from psycopg.types.json import Json
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional dependency in dev
    psycopg = None  # type: ignore
    _sql = None  # type: ignore
    Json = None  # type: ignore
    HAVE_PSYCOPG = False

from backend.identity_access.stores import SessionRecord


_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")


def _now() -> int:
    return int(time.time())


class DBSessionStore:
    """Postgres-backed session store.

    Parameters
    ----------
    dsn:
        Psycopg3 connection string. Use a service role in Supabase.
    table:
        Fully qualified table name. Defaults to `public.app_sessions`.
    """

    def __init__(self, dsn: str | None = None, table: str = "public.app_sessions") -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBSessionStore")
        self._dsn = dsn or os.getenv("SESSION_DATABASE_URL") or os.getenv("DATABASE_URL") or os.getenv("SUPABASE_DB_URL", "")
        if not self._dsn:
            raise RuntimeError("No database DSN provided for DBSessionStore")
        if not _TABLE_RE.match(table or ""):
            raise ValueError("Invalid table name")
        self._table = table

    def _stmt(self, template: str):
        """Compose `template` with the table identifier when psycopg.sql is available."""
        if "." in self._table:
            schema, name = self._table.split(".", 1)
        else:
            schema, name = "public", self._table
        if _sql is not None:
            return _sql.SQL(template).format(_sql.Identifier(schema), _sql.Identifier(name))
        return template.replace("{}.{}", f"{schema}.{name}")

    def create(
        self,
        *,
        sub: str,
        roles: Sequence[str],
        name: str,
        learner_id: Optional[str] = None,
        ttl_seconds: int = 3600,
    ) -> SessionRecord:
        expires_at = _now() + ttl_seconds
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    self._stmt(
                        "insert into {}.{} (session_id, sub, roles, name, learner_id, expires_at) "
                        "values (gen_random_uuid()::text, %s, %s, %s, %s, to_timestamp(%s)) returning session_id"
                    ),
                    (sub, Json(list(roles)), name, learner_id, expires_at),
                )
                row = cur.fetchone()
        sid = str(row[0]) if row else ""
        return SessionRecord(
            session_id=sid,
            sub=sub,
            roles=list(roles),
            name=name,
            learner_id=learner_id,
            expires_at=expires_at,
            ttl_seconds=ttl_seconds,
        )

    def get(self, session_id: str) -> Optional[SessionRecord]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    self._stmt(
                        "select session_id, sub, roles, name, learner_id, extract(epoch from expires_at)::bigint "
                        "from {}.{} where session_id = %s and expires_at > now()"
                    ),
                    (session_id,),
                )
                row = cur.fetchone()
        if not row:
            return None
        roles = row[2] if isinstance(row[2], list) else []
        return SessionRecord(
            session_id=row[0],
            sub=row[1],
            roles=roles,
            name=row[3],
            learner_id=row[4],
            expires_at=int(row[5]) if row[5] is not None else None,
        )

    def delete(self, session_id: str) -> None:
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(self._stmt("delete from {}.{} where session_id = %s"), (session_id,))
