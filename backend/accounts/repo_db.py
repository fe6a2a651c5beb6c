"""
Postgres-backed repository for guardian profiles and learner records.

Security:
- Uses a service DSN: student login must search learners across guardians,
  which the parent-scoped RLS policies would hide. Owner checks therefore
  happen in SQL filters (`id = %s and parent_id = %s`), never in Python after
  an unfiltered read.

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection.
- Returns plain dicts to keep the provisioner independent of any ORM.
- `public.students.auth_user_id` references `auth.users(id) on delete cascade`;
  deleting the identity removes the row, so there is no delete method here.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Tuple
import logging
import os

try:
    import psycopg
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional in some dev envs
    psycopg = None  # type: ignore
    HAVE_PSYCOPG = False

from backend.accounts.repo import RepoError, _UNSET


logger = logging.getLogger("moe.accounts")

_TS = "to_char({col} at time zone 'utc', 'YYYY-MM-DD\"T\"HH24:MI:SS\"+00:00\"')"

_LEARNER_COLUMNS_SQL = f"""
    id::text,
    name,
    age,
    grade_level,
    parent_id::text,
    auth_user_id::text,
    is_managed,
    {_TS.format(col="created_at")},
    {_TS.format(col="updated_at")}
"""


def _learner_row_to_dict(row: Tuple) -> dict:
    return {
        "id": row[0],
        "name": row[1],
        "age": int(row[2]) if row[2] is not None else None,
        "grade_level": row[3],
        "parent_id": row[4],
        "auth_user_id": row[5],
        "is_managed": bool(row[6]),
        "created_at": row[7],
        "updated_at": row[8],
    }


def _dsn() -> str:
    for dsn in (
        os.getenv("ACCOUNTS_DATABASE_URL"),
        os.getenv("DATABASE_URL"),
        os.getenv("SUPABASE_DB_URL"),
    ):
        if dsn:
            return dsn
    raise RuntimeError("Database DSN unavailable for DBAccountsRepo")


@contextmanager
def _translate_errors(op: str) -> Iterator[None]:
    """Map driver errors to RepoError; keep SQLSTATE for callers that care."""
    try:
        yield
    except RepoError:
        raise
    except Exception as exc:
        sqlstate = getattr(exc, "sqlstate", None)
        code = {
            "42P01": "table_missing",
            "23503": "foreign_key_violation",
            "23505": "unique_violation",
            "23514": "check_violation",
        }.get(str(sqlstate or ""), "db_error")
        logger.warning("accounts.repo.%s_failed code=%s error=%s", op, code, exc.__class__.__name__)
        raise RepoError(code, exc.__class__.__name__) from exc


class DBAccountsRepo:
    def __init__(self, dsn: Optional[str] = None) -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBAccountsRepo")
        self._dsn = dsn or _dsn()

    # --- Guardians ----------------------------------------------------------------
    def get_guardian_profile(self, guardian_id: str) -> Optional[dict]:
        with _translate_errors("get_guardian_profile"):
            with psycopg.connect(self._dsn) as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"""
                        select id::text, full_name, email, {_TS.format(col="created_at")}
                        from public.profiles
                        where id = %s
                        """,
                        (guardian_id,),
                    )
                    row = cur.fetchone()
        if not row:
            return None
        return {"id": row[0], "full_name": row[1], "email": row[2], "created_at": row[3]}

    def create_guardian_profile(self, *, guardian_id: str, full_name: str, email: str) -> dict:
        with _translate_errors("create_guardian_profile"):
            with psycopg.connect(self._dsn) as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"""
                        insert into public.profiles (id, full_name, email)
                        values (%s, %s, %s)
                        returning id::text, full_name, email, {_TS.format(col="created_at")}
                        """,
                        (guardian_id, full_name, email),
                    )
                    row = cur.fetchone()
                    conn.commit()
        return {"id": row[0], "full_name": row[1], "email": row[2], "created_at": row[3]}

    # --- Learners -----------------------------------------------------------------
    def insert_learner(
        self, *, name: str, age: int, grade_level: str, parent_id: str, auth_user_id: str
    ) -> dict:
        with _translate_errors("insert_learner"):
            with psycopg.connect(self._dsn) as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"""
                        insert into public.students (name, age, grade_level, parent_id, auth_user_id, is_managed)
                        values (%s, %s, %s, %s, %s, true)
                        returning {_LEARNER_COLUMNS_SQL}
                        """,
                        (name, int(age), grade_level, parent_id, auth_user_id),
                    )
                    row = cur.fetchone()
                    conn.commit()
        if not row:
            raise RepoError("insert_returned_nothing")
        return _learner_row_to_dict(row)

    def get_learner_owned(self, learner_id: str, parent_id: str) -> Optional[dict]:
        with _translate_errors("get_learner_owned"):
            with psycopg.connect(self._dsn) as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"""
                        select {_LEARNER_COLUMNS_SQL}
                        from public.students
                        where id = %s and parent_id = %s
                        """,
                        (learner_id, parent_id),
                    )
                    row = cur.fetchone()
        return _learner_row_to_dict(row) if row else None

    def update_learner_owned(
        self,
        learner_id: str,
        parent_id: str,
        *,
        name: Any = _UNSET,
        age: Any = _UNSET,
        grade_level: Any = _UNSET,
    ) -> Optional[dict]:
        sets: List[str] = []
        params: List[Any] = []
        if name is not _UNSET:
            sets.append("name = %s")
            params.append(name)
        if age is not _UNSET:
            sets.append("age = %s")
            params.append(int(age))
        if grade_level is not _UNSET:
            sets.append("grade_level = %s")
            params.append(grade_level)
        sets.append("updated_at = now()")
        params.extend([learner_id, parent_id])
        with _translate_errors("update_learner_owned"):
            with psycopg.connect(self._dsn) as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"""
                        update public.students
                        set {", ".join(sets)}
                        where id = %s and parent_id = %s
                        returning {_LEARNER_COLUMNS_SQL}
                        """,
                        tuple(params),
                    )
                    row = cur.fetchone()
                    conn.commit()
        return _learner_row_to_dict(row) if row else None

    def list_learners_for_guardian(self, parent_id: str) -> List[dict]:
        with _translate_errors("list_learners_for_guardian"):
            with psycopg.connect(self._dsn) as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"""
                        select {_LEARNER_COLUMNS_SQL}
                        from public.students
                        where parent_id = %s
                        order by created_at, id
                        """,
                        (parent_id,),
                    )
                    rows = cur.fetchall() or []
        return [_learner_row_to_dict(r) for r in rows]

    def find_learners_by_name(self, name: str, *, limit: int = 5) -> List[dict]:
        needle = (name or "").strip()
        if not needle:
            return []
        with _translate_errors("find_learners_by_name"):
            with psycopg.connect(self._dsn) as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        select id::text, name, auth_user_id::text
                        from public.students
                        where lower(name) = lower(%s)
                        order by created_at, id
                        limit %s
                        """,
                        (needle, max(1, int(limit))),
                    )
                    rows = cur.fetchall() or []
        return [{"id": r[0], "name": r[1], "auth_user_id": r[2]} for r in rows]


__all__ = ["DBAccountsRepo"]
