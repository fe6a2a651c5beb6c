"""Postgres-backed repository for learning activity (reading, study sessions, words)."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, List, Optional, Tuple
import logging
import os

try:  # pragma: no cover -- optional dependency in some environments
    import psycopg
    from psycopg.types.json import Json

    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover
    psycopg = None  # type: ignore
    Json = None  # type: ignore
    HAVE_PSYCOPG = False

from backend.accounts.repo import RepoError, _UNSET


logger = logging.getLogger("moe.learning")

_SQLSTATE_CODES = {
    "42P01": "table_missing",
    "23503": "foreign_key_violation",
    "23505": "unique_violation",
    "23514": "check_violation",
}

_WORD_COLUMNS_SQL = """
    id::text,
    student_id::text,
    word,
    definition,
    example_sentence,
    pronunciation,
    mastered,
    times_reviewed,
    last_reviewed_at,
    metadata
"""


def _word_row_to_dict(row: Tuple) -> dict:
    return {
        "id": row[0],
        "student_id": row[1],
        "word": row[2],
        "definition": row[3],
        "example_sentence": row[4],
        "pronunciation": row[5],
        "mastered": bool(row[6]),
        "times_reviewed": int(row[7] or 0),
        "last_reviewed_at": row[8],
        "metadata": row[9] if len(row) > 9 and isinstance(row[9], dict) else None,
    }


def _dsn() -> str:
    """Resolve the DSN: LEARNING_DATABASE_URL, then DATABASE_URL, then SUPABASE_DB_URL."""
    for candidate in (
        os.getenv("LEARNING_DATABASE_URL"),
        os.getenv("DATABASE_URL"),
        os.getenv("SUPABASE_DB_URL"),
    ):
        if candidate:
            return candidate
    raise RuntimeError("Database DSN unavailable for Learning repo")


@contextmanager
def _translate_errors(op: str) -> Iterator[None]:
    try:
        yield
    except RepoError:
        raise
    except Exception as exc:
        code = _SQLSTATE_CODES.get(str(getattr(exc, "sqlstate", "") or ""), "db_error")
        logger.warning("learning.repo.%s_failed code=%s error=%s", op, code, exc.__class__.__name__)
        raise RepoError(code, exc.__class__.__name__) from exc


class DBLearningRepo:
    """Persistence adapter used by the learning use cases.

    Every query filters by `student_id`; the web layer resolves that id from
    the session (learner) or from an owner-checked lookup (guardian).
    """

    def __init__(self, dsn: Optional[str] = None) -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBLearningRepo")
        self._dsn = dsn or _dsn()

    def _execute(self, op: str, query: str, params: tuple, *, fetch: str = "none", commit: bool = False) -> Any:
        with _translate_errors(op):
            with psycopg.connect(self._dsn) as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    if fetch == "one":
                        result = cur.fetchone()
                    elif fetch == "all":
                        result = cur.fetchall() or []
                    else:
                        result = None
                    if commit:
                        conn.commit()
        return result

    # --- Writes -------------------------------------------------------------------
    def insert_reading_activity(
        self,
        *,
        student_id: str,
        passage_id: Optional[str],
        title: str,
        duration_minutes: int,
        comprehension_score: int,
        words_read: int,
    ) -> None:
        self._execute(
            "insert_reading_activity",
            """
            insert into public.reading_activities
                (student_id, passage_id, title, duration_minutes, comprehension_score, words_read)
            values (%s, %s, %s, %s, %s, %s)
            """,
            (student_id, passage_id, title, int(duration_minutes), int(comprehension_score), int(words_read)),
            commit=True,
        )

    def insert_study_session(
        self,
        *,
        student_id: str,
        subject: str,
        duration_minutes: int,
        questions_answered: int,
        questions_correct: int,
        started_at: Optional[datetime] = None,
        ended_at: Optional[datetime] = None,
    ) -> None:
        self._execute(
            "insert_study_session",
            """
            insert into public.study_sessions
                (student_id, subject, duration_minutes, questions_answered, questions_correct,
                 started_at, ended_at)
            values (%s, %s, %s, %s, %s, coalesce(%s, now()), %s)
            """,
            (
                student_id,
                subject,
                int(duration_minutes),
                int(questions_answered),
                int(questions_correct),
                started_at,
                ended_at,
            ),
            commit=True,
        )

    def get_word(self, student_id: str, word: str) -> Optional[dict]:
        row = self._execute(
            "get_word",
            f"select {_WORD_COLUMNS_SQL} from public.words_learned where student_id = %s and word = %s",
            (student_id, word),
            fetch="one",
        )
        return _word_row_to_dict(row) if row else None

    def upsert_word(
        self,
        *,
        student_id: str,
        word: str,
        mastered: bool,
        times_reviewed: int,
        last_reviewed_at: datetime,
        definition: Any = _UNSET,
        example_sentence: Any = _UNSET,
        pronunciation: Any = _UNSET,
        metadata: Any = _UNSET,
    ) -> None:
        columns = ["student_id", "word", "mastered", "times_reviewed", "last_reviewed_at"]
        params: List[Any] = [student_id, word, bool(mastered), int(times_reviewed), last_reviewed_at]
        for column, value in (
            ("definition", definition),
            ("example_sentence", example_sentence),
            ("pronunciation", pronunciation),
        ):
            if value is not _UNSET:
                columns.append(column)
                params.append(value)
        if metadata is not _UNSET:
            columns.append("metadata")
            params.append(Json(metadata) if metadata is not None else None)
        updates = ", ".join(f"{c} = excluded.{c}" for c in columns[2:])
        placeholders = ", ".join(["%s"] * len(columns))
        self._execute(
            "upsert_word",
            f"""
            insert into public.words_learned ({", ".join(columns)})
            values ({placeholders})
            on conflict (student_id, word) do update set {updates}
            """,
            tuple(params),
            commit=True,
        )

    def update_word_progress(
        self, word_id: str, *, times_reviewed: int, mastered: bool, last_reviewed_at: datetime
    ) -> None:
        self._execute(
            "update_word_progress",
            """
            update public.words_learned
            set times_reviewed = %s, mastered = %s, last_reviewed_at = %s
            where id = %s
            """,
            (int(times_reviewed), bool(mastered), last_reviewed_at, word_id),
            commit=True,
        )

    def insert_word_session(self, *, student_id: str, word: str, status: str, payload: dict) -> None:
        self._execute(
            "insert_word_session",
            """
            insert into public.word_learning_sessions (student_id, word, status, payload)
            values (%s, %s, %s, %s)
            """,
            (student_id, word, status, Json(payload)),
            commit=True,
        )

    # --- Reads --------------------------------------------------------------------
    def study_stats(self, student_id: str, *, since: datetime) -> dict:
        row = self._execute(
            "study_stats",
            """
            select count(*),
                   coalesce(sum(duration_minutes), 0),
                   count(*) filter (where created_at >= %s),
                   max(created_at)
            from public.study_sessions
            where student_id = %s
            """,
            (since, student_id),
            fetch="one",
        )
        row = row or (0, 0, 0, None)
        return {
            "total_sessions": int(row[0] or 0),
            "total_minutes": int(row[1] or 0),
            "sessions_since": int(row[2] or 0),
            "last_session_at": row[3],
        }

    def mastered_words(self, student_id: str, *, limit: int) -> Tuple[int, List[str]]:
        rows = self._execute(
            "mastered_words",
            """
            select word, count(*) over ()
            from public.words_learned
            where student_id = %s and mastered = true
            order by last_reviewed_at desc nulls last
            """,
            (student_id,),
            fetch="all",
        )
        total = int(rows[0][1]) if rows else 0
        return total, [r[0] for r in rows[: max(0, int(limit))] if r[0]]

    def list_reading_activities(self, student_id: str, *, limit: int) -> List[dict]:
        rows = self._execute(
            "list_reading_activities",
            """
            select id::text, passage_id, title, duration_minutes, comprehension_score, words_read, created_at
            from public.reading_activities
            where student_id = %s
            order by created_at desc
            limit %s
            """,
            (student_id, max(1, int(limit))),
            fetch="all",
        )
        return [
            {
                "id": r[0],
                "passage_id": r[1],
                "title": r[2],
                "duration_minutes": int(r[3] or 0),
                "comprehension_score": int(r[4] or 0),
                "words_read": int(r[5] or 0),
                "created_at": r[6],
            }
            for r in rows
        ]

    def list_words(self, student_id: str, *, limit: int) -> List[dict]:
        rows = self._execute(
            "list_words",
            f"""
            select {_WORD_COLUMNS_SQL}
            from public.words_learned
            where student_id = %s
            order by last_reviewed_at desc nulls last
            limit %s
            """,
            (student_id, max(1, int(limit))),
            fetch="all",
        )
        return [_word_row_to_dict(r) for r in rows]


__all__ = ["DBLearningRepo"]
