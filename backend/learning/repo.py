"""
Learning activity repository contract and in-memory implementation.

Tables touched: `study_sessions`, `reading_activities`, `words_learned`,
`word_learning_sessions`. Failures raise `RepoError` (shared with accounts);
a missing table surfaces as code `table_missing` so callers can tolerate
optional tables the way the deployed schema requires.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Tuple
from uuid import uuid4

from backend.accounts.repo import RepoError, _UNSET


class LearningRepoProtocol(Protocol):
    def insert_reading_activity(
        self,
        *,
        student_id: str,
        passage_id: Optional[str],
        title: str,
        duration_minutes: int,
        comprehension_score: int,
        words_read: int,
    ) -> None: ...

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
    ) -> None: ...

    def get_word(self, student_id: str, word: str) -> Optional[dict]: ...

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
    ) -> None: ...

    def update_word_progress(
        self, word_id: str, *, times_reviewed: int, mastered: bool, last_reviewed_at: datetime
    ) -> None: ...

    def insert_word_session(self, *, student_id: str, word: str, status: str, payload: dict) -> None: ...

    def study_stats(self, student_id: str, *, since: datetime) -> dict: ...

    def mastered_words(self, student_id: str, *, limit: int) -> Tuple[int, List[str]]: ...

    def list_reading_activities(self, student_id: str, *, limit: int) -> List[dict]: ...

    def list_words(self, student_id: str, *, limit: int) -> List[dict]: ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryLearningRepo:
    """List/dict-backed learning store for dev and tests.

    `missing_tables` lets tests simulate an undeployed optional table.
    """

    def __init__(self) -> None:
        self.study_sessions: List[Dict[str, Any]] = []
        self.reading_activities: List[Dict[str, Any]] = []
        self.words: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.word_sessions: List[Dict[str, Any]] = []
        self.missing_tables: set[str] = set()

    def _check(self, table: str) -> None:
        if table in self.missing_tables:
            raise RepoError("table_missing", table)

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
        self._check("reading_activities")
        self.reading_activities.append(
            {
                "id": str(uuid4()),
                "student_id": student_id,
                "passage_id": passage_id,
                "title": title,
                "duration_minutes": duration_minutes,
                "comprehension_score": comprehension_score,
                "words_read": words_read,
                "created_at": _now(),
            }
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
        self._check("study_sessions")
        self.study_sessions.append(
            {
                "id": str(uuid4()),
                "student_id": student_id,
                "subject": subject,
                "duration_minutes": duration_minutes,
                "questions_answered": questions_answered,
                "questions_correct": questions_correct,
                "started_at": started_at,
                "ended_at": ended_at,
                "created_at": _now(),
            }
        )

    def get_word(self, student_id: str, word: str) -> Optional[dict]:
        self._check("words_learned")
        row = self.words.get((student_id, word))
        return dict(row) if row else None

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
        self._check("words_learned")
        row = self.words.get((student_id, word))
        if row is None:
            row = {
                "id": str(uuid4()),
                "student_id": student_id,
                "word": word,
                "definition": None,
                "example_sentence": None,
                "pronunciation": None,
                "metadata": None,
            }
            self.words[(student_id, word)] = row
        row.update(mastered=mastered, times_reviewed=times_reviewed, last_reviewed_at=last_reviewed_at)
        for key, value in (
            ("definition", definition),
            ("example_sentence", example_sentence),
            ("pronunciation", pronunciation),
            ("metadata", metadata),
        ):
            if value is not _UNSET:
                row[key] = value

    def update_word_progress(
        self, word_id: str, *, times_reviewed: int, mastered: bool, last_reviewed_at: datetime
    ) -> None:
        self._check("words_learned")
        for row in self.words.values():
            if row["id"] == word_id:
                row.update(times_reviewed=times_reviewed, mastered=mastered, last_reviewed_at=last_reviewed_at)
                return

    def insert_word_session(self, *, student_id: str, word: str, status: str, payload: dict) -> None:
        self._check("word_learning_sessions")
        self.word_sessions.append(
            {"student_id": student_id, "word": word, "status": status, "payload": payload, "created_at": _now()}
        )

    def study_stats(self, student_id: str, *, since: datetime) -> dict:
        self._check("study_sessions")
        rows = [s for s in self.study_sessions if s["student_id"] == student_id]
        last = max((s["created_at"] for s in rows), default=None)
        return {
            "total_sessions": len(rows),
            "total_minutes": sum(int(s["duration_minutes"] or 0) for s in rows),
            "sessions_since": sum(1 for s in rows if s["created_at"] >= since),
            "last_session_at": last,
        }

    def mastered_words(self, student_id: str, *, limit: int) -> Tuple[int, List[str]]:
        self._check("words_learned")
        rows = [r for r in self.words.values() if r["student_id"] == student_id and r.get("mastered")]
        rows.sort(key=lambda r: r.get("last_reviewed_at") or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        return len(rows), [r["word"] for r in rows[:limit] if r.get("word")]

    def list_reading_activities(self, student_id: str, *, limit: int) -> List[dict]:
        self._check("reading_activities")
        rows = [dict(r) for r in self.reading_activities if r["student_id"] == student_id]
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        return rows[:limit]

    def list_words(self, student_id: str, *, limit: int) -> List[dict]:
        self._check("words_learned")
        rows = [dict(r) for r in self.words.values() if r["student_id"] == student_id]
        rows.sort(key=lambda r: r.get("last_reviewed_at") or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        return rows[:limit]


__all__ = ["InMemoryLearningRepo", "LearningRepoProtocol", "RepoError"]
