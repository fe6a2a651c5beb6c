from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import Any, Mapping, Optional

from backend.learning.repo import LearningRepoProtocol, RepoError


logger = logging.getLogger("moe.learning")


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def coerce_count(value: Any, *, minimum: int, default: int) -> int:
    """Round finite numbers and clamp to `minimum`; anything else yields `default`."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if not math.isfinite(value):
        return default
    return max(round_half_up(value), minimum)


@dataclass
class ReadingSessionInput:
    student_id: str
    title: str
    passage_id: Optional[str] = None
    duration_minutes: int = 1
    comprehension_score: int = 0
    words_read: int = 0
    questions_answered: int = 0
    questions_correct: int = 0

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ReadingSessionInput":
        """Validate a client payload.

        Raises:
            ValueError("invalid_student_id") / ValueError("invalid_title") for
            missing or non-string required fields.
        """
        student_id = payload.get("studentId")
        if not isinstance(student_id, str) or not student_id:
            raise ValueError("invalid_student_id")
        title = payload.get("title")
        if not isinstance(title, str) or not title:
            raise ValueError("invalid_title")
        passage_id = payload.get("passageId")
        return cls(
            student_id=student_id,
            title=title,
            passage_id=passage_id if isinstance(passage_id, str) and passage_id else None,
            duration_minutes=coerce_count(payload.get("durationMinutes"), minimum=1, default=1),
            comprehension_score=min(coerce_count(payload.get("comprehensionScore"), minimum=0, default=0), 100),
            words_read=coerce_count(payload.get("wordsRead"), minimum=0, default=0),
            questions_answered=coerce_count(payload.get("questionsAnswered"), minimum=0, default=0),
            questions_correct=coerce_count(payload.get("questionsCorrect"), minimum=0, default=0),
        )


class LogReadingSessionUseCase:
    def __init__(self, repo: LearningRepoProtocol) -> None:
        self._repo = repo

    def execute(self, req: ReadingSessionInput) -> None:
        """Record a reading activity and a matching `Reading` study session.

        Behavior:
            - A missing table is logged and skipped; other repo errors propagate.

        Permissions:
            Caller must be the learner or their guardian (checked by the web layer).
        """
        try:
            self._repo.insert_reading_activity(
                student_id=req.student_id,
                passage_id=req.passage_id,
                title=req.title,
                duration_minutes=req.duration_minutes,
                comprehension_score=req.comprehension_score,
                words_read=req.words_read,
            )
        except RepoError as exc:
            if exc.code != "table_missing":
                raise
            logger.info("learning.reading.activity_table_missing")
        try:
            self._repo.insert_study_session(
                student_id=req.student_id,
                subject="Reading",
                duration_minutes=req.duration_minutes,
                questions_answered=req.questions_answered,
                questions_correct=req.questions_correct,
            )
        except RepoError as exc:
            if exc.code != "table_missing":
                raise
            logger.info("learning.reading.sessions_table_missing")
