"""
Vocabulary use cases: look up and save a word, record a review outcome, and
log a pronunciation practice in the word bank.

Errors:
    - ValueError("invalid_word") / ValueError("invalid_input") for bad input.
    - LookupError("word_not_in_dictionary") / LookupError("word_not_found").
    - RepoError from the repository for storage failures (callers map to 500).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Any, Optional, Protocol

from backend.learning.dictionary import DictionaryEntry
from backend.learning.repo import LearningRepoProtocol, RepoError


logger = logging.getLogger("moe.learning")


class DictionaryProtocol(Protocol):
    async def lookup(self, word: str) -> Optional[DictionaryEntry]: ...


def normalize_word(word: Any) -> str:
    if not isinstance(word, str):
        raise ValueError("invalid_word")
    cleaned = word.strip().lower()
    if not cleaned:
        raise ValueError("invalid_word")
    return cleaned


def _now() -> datetime:
    return datetime.now(timezone.utc)


class LearnWordUseCase:
    def __init__(self, repo: LearningRepoProtocol, dictionary: DictionaryProtocol) -> None:
        self._repo = repo
        self._dictionary = dictionary

    async def execute(self, *, student_id: str, word: Any) -> dict:
        """Look up `word`, save it for the learner and return the word details.

        Behavior:
            - Review count increases by one; mastery is kept as stored.
            - Existing metadata is merged with the fresh dictionary extras.
            - Failure to log the learning session is logged, not raised.
        """
        cleaned = normalize_word(word)
        entry = await self._dictionary.lookup(cleaned)
        if entry is None:
            raise LookupError("word_not_in_dictionary")

        existing = self._repo.get_word(student_id, entry.word)
        times_reviewed = int((existing or {}).get("times_reviewed") or 0) + 1
        mastered = bool((existing or {}).get("mastered") or False)
        metadata = dict((existing or {}).get("metadata") or {})
        metadata.update(
            simpleDefinition=entry.simpleDefinition,
            memoryTip=entry.memoryTip,
            relatedWords=entry.relatedWords,
            difficulty=entry.difficulty,
            audioUrl=entry.audioUrl,
        )
        self._repo.upsert_word(
            student_id=student_id,
            word=entry.word,
            definition=entry.definition,
            example_sentence=entry.example,
            pronunciation=entry.pronunciation,
            mastered=mastered,
            times_reviewed=times_reviewed,
            last_reviewed_at=_now(),
            metadata=metadata,
        )
        try:
            self._repo.insert_word_session(
                student_id=student_id, word=entry.word, status="started", payload=entry.to_dict()
            )
        except RepoError as exc:
            logger.warning("learning.vocabulary.session_log_failed code=%s", exc.code)

        details = entry.to_dict()
        details.update(timesReviewed=times_reviewed, alreadyMastered=mastered)
        return details


class RecordWordOutcomeUseCase:
    def __init__(self, repo: LearningRepoProtocol) -> None:
        self._repo = repo

    def execute(self, *, student_id: str, word: Any, outcome: Any) -> None:
        """Count a review; `outcome == "mastered"` marks the word mastered."""
        cleaned = normalize_word(word)
        if not isinstance(outcome, str) or not outcome:
            raise ValueError("invalid_input")
        existing = self._repo.get_word(student_id, cleaned)
        if not existing:
            raise LookupError("word_not_found")
        is_mastered = outcome == "mastered"
        self._repo.update_word_progress(
            existing["id"],
            times_reviewed=int(existing.get("times_reviewed") or 0) + 1,
            mastered=True if is_mastered else bool(existing.get("mastered")),
            last_reviewed_at=_now(),
        )
        try:
            self._repo.insert_word_session(
                student_id=student_id,
                word=cleaned,
                status="mastered" if is_mastered else "needs_review",
                payload={"outcome": outcome},
            )
        except RepoError as exc:
            logger.warning("learning.vocabulary.outcome_log_failed code=%s", exc.code)


@dataclass
class WordBankInput:
    student_id: str
    word: str
    status: str = "pronounced"
    mark_mastered: bool = False
    payload: Optional[dict] = None


class LogWordBankUseCase:
    def __init__(self, repo: LearningRepoProtocol) -> None:
        self._repo = repo

    def execute(self, req: WordBankInput) -> None:
        """Save a practiced word, log the practice and count a one-minute study session.

        Behavior:
            - New rows start without dictionary details; existing details are kept.
            - Session and study-session logging tolerate missing tables.
        """
        cleaned = normalize_word(req.word)
        status = req.status.strip() if isinstance(req.status, str) and req.status.strip() else "pronounced"
        existing = self._repo.get_word(req.student_id, cleaned)
        extra: dict = {}
        if existing is None:
            extra = {"definition": None, "example_sentence": None, "pronunciation": None}
        self._repo.upsert_word(
            student_id=req.student_id,
            word=cleaned,
            mastered=True if req.mark_mastered else bool((existing or {}).get("mastered")),
            times_reviewed=int((existing or {}).get("times_reviewed") or 0) + 1,
            last_reviewed_at=_now(),
            **extra,
        )
        payload = req.payload if isinstance(req.payload, dict) else {"source": "pronunciation_tab"}
        try:
            self._repo.insert_word_session(student_id=req.student_id, word=cleaned, status=status, payload=payload)
        except RepoError as exc:
            if exc.code != "table_missing":
                logger.warning("learning.word_bank.session_log_failed code=%s", exc.code)
        now = _now()
        try:
            self._repo.insert_study_session(
                student_id=req.student_id,
                subject="Vocabulary",
                duration_minutes=1,
                questions_answered=0,
                questions_correct=0,
                started_at=now,
                ended_at=now,
            )
        except RepoError as exc:
            if exc.code != "table_missing":
                logger.warning("learning.word_bank.study_session_failed code=%s", exc.code)
