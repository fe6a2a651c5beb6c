"""Learning activity API routes: reading sessions, vocabulary, word bank."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from backend.learning.repo import RepoError
from backend.learning.usecases.reading import LogReadingSessionUseCase, ReadingSessionInput
from backend.learning.usecases.vocabulary import (
    LearnWordUseCase,
    LogWordBankUseCase,
    RecordWordOutcomeUseCase,
    WordBankInput,
)
from backend.web import wiring
from .security import current_user, has_role, is_uuid_like, json_error, private_no_store, require_same_origin


learning_router = APIRouter(tags=["Learning"])
logger = logging.getLogger("moe.learning")

WORD_NOT_IN_DICTIONARY = (
    "We couldn't find that word in the dictionary. Try a different word or double-check the spelling."
)


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _authorize_student(request: Request, student_id: object) -> Optional[JSONResponse]:
    """Allow the learner themself or the owning guardian; everyone else gets 403.

    Behavior:
        - Cross-site writes are rejected first (403 csrf_violation).
        - Missing `studentId` answers 400 `invalid_student_id`, a malformed one
          400 `invalid_uuid`, both before any lookup.
    """
    csrf = require_same_origin(request)
    if csrf:
        return csrf
    user = current_user(request)
    if not user:
        return json_error("unauthenticated", 401)
    if not isinstance(student_id, str) or not student_id:
        return json_error("bad_request", 400, "invalid_student_id")
    if not is_uuid_like(student_id):
        return json_error("bad_request", 400, "invalid_uuid")
    if has_role(user, "student") and user.get("learner_id") == student_id:
        return None
    if has_role(user, "parent"):
        try:
            owned = wiring.get_accounts_repo().get_learner_owned(student_id, str(user.get("sub") or ""))
        except RepoError as exc:
            logger.warning("learning.access_check_failed code=%s", exc.code)
            return json_error("internal_error", 500)
        if owned:
            return None
    return json_error("forbidden", 403)


@learning_router.post("/api/reading/log-session")
async def log_reading_session(request: Request):
    """Record a finished reading session.

    Behavior:
        - 400 for a missing `studentId` or `title`.
        - Counts are rounded and clamped; score is capped at 100.
        - Undeployed tables are skipped; other storage failures 500.

    Permissions:
        The learner or their guardian.
    """
    body = await _json_body(request)
    error = _authorize_student(request, body.get("studentId"))
    if error:
        return error
    try:
        req = ReadingSessionInput.from_payload(body)
    except ValueError as exc:
        return json_error("bad_request", 400, str(exc))
    try:
        LogReadingSessionUseCase(wiring.get_learning_repo()).execute(req)
    except RepoError as exc:
        logger.warning("learning.reading.log_failed code=%s", exc.code)
        return json_error("reading_log_failed", 500)
    return JSONResponse({"success": True}, headers=private_no_store())


@learning_router.post("/api/learn-word")
async def learn_word(request: Request):
    """Look up a word and save it to the learner's vocabulary.

    Behavior:
        - 404 when the dictionary does not know the word.
        - Response `{"wordDetails": {...entry, timesReviewed, alreadyMastered}}`.
    """
    body = await _json_body(request)
    error = _authorize_student(request, body.get("studentId"))
    if error:
        return error
    try:
        details = await LearnWordUseCase(wiring.get_learning_repo(), wiring.get_dictionary()).execute(
            student_id=body["studentId"], word=body.get("word")
        )
    except ValueError:
        return json_error("bad_request", 400, "invalid_word")
    except LookupError:
        return json_error("word_not_found", 404, WORD_NOT_IN_DICTIONARY)
    except RepoError as exc:
        logger.warning("learning.learn_word.save_failed code=%s", exc.code)
        return json_error("word_save_failed", 500)
    return JSONResponse({"wordDetails": details}, headers=private_no_store())


@learning_router.patch("/api/learn-word")
async def record_word_outcome(request: Request):
    """Record a review outcome; `"mastered"` marks the word as mastered."""
    body = await _json_body(request)
    error = _authorize_student(request, body.get("studentId"))
    if error:
        return error
    try:
        RecordWordOutcomeUseCase(wiring.get_learning_repo()).execute(
            student_id=body["studentId"], word=body.get("word"), outcome=body.get("outcome")
        )
    except ValueError as exc:
        return json_error("bad_request", 400, str(exc))
    except LookupError:
        return json_error("not_found", 404, "word_not_found")
    except RepoError as exc:
        logger.warning("learning.learn_word.update_failed code=%s", exc.code)
        return json_error("word_update_failed", 500)
    return JSONResponse({"success": True}, headers=private_no_store())


@learning_router.post("/api/word-bank")
async def log_word_bank(request: Request):
    """Log a pronunciation practice and count a one-minute vocabulary session."""
    body = await _json_body(request)
    error = _authorize_student(request, body.get("studentId"))
    if error:
        return error
    status = body.get("status")
    payload = body.get("payload")
    req = WordBankInput(
        student_id=body["studentId"],
        word=body.get("word"),
        status=status if isinstance(status, str) else "pronounced",
        mark_mastered=bool(body.get("markMastered")),
        payload=payload if isinstance(payload, dict) else None,
    )
    try:
        LogWordBankUseCase(wiring.get_learning_repo()).execute(req)
    except ValueError:
        return json_error("bad_request", 400, "invalid_word")
    except RepoError as exc:
        logger.warning("learning.word_bank.save_failed code=%s", exc.code)
        return json_error("word_save_failed", 500)
    return JSONResponse({"success": True}, headers=private_no_store())
