"""
Tutor routes: homework chat, math solving and reading sentence generation.

Privacy:
    Learner prompts and model answers are passed through, never logged.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from backend.tutoring.chat import ChatUseCase, ReadingSentenceUseCase
from backend.tutoring.client import TextGenerationError, TextGenerationNotConfigured
from backend.tutoring.math_solver import SolveMathUseCase
from backend.web import wiring
from .security import current_user, json_error, private_no_store, require_same_origin


tutor_router = APIRouter(tags=["Tutor"])
logger = logging.getLogger("moe.tutoring")

CHAT_UPSTREAM_FAILURE = "Sorry, I had trouble answering that. Please try again."
MATH_UPSTREAM_FAILURE = "We couldn't solve that math question right now."


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _guard(request: Request):
    if not current_user(request):
        return json_error("unauthenticated", 401)
    return require_same_origin(request)


@tutor_router.post("/api/chat")
async def chat(request: Request):
    """Answer a chat turn in plain text.

    Behavior:
        - `mode` picks the system prompt (homework, pronunciation, reading);
          unknown modes fall back to homework.
        - Empty model output answers with a friendly retry message.
        - Upstream failure 502 (plain text); missing AI key 500 JSON.
    """
    error = _guard(request)
    if error:
        return error
    body = await _json_body(request)
    try:
        text = await ChatUseCase(wiring.get_text_client()).reply(body.get("messages"), body.get("mode"))
    except TextGenerationNotConfigured:
        return json_error("ai_not_configured", 500)
    except TextGenerationError as exc:
        logger.warning("tutor.chat.failed code=%s", exc.code)
        return PlainTextResponse(CHAT_UPSTREAM_FAILURE, status_code=502, headers=private_no_store())
    return PlainTextResponse(text, headers=private_no_store())


@tutor_router.post("/api/solve-math")
async def solve_math(request: Request):
    """Step-by-step solution for a math problem as structured JSON.

    Behavior:
        - 400 when `problem` is missing or blank.
        - 422 when the model answer is not a JSON object.
        - 500 when the upstream call fails.
    """
    error = _guard(request)
    if error:
        return error
    body = await _json_body(request)
    try:
        solution = await SolveMathUseCase(wiring.get_text_client()).execute(body.get("problem"))
    except ValueError:
        return json_error("bad_request", 400, "invalid_problem")
    except TextGenerationNotConfigured:
        return json_error("ai_not_configured", 500)
    except TextGenerationError as exc:
        logger.warning("tutor.solve_math.failed code=%s", exc.code)
        return json_error("solve_failed", 500, MATH_UPSTREAM_FAILURE)
    if solution is None:
        return json_error("unparsable_ai_response", 422)
    return JSONResponse(solution.to_dict(), headers=private_no_store())


@tutor_router.post("/api/generate-sentence")
async def generate_sentence(request: Request):
    """A short practice sentence for the reading tab."""
    error = _guard(request)
    if error:
        return error
    try:
        sentence = await ReadingSentenceUseCase(wiring.get_text_client()).execute()
    except TextGenerationNotConfigured:
        return json_error("ai_not_configured", 500)
    except (TextGenerationError, ValueError) as exc:
        logger.warning("tutor.generate_sentence.failed error=%s", exc.__class__.__name__)
        return json_error("sentence_generation_failed", 500)
    return JSONResponse({"sentence": sentence}, headers=private_no_store())
