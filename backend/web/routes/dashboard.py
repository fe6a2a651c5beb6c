"""
Guardian dashboard routes.

Permissions:
    Caller must hold the `parent` role. A learner of another guardian answers
    404, exactly like a missing one.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from backend.learning.repo import RepoError
from backend.learning.usecases.dashboard import DashboardUseCase, compare_children_summary
from backend.web import wiring
from .security import is_uuid_like, json_error, private_no_store, require_role, require_same_origin


dashboard_router = APIRouter(tags=["Dashboard"])
logger = logging.getLogger("moe.learning")


@dashboard_router.get("/api/dashboard")
async def dashboard_overview(request: Request):
    """Per-child progress plus totals for the calling guardian."""
    user, error = require_role(request, "parent")
    if error:
        return error
    try:
        learners = wiring.get_accounts_repo().list_learners_for_guardian(str(user.get("sub") or ""))
        data = DashboardUseCase(wiring.get_learning_repo()).overview(learners)
    except RepoError as exc:
        logger.warning("dashboard.overview_failed code=%s", exc.code)
        return json_error("dashboard_unavailable", 500)
    return JSONResponse(data, headers=private_no_store())


@dashboard_router.get("/api/dashboard/children/{learner_id}")
async def dashboard_child(request: Request, learner_id: str):
    """One child's stats, recent reading activities and recently reviewed words."""
    user, error = require_role(request, "parent")
    if error:
        return error
    if not is_uuid_like(learner_id):
        return json_error("bad_request", 400, "invalid_uuid")
    try:
        learner = wiring.get_accounts_repo().get_learner_owned(learner_id, str(user.get("sub") or ""))
        if not learner:
            return json_error("not_found", 404)
        data = DashboardUseCase(wiring.get_learning_repo()).learner_detail(learner)
    except RepoError as exc:
        logger.warning("dashboard.child_failed code=%s", exc.code)
        return json_error("dashboard_unavailable", 500)
    return JSONResponse(data, headers=private_no_store())


@dashboard_router.post("/api/ai-summary/compare-children")
async def compare_children(request: Request):
    """Markdown comparison of the posted child metrics (no model call)."""
    csrf = require_same_origin(request)
    if csrf:
        return csrf
    _, error = require_role(request, "parent")
    if error:
        return error
    try:
        body = await request.json()
    except ValueError:
        body = {}
    children = body.get("children") if isinstance(body, dict) else None
    summary = compare_children_summary(children if isinstance(children, list) else [])
    return JSONResponse({"summary": summary}, headers=private_no_store())
