"""
Authentication routes: guardian signup/login, learner login, logout, `/api/me`.

Why:
    Guardians sign in with their own address; learners sign in with their
    display name and PIN, which is resolved server-side to the synthetic login
    key. Both end up with the same opaque `moe_session` cookie.

Notes:
    - Provider tokens are never stored; only our session record is.
    - Learner login never reveals the login key to the client.
    - Guardian signup uses the provider's self-service flow, which emails a
      confirmation link; password login works once the address is confirmed.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field, ValidationError, field_validator

from backend.accounts.repo import RepoError
from backend.identity_access.admin_client import IdentityServiceError
from backend.web import wiring
from backend.web.sessions import SESSION_COOKIE_NAME, close_session, open_session, read_session
from .security import json_error, private_no_store, require_same_origin


auth_router = APIRouter(tags=["Auth"])
logger = logging.getLogger("moe.web.auth")

MIN_GUARDIAN_PASSWORD_LENGTH = 6
MAX_FULL_NAME_LENGTH = 200
STUDENT_SEARCH_LIMIT = 5


# --- Request models --------------------------------------------------------------

class GuardianSignup(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=MAX_FULL_NAME_LENGTH)
    email: str
    password: str = Field(..., min_length=MIN_GUARDIAN_PASSWORD_LENGTH)

    @field_validator("full_name", mode="before")
    @classmethod
    def _strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            if "@" not in v:
                raise ValueError("address needs an @")
        return v


class Credentials(BaseModel):
    """Guardian (`email`) or learner (`username`) credentials; blanks are checked in the handler."""

    email: str = ""
    username: str = ""
    password: str = ""

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("username", mode="before")
    @classmethod
    def _strip_username(cls, v):
        return v.strip() if isinstance(v, str) else v


_SIGNUP_FIELD_DETAIL = {
    "full_name": "invalid_full_name",
    "email": "invalid_email",
    "password": "password_too_short",
}


def _signup_error_detail(exc: ValidationError) -> str:
    for err in exc.errors():
        loc = err.get("loc") or ()
        if loc and loc[0] in _SIGNUP_FIELD_DETAIL:
            return _SIGNUP_FIELD_DETAIL[loc[0]]
    return "invalid_json"


async def _credentials(request: Request) -> Credentials:
    try:
        return Credentials.model_validate_json(await request.body())
    except ValidationError:
        return Credentials()


@auth_router.post("/api/auth/signup")
async def auth_signup(request: Request):
    """Register a guardian identity plus profile row and open a session.

    Behavior:
        - 400 for a missing name, an address without "@", or a password
          shorter than six characters.
        - 409 when the address is already registered.
        - The provider sends the confirmation email; later password logins
          are rejected until the guardian follows it.
        - A failed profile insert deletes the new identity again (502).

    Permissions:
        Public.
    """
    csrf = require_same_origin(request)
    if csrf:
        return csrf
    try:
        payload = GuardianSignup.model_validate_json(await request.body())
    except ValidationError as exc:
        return json_error("bad_request", 400, _signup_error_detail(exc))

    try:
        auth = wiring.get_password_auth()
    except RuntimeError:
        return json_error("identity_not_configured", 500)
    try:
        guardian_id = auth.sign_up(email=payload.email, password=payload.password, display_name=payload.full_name)
    except IdentityServiceError as exc:
        if exc.code == "identity_conflict":
            return json_error("email_taken", 409)
        logger.warning("auth.signup.identity_failed code=%s", exc.code)
        return json_error("signup_failed", 502)

    try:
        wiring.get_accounts_repo().create_guardian_profile(
            guardian_id=guardian_id, full_name=payload.full_name, email=payload.email
        )
    except RepoError as exc:
        logger.warning("auth.signup.profile_failed code=%s", exc.code)
        try:
            wiring.get_identity_admin().delete_identity(guardian_id)
        except (IdentityServiceError, RuntimeError) as del_exc:
            logger.error("auth.signup.rollback_failed identity=%s error=%s", guardian_id, del_exc)
        return json_error("signup_failed", 502)

    resp = JSONResponse(
        {"id": guardian_id, "email": payload.email, "name": payload.full_name},
        status_code=201,
        headers=private_no_store(),
    )
    open_session(resp, sub=guardian_id, roles=["parent"], name=payload.full_name)
    logger.info("auth.signup.ok guardian=%s", guardian_id)
    return resp


@auth_router.post("/api/auth/login")
async def auth_login(request: Request):
    """Guardian password login.

    Behavior:
        - 401 `invalid_credentials` for any rejected sign-in, including an
          address that is not confirmed yet.
        - 403 when the identity has no guardian profile (e.g. a learner).
    """
    csrf = require_same_origin(request)
    if csrf:
        return csrf
    creds = await _credentials(request)
    email, password = creds.email, creds.password
    if not email or not password:
        return json_error("bad_request", 400, "missing_credentials")
    try:
        auth = wiring.get_password_auth()
    except RuntimeError:
        return json_error("identity_not_configured", 500)
    try:
        result = auth.sign_in(email=email, password=password)
    except ValueError:
        return json_error("invalid_credentials", 401)

    try:
        profile = wiring.get_accounts_repo().get_guardian_profile(result["user_id"])
    except RepoError as exc:
        logger.warning("auth.login.profile_lookup_failed code=%s", exc.code)
        return json_error("login_system_error", 500)
    if not profile:
        return json_error("forbidden", 403, "guardian_profile_missing")

    name = profile.get("full_name") or email.split("@")[0]
    resp = JSONResponse({"id": result["user_id"], "name": name}, headers=private_no_store())
    open_session(resp, sub=result["user_id"], roles=["parent"], name=name)
    return resp


def _pick_candidate(candidates: list[dict], username: str) -> dict:
    wanted = username.lower()
    for candidate in candidates:
        if str(candidate.get("name") or "").lower() == wanted:
            return candidate
    return candidates[0]


@auth_router.post("/api/auth/student-login")
async def auth_student_login(request: Request):
    """Learner login by display name and PIN.

    Behavior:
        - Name search error 500 `student_lookup_failed`; no match 404
          `student_not_found`.
        - Exact case-insensitive name match wins, else the first candidate.
        - Login key unresolvable 502 `login_system_error`; rejected PIN 401
          `incorrect_password`.
        - Success opens a `student` session bound to the learner id.
    """
    csrf = require_same_origin(request)
    if csrf:
        return csrf
    creds = await _credentials(request)
    username, password = creds.username, creds.password
    if not username or not password:
        return json_error("bad_request", 400, "missing_credentials")

    try:
        candidates = wiring.get_accounts_repo().find_learners_by_name(username, limit=STUDENT_SEARCH_LIMIT)
    except RepoError as exc:
        logger.warning("auth.student_login.lookup_failed code=%s", exc.code)
        return json_error("student_lookup_failed", 500)
    if not candidates:
        return json_error("student_not_found", 404)
    learner = _pick_candidate(candidates, username)

    login_key: Any = None
    try:
        login_key = wiring.get_identity_admin().get_login_key(str(learner.get("auth_user_id") or ""))
    except (IdentityServiceError, RuntimeError) as exc:
        logger.warning("auth.student_login.login_key_failed error=%s", exc.__class__.__name__)
    if not login_key:
        return json_error("login_system_error", 502)

    try:
        result = wiring.get_password_auth().sign_in(email=login_key, password=password)
    except RuntimeError:
        return json_error("login_system_error", 502)
    except ValueError:
        return json_error("incorrect_password", 401)

    resp = JSONResponse({"studentId": learner["id"], "studentName": learner.get("name")}, headers=private_no_store())
    open_session(
        resp,
        sub=result["user_id"],
        roles=["student"],
        name=str(learner.get("name") or ""),
        learner_id=str(learner["id"]),
    )
    logger.info("auth.student_login.ok learner=%s", learner["id"])
    return resp


@auth_router.post("/api/auth/logout")
async def auth_logout(request: Request):
    """Drop the server-side session and clear the cookie (idempotent)."""
    csrf = require_same_origin(request)
    if csrf:
        return csrf
    resp = Response(status_code=204, headers=private_no_store())
    close_session(resp, request.cookies.get(SESSION_COOKIE_NAME))
    return resp


@auth_router.get("/api/me")
async def get_me(request: Request):
    rec = read_session(request.cookies.get(SESSION_COOKIE_NAME))
    if not rec:
        return json_error("unauthenticated", 401)
    exp_iso = (
        datetime.fromtimestamp(rec.expires_at, tz=timezone.utc).isoformat(timespec="seconds")
        if rec.expires_at
        else None
    )
    return JSONResponse(
        {
            "sub": rec.sub,
            "roles": rec.roles,
            "name": rec.name,
            "learner_id": rec.learner_id,
            "expires_at": exp_iso,
        },
        headers=private_no_store(),
    )
