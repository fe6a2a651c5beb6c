"""
Child account routes for guardians, backed by the managed-account provisioner.

Why:
    Guardians create and look after their children's accounts; the children
    never see an email address or manage credentials themselves. All writes go
    through `ManagedAccountProvisioner` so the identity and the `students` row
    stay linked.

Permissions:
    Caller must hold the `parent` role. Learners of other guardians answer 404,
    exactly like missing ones.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field, StrictInt, ValidationError, field_validator

from backend.identity_access.provisioner import (
    LearnerUpdate,
    ManagedAccountProvisioner,
    ProvisionErrorKind,
    ProvisionResult,
)
from backend.web import wiring
from .security import is_uuid_like, json_error, private_no_store, require_role, require_same_origin


children_router = APIRouter(tags=["Children"])

MAX_NAME_LENGTH = 100
MAX_GRADE_LENGTH = 50
MIN_AGE, MAX_AGE = 4, 18
MIN_PIN_LENGTH, MAX_PIN_LENGTH = 4, 72

_KIND_STATUS = {
    ProvisionErrorKind.NOT_AUTHENTICATED: 401,
    ProvisionErrorKind.GUARDIAN_PROFILE_MISSING: 403,
    ProvisionErrorKind.LEARNER_NOT_FOUND_OR_UNAUTHORIZED: 404,
    ProvisionErrorKind.IDENTITY_CREATION_FAILED: 502,
    ProvisionErrorKind.PROFILE_CREATION_FAILED: 502,
    ProvisionErrorKind.CREDENTIAL_UPDATE_FAILED: 502,
    ProvisionErrorKind.IDENTITY_DELETION_FAILED: 502,
    ProvisionErrorKind.UPDATE_FAILED: 502,
}


# --- Request models --------------------------------------------------------------

def _collapse_spaces(v):
    return " ".join(v.split()) if isinstance(v, str) else v


def _strip(v):
    return v.strip() if isinstance(v, str) else v


class ChildCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    age: StrictInt = Field(..., ge=MIN_AGE, le=MAX_AGE)
    grade: str = Field(..., min_length=1, max_length=MAX_GRADE_LENGTH)
    password: str = Field(..., min_length=MIN_PIN_LENGTH, max_length=MAX_PIN_LENGTH)

    @field_validator("name", mode="before")
    @classmethod
    def _normalize_name(cls, v):
        return _collapse_spaces(v)

    @field_validator("grade", mode="before")
    @classmethod
    def _normalize_grade(cls, v):
        return _strip(v)


class ChildUpdate(BaseModel):
    # Omitted fields stay unchanged; an explicit null is rejected like any bad value.
    name: Optional[str] = Field(default=None, min_length=1, max_length=MAX_NAME_LENGTH)
    age: Optional[StrictInt] = Field(default=None, ge=MIN_AGE, le=MAX_AGE)
    grade: Optional[str] = Field(default=None, min_length=1, max_length=MAX_GRADE_LENGTH)

    @field_validator("name", "age", "grade", mode="before")
    @classmethod
    def _reject_null(cls, v):
        if v is None:
            raise ValueError("value required")
        return v

    @field_validator("name", mode="before")
    @classmethod
    def _normalize_name(cls, v):
        return _collapse_spaces(v)

    @field_validator("grade", mode="before")
    @classmethod
    def _normalize_grade(cls, v):
        return _strip(v)

    def changes(self) -> dict:
        return {name: getattr(self, name) for name in self.model_fields_set}


class ChildPinReset(BaseModel):
    password: str = Field(..., min_length=MIN_PIN_LENGTH, max_length=MAX_PIN_LENGTH)


_FIELD_DETAIL = {
    "name": "invalid_name",
    "age": "invalid_age",
    "grade": "invalid_grade",
    "password": "invalid_password",
}


def _validation_detail(exc: ValidationError) -> str:
    """Map the first failing field to its 400 detail; body-level failures are `invalid_json`."""
    for err in exc.errors():
        loc = err.get("loc") or ()
        if loc and loc[0] in _FIELD_DETAIL:
            return _FIELD_DETAIL[loc[0]]
    return "invalid_json"


def _provisioner() -> ManagedAccountProvisioner:
    return ManagedAccountProvisioner(identity=wiring.get_identity_admin(), repo=wiring.get_accounts_repo())


def _failure_response(result: ProvisionResult) -> JSONResponse:
    error = result.error
    kind = error.kind
    if kind is ProvisionErrorKind.UPDATE_FAILED and error.detail == "learner_not_found":
        return json_error(kind.value, 404)
    if kind is ProvisionErrorKind.IDENTITY_CREATION_FAILED and error.detail == "identity_conflict":
        return json_error(kind.value, 409, "learner_name_taken")
    return json_error(kind.value, _KIND_STATUS.get(kind, 500))


def _learner_public(row: dict) -> dict:
    return {
        "id": row.get("id"),
        "name": row.get("name"),
        "age": row.get("age"),
        "grade": row.get("grade_level"),
        "isManaged": bool(row.get("is_managed", True)),
        "createdAt": row.get("created_at"),
    }


def _guard(
    request: Request, *, write: bool, learner_id: Optional[str] = None
) -> tuple[Optional[dict], Optional[JSONResponse]]:
    if write:
        csrf = require_same_origin(request)
        if csrf:
            return None, csrf
    user, error = require_role(request, "parent")
    if error:
        return None, error
    if learner_id is not None and not is_uuid_like(learner_id):
        return None, json_error("bad_request", 400, "invalid_uuid")
    return user, None


@children_router.get("/api/children")
async def list_children(request: Request):
    """List the caller's learners ordered by creation time."""
    user, error = _guard(request, write=False)
    if error:
        return error
    try:
        provisioner = _provisioner()
    except RuntimeError:
        return json_error("identity_not_configured", 500)
    result = provisioner.list_learners(str(user.get("sub") or ""))
    if not result.ok:
        return _failure_response(result)
    return JSONResponse([_learner_public(r) for r in result.value or []], headers=private_no_store())


@children_router.post("/api/children")
async def create_child(request: Request):
    """Create a managed learner account.

    Behavior:
        - 400 for invalid name, age, grade or PIN.
        - 201 with the learner on success; failures map by provisioner kind.
    """
    user, error = _guard(request, write=True)
    if error:
        return error
    try:
        payload = ChildCreate.model_validate_json(await request.body())
    except ValidationError as exc:
        return json_error("bad_request", 400, _validation_detail(exc))
    try:
        provisioner = _provisioner()
    except RuntimeError:
        return json_error("identity_not_configured", 500)
    result = provisioner.create(
        str(user.get("sub") or ""),
        name=payload.name,
        age=payload.age,
        grade=payload.grade,
        password=payload.password,
    )
    if not result.ok:
        return _failure_response(result)
    return JSONResponse(_learner_public(result.value), status_code=201, headers=private_no_store())


@children_router.patch("/api/children/{learner_id}")
async def update_child(request: Request, learner_id: str):
    """Change a learner's name, age and/or grade; omitted fields stay as they are."""
    user, error = _guard(request, write=True, learner_id=learner_id)
    if error:
        return error
    try:
        payload = ChildUpdate.model_validate_json(await request.body())
    except ValidationError as exc:
        return json_error("bad_request", 400, _validation_detail(exc))
    try:
        provisioner = _provisioner()
    except RuntimeError:
        return json_error("identity_not_configured", 500)
    result = provisioner.update(str(user.get("sub") or ""), learner_id, LearnerUpdate(**payload.changes()))
    if not result.ok:
        return _failure_response(result)
    if result.value is None:
        return Response(status_code=204, headers=private_no_store())
    return JSONResponse(_learner_public(result.value), headers=private_no_store())


@children_router.post("/api/children/{learner_id}/password")
async def reset_child_password(request: Request, learner_id: str):
    """Set a new PIN for the learner."""
    user, error = _guard(request, write=True, learner_id=learner_id)
    if error:
        return error
    try:
        payload = ChildPinReset.model_validate_json(await request.body())
    except ValidationError:
        return json_error("bad_request", 400, "invalid_password")
    try:
        provisioner = _provisioner()
    except RuntimeError:
        return json_error("identity_not_configured", 500)
    result = provisioner.reset_password(str(user.get("sub") or ""), learner_id, payload.password)
    if not result.ok:
        return _failure_response(result)
    return Response(status_code=204, headers=private_no_store())


@children_router.delete("/api/children/{learner_id}")
async def delete_child(request: Request, learner_id: str):
    """Delete the learner's identity; the profile row goes with it."""
    user, error = _guard(request, write=True, learner_id=learner_id)
    if error:
        return error
    try:
        provisioner = _provisioner()
    except RuntimeError:
        return json_error("identity_not_configured", 500)
    result = provisioner.delete(str(user.get("sub") or ""), learner_id)
    if not result.ok:
        return _failure_response(result)
    return Response(status_code=204, headers=private_no_store())
