"""
Managed-account provisioner for learner (child) identities.

Why:
    A learner is two linked records: an identity at the auth provider and a
    `students` row. Both exist or neither does. This module is the only place
    that creates, updates, re-credentials or deletes them, always on behalf of
    the owning guardian.

Behavior:
    - Every operation returns a `ProvisionResult`; collaborator exceptions are
      mapped to a closed `ProvisionErrorKind` and never escape.
    - create: identity first, row second; a failed row insert deletes the new
      identity again (best effort, failure only logged).
    - delete: removes the identity only; the row goes with it by cascade.
    - update: one owner-filtered write, no read-then-write.

Permissions:
    Caller must be an authenticated guardian with a profile row. Learners of
    other guardians look exactly like missing learners.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar
import logging

from backend.accounts.repo import AccountsRepoProtocol, RepoError, _UNSET
from backend.identity_access.admin_client import IdentityAdminProtocol, IdentityServiceError
from backend.identity_access.domain import derive_login_key


logger = logging.getLogger("moe.identity_access")

T = TypeVar("T")


class ProvisionErrorKind(str, Enum):
    NOT_AUTHENTICATED = "not_authenticated"
    GUARDIAN_PROFILE_MISSING = "guardian_profile_missing"
    LEARNER_NOT_FOUND_OR_UNAUTHORIZED = "learner_not_found_or_unauthorized"
    IDENTITY_CREATION_FAILED = "identity_creation_failed"
    PROFILE_CREATION_FAILED = "profile_creation_failed"
    CREDENTIAL_UPDATE_FAILED = "credential_update_failed"
    IDENTITY_DELETION_FAILED = "identity_deletion_failed"
    UPDATE_FAILED = "update_failed"


@dataclass(frozen=True)
class ProvisionError:
    """Failure kind plus an optional debugging detail (never for control flow)."""

    kind: ProvisionErrorKind
    detail: Optional[str] = None


@dataclass(frozen=True)
class ProvisionResult(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[ProvisionError] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "ProvisionResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, kind: ProvisionErrorKind, detail: Optional[str] = None) -> "ProvisionResult[T]":
        return cls(ok=False, error=ProvisionError(kind=kind, detail=detail))


@dataclass(frozen=True)
class LearnerUpdate:
    """Partial learner update; `None` means "leave unchanged"."""

    name: Optional[str] = None
    age: Optional[int] = None
    grade: Optional[str] = None

    def is_empty(self) -> bool:
        return self.name is None and self.age is None and self.grade is None


class ManagedAccountProvisioner:
    """Keep a learner's identity and profile row consistent.

    Parameters:
        identity: privileged identity adapter (service-role client).
        repo: relational store for guardian profiles and learners.

    Constructed per request; holds no state of its own.
    """

    def __init__(self, *, identity: IdentityAdminProtocol, repo: AccountsRepoProtocol) -> None:
        self._identity = identity
        self._repo = repo

    # --- Guardian / ownership helpers --------------------------------------------
    def _resolve_guardian(self, guardian_id: Optional[str]) -> ProvisionResult[Dict[str, Any]]:
        if not guardian_id:
            return ProvisionResult.failure(ProvisionErrorKind.NOT_AUTHENTICATED)
        try:
            profile = self._repo.get_guardian_profile(guardian_id)
        except RepoError as exc:
            logger.warning("provisioner.guardian_lookup_failed code=%s", exc.code)
            return ProvisionResult.failure(ProvisionErrorKind.GUARDIAN_PROFILE_MISSING, exc.code)
        if not profile:
            return ProvisionResult.failure(ProvisionErrorKind.GUARDIAN_PROFILE_MISSING)
        return ProvisionResult.success(profile)

    def _owned_learner(self, learner_id: str, guardian_id: str) -> Optional[Dict[str, Any]]:
        try:
            return self._repo.get_learner_owned(learner_id, guardian_id)
        except RepoError as exc:
            # Same outcome as "not yours": do not reveal why the lookup failed.
            logger.warning("provisioner.learner_lookup_failed code=%s", exc.code)
            return None

    # --- Operations ---------------------------------------------------------------
    def create(
        self,
        guardian_id: Optional[str],
        *,
        name: str,
        age: int,
        grade: str,
        password: str,
    ) -> ProvisionResult[Dict[str, Any]]:
        """Provision a learner: identity first, then the profile row.

        Behavior:
            - Identity failures (including a login-key conflict) end the call
              with no side effects.
            - Profile insert failures trigger a compensating identity delete.
        """
        guardian = self._resolve_guardian(guardian_id)
        if not guardian.ok:
            return ProvisionResult(ok=False, error=guardian.error)
        parent_id = str(guardian.value["id"])

        try:
            login_key = derive_login_key(parent_id, name)
        except ValueError as exc:
            return ProvisionResult.failure(ProvisionErrorKind.IDENTITY_CREATION_FAILED, str(exc))

        try:
            identity_id = self._identity.create_identity(
                login_key=login_key,
                password=password,
                confirmed=True,
                metadata={"name": name, "is_student": True, "managed_by": parent_id},
            )
        except IdentityServiceError as exc:
            logger.warning("provisioner.create.identity_failed guardian=%s code=%s", parent_id, exc.code)
            return ProvisionResult.failure(ProvisionErrorKind.IDENTITY_CREATION_FAILED, exc.code)

        try:
            learner = self._repo.insert_learner(
                name=name,
                age=age,
                grade_level=grade,
                parent_id=parent_id,
                auth_user_id=identity_id,
            )
        except RepoError as exc:
            logger.warning("provisioner.create.profile_failed guardian=%s code=%s", parent_id, exc.code)
            self._rollback_identity(identity_id)
            return ProvisionResult.failure(ProvisionErrorKind.PROFILE_CREATION_FAILED, exc.code)

        logger.info("provisioner.create.ok guardian=%s learner=%s", parent_id, learner.get("id"))
        return ProvisionResult.success(learner)

    def _rollback_identity(self, identity_id: str) -> None:
        try:
            self._identity.delete_identity(identity_id)
        except IdentityServiceError as exc:
            logger.error("provisioner.create.rollback_failed identity=%s code=%s", identity_id, exc.code)
        else:
            logger.info("provisioner.create.rolled_back identity=%s", identity_id)

    def reset_password(
        self, guardian_id: Optional[str], learner_id: str, new_password: str
    ) -> ProvisionResult[None]:
        guardian = self._resolve_guardian(guardian_id)
        if not guardian.ok:
            return ProvisionResult(ok=False, error=guardian.error)
        learner = self._owned_learner(learner_id, str(guardian.value["id"]))
        if not learner:
            return ProvisionResult.failure(ProvisionErrorKind.LEARNER_NOT_FOUND_OR_UNAUTHORIZED)
        try:
            self._identity.update_credential(str(learner["auth_user_id"]), new_password)
        except IdentityServiceError as exc:
            logger.warning("provisioner.reset_password.failed learner=%s code=%s", learner_id, exc.code)
            return ProvisionResult.failure(ProvisionErrorKind.CREDENTIAL_UPDATE_FAILED, exc.code)
        return ProvisionResult.success(None)

    def delete(self, guardian_id: Optional[str], learner_id: str) -> ProvisionResult[None]:
        guardian = self._resolve_guardian(guardian_id)
        if not guardian.ok:
            return ProvisionResult(ok=False, error=guardian.error)
        learner = self._owned_learner(learner_id, str(guardian.value["id"]))
        if not learner:
            return ProvisionResult.failure(ProvisionErrorKind.LEARNER_NOT_FOUND_OR_UNAUTHORIZED)
        try:
            # The students row references the identity with on delete cascade.
            self._identity.delete_identity(str(learner["auth_user_id"]))
        except IdentityServiceError as exc:
            logger.warning("provisioner.delete.failed learner=%s code=%s", learner_id, exc.code)
            return ProvisionResult.failure(ProvisionErrorKind.IDENTITY_DELETION_FAILED, exc.code)
        logger.info("provisioner.delete.ok learner=%s", learner_id)
        return ProvisionResult.success(None)

    def update(
        self, guardian_id: Optional[str], learner_id: str, changes: LearnerUpdate
    ) -> ProvisionResult[Optional[Dict[str, Any]]]:
        guardian = self._resolve_guardian(guardian_id)
        if not guardian.ok:
            return ProvisionResult(ok=False, error=guardian.error)
        if changes.is_empty():
            return ProvisionResult.success(None)
        try:
            row = self._repo.update_learner_owned(
                learner_id,
                str(guardian.value["id"]),
                name=changes.name if changes.name is not None else _UNSET,
                age=changes.age if changes.age is not None else _UNSET,
                grade_level=changes.grade if changes.grade is not None else _UNSET,
            )
        except RepoError as exc:
            logger.warning("provisioner.update.failed learner=%s code=%s", learner_id, exc.code)
            return ProvisionResult.failure(ProvisionErrorKind.UPDATE_FAILED, exc.code)
        if row is None:
            return ProvisionResult.failure(ProvisionErrorKind.UPDATE_FAILED, "learner_not_found")
        return ProvisionResult.success(row)

    def list_learners(self, guardian_id: Optional[str]) -> ProvisionResult[List[Dict[str, Any]]]:
        guardian = self._resolve_guardian(guardian_id)
        if not guardian.ok:
            return ProvisionResult(ok=False, error=guardian.error)
        try:
            return ProvisionResult.success(self._repo.list_learners_for_guardian(str(guardian.value["id"])))
        except RepoError as exc:
            return ProvisionResult.failure(ProvisionErrorKind.LEARNER_NOT_FOUND_OR_UNAUTHORIZED, exc.code)


__all__ = [
    "LearnerUpdate",
    "ManagedAccountProvisioner",
    "ProvisionError",
    "ProvisionErrorKind",
    "ProvisionResult",
]
