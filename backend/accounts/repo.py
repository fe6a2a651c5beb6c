"""
Accounts repository contract and in-memory implementation.

Why:
    The provisioner and the web adapters talk to guardian profiles and learner
    records through a narrow protocol so tests and local development can run
    without Postgres. The DB-backed repo lives in `accounts.repo_db`.

Behavior:
    - "Not found" is a `None` return, never an exception.
    - Store failures raise `RepoError` with a short code.
    - Owner-scoped calls filter by learner id AND parent id in one step.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol
from uuid import uuid4


class RepoError(Exception):
    """Relational store failure (connection, constraint, missing table)."""

    def __init__(self, code: str, detail: str | None = None) -> None:
        super().__init__(code)
        self.code = code
        self.detail = detail


_UNSET: Any = object()


class AccountsRepoProtocol(Protocol):
    def get_guardian_profile(self, guardian_id: str) -> Optional[dict]: ...

    def create_guardian_profile(self, *, guardian_id: str, full_name: str, email: str) -> dict: ...

    def insert_learner(
        self, *, name: str, age: int, grade_level: str, parent_id: str, auth_user_id: str
    ) -> dict: ...

    def get_learner_owned(self, learner_id: str, parent_id: str) -> Optional[dict]: ...

    def update_learner_owned(
        self,
        learner_id: str,
        parent_id: str,
        *,
        name: Any = _UNSET,
        age: Any = _UNSET,
        grade_level: Any = _UNSET,
    ) -> Optional[dict]: ...

    def list_learners_for_guardian(self, parent_id: str) -> List[dict]: ...

    def find_learners_by_name(self, name: str, *, limit: int = 5) -> List[dict]: ...


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class GuardianProfile:
    id: str
    full_name: str
    email: str
    created_at: str


@dataclass
class LearnerRecord:
    id: str
    name: str
    age: int
    grade_level: str
    parent_id: str
    auth_user_id: str
    is_managed: bool
    created_at: str
    updated_at: str


class InMemoryAccountsRepo:
    """Dict-backed accounts store for dev and tests.

    `delete_learners_for_identity` mirrors the `on delete cascade` of
    `students.auth_user_id`; identity fakes call it when an identity is removed.
    """

    def __init__(self) -> None:
        self.profiles: Dict[str, GuardianProfile] = {}
        self.learners: Dict[str, LearnerRecord] = {}

    def get_guardian_profile(self, guardian_id: str) -> Optional[dict]:
        profile = self.profiles.get(guardian_id)
        return asdict(profile) if profile else None

    def create_guardian_profile(self, *, guardian_id: str, full_name: str, email: str) -> dict:
        if guardian_id in self.profiles:
            raise RepoError("duplicate_profile")
        profile = GuardianProfile(id=guardian_id, full_name=full_name, email=email, created_at=_now_iso())
        self.profiles[guardian_id] = profile
        return asdict(profile)

    def insert_learner(
        self, *, name: str, age: int, grade_level: str, parent_id: str, auth_user_id: str
    ) -> dict:
        if parent_id not in self.profiles:
            raise RepoError("foreign_key_violation", "parent_id")
        now = _now_iso()
        rec = LearnerRecord(
            id=str(uuid4()),
            name=name,
            age=int(age),
            grade_level=grade_level,
            parent_id=parent_id,
            auth_user_id=auth_user_id,
            is_managed=True,
            created_at=now,
            updated_at=now,
        )
        self.learners[rec.id] = rec
        return asdict(rec)

    def get_learner_owned(self, learner_id: str, parent_id: str) -> Optional[dict]:
        rec = self.learners.get(learner_id)
        if rec is None or rec.parent_id != parent_id:
            return None
        return asdict(rec)

    def update_learner_owned(
        self,
        learner_id: str,
        parent_id: str,
        *,
        name: Any = _UNSET,
        age: Any = _UNSET,
        grade_level: Any = _UNSET,
    ) -> Optional[dict]:
        rec = self.learners.get(learner_id)
        if rec is None or rec.parent_id != parent_id:
            return None
        if name is not _UNSET:
            rec.name = name
        if age is not _UNSET:
            rec.age = int(age)
        if grade_level is not _UNSET:
            rec.grade_level = grade_level
        rec.updated_at = _now_iso()
        return asdict(rec)

    def list_learners_for_guardian(self, parent_id: str) -> List[dict]:
        items = [asdict(r) for r in self.learners.values() if r.parent_id == parent_id]
        return sorted(items, key=lambda r: (r["created_at"], r["id"]))

    def find_learners_by_name(self, name: str, *, limit: int = 5) -> List[dict]:
        needle = (name or "").strip().lower()
        if not needle:
            return []
        items = [
            {"id": r.id, "name": r.name, "auth_user_id": r.auth_user_id}
            for r in self.learners.values()
            if r.name.lower() == needle
        ]
        return items[: max(1, int(limit))]

    def delete_learners_for_identity(self, auth_user_id: str) -> int:
        doomed = [lid for lid, r in self.learners.items() if r.auth_user_id == auth_user_id]
        for lid in doomed:
            self.learners.pop(lid, None)
        return len(doomed)


__all__ = [
    "AccountsRepoProtocol",
    "GuardianProfile",
    "InMemoryAccountsRepo",
    "LearnerRecord",
    "RepoError",
    "_UNSET",
]
