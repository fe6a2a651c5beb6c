"""
In-process fakes for the identity service and password sign-in.

`FakeIdentityAdmin` keeps identities in a dict and, when given an
`InMemoryAccountsRepo`, emulates the `on delete cascade` from identities to
learner rows. Fault injection: set `fail_on` to a method name (or a set of
names) to make that call raise `IdentityServiceError`.
"""
from __future__ import annotations

from typing import Any, Dict, Optional, Set, Union
import itertools

from backend.identity_access.admin_client import IdentityServiceError


class FakeIdentityAdmin:
    def __init__(self, repo: Any = None, *, fail_on: Union[str, Set[str], None] = None) -> None:
        self.repo = repo
        self.identities: Dict[str, Dict[str, Any]] = {}
        self.calls: list[tuple[str, Any]] = []
        self.fail_on: Set[str] = {fail_on} if isinstance(fail_on, str) else set(fail_on or ())
        self._ids = itertools.count(1)

    def _maybe_fail(self, op: str) -> None:
        if op in self.fail_on:
            raise IdentityServiceError("identity_service_error", f"injected {op} failure")

    def create_identity(self, *, login_key: str, password: str, confirmed: bool, metadata: dict) -> str:
        self.calls.append(("create_identity", login_key))
        self._maybe_fail("create_identity")
        if any(i["login_key"] == login_key for i in self.identities.values()):
            raise IdentityServiceError("identity_conflict", "already registered")
        identity_id = f"auth-{next(self._ids)}"
        self.identities[identity_id] = {
            "login_key": login_key,
            "password": password,
            "confirmed": confirmed,
            "metadata": dict(metadata),
        }
        return identity_id

    def confirm(self, identity_id: str) -> None:
        """Mark the address confirmed, as following the emailed link does."""
        self.identities[identity_id]["confirmed"] = True

    def delete_identity(self, identity_id: str) -> None:
        self.calls.append(("delete_identity", identity_id))
        self._maybe_fail("delete_identity")
        if identity_id not in self.identities:
            raise IdentityServiceError("identity_not_found")
        del self.identities[identity_id]
        if self.repo is not None and hasattr(self.repo, "delete_learners_for_identity"):
            self.repo.delete_learners_for_identity(identity_id)

    def update_credential(self, identity_id: str, new_password: str) -> None:
        self.calls.append(("update_credential", identity_id))
        self._maybe_fail("update_credential")
        if identity_id not in self.identities:
            raise IdentityServiceError("identity_not_found")
        self.identities[identity_id]["password"] = new_password

    def get_login_key(self, identity_id: str) -> Optional[str]:
        self._maybe_fail("get_login_key")
        ident = self.identities.get(identity_id)
        return ident["login_key"] if ident else None


class FakePasswordAuth:
    """Signs up and checks credentials against a `FakeIdentityAdmin`'s identities.

    Sign-up leaves the identity unconfirmed; sign-in rejects it until
    `FakeIdentityAdmin.confirm` runs.
    """

    def __init__(self, admin: FakeIdentityAdmin) -> None:
        self._admin = admin

    def sign_up(self, *, email: str, password: str, display_name: str) -> str:
        self._admin.calls.append(("sign_up", email))
        self._admin._maybe_fail("sign_up")
        return self._admin.create_identity(
            login_key=email,
            password=password,
            confirmed=False,
            metadata={"full_name": display_name, "is_student": False},
        )

    def sign_in(self, *, email: str, password: str) -> Dict[str, str]:
        for identity_id, ident in self._admin.identities.items():
            if ident["login_key"] == email and ident["password"] == password and ident["confirmed"]:
                return {"user_id": identity_id, "email": email}
        raise ValueError("sign_in_failed")


__all__ = ["FakeIdentityAdmin", "FakePasswordAuth"]
