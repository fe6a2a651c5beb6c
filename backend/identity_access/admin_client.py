"""
Supabase Auth admin client (minimal) for managed learner identities.

Design:
- Framework-agnostic, callable from the provisioner and web adapters.
- Duck-typed: the wrapped client only needs `.auth.admin` exposing
  `create_user`, `delete_user`, `update_user_by_id` and `get_user_by_id`
  (the shape of `supabase.create_client(...)`). Tests pass fakes.
- Every failure surfaces as `IdentityServiceError` with a short code; callers
  decide how to map it.

Security:
- The wrapped client must be created with the Service Role key. Never hand it
  to browser-facing code.
- Do not log passwords or full login keys.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Protocol
import logging
import os


logger = logging.getLogger("moe.identity_access")


class IdentityServiceError(Exception):
    """Identity service call failed; `code` is a short snake_case reason."""

    def __init__(self, code: str, detail: str | None = None) -> None:
        super().__init__(code)
        self.code = code
        self.detail = detail


class IdentityAdminProtocol(Protocol):
    """Privileged identity operations consumed by the provisioner."""

    def create_identity(
        self, *, login_key: str, password: str, confirmed: bool, metadata: Mapping[str, Any]
    ) -> str: ...

    def delete_identity(self, identity_id: str) -> None: ...

    def update_credential(self, identity_id: str, new_password: str) -> None: ...

    def get_login_key(self, identity_id: str) -> Optional[str]: ...


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _user_from_response(res: Any) -> Any:
    """Return the user object from either a UserResponse or a plain dict."""
    user = _field(res, "user")
    if user is None:
        data = _field(res, "data")
        user = _field(data, "user")
    return user


def _error_code(exc: Exception) -> str:
    """Map a gotrue/supabase error to a stable code."""
    status = getattr(exc, "status", None)
    code = str(getattr(exc, "code", "") or "").lower()
    message = str(exc).lower()
    if status == 422 or code in {"email_exists", "user_already_exists"} or "already" in message:
        return "identity_conflict"
    if status == 404 or code == "user_not_found":
        return "identity_not_found"
    return "identity_service_error"


class SupabaseIdentityAdmin:
    """Identity admin adapter using `client.auth.admin` of a service-role client."""

    def __init__(self, client: Any) -> None:
        self._client = client

    @property
    def _admin(self) -> Any:
        auth = getattr(self._client, "auth", None)
        admin = getattr(auth, "admin", None)
        if admin is None:
            raise IdentityServiceError("invalid_supabase_client")
        return admin

    def create_identity(
        self, *, login_key: str, password: str, confirmed: bool, metadata: Mapping[str, Any]
    ) -> str:
        attributes: Dict[str, Any] = {
            "email": login_key,
            "password": password,
            "email_confirm": bool(confirmed),
            "user_metadata": dict(metadata),
        }
        try:
            res = self._admin.create_user(attributes)
        except IdentityServiceError:
            raise
        except Exception as exc:
            raise IdentityServiceError(_error_code(exc), str(exc)) from exc
        user_id = _field(_user_from_response(res), "id")
        if not user_id:
            raise IdentityServiceError("user_id_missing")
        return str(user_id)

    def delete_identity(self, identity_id: str) -> None:
        try:
            self._admin.delete_user(identity_id)
        except IdentityServiceError:
            raise
        except Exception as exc:
            raise IdentityServiceError(_error_code(exc), str(exc)) from exc

    def update_credential(self, identity_id: str, new_password: str) -> None:
        try:
            self._admin.update_user_by_id(identity_id, {"password": new_password})
        except IdentityServiceError:
            raise
        except Exception as exc:
            raise IdentityServiceError(_error_code(exc), str(exc)) from exc

    def get_login_key(self, identity_id: str) -> Optional[str]:
        try:
            res = self._admin.get_user_by_id(identity_id)
        except IdentityServiceError:
            raise
        except Exception as exc:
            code = _error_code(exc)
            if code == "identity_not_found":
                return None
            raise IdentityServiceError(code, str(exc)) from exc
        email = _field(_user_from_response(res), "email")
        return str(email) if email else None


def build_service_client() -> Any:
    """Create a Supabase client with the Service Role key from the environment.

    Raises RuntimeError when `SUPABASE_URL` or `SUPABASE_SERVICE_ROLE_KEY` is missing.
    """
    url = (os.getenv("SUPABASE_URL") or "").strip()
    key = (os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
    if not url or not key:
        raise RuntimeError("Missing Supabase admin credentials")
    from supabase import create_client  # lazy: keeps tests free of network clients

    return create_client(url, key)


__all__ = [
    "IdentityAdminProtocol",
    "IdentityServiceError",
    "SupabaseIdentityAdmin",
    "build_service_client",
]
