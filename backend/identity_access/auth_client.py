"""
Minimal Supabase password client: guardian self-service sign-up and sign-in.

This module is a thin, framework-agnostic adapter used by the web layer to
register guardians and to authenticate guardians (real address) and learners
(synthetic login key) with a password. It uses an anon-key client; sessions
stay server-side in our own session store, the provider tokens are discarded.

Guardian sign-up goes through the public `sign_up` flow so the provider sends
its confirmation email. Until the address is confirmed, `sign_in` is rejected.

Security: Never log credentials. This client does not store or persist any
sensitive data.
"""

from __future__ import annotations

from typing import Any, Dict, Protocol
import os

from .admin_client import IdentityServiceError, _error_code, _field, _user_from_response


class PasswordAuthProtocol(Protocol):
    def sign_up(self, *, email: str, password: str, display_name: str) -> str: ...

    def sign_in(self, *, email: str, password: str) -> Dict[str, str]: ...


class SupabasePasswordAuth:
    """Authenticate against Supabase Auth using the password grant.

    `sign_up` returns the new identity id and raises `IdentityServiceError`
    (`identity_conflict` for a registered address). `sign_in` returns
    `{"user_id", "email"}` on success and raises `ValueError("sign_in_failed")`
    on any rejection.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    def sign_up(self, *, email: str, password: str, display_name: str) -> str:
        credentials = {
            "email": email,
            "password": password,
            "options": {"data": {"full_name": display_name, "is_student": False}},
        }
        try:
            res = self._client.auth.sign_up(credentials)
        except Exception as exc:
            raise IdentityServiceError(_error_code(exc), str(exc)) from exc
        user = _user_from_response(res)
        user_id = _field(user, "id")
        if not user_id:
            raise IdentityServiceError("user_id_missing")
        # With email confirmation on, a known address comes back as a user
        # without identities instead of an error.
        identities = _field(user, "identities")
        if identities is not None and len(identities) == 0:
            raise IdentityServiceError("identity_conflict", "already registered")
        return str(user_id)

    def sign_in(self, *, email: str, password: str) -> Dict[str, str]:
        try:
            res = self._client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as exc:
            # Propagate as a simple ValueError for the web adapter to catch.
            raise ValueError("sign_in_failed") from exc
        user = getattr(res, "user", None)
        if user is None and isinstance(res, dict):
            user = res.get("user")
        user_id = user.get("id") if isinstance(user, dict) else getattr(user, "id", None)
        if not user_id:
            raise ValueError("sign_in_failed")
        user_email = user.get("email") if isinstance(user, dict) else getattr(user, "email", None)
        return {"user_id": str(user_id), "email": str(user_email or email)}


def build_anon_client() -> Any:
    url = (os.getenv("SUPABASE_URL") or "").strip()
    key = (os.getenv("SUPABASE_ANON_KEY") or "").strip()
    if not url or not key:
        raise RuntimeError("Missing Supabase anon credentials")
    from supabase import create_client

    return create_client(url, key)


__all__ = ["PasswordAuthProtocol", "SupabasePasswordAuth", "build_anon_client"]
