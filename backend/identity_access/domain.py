"""
Identity domain constants and simple helpers.

Why:
- Centralize allowed roles and the synthetic child login key so the web layer
  and the provisioner never drift apart.
- Keep terms aligned with the glossary (Guardian, Learner, managed identity).
"""

from __future__ import annotations

import os
import re

# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset({"parent", "student"})

DEFAULT_CHILD_LOGIN_DOMAIN = "miticha.internal"

_WHITESPACE = re.compile(r"\s+")


def child_login_domain() -> str:
    return (os.getenv("CHILD_LOGIN_DOMAIN") or DEFAULT_CHILD_LOGIN_DOMAIN).strip().lower()


def normalize_learner_name(name: str) -> str:
    """Lower-case the display name and drop all whitespace (also internal)."""
    return _WHITESPACE.sub("", (name or "").lower())


def derive_login_key(guardian_id: str, name: str, *, domain: str | None = None) -> str:
    """Return the internal login key for a managed learner.

    The key is address-shaped because the identity service requires one, but it
    is not a mailbox: `{guardian_id}+{normalized_name}@{domain}`.
    """
    normalized = normalize_learner_name(name)
    if not guardian_id or not normalized:
        raise ValueError("invalid_login_key_parts")
    return f"{guardian_id}+{normalized}@{domain or child_login_domain()}"


__all__ = [
    "ALLOWED_ROLES",
    "DEFAULT_CHILD_LOGIN_DOMAIN",
    "child_login_domain",
    "derive_login_key",
    "normalize_learner_name",
]
