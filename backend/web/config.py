"""
Configuration and startup security checks for Moe.

Why: Child accounts are created with a service-role key; an accidental
insecure deployment would expose every family's data. This module provides a
single guard that enforces minimal production safety constraints without
burdening local development.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def current_environment() -> str:
    return (os.getenv("MOE_ENV", "dev") or "dev").lower()


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Intent: Abort process startup when obviously insecure settings are detected
    in production/staging. Development remains permissive for convenience.

    Checks:
    - Supabase Service Role key must be set and not a known dummy placeholder.
    - SUPABASE_URL must use https.
    - Database DSNs must not explicitly disable TLS.
    - GROQ_API_KEY must be configured (the tutor endpoints depend on it).
    - In-memory account or session stores are refused.
    """

    env = current_environment()
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    # 1) Supabase Service Role key
    srole = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "").strip()
    if not srole or srole.upper() == "DUMMY_DO_NOT_USE":
        raise SystemExit(
            "Refusing to start: SUPABASE_SERVICE_ROLE_KEY is unset or a dummy placeholder in production."
        )

    # 2) Supabase endpoint must use HTTPS
    url = (os.getenv("SUPABASE_URL", "") or "").strip().lower()
    if not url:
        raise SystemExit("Refusing to start: SUPABASE_URL is unset in production.")
    if url.startswith("http://"):
        raise SystemExit("Refusing to start: SUPABASE_URL must use https in production (got http).")

    # 3) Postgres TLS: basic guard to avoid explicit disable
    for key in ("DATABASE_URL", "SUPABASE_DB_URL", "ACCOUNTS_DATABASE_URL", "SESSION_DATABASE_URL"):
        dsn = os.getenv(key, "")
        if "sslmode=disable" in dsn:
            raise SystemExit(
                f"Refusing to start: {key} contains sslmode=disable in production. Use sslmode=require or verify TLS."
            )

    # 4) Tutor AI key
    if not (os.getenv("GROQ_API_KEY", "") or "").strip():
        raise SystemExit("Refusing to start: GROQ_API_KEY is unset in production.")

    # 5) Durable stores only
    if (os.getenv("ACCOUNTS_BACKEND") or "db").strip().lower() == "memory":
        raise SystemExit("Refusing to start: ACCOUNTS_BACKEND=memory is not allowed in production/staging.")
    if (os.getenv("SESSIONS_BACKEND") or "memory").strip().lower() != "db":
        raise SystemExit("Refusing to start: SESSIONS_BACKEND=db is mandatory in production/staging.")
