"""
Service wiring for the web adapters.

Why:
    Routers need repositories and upstream clients, but constructing them at
    import time would open DB connections or require credentials before `.env`
    or pytest fixtures are in place. Each dependency therefore lives in a
    module slot that is built lazily on first use and can be replaced with
    `set_*()` from startup code or tests.

Security:
    The identity admin uses the Supabase service-role key and must stay
    server-side. Password sign-in uses a fresh anon-key client per call so no
    provider session is shared between requests.
"""
from __future__ import annotations

from typing import Any, Callable, Optional
import logging
import os

from backend.accounts.repo import AccountsRepoProtocol, InMemoryAccountsRepo
from backend.identity_access.admin_client import IdentityAdminProtocol
from backend.identity_access.auth_client import PasswordAuthProtocol
from backend.learning.config import load_learning_config
from backend.learning.dictionary import DictionaryClient
from backend.learning.repo import InMemoryLearningRepo, LearningRepoProtocol
from backend.tutoring.client import TextGenerationClient
from backend.tutoring.config import load_tutor_config


logger = logging.getLogger("moe.web")

_ACCOUNTS_REPO: Optional[AccountsRepoProtocol] = None
_LEARNING_REPO: Optional[LearningRepoProtocol] = None
_IDENTITY_ADMIN: Optional[IdentityAdminProtocol] = None
_PASSWORD_AUTH_FACTORY: Optional[Callable[[], PasswordAuthProtocol]] = None
_TEXT_CLIENT: Optional[TextGenerationClient] = None
_DICTIONARY: Optional[Any] = None


def _is_prod_like() -> bool:
    env = (os.getenv("MOE_ENV") or "dev").lower()
    return env in {"prod", "production", "stage", "staging"}


# --- Repositories -----------------------------------------------------------------

def get_accounts_repo() -> AccountsRepoProtocol:
    """Return the accounts repo; `ACCOUNTS_BACKEND=db` (default in prod) uses Postgres."""
    global _ACCOUNTS_REPO
    if _ACCOUNTS_REPO is None:
        backend = (os.getenv("ACCOUNTS_BACKEND") or ("db" if _is_prod_like() else "memory")).strip().lower()
        if backend == "db":
            from backend.accounts.repo_db import DBAccountsRepo

            _ACCOUNTS_REPO = DBAccountsRepo()
        else:
            _ACCOUNTS_REPO = InMemoryAccountsRepo()
        logger.info("Accounts repo wired: %s", backend)
    return _ACCOUNTS_REPO


def set_accounts_repo(repo: Optional[AccountsRepoProtocol]) -> None:
    global _ACCOUNTS_REPO
    _ACCOUNTS_REPO = repo


def get_learning_repo() -> LearningRepoProtocol:
    global _LEARNING_REPO
    if _LEARNING_REPO is None:
        cfg = load_learning_config()
        if cfg.backend == "db":
            from backend.learning.repo_db import DBLearningRepo

            _LEARNING_REPO = DBLearningRepo()
        else:
            _LEARNING_REPO = InMemoryLearningRepo()
        logger.info("Learning repo wired: %s", cfg.backend)
    return _LEARNING_REPO


def set_learning_repo(repo: Optional[LearningRepoProtocol]) -> None:
    global _LEARNING_REPO
    _LEARNING_REPO = repo


# --- Identity -----------------------------------------------------------------------

def get_identity_admin() -> IdentityAdminProtocol:
    """Return the service-role identity adapter.

    Raises RuntimeError when Supabase admin credentials are not configured, or
    when the accounts repo is the in-memory one: deleting a Supabase identity
    cascades to `students` rows only inside Postgres, so that pairing would
    leave orphaned learners behind.
    """
    global _IDENTITY_ADMIN
    if _IDENTITY_ADMIN is None:
        from backend.identity_access.admin_client import SupabaseIdentityAdmin, build_service_client

        if isinstance(get_accounts_repo(), InMemoryAccountsRepo):
            raise RuntimeError("Supabase identity admin requires ACCOUNTS_BACKEND=db")

        _IDENTITY_ADMIN = SupabaseIdentityAdmin(build_service_client())
        logger.info("Identity admin wired: Supabase")
    return _IDENTITY_ADMIN


def set_identity_admin(admin: Optional[IdentityAdminProtocol]) -> None:
    global _IDENTITY_ADMIN
    _IDENTITY_ADMIN = admin


def _default_password_auth() -> PasswordAuthProtocol:
    from backend.identity_access.auth_client import SupabasePasswordAuth, build_anon_client

    return SupabasePasswordAuth(build_anon_client())


def get_password_auth() -> PasswordAuthProtocol:
    """Return a password sign-in adapter for one request."""
    factory = _PASSWORD_AUTH_FACTORY or _default_password_auth
    return factory()


def set_password_auth_factory(factory: Optional[Callable[[], PasswordAuthProtocol]]) -> None:
    global _PASSWORD_AUTH_FACTORY
    _PASSWORD_AUTH_FACTORY = factory


# --- Upstream clients -----------------------------------------------------------------

def get_text_client() -> TextGenerationClient:
    global _TEXT_CLIENT
    if _TEXT_CLIENT is None:
        _TEXT_CLIENT = TextGenerationClient(load_tutor_config())
    return _TEXT_CLIENT


def set_text_client(client: Optional[TextGenerationClient]) -> None:
    global _TEXT_CLIENT
    _TEXT_CLIENT = client


def get_dictionary() -> Any:
    global _DICTIONARY
    if _DICTIONARY is None:
        cfg = load_learning_config()
        _DICTIONARY = DictionaryClient(cfg.dictionary_url, timeout_seconds=cfg.dictionary_timeout_seconds)
    return _DICTIONARY


def set_dictionary(dictionary: Any) -> None:
    global _DICTIONARY
    _DICTIONARY = dictionary


def reset_all() -> None:
    """Drop every wired dependency (tests)."""
    set_accounts_repo(None)
    set_learning_repo(None)
    set_identity_admin(None)
    set_password_auth_factory(None)
    set_text_client(None)
    set_dictionary(None)


__all__ = [
    "get_accounts_repo",
    "get_dictionary",
    "get_identity_admin",
    "get_learning_repo",
    "get_password_auth",
    "get_text_client",
    "reset_all",
    "set_accounts_repo",
    "set_dictionary",
    "set_identity_admin",
    "set_learning_repo",
    "set_password_auth_factory",
    "set_text_client",
]
