"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend, and give every test a clean set
of wired services (in-memory repos, fresh session store, no upstream clients)
so module-level slots never leak between tests.
"""
import os
import sys
from pathlib import Path

import pytest

# Keep `.env` out of unit runs; tests provide their own environment.
os.environ.setdefault("MOE_ENABLE_DOTENV", "false")

REPO_ROOT = Path(__file__).resolve().parents[2]
TESTS_DIR = REPO_ROOT / "backend" / "tests"
for p in (str(REPO_ROOT), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_env_toggles(monkeypatch: pytest.MonkeyPatch):
    """Default to a dev environment with in-memory backends.

    Behavior:
        - Clear `MOE_ENV` and proxy trust so tests opt in explicitly.
        - Force in-memory accounts/learning/session backends.
    """
    for var in (
        "MOE_ENV",
        "MOE_TRUST_PROXY",
        "GROQ_API_KEY",
        "GROQ_BASE_URL",
        "AI_CHAT_MODEL",
        "AI_TIMEOUT_SECONDS",
        "CHILD_LOGIN_DOMAIN",
        "DICTIONARY_API_URL",
        "DICTIONARY_TIMEOUT_SECONDS",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("ACCOUNTS_BACKEND", "memory")
    monkeypatch.setenv("LEARNING_BACKEND", "memory")
    monkeypatch.setenv("SESSIONS_BACKEND", "memory")
    yield


@pytest.fixture(autouse=True)
def _reset_wiring():
    """Drop wired services and sessions before and after each test."""
    from backend.web import sessions, wiring

    wiring.reset_all()
    sessions.set_session_store(None)
    yield
    wiring.reset_all()
    sessions.set_session_store(None)
