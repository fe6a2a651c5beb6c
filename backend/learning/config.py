"""
Configuration for the learning context: storage backend and dictionary lookups.

Intent:
    One place that reads the environment for learning-activity wiring, so the
    web layer and tests share the same defaults and validation.
"""
from __future__ import annotations

from dataclasses import dataclass
import os
from urllib.parse import urlparse

from backend.learning.dictionary import DEFAULT_DICTIONARY_URL


@dataclass(frozen=True)
class LearningConfig:
    backend: str  # "memory" | "db"
    dictionary_url: str
    dictionary_timeout_seconds: int


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {raw!r}")
    if value <= 0 or value > 300:
        raise ValueError(f"{name} out of range (1..300), got: {value}")
    return value


def _is_prod_like() -> bool:
    env = (os.getenv("MOE_ENV") or "dev").lower()
    return env in {"prod", "production", "stage", "staging"}


def load_learning_config() -> LearningConfig:
    """
    Parse and validate learning configuration from environment variables.

    Behavior:
        - `LEARNING_BACKEND` is "memory" or "db"; default "db" in prod-like
          environments, otherwise "memory". "memory" is rejected in prod.
        - `DICTIONARY_API_URL` must be http(s); https is required in prod.
        - `DICTIONARY_TIMEOUT_SECONDS` is validated to 1..300 (default 10).
    """
    default_backend = "db" if _is_prod_like() else "memory"
    backend = (os.getenv("LEARNING_BACKEND") or default_backend).strip().lower()
    if backend not in {"memory", "db"}:
        raise ValueError("LEARNING_BACKEND must be 'memory' or 'db'")
    if backend == "memory" and _is_prod_like():
        raise ValueError("LEARNING_BACKEND=memory is not allowed in production/staging environments.")

    url = (os.getenv("DICTIONARY_API_URL") or DEFAULT_DICTIONARY_URL).strip().rstrip("/")
    scheme = urlparse(url).scheme
    if scheme not in {"http", "https"}:
        raise ValueError("DICTIONARY_API_URL must start with http:// or https://")
    if scheme != "https" and _is_prod_like():
        raise ValueError("DICTIONARY_API_URL must use https in production/staging environments.")

    return LearningConfig(
        backend=backend,
        dictionary_url=url,
        dictionary_timeout_seconds=_int_env("DICTIONARY_TIMEOUT_SECONDS", 10),
    )
