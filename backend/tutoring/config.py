"""
AI configuration parsing and validation for the tutor endpoints.

Intent:
    Provide a single place to read environment variables that control the
    hosted text-generation API: key, base URL, model name and timeout.

Why:
    Centralising configuration keeps validation and defaults explicit and lets
    tests exercise config behaviour without a network client.
"""
from __future__ import annotations

from dataclasses import dataclass
import os
from urllib.parse import urlparse


DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_CHAT_MODEL = "llama-3.1-70b-versatile"


@dataclass(frozen=True)
class TutorConfig:
    api_key: str  # empty when not configured
    base_url: str
    chat_model: str
    timeout_seconds: int

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


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


def _validate_base_url(url: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        raise ValueError("GROQ_BASE_URL must be an absolute http(s) URL")


def _is_prod_like() -> bool:
    env = (os.getenv("MOE_ENV") or "dev").lower()
    return env in {"prod", "production", "stage", "staging"}


def load_tutor_config() -> TutorConfig:
    """
    Parse and validate tutor AI configuration from environment variables.

    Behavior:
        - `GROQ_API_KEY` may be empty in dev (endpoints then answer 500
          `ai_not_configured`); in prod-like envs it is required.
        - `GROQ_BASE_URL` must be http(s); https is required in prod-like envs.
        - `AI_TIMEOUT_SECONDS` within 1..300 (default 45).
    """
    api_key = (os.getenv("GROQ_API_KEY") or "").strip()
    if not api_key and _is_prod_like():
        raise ValueError("GROQ_API_KEY is required in production/staging environments.")
    base_url = (os.getenv("GROQ_BASE_URL") or DEFAULT_BASE_URL).strip().rstrip("/")
    _validate_base_url(base_url)
    if _is_prod_like() and not base_url.lower().startswith("https://"):
        raise ValueError("GROQ_BASE_URL must use https in production/staging environments.")
    model = (os.getenv("AI_CHAT_MODEL") or DEFAULT_CHAT_MODEL).strip()
    timeout = _int_env("AI_TIMEOUT_SECONDS", 45)
    return TutorConfig(api_key=api_key, base_url=base_url, chat_model=model, timeout_seconds=timeout)
