"""
Text-generation client for the hosted chat-completions API (Groq, OpenAI-compatible).

Intent:
    One narrow call: send a list of chat messages, get the first choice's text
    back. Everything model-specific (prompts, parsing) lives in the callers.

Errors:
    - TextGenerationNotConfigured: no API key.
    - TextGenerationTimeout: the upstream call timed out.
    - TextGenerationError: transport failure, non-2xx status, or a body
      without choices.

Privacy:
    Do not log prompts or model output; they may contain learner text.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from backend.tutoring.config import TutorConfig


logger = logging.getLogger("moe.tutoring")


class TextGenerationError(Exception):
    """Upstream text generation failed; `code` is a short reason."""

    def __init__(self, code: str) -> None:
        super().__init__(code)
        self.code = code


class TextGenerationTimeout(TextGenerationError):
    def __init__(self) -> None:
        super().__init__("upstream_timeout")


class TextGenerationNotConfigured(TextGenerationError):
    def __init__(self) -> None:
        super().__init__("ai_not_configured")


class TextGenerationClient:
    """Async client for `POST {base_url}/chat/completions`.

    Parameters:
        config: tutor AI configuration (key, base URL, model, timeout).
        transport: optional httpx transport; tests pass `httpx.MockTransport`.
    """

    def __init__(self, config: TutorConfig, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._cfg = config
        self._transport = transport

    @property
    def configured(self) -> bool:
        return self._cfg.configured

    async def complete(
        self,
        messages: Sequence[Dict[str, str]],
        *,
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 800,
    ) -> str:
        """Return the stripped text of the first choice (may be empty)."""
        if not self._cfg.configured:
            raise TextGenerationNotConfigured()
        payload: Dict[str, Any] = {
            "model": model or self._cfg.chat_model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "messages": list(messages),
        }
        headers = {
            "Authorization": f"Bearer {self._cfg.api_key}",
            "Content-Type": "application/json",
        }
        url = f"{self._cfg.base_url}/chat/completions"
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._cfg.timeout_seconds) as client:
                resp = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            logger.warning("tutoring.generate.timeout model=%s", payload["model"])
            raise TextGenerationTimeout() from exc
        except httpx.HTTPError as exc:
            logger.warning("tutoring.generate.transport_error error=%s", exc.__class__.__name__)
            raise TextGenerationError("upstream_unreachable") from exc
        if resp.status_code < 200 or resp.status_code >= 300:
            logger.warning("tutoring.generate.upstream_status status=%s", resp.status_code)
            raise TextGenerationError("upstream_status")
        try:
            body = resp.json()
        except ValueError as exc:
            raise TextGenerationError("upstream_invalid_json") from exc
        return _first_choice_text(body)

    async def generate(self, prompt: str, *, max_tokens: int = 800, temperature: float = 0.7) -> str:
        """Single-prompt convenience wrapper."""
        return await self.complete(
            [{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
            temperature=temperature,
        )


def _first_choice_text(body: Any) -> str:
    choices: List[Any] = body.get("choices") if isinstance(body, dict) else None  # type: ignore[assignment]
    if not isinstance(choices, list):
        raise TextGenerationError("upstream_missing_choices")
    if not choices:
        return ""
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    return content.strip() if isinstance(content, str) else ""


__all__ = [
    "TextGenerationClient",
    "TextGenerationError",
    "TextGenerationNotConfigured",
    "TextGenerationTimeout",
]
