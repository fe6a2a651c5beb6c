"""Homework chat and reading-sentence generation use cases."""

from __future__ import annotations

from typing import Any, Dict, List

from backend.tutoring.client import TextGenerationClient
from backend.tutoring.prompts import READING_SENTENCE_PROMPT, system_prompt_for


EMPTY_ANSWER_FALLBACK = "I'm here, but I couldn't come up with an answer. Please try again."

_ALLOWED_ROLES = {"user", "assistant"}
MAX_HISTORY = 30


def sanitize_messages(messages: object) -> List[Dict[str, str]]:
    """Keep only well-formed user/assistant turns, newest `MAX_HISTORY` of them.

    Client-supplied `system` turns are dropped so the mode prompt cannot be
    overridden from the browser.
    """
    if not isinstance(messages, list):
        return []
    cleaned: List[Dict[str, str]] = []
    for item in messages:
        if not isinstance(item, dict):
            continue
        role = item.get("role")
        content = item.get("content")
        if role in _ALLOWED_ROLES and isinstance(content, str) and content.strip():
            cleaned.append({"role": role, "content": content})
    return cleaned[-MAX_HISTORY:]


class ChatUseCase:
    def __init__(self, client: TextGenerationClient) -> None:
        self._client = client

    async def reply(self, messages: Any, mode: Any = None) -> str:
        """Answer the conversation in the given mode (homework by default)."""
        payload = [{"role": "system", "content": system_prompt_for(mode)}]
        payload.extend(sanitize_messages(messages))
        content = await self._client.complete(payload, temperature=0.7, max_tokens=800)
        return content or EMPTY_ANSWER_FALLBACK


def clean_sentence(text: str) -> str:
    sentence = (text or "").strip()
    if len(sentence) >= 2 and sentence[0] == sentence[-1] and sentence[0] in {'"', "'"}:
        sentence = sentence[1:-1].strip()
    return sentence


class ReadingSentenceUseCase:
    def __init__(self, client: TextGenerationClient) -> None:
        self._client = client

    async def execute(self) -> str:
        text = await self._client.generate(READING_SENTENCE_PROMPT, max_tokens=60, temperature=0.9)
        sentence = clean_sentence(text)
        if not sentence:
            raise ValueError("empty_sentence")
        return sentence
