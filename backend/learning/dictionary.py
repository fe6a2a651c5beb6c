"""
Dictionary lookup for the vocabulary feature (dictionaryapi.dev).

Behavior:
    - `lookup(word)` returns a `DictionaryEntry` or None when the word is
      unknown, the upstream fails, or the body carries no definition. Lookup
      failures are logged and never raised; the caller answers 404.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import logging
from typing import Any, List, Optional
from urllib.parse import quote

import httpx


logger = logging.getLogger("moe.learning")

DEFAULT_DICTIONARY_URL = "https://api.dictionaryapi.dev/api/v2/entries/en"
_SIMPLE_DEFINITION_MAX = 120


@dataclass
class DictionaryEntry:
    word: str
    pronunciation: str
    definition: str
    simpleDefinition: str
    example: str
    memoryTip: str
    relatedWords: List[str] = field(default_factory=list)
    difficulty: str = "easy"
    audioUrl: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def determine_difficulty(word: str) -> str:
    if len(word) <= 4:
        return "easy"
    if len(word) <= 7:
        return "medium"
    return "advanced"


def fallback_related_words(word: str) -> List[str]:
    if len(word) <= 4:
        return ["spell", "say", "use", "practice"]
    if len(word) <= 7:
        return ["meaning", "practice", "sentence", "remember"]
    return ["definition", "study", "explain", "share"]


def memory_tip(word: str) -> str:
    return f'Remember: "{word}" starts with "{word[:3]}" - say it slowly and clap the syllables to lock it in!'


def simplify_definition(text: str) -> str:
    if len(text) > _SIMPLE_DEFINITION_MAX:
        return text[: _SIMPLE_DEFINITION_MAX - 3] + "..."
    return text


def _dicts(value: Any) -> List[dict]:
    return [item for item in value if isinstance(item, dict)] if isinstance(value, list) else []


def build_entry(word: str, data: Any) -> Optional[DictionaryEntry]:
    """Build an entry from the first result's first meaning; None without a definition."""
    results = _dicts(data)
    if not results:
        return None
    entry = results[0]
    meanings = _dicts(entry.get("meanings"))
    meaning = meanings[0] if meanings else {}
    definitions = _dicts(meaning.get("definitions"))
    first = definitions[0] if definitions else {}
    definition = first.get("definition")
    if not isinstance(definition, str) or not definition:
        return None

    phonetics = _dicts(entry.get("phonetics"))
    pronunciation = entry.get("phonetic") or next((p["text"] for p in phonetics if p.get("text")), None) or word
    audio_url = next((p["audio"] for p in phonetics if p.get("audio")), None)
    example = first.get("example") or next((d["example"] for d in definitions if d.get("example")), None) or ""
    synonyms = [s for s in (meaning.get("synonyms") or []) if isinstance(s, str)][:6]
    entry_word = entry.get("word") if isinstance(entry.get("word"), str) else None

    return DictionaryEntry(
        word=(entry_word or word).lower(),
        pronunciation=pronunciation,
        definition=definition,
        simpleDefinition=simplify_definition(definition),
        example=example,
        memoryTip=memory_tip(entry_word or word),
        relatedWords=synonyms or fallback_related_words(word),
        difficulty=determine_difficulty(word),
        audioUrl=audio_url,
    )


class DictionaryClient:
    """Async lookups against a dictionaryapi.dev-compatible endpoint."""

    def __init__(
        self,
        base_url: str = DEFAULT_DICTIONARY_URL,
        *,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._transport = transport

    async def lookup(self, word: str) -> Optional[DictionaryEntry]:
        url = f"{self._base_url}/{quote(word, safe='')}"
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                resp = await client.get(url)
            if resp.status_code != 200:
                return None
            return build_entry(word, resp.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("learning.dictionary.lookup_failed error=%s", exc.__class__.__name__)
            return None


__all__ = ["DictionaryClient", "DictionaryEntry", "build_entry", "determine_difficulty"]
