"""
TextGenerationClient against `httpx.MockTransport`.

Why: The client is the only place that talks to the hosted model. These
tests pin the request shape and the error taxonomy the web layer maps.
"""
from __future__ import annotations

import json

import httpx
import pytest

from backend.tutoring.client import (
    TextGenerationClient,
    TextGenerationError,
    TextGenerationNotConfigured,
    TextGenerationTimeout,
)
from backend.tutoring.config import TutorConfig


pytestmark = pytest.mark.anyio("asyncio")

CFG = TutorConfig(api_key="gsk_test", base_url="https://llm.test/v1", chat_model="test-model", timeout_seconds=5)


def _client(handler) -> TextGenerationClient:
    return TextGenerationClient(CFG, transport=httpx.MockTransport(handler))


async def test_complete_posts_chat_payload_and_returns_first_choice():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "  Hello learner!  "}}]})

    text = await _client(handler).complete([{"role": "user", "content": "hi"}], temperature=0.2, max_tokens=50)

    assert text == "Hello learner!"
    assert seen["url"] == "https://llm.test/v1/chat/completions"
    assert seen["auth"] == "Bearer gsk_test"
    assert seen["body"] == {
        "model": "test-model",
        "temperature": 0.2,
        "max_tokens": 50,
        "messages": [{"role": "user", "content": "hi"}],
    }


async def test_empty_choices_yield_empty_text():
    text = await _client(lambda r: httpx.Response(200, json={"choices": []})).generate("hi")
    assert text == ""


async def test_missing_choices_is_error():
    with pytest.raises(TextGenerationError) as info:
        await _client(lambda r: httpx.Response(200, json={"error": "nope"})).generate("hi")
    assert info.value.code == "upstream_missing_choices"


async def test_non_2xx_is_error():
    with pytest.raises(TextGenerationError) as info:
        await _client(lambda r: httpx.Response(503, json={})).generate("hi")
    assert info.value.code == "upstream_status"


async def test_invalid_json_body_is_error():
    with pytest.raises(TextGenerationError) as info:
        await _client(lambda r: httpx.Response(200, content=b"<html>")).generate("hi")
    assert info.value.code == "upstream_invalid_json"


async def test_timeout_maps_to_timeout_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(TextGenerationTimeout):
        await _client(handler).generate("hi")


async def test_transport_error_maps_to_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(TextGenerationError) as info:
        await _client(handler).generate("hi")
    assert info.value.code == "upstream_unreachable"


async def test_not_configured_fails_before_network():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"choices": []})

    cfg = TutorConfig(api_key="", base_url="https://llm.test/v1", chat_model="m", timeout_seconds=5)
    client = TextGenerationClient(cfg, transport=httpx.MockTransport(handler))

    with pytest.raises(TextGenerationNotConfigured):
        await client.generate("hi")
    assert calls == []
