"""
Security headers on every response and the public health endpoint.
"""
from __future__ import annotations

import pytest

from backend.tests.utils.api import client


pytestmark = pytest.mark.anyio("asyncio")


async def test_health_is_public_and_not_cached():
    async with client() as c:
        r = await c.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "healthy"}
    assert r.headers["Cache-Control"] == "private, no-store"


@pytest.mark.parametrize("path", ["/health", "/api/dashboard", "/api/me"])
async def test_security_headers_present(path):
    async with client() as c:
        r = await c.get(path)
    csp = r.headers.get("Content-Security-Policy", "")
    assert "default-src 'self'" in csp
    assert "unsafe-inline" not in csp
    assert "frame-ancestors 'none'" in csp
    assert r.headers["X-Frame-Options"] == "DENY"
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert r.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert "max-age=31536000" in r.headers["Strict-Transport-Security"]


async def test_forwarded_origin_only_trusted_behind_proxy(monkeypatch: pytest.MonkeyPatch):
    headers = {"Origin": "https://moe.example", "X-Forwarded-Proto": "https", "X-Forwarded-Host": "moe.example"}
    async with client() as c:
        untrusted = await c.post("/api/auth/logout", headers=headers)
        monkeypatch.setenv("MOE_TRUST_PROXY", "true")
        trusted = await c.post("/api/auth/logout", headers=headers)
    assert untrusted.status_code == 403
    assert trusted.status_code == 204
