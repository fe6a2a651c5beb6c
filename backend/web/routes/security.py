"""
Shared web helpers for the routers: CSRF same-origin check, cache headers,
JSON error responses and caller resolution.

Keeping one implementation avoids drift between the guardian and learner
endpoints.
"""
from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse
from uuid import UUID
import os

from fastapi import Request
from fastapi.responses import JSONResponse


def private_no_store() -> dict:
    return {"Cache-Control": "private, no-store"}


def json_error(code: str, status_code: int, detail: Optional[str] = None) -> JSONResponse:
    body = {"error": code}
    if detail:
        body["detail"] = detail
    return JSONResponse(body, status_code=status_code, headers=private_no_store())


def is_uuid_like(value: object) -> bool:
    """UUID format check for path and body ids, so bad ids answer 400 before any lookup."""
    try:
        UUID(str(value))
    except (ValueError, TypeError):
        return False
    return True


def _default_port(scheme: str) -> int:
    return 443 if scheme == "https" else 80


def _parse_origin(url: str) -> tuple[str, str, int]:
    p = urlparse(url)
    if not p.scheme or not p.hostname:
        raise ValueError("invalid_origin")
    scheme = p.scheme.lower()
    return scheme, p.hostname.lower(), int(p.port if p.port is not None else _default_port(scheme))


def _server_origin(request: Request) -> tuple[str, str, int]:
    """Origin the server answers on; X-Forwarded-* only when MOE_TRUST_PROXY=true."""
    scheme = (request.url.scheme or "http").lower()
    host = (request.url.hostname or "").lower()
    port = int(request.url.port) if request.url.port else _default_port(scheme)
    if (os.getenv("MOE_TRUST_PROXY", "false") or "").lower() != "true":
        return scheme, host, port

    xf_proto = (request.headers.get("x-forwarded-proto") or "").split(",")[0].strip().lower()
    xf_host = (request.headers.get("x-forwarded-host") or request.headers.get("host") or "").split(",")[0].strip()
    scheme = xf_proto or scheme
    port = int(request.url.port) if request.url.port else _default_port(scheme)
    if xf_host:
        if ":" in xf_host:
            host_only, port_str = xf_host.rsplit(":", 1)
            host = host_only.lower()
            port = int(port_str) if port_str.isdigit() else _default_port(scheme)
        else:
            host = xf_host.lower()
            port = _default_port(scheme)
    xf_port = (request.headers.get("x-forwarded-port") or "").split(",")[0].strip()
    if xf_port.isdigit():
        port = int(xf_port)
    return scheme, host, port


def _is_same_origin(request: Request) -> bool:
    """Verify same-origin using Origin or Referer headers.

    Behavior:
    - If Origin is present, require exact scheme/host/port match with server.
    - Else if Referer is present, validate its origin similarly.
    - Else (no headers): allow to not break non-browser clients.
    """
    claimed = request.headers.get("origin") or request.headers.get("referer")
    if not claimed:
        return True
    try:
        return _parse_origin(claimed) == _server_origin(request)
    except ValueError:
        return False


def require_same_origin(request: Request) -> Optional[JSONResponse]:
    """Return a 403 response for cross-site writes, else None."""
    if _is_same_origin(request):
        return None
    return json_error("forbidden", 403, "csrf_violation")


def current_user(request: Request) -> Optional[dict]:
    user = getattr(request.state, "user", None)
    return user if isinstance(user, dict) else None


def has_role(user: Optional[dict], role: str) -> bool:
    roles = (user or {}).get("roles") or []
    return isinstance(roles, list) and role in roles


def require_role(request: Request, role: str) -> tuple[Optional[dict], Optional[JSONResponse]]:
    """Return (user, None) when the caller has `role`, else (None, error response)."""
    user = current_user(request)
    if not user:
        return None, json_error("unauthenticated", 401)
    if not has_role(user, role):
        return None, json_error("forbidden", 403)
    return user, None
