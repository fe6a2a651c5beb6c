from __future__ import annotations

import logging
import os
import sys

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via MOE_ENABLE_DOTENV (default true outside pytest).
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("MOE_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


from dotenv import load_dotenv

if _should_load_dotenv():
    load_dotenv()

from backend.web import config as _cfg
from backend.web.routes.auth import auth_router
from backend.web.routes.children import children_router
from backend.web.routes.dashboard import dashboard_router
from backend.web.routes.learning import learning_router
from backend.web.routes.security import private_no_store
from backend.web.routes.tutor import tutor_router
from backend.web.sessions import SESSION_COOKIE_NAME, read_session

# Minimal production safety checks (fail-fast on insecure config)
_cfg.ensure_secure_config_on_startup()

logger = logging.getLogger("moe.web")

app = FastAPI(title="Moe", description="AI tutor for Sierra Leone learners", version="0.1.0")


# --- Auth & Security Middleware ---------------------------------------------------

def _is_public_path(path: str) -> bool:
    return path.startswith("/api/auth/") or path in ("/health", "/api/me")


@app.middleware("http")
async def auth_enforcement(request: Request, call_next):
    path = request.url.path
    if _is_public_path(path) or not path.startswith("/api/"):
        return await call_next(request)

    rec = read_session(request.cookies.get(SESSION_COOKIE_NAME))
    if not rec:
        headers = {**private_no_store(), "Vary": "Origin"}
        return JSONResponse({"error": "unauthenticated"}, status_code=401, headers=headers)

    # Minimal, read-only user context for downstream handlers.
    request.state.user = {
        "sub": rec.sub,
        "name": rec.name,
        "roles": list(rec.roles),
        "learner_id": rec.learner_id,
    }
    return await call_next(request)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault(
        "Content-Security-Policy",
        "default-src 'self'; script-src 'self'; style-src 'self'; img-src 'self' data:; "
        "media-src 'self' data: https:; connect-src 'self'; frame-ancestors 'none';",
    )
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Permissions-Policy", "geolocation=(), camera=()")
    # HSTS: always on (dev = prod)
    response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


# --- Routers ------------------------------------------------------------------------

app.include_router(auth_router)
app.include_router(children_router)
app.include_router(tutor_router)
app.include_router(learning_router)
app.include_router(dashboard_router)


@app.get("/health")
async def health_check():
    # Security: include no-store to avoid caching any runtime status.
    return JSONResponse({"status": "healthy"}, headers=private_no_store())
