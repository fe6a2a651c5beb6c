"""
Shared authentication utilities.

Why:
    Guardian and learner logins both set the same session cookie. A single
    helper for the cookie policy keeps the two flows consistent.

Design:
    The helpers are small and framework-light: `cookie_opts` is pure, the
    set/clear helpers only touch the given response.
"""

from __future__ import annotations

from typing import Optional

from fastapi.responses import Response


SESSION_COOKIE_NAME = "moe_session"


def cookie_opts(environment: str) -> dict:
    """Return hardened cookie flags (dev = prod).

    Returns a mapping with keys:
      - secure: True
      - samesite: "lax"
    """
    return {"secure": True, "samesite": "lax"}


def set_session_cookie(response: Response, value: str, *, environment: str, max_age: Optional[int] = None) -> None:
    opts = cookie_opts(environment)
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=value,
        httponly=True,
        secure=opts["secure"],
        samesite=opts["samesite"],
        path="/",
        max_age=max_age,
    )


def clear_session_cookie(response: Response, *, environment: str) -> None:
    opts = cookie_opts(environment)
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        path="/",
        secure=opts["secure"],
        httponly=True,
        samesite=opts["samesite"],
    )
