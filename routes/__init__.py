"""
Route helpers.

Exports:
- require_token(): bearer gate for the diagnostic endpoints.
- get_container(): typed access to app.container
"""

from __future__ import annotations
import hmac
from functools import wraps
from typing import Any, Callable

from flask import abort, current_app, request

from app.container import Container

# ---- Container access ----

def get_container() -> Container:
    c = getattr(current_app, "container", None)
    if c is None:
        raise RuntimeError("Container not initialized on app")
    return c

# ---- Bearer gate for /__diag ----

def require_token(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapper(*args, **kwargs):
        expected = get_container().settings.SECRET_KEY
        header = request.headers.get("Authorization", "")
        token = header[len("Bearer "):] if header.startswith("Bearer ") else ""
        if not token:
            abort(401)
        if not hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
            abort(403)
        return fn(*args, **kwargs)
    return wrapper
