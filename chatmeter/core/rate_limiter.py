"""Per-client request rate limiting using SlowAPI.

This is burst protection only; the monthly message quota lives in the registry service.
"""
from __future__ import annotations

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from chatmeter.core.settings import Settings, get_settings

CLIENT_TOKEN_HEADER = "X-Client-Token"


def _presented_token(request: Request) -> str:
    token = request.headers.get(CLIENT_TOKEN_HEADER)
    if not token:
        authorization = request.headers.get("Authorization") or ""
        if authorization.lower().startswith("bearer "):
            token = authorization[7:]
    return (token or "").strip()


def client_key(request: Request) -> str:
    """Bucket assigned client tokens separately; everything else shares the remote address."""
    token = _presented_token(request)
    registry = getattr(request.app.state, "registry", None)
    if token and registry is not None and registry.is_assigned(token):
        return f"token:{token}"
    return get_remote_address(request)


def build_limiter(settings: Settings | None = None) -> Limiter:
    settings = settings or get_settings()
    return Limiter(
        key_func=client_key,
        default_limits=[
            f"{settings.rate_limit_requests}/{settings.rate_limit_window_seconds} seconds"
        ],
        storage_uri=settings.resolved_rate_limit_storage,
    )


def setup_rate_limiting(app: FastAPI, settings: Settings | None = None) -> Limiter:
    limiter = build_limiter(settings)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)
    app.add_middleware(SlowAPIMiddleware)
    return limiter


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limited",
            "detail": "Too many requests",
            "limit": exc.detail,
        },
        headers={"Retry-After": str(exc.limit.limit.get_expiry())},
    )


__all__ = ["CLIENT_TOKEN_HEADER", "build_limiter", "client_key", "setup_rate_limiting"]
