"""Authentication dependencies for FastAPI."""
from __future__ import annotations

from fastapi import Depends, Header

from chatmeter.services.registry import Caller, RegistryService

from .services import get_registry


def _bearer(authorization: str | None) -> str | None:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:]
    return None


def get_caller(
    x_client_token: str | None = Header(default=None, alias="X-Client-Token"),
    authorization: str | None = Header(default=None),
    registry: RegistryService = Depends(get_registry),
) -> Caller:
    return registry.resolve_caller(x_client_token or _bearer(authorization))


def get_admin_secret(
    x_admin_secret: str | None = Header(default=None, alias="X-Admin-Secret"),
) -> str | None:
    return x_admin_secret


__all__ = ["get_admin_secret", "get_caller"]
