"""Error taxonomy shared by the registry engine and the HTTP layer."""
from __future__ import annotations

from typing import Any


class GatewayError(Exception):
    """Base class for errors reported to API clients."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.code, "detail": self.message}
        payload.update(self.extra)
        return payload


class ValidationError(GatewayError):
    status_code = 400
    code = "validation_error"


class Unauthenticated(GatewayError):
    status_code = 401
    code = "unauthenticated"


class Unauthorized(GatewayError):
    status_code = 403
    code = "unauthorized"


class NotFound(GatewayError):
    status_code = 404
    code = "not_found"


class Conflict(GatewayError):
    status_code = 409
    code = "conflict"


class QuotaExceeded(GatewayError):
    status_code = 402
    code = "quota_exceeded"


class InternalError(GatewayError):
    """Registry integrity fault, e.g. a user pointing at a missing plan."""


class UpstreamError(GatewayError):
    status_code = 502
    code = "upstream_error"


class PersistenceError(GatewayError):
    """Raised when the registry snapshot cannot be read or written."""

    code = "persistence_error"


__all__ = [
    "GatewayError",
    "ValidationError",
    "Unauthenticated",
    "Unauthorized",
    "NotFound",
    "Conflict",
    "QuotaExceeded",
    "InternalError",
    "UpstreamError",
    "PersistenceError",
]
