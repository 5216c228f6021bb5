"""FastAPI dependency helpers."""
from .auth import get_admin_secret, get_caller
from .services import get_admin, get_gateway, get_registry

__all__ = ["get_admin", "get_admin_secret", "get_caller", "get_gateway", "get_registry"]
