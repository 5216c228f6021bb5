"""Expose API routers."""
from . import admin, chat

__all__ = ["admin", "chat"]
