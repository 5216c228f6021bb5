"""Access to the service objects attached to the application state."""
from __future__ import annotations

from fastapi import Request

from chatmeter.services.admin import AdminController
from chatmeter.services.gateway import ChatGateway
from chatmeter.services.registry import RegistryService


def get_registry(request: Request) -> RegistryService:
    return request.app.state.registry


def get_admin(request: Request) -> AdminController:
    return request.app.state.admin


def get_gateway(request: Request) -> ChatGateway:
    return request.app.state.gateway


__all__ = ["get_admin", "get_gateway", "get_registry"]
