"""Client token to plan assignments."""
from __future__ import annotations

from typing import Mapping

from chatmeter.core.errors import Conflict, NotFound, Unauthenticated, Unauthorized, ValidationError
from chatmeter.core.plans import PlanRegistry


def normalize_token(token: str | None) -> str:
    return (token or "").strip()


class UserRegistry:
    """In-memory token registry bound to a plan catalog. Callers provide synchronization."""

    def __init__(self, plans: PlanRegistry, assignments: Mapping[str, str] | None = None) -> None:
        self._plans = plans
        self._users: dict[str, str] = dict(assignments or {})

    def __contains__(self, token: object) -> bool:
        return token in self._users

    def __len__(self) -> int:
        return len(self._users)

    def as_mapping(self) -> dict[str, str]:
        return dict(self._users)

    def assign(self, token: str, plan_name: str) -> str:
        token = normalize_token(token)
        if not token:
            raise ValidationError("Token must be a non-empty string")
        if plan_name not in self._plans:
            raise NotFound(f"Plan '{plan_name}' not found")
        self._users[token] = plan_name
        return token

    def remove(self, token: str) -> str:
        token = normalize_token(token)
        if token not in self._users:
            raise NotFound(f"User '{token}' not found")
        return self._users.pop(token)

    def rename(self, old_token: str, new_token: str) -> str:
        old_token = normalize_token(old_token)
        new_token = normalize_token(new_token)
        if old_token not in self._users:
            raise NotFound(f"User '{old_token}' not found")
        if not new_token:
            raise ValidationError("New token must be a non-empty string")
        if new_token == old_token:
            raise ValidationError("New token must differ from the current token")
        if new_token in self._users:
            raise Conflict(f"Token '{new_token}' is already assigned")
        plan_name = self._users.pop(old_token)
        self._users[new_token] = plan_name
        return plan_name

    def resolve(self, token: str | None) -> str:
        token = normalize_token(token)
        if not token:
            raise Unauthenticated("Missing client token")
        plan_name = self._users.get(token)
        if plan_name is None:
            raise Unauthorized("Unknown client token")
        return plan_name


__all__ = ["UserRegistry", "normalize_token"]
