"""Subscription plan catalog."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Mapping

from chatmeter.core.errors import Conflict, NotFound, ValidationError


@dataclass(frozen=True, slots=True)
class Plan:
    name: str
    monthly_limit: int
    price: str

    def to_snapshot(self) -> dict[str, object]:
        return {"monthlyMessages": self.monthly_limit, "price": self.price}


def validate_plan(name: str, monthly_limit: object, price: object) -> Plan:
    """Build a :class:`Plan` or raise :class:`ValidationError` describing the bad field."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Plan name must be a non-empty string")
    # bool is an int subclass
    if isinstance(monthly_limit, bool) or not isinstance(monthly_limit, int) or monthly_limit <= 0:
        raise ValidationError("monthlyMessages must be a positive integer", plan=name)
    if not isinstance(price, str) or not price.strip():
        raise ValidationError("price must be a non-empty string", plan=name)
    return Plan(name=name.strip(), monthly_limit=monthly_limit, price=price)


class PlanRegistry:
    """In-memory plan catalog. Callers provide synchronization."""

    def __init__(self, plans: Mapping[str, Plan] | None = None) -> None:
        self._plans: dict[str, Plan] = dict(plans or {})

    def __contains__(self, name: object) -> bool:
        return name in self._plans

    def __iter__(self) -> Iterator[Plan]:
        return iter(self.list())

    def __len__(self) -> int:
        return len(self._plans)

    def upsert(self, name: str, monthly_limit: object, price: object) -> Plan:
        plan = validate_plan(name, monthly_limit, price)
        self._plans[plan.name] = plan
        return plan

    def remove(self, name: str, assignments: Mapping[str, str]) -> Plan:
        if name not in self._plans:
            raise NotFound(f"Plan '{name}' not found")
        tokens = sorted(token for token, plan_name in assignments.items() if plan_name == name)
        if tokens:
            raise Conflict(f"Plan '{name}' is still assigned to users", tokens=tokens)
        return self._plans.pop(name)

    def get(self, name: str) -> Plan:
        plan = self._plans.get(name)
        if plan is None:
            raise NotFound(f"Plan '{name}' not found")
        return plan

    def list(self) -> list[Plan]:
        return sorted(self._plans.values(), key=lambda plan: plan.name)


__all__ = ["Plan", "PlanRegistry", "validate_plan"]
