"""Secret-protected mutations over the plan and user registries."""
from __future__ import annotations

import hmac
import threading
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from chatmeter.core.errors import PersistenceError, Unauthenticated, Unauthorized, ValidationError
from chatmeter.core.logging import get_logger
from chatmeter.core.observability import SNAPSHOT_FAILURES
from chatmeter.core.plans import Plan
from chatmeter.core.users import normalize_token
from chatmeter.services.registry import RegistryService
from chatmeter.services.snapshot import Snapshot, SnapshotStore

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class PlanMutationResult:
    op: str
    name: str
    persisted: bool
    plan: Plan | None = None


@dataclass(frozen=True, slots=True)
class UserMutationResult:
    op: str
    token: str
    persisted: bool
    plan_name: str | None = None
    used: int | None = None


def _require(args: Mapping[str, Any], key: str) -> Any:
    if key not in args or args[key] is None:
        raise ValidationError(f"Missing argument '{key}'")
    return args[key]


class AdminController:
    """Authorizes admin calls, applies them and writes one snapshot per successful mutation."""

    def __init__(self, registry: RegistryService, store: SnapshotStore, secret: str | None) -> None:
        self.registry = registry
        self.store = store
        self._secret = secret or ""
        self._lock = threading.Lock()
        self.durability_ok = True

    # ------------------------------------------------------------------
    def authorize(self, presented: str | None) -> None:
        if not self._secret:
            raise Unauthorized("Admin access disabled")
        if not presented:
            raise Unauthenticated("Missing admin secret")
        if not hmac.compare_digest(presented.encode("utf-8"), self._secret.encode("utf-8")):
            logger.warning("admin_secret_rejected")
            raise Unauthorized("Invalid admin secret")

    def _persist(self) -> bool:
        snapshot = self.registry.snapshot()
        try:
            self.store.save(snapshot)
        except PersistenceError as exc:
            SNAPSHOT_FAILURES.inc()
            self.durability_ok = False
            logger.error("snapshot_save_failed", error=exc.message, durability="degraded")
            return False
        if not self.durability_ok:
            logger.info("snapshot_save_recovered")
        self.durability_ok = True
        return True

    def _commit(self, apply: Callable[[], Any]) -> tuple[Any, bool]:
        # failed mutations raise before anything is saved
        with self._lock:
            outcome = apply()
            return outcome, self._persist()

    # ------------------------------------------------------------------
    def mutate_plan(self, secret: str | None, op: str, args: Mapping[str, Any]) -> PlanMutationResult:
        self.authorize(secret)
        name = _require(args, "name")
        if op == "upsert":
            monthly_limit = _require(args, "monthly_limit")
            price = _require(args, "price")
            plan, persisted = self._commit(
                lambda: self.registry.upsert_plan(name, monthly_limit, price)
            )
            return PlanMutationResult(op=op, name=plan.name, persisted=persisted, plan=plan)
        if op == "remove":
            plan, persisted = self._commit(lambda: self.registry.remove_plan(name))
            return PlanMutationResult(op=op, name=name, persisted=persisted, plan=plan)
        raise ValidationError(f"Unknown plan operation '{op}'")

    def mutate_user(self, secret: str | None, op: str, args: Mapping[str, Any]) -> UserMutationResult:
        self.authorize(secret)
        token = _require(args, "token")
        if op == "assign":
            plan_name = _require(args, "plan")
            assigned, persisted = self._commit(lambda: self.registry.assign_user(token, plan_name))
            return UserMutationResult(op=op, token=assigned, persisted=persisted, plan_name=plan_name)
        if op == "remove":
            plan_name, persisted = self._commit(lambda: self.registry.remove_user(token))
            return UserMutationResult(
                op=op, token=normalize_token(token), persisted=persisted, plan_name=plan_name
            )
        if op == "rename":
            new_token = _require(args, "new_token")
            (plan_name, used), persisted = self._commit(
                lambda: self.registry.rename_user(token, new_token)
            )
            return UserMutationResult(
                op=op,
                token=normalize_token(new_token),
                persisted=persisted,
                plan_name=plan_name,
                used=used,
            )
        raise ValidationError(f"Unknown user operation '{op}'")

    # ------------------------------------------------------------------
    def snapshot(self, secret: str | None) -> Snapshot:
        self.authorize(secret)
        return self.registry.snapshot()

    def list_plans(self, secret: str | None) -> list[Plan]:
        self.authorize(secret)
        return self.registry.list_plans()

    def list_users(self, secret: str | None) -> dict[str, str]:
        self.authorize(secret)
        return self.registry.list_users()

    def usage_report(self, secret: str | None) -> tuple[str, dict[str, int]]:
        self.authorize(secret)
        return self.registry.usage_report()


__all__ = ["AdminController", "PlanMutationResult", "UserMutationResult"]
