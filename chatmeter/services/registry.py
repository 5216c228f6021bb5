"""Plan/user registry service with period-keyed usage accounting.

Locking model
-------------
``_lock`` guards the plan and user registries. It is held for in-memory reads
and mutations only, never across upstream calls or disk IO. Usage counters use
one lock per ``(period, token)`` key. Whenever both are needed the registry
lock is taken first, then the key lock.
"""
from __future__ import annotations

import threading
from contextlib import ExitStack
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from chatmeter.core.errors import InternalError, NotFound, PersistenceError
from chatmeter.core.logging import get_logger, mask_token
from chatmeter.core.plans import Plan, PlanRegistry
from chatmeter.core.quota import QuotaDecision, admit
from chatmeter.core.usage import UsageCounter, current_period
from chatmeter.core.users import UserRegistry, normalize_token
from chatmeter.services.snapshot import Snapshot, SnapshotStore

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class Caller:
    token: str
    plan_name: str
    plan: Plan


class RegistryService:
    """Owns the plan catalog, the token assignments and the usage counters."""

    def __init__(self, snapshot: Snapshot | None = None, clock: Clock | None = None) -> None:
        snapshot = snapshot or Snapshot()
        self._lock = threading.RLock()
        self._plans = PlanRegistry(snapshot.plans)
        self._users = UserRegistry(self._plans, snapshot.users)
        self._usage = UsageCounter()
        self._clock = clock or _utcnow
        self._active_period = self.period()

    @classmethod
    def load_or_default(
        cls,
        store: SnapshotStore,
        default_plans: Mapping[str, Mapping[str, Any]] | None = None,
        default_users: Mapping[str, str] | None = None,
        clock: Clock | None = None,
    ) -> "RegistryService":
        """Load the stored registry, installing and saving the defaults when none exists."""
        snapshot = store.load()
        if snapshot is None:
            snapshot = Snapshot.from_dict(
                {"plans": dict(default_plans or {}), "users": dict(default_users or {})}
            )
            try:
                store.save(snapshot)
            except PersistenceError as exc:
                logger.error("snapshot_bootstrap_failed", error=exc.message)
            else:
                logger.info(
                    "snapshot_bootstrapped",
                    plans=len(snapshot.plans),
                    users=len(snapshot.users),
                )
        return cls(snapshot, clock=clock)

    # ------------------------------------------------------------------
    def period(self) -> str:
        return current_period(self._clock())

    def _observe_period(self, period: str) -> None:
        if period == self._active_period:
            return
        self._active_period = period
        pruned = self._usage.prune(period)
        logger.info("usage_period_rolled_over", period=period, pruned=pruned)

    # ------------------------------------------------------------------
    # Chat path
    def resolve_caller(self, token: str | None) -> Caller:
        with self._lock:
            plan_name = self._users.resolve(token)
            try:
                plan = self._plans.get(plan_name)
            except NotFound:
                plan = None
        token = normalize_token(token)
        if plan is None:
            logger.error("registry_integrity_fault", token=mask_token(token), plan=plan_name)
            raise InternalError("Client plan is not available")
        return Caller(token=token, plan_name=plan_name, plan=plan)

    def check_and_reserve(self, plan: Plan, token: str) -> QuotaDecision:
        """Read-only quota decision; the increment happens in :meth:`record_success`."""
        period = self.period()
        self._observe_period(period)
        return admit(plan, self._usage.peek(period, token))

    def record_success(self, token: str) -> int:
        """Count one forwarded message and return the new current-period total."""
        period = self.period()
        with ExitStack() as stack:
            with self._lock:
                if token not in self._users:
                    logger.warning("usage_record_orphaned", token=mask_token(token), period=period)
                    return self._usage.peek(period, token)
                stack.enter_context(self._usage.hold(period, token))
            return self._usage.increment_held(period, token)

    def is_assigned(self, token: str | None) -> bool:
        token = normalize_token(token)
        with self._lock:
            return bool(token) and token in self._users

    def usage(self, token: str) -> tuple[str, int]:
        period = self.period()
        return period, self._usage.peek(period, token)

    def usage_report(self) -> tuple[str, dict[str, int]]:
        period = self.period()
        return period, self._usage.report(period)

    # ------------------------------------------------------------------
    # Reads
    def snapshot(self) -> Snapshot:
        with self._lock:
            return Snapshot(
                plans={plan.name: plan for plan in self._plans.list()},
                users=self._users.as_mapping(),
            )

    def get_plan(self, name: str) -> Plan:
        with self._lock:
            return self._plans.get(name)

    def list_plans(self) -> list[Plan]:
        with self._lock:
            return self._plans.list()

    def list_users(self) -> dict[str, str]:
        with self._lock:
            return self._users.as_mapping()

    # ------------------------------------------------------------------
    # Mutations (serialized and persisted by the admin controller)
    def upsert_plan(self, name: str, monthly_limit: object, price: object) -> Plan:
        with self._lock:
            plan = self._plans.upsert(name, monthly_limit, price)
        logger.info("plan_upserted", plan=plan.name, monthly_limit=plan.monthly_limit)
        return plan

    def remove_plan(self, name: str) -> Plan:
        with self._lock:
            plan = self._plans.remove(name, self._users.as_mapping())
        logger.info("plan_removed", plan=name)
        return plan

    def assign_user(self, token: str, plan_name: str) -> str:
        with self._lock:
            token = self._users.assign(token, plan_name)
        logger.info("user_assigned", token=mask_token(token), plan=plan_name)
        return token

    def remove_user(self, token: str) -> str:
        token = normalize_token(token)
        period = self.period()
        with self._lock:
            plan_name = self._users.remove(token)
            self._usage.discard(period, token)
        logger.info("user_removed", token=mask_token(token), plan=plan_name)
        return plan_name

    def rename_user(self, old_token: str, new_token: str) -> tuple[str, int]:
        """Move the assignment and the current-period count; returns ``(plan_name, used)``."""
        old_token = normalize_token(old_token)
        period = self.period()
        with self._lock:
            plan_name = self._users.rename(old_token, new_token)
            used = self._usage.move(period, old_token, normalize_token(new_token))
        logger.info(
            "user_renamed",
            old_token=mask_token(old_token),
            new_token=mask_token(new_token),
            used=used,
        )
        return plan_name, used


__all__ = ["Caller", "RegistryService"]
