"""Durable registry snapshots.

The snapshot is the whole plan catalog plus the token assignments, written as
one JSON document::

    {"plans": {"free": {"monthlyMessages": 30, "price": "R$ 0,00"}},
     "users": {"client-token": "free"}}

Usage counters are never part of it.
"""
from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Protocol

from chatmeter.core.errors import GatewayError, PersistenceError
from chatmeter.core.logging import get_logger
from chatmeter.core.plans import Plan, validate_plan

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Snapshot:
    plans: dict[str, Plan] = field(default_factory=dict)
    users: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "plans": {name: self.plans[name].to_snapshot() for name in sorted(self.plans)},
            "users": {token: self.users[token] for token in sorted(self.users)},
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Snapshot":
        """Parse a snapshot document, dropping entries that break registry invariants."""
        if not isinstance(data, Mapping):
            raise PersistenceError("Snapshot must be a JSON object")
        raw_plans = data.get("plans", {})
        raw_users = data.get("users", {})
        if not isinstance(raw_plans, Mapping) or not isinstance(raw_users, Mapping):
            raise PersistenceError("Snapshot 'plans' and 'users' must be JSON objects")

        plans: dict[str, Plan] = {}
        for name, body in raw_plans.items():
            if not isinstance(body, Mapping):
                logger.warning("snapshot_entry_rejected", kind="plan", name=name, reason="not_an_object")
                continue
            try:
                plan = validate_plan(name, body.get("monthlyMessages"), body.get("price"))
            except GatewayError as exc:
                logger.warning("snapshot_entry_rejected", kind="plan", name=name, reason=exc.message)
                continue
            plans[plan.name] = plan

        users: dict[str, str] = {}
        for token, plan_name in raw_users.items():
            token = token.strip()
            if not token:
                logger.warning("snapshot_entry_rejected", kind="user", reason="blank_token")
                continue
            if not isinstance(plan_name, str) or plan_name not in plans:
                logger.warning(
                    "snapshot_entry_rejected",
                    kind="user",
                    plan=plan_name,
                    reason="unknown_plan",
                )
                continue
            users[token] = plan_name
        return cls(plans=plans, users=users)


class SnapshotStore(Protocol):
    def load(self) -> Snapshot | None:
        """Return the stored snapshot, or ``None`` when nothing was stored yet."""

    def save(self, snapshot: Snapshot) -> None:
        """Persist ``snapshot`` as one unit or raise :class:`PersistenceError`."""


class JsonFileSnapshotStore:
    """Snapshot stored in a JSON file, replaced atomically on every save."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> Snapshot | None:
        if not self.path.exists():
            return None
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.error("snapshot_load_failed", path=str(self.path), error=str(exc))
            raise PersistenceError(f"Cannot read registry snapshot {self.path}") from exc
        snapshot = Snapshot.from_dict(raw)
        logger.info(
            "snapshot_loaded",
            path=str(self.path),
            plans=len(snapshot.plans),
            users=len(snapshot.users),
        )
        return snapshot

    def save(self, snapshot: Snapshot) -> None:
        payload = json.dumps(snapshot.to_dict(), indent=2, sort_keys=True, ensure_ascii=False)
        tmp_path: Path | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                tmp_path = Path(handle.name)
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.path)
        except OSError as exc:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise PersistenceError(f"Cannot write registry snapshot {self.path}") from exc


class InMemorySnapshotStore:
    """Keeps the serialized snapshot in memory; used by tests and throwaway deployments."""

    def __init__(self, initial: Snapshot | None = None) -> None:
        self._document: str | None = json.dumps(initial.to_dict()) if initial else None
        self.saves = 0

    def load(self) -> Snapshot | None:
        if self._document is None:
            return None
        return Snapshot.from_dict(json.loads(self._document))

    def save(self, snapshot: Snapshot) -> None:
        self._document = json.dumps(snapshot.to_dict())
        self.saves += 1


__all__ = ["InMemorySnapshotStore", "JsonFileSnapshotStore", "Snapshot", "SnapshotStore"]
