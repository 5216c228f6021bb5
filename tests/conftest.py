"""Shared fixtures for the chatmeter test-suite."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from chatmeter.core.errors import UpstreamError
from chatmeter.core.settings import Settings
from chatmeter.services.registry import RegistryService
from chatmeter.services.snapshot import InMemorySnapshotStore, Snapshot

ADMIN_SECRET = "s3cret-admin"


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class StubUpstream:
    """Stands in for the completion service."""

    def __init__(self, reply: str = "Olá!") -> None:
        self.reply = reply
        self.error: UpstreamError | None = None
        self.prompts: list[str] = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


def seed_snapshot() -> Snapshot:
    return Snapshot.from_dict(
        {
            "plans": {
                "free": {"monthlyMessages": 3, "price": "R$ 0,00"},
                "pro": {"monthlyMessages": 100, "price": "R$ 29,90"},
            },
            "users": {"A": "free", "X": "pro"},
        }
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 5, 17, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def registry(clock: FakeClock) -> RegistryService:
    return RegistryService(seed_snapshot(), clock=clock)


@pytest.fixture
def store() -> InMemorySnapshotStore:
    return InMemorySnapshotStore(seed_snapshot())


@pytest.fixture
def upstream() -> StubUpstream:
    return StubUpstream()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        admin_secret=ADMIN_SECRET,
        data_dir=tmp_path,
        enable_prometheus=False,
        rate_limit_requests=1000,
        openai_api_key="sk-test",
    )
