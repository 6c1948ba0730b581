from datetime import datetime, timedelta, timezone

import pytest

from flowstate.cache import InMemoryCacheStore
from flowstate.persistence import (
    CacheWorkflowStateRepository,
    DatabaseWorkflowStateRepository,
)


class FakeClock:
    """Controllable replacement for ``utcnow`` in repositories."""

    def __init__(self) -> None:
        self.now = datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


def build_repository(kind, tmp_path, clock, ttl=86400):
    if kind == "database":
        return DatabaseWorkflowStateRepository(
            f"sqlite+aiosqlite:///{tmp_path / 'wf.db'}", ttl=ttl, clock=clock
        )
    return CacheWorkflowStateRepository(InMemoryCacheStore(), ttl=ttl, clock=clock)


@pytest.fixture(params=["database", "cache"])
def repository(request, tmp_path, clock):
    return build_repository(request.param, tmp_path, clock)


@pytest.fixture
def cache_repository(clock):
    return CacheWorkflowStateRepository(InMemoryCacheStore(), ttl=86400, clock=clock)


@pytest.fixture
def make_repository(tmp_path, clock):
    def _make(kind, ttl=86400):
        return build_repository(kind, tmp_path, clock, ttl)

    return _make
