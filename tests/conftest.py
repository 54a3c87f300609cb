# tests/conftest.py
# Shared fixtures: a controllable clock, both store backends and a wired engine.

from datetime import datetime, timedelta, timezone

import pytest

from pasteburn.config import PastePolicy
from pasteburn.database import InMemoryPasteStore, RedisPasteStore
from pasteburn.lifecycle import PasteLifecycle
from pasteburn.models import Paste

START = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


def make_paste(token, content="hello", expires_in=None, max_views=None, is_public=False, created_at=START):
    return Paste(
        token=token,
        content=content,
        created_at=created_at,
        expires_at=created_at + timedelta(seconds=expires_in) if expires_in else None,
        duration_seconds=expires_in,
        max_views=max_views,
        remaining_views=max_views,
        is_public=is_public,
    )


def make_redis_store() -> RedisPasteStore:
    fakeredis = pytest.importorskip("fakeredis", reason="fakeredis is not installed")
    pytest.importorskip("lupa", reason="lupa is required for Lua scripting in fakeredis")
    client = fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    return RedisPasteStore(client, prefix="test")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def policy() -> PastePolicy:
    return PastePolicy(
        expiry_choices=(1, 60, 3600, 86400, None),
        default_expiry=3600,
        burn_choices=(1, 2, 3, 5, None),
        default_burn=None,
        max_content_length=1000,
    )


@pytest.fixture(params=["memory", "redis"])
def store(request):
    if request.param == "memory":
        return InMemoryPasteStore()
    return make_redis_store()


@pytest.fixture
def memory_store() -> InMemoryPasteStore:
    return InMemoryPasteStore()


@pytest.fixture
def engine(store, policy, clock) -> PasteLifecycle:
    return PasteLifecycle(store, policy, clock=clock)
