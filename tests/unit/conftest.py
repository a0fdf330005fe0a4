"""
Shared fixtures for unit tests.
"""
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from game_scout.ops.commands import CommandRegistry
from game_scout.ops.jobs import JobManager
from game_scout.ops.store import JobStore


class FakeClock:
    """Settable clock for retention and ordering tests."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(tmp_path):
    """Create a temporary JobStore instance."""
    s = JobStore(tmp_path / "jobs.db")
    yield s
    s.close()


@pytest.fixture
def clocked_store(tmp_path, clock):
    s = JobStore(tmp_path / "jobs.db", clock=clock)
    yield s
    s.close()


@pytest.fixture
def registry():
    """Registry with one succeeding and one failing command."""
    reg = CommandRegistry()

    @reg.command("noop-success")
    async def noop_success():
        return {"ok": True}

    @reg.command("noop-failure")
    async def noop_failure():
        raise RuntimeError("boom")

    return reg


@pytest.fixture
def manager(store, registry):
    return JobManager(store, registry)


@pytest.fixture
def tiny_vectors():
    """Generate small synthetic vectors for testing."""
    return np.random.default_rng(42).random((5, 4)).astype("float32")
