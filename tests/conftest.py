"""Pytest configuration and fixtures for objmutex tests"""

from datetime import UTC, datetime, timedelta

import pytest

from objmutex.core.config import BackoffConfig, MutexConfig
from objmutex.provider.base import ObjectLocation
from objmutex.provider.filesystem import FileProvider
from objmutex.provider.memory import MemoryProvider


class FakeClock:
    """Controllable wall clock for lease expiry tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def location():
    return ObjectLocation("locks", "test.lock")


@pytest.fixture
def memory_provider():
    return MemoryProvider()


@pytest.fixture
def file_provider(tmp_path):
    """Filesystem provider rooted in a temp dir with a 'locks' bucket"""
    (tmp_path / "locks").mkdir()
    return FileProvider(tmp_path)


@pytest.fixture
def fast_config():
    """Mutex config with millisecond backoff so contention tests stay quick"""
    return MutexConfig(backoff=BackoffConfig(base_delay=0.001, max_delay=0.01))


@pytest.fixture
def clock():
    return FakeClock()
