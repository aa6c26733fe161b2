"""Pytest configuration and fixtures for cloud-mutex tests"""
import pytest

from cloud_mutex.core import config as config_module
from cloud_mutex.core.config import MutexConfig
from cloud_mutex.mutex import DistributedMutex
from cloud_mutex.sinks import CollectingSink
from cloud_mutex.store.memory import InMemoryObjectStore, InMemoryStorage


class FakeClock:
    """Monotonic clock advanced only by its own sleep()."""

    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture(autouse=True)
def _isolated_mutex_environment(monkeypatch):
    """Keep MUTEX_* variables from the developer shell out of the tests"""
    for name in dir(config_module):
        if name.startswith("ENV_") and getattr(config_module, name).startswith("MUTEX_"):
            monkeypatch.delenv(getattr(config_module, name), raising=False)


@pytest.fixture
def storage():
    """Shared in-memory namespace standing in for the remote service"""
    return InMemoryStorage()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def make_mutex(storage):
    """Factory creating mutexes that each own a handle onto the shared storage"""
    created: list[DistributedMutex] = []

    def _make(key: str = "test/lock/obj", **kwargs) -> DistributedMutex:
        kwargs.setdefault("store", InMemoryObjectStore(storage))
        kwargs.setdefault("config", MutexConfig(bucket="mutex-test"))
        mutex = DistributedMutex(key, **kwargs)
        created.append(mutex)
        return mutex

    yield _make

    for mutex in created:
        mutex.close()


@pytest.fixture
def collecting_sink():
    return CollectingSink()
