"""Shared fixtures for synchronization tests."""

import pytest

from recordsync.storage.memory import InMemoryStore
from tests.fakes import RecordingObserver, make_config


@pytest.fixture
def source() -> InMemoryStore:
    return InMemoryStore(name="source", unique_fields=("name",))


@pytest.fixture
def target() -> InMemoryStore:
    return InMemoryStore(name="target", unique_fields=("name",))


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def config():
    return make_config()
