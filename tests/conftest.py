# tests/conftest.py

from __future__ import annotations

import os

import pytest

# Ensure we default to memory backend for tests to avoid filesystem dependencies
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

from synctodo.store import TaskStore  # noqa: E402

from fakes import RecordingGateway  # noqa: E402


@pytest.fixture()
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture()
def store(gateway: RecordingGateway) -> TaskStore:
    """Store bound to owner 'alice' over a fresh recording gateway."""
    return TaskStore(gateway, lambda: "alice")
