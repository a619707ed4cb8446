from __future__ import annotations

import sys
from pathlib import Path

import pytest

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from database import MemoryStore  # noqa: E402
from errors import StorageFailure  # noqa: E402
from gateway import PersistenceGateway  # noqa: E402


class FailingStore(MemoryStore):
    """Memory store whose writes fail, like a full or unavailable backend."""

    def __init__(self):
        super().__init__()
        self.fail_writes = True

    def set(self, key, value):
        if self.fail_writes:
            raise StorageFailure("quota exceeded")
        super().set(key, value)


class _Handle:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    def __init__(self):
        self.handles = []

    def __call__(self, delay, callback):
        handle = _Handle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def live(self):
        return [h for h in self.handles if not h.cancelled]

    def run(self):
        for h in self.live:
            h.cancelled = True
            h.callback()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def gateway(store):
    return PersistenceGateway(store, "https://forms.example.com")


@pytest.fixture
def failing_store():
    return FailingStore()


@pytest.fixture
def scheduler():
    return FakeScheduler()
