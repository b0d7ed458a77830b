import os

# keep test runs from writing log files
os.environ.setdefault("BATEPAPO_LOG_DIR", "")
os.environ.setdefault("BATEPAPO_LOG_LEVEL", "WARNING")

import pytest

from core.presence import PresenceTracker
from services.chat_api.handlers import ChatService
from shared.storage.gateway import MemoryStorageGateway, SqliteStorageGateway

NOW = 1_700_000_000.0


class FakeClock:
    """Settable clock for handler tests."""

    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def gateway(tmp_path):
    return SqliteStorageGateway(tmp_path / "chat.db")


@pytest.fixture
def memory_gateway():
    return MemoryStorageGateway()


@pytest.fixture
def tracker(gateway):
    return PresenceTracker(gateway)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(gateway, tracker, clock):
    return ChatService(gateway, tracker, clock=clock)


@pytest.fixture
def now():
    return NOW
