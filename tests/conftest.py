"""Shared fixtures."""

from datetime import datetime, timedelta, timezone

import pytest
from loguru import logger

from pairgate.pairing.store import InMemoryPairingCodeStore
from pairgate.pairing.tokens import TokenIssuer
from pairgate.pairing.service import PairingService


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> InMemoryPairingCodeStore:
    return InMemoryPairingCodeStore(clock=clock)


@pytest.fixture
def service(store, clock) -> PairingService:
    return PairingService(store, TokenIssuer(clock=clock))


@pytest.fixture
def log_records():
    """Collect loguru records emitted during the test."""
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)
