"""Pytest configuration and fixtures shared across all test modules."""

import os
from datetime import datetime, timedelta, timezone

import pytest

# Tests always start from the in-memory backend, whatever the shell has set
os.environ["LEDGER_STORAGE_BACKEND"] = "memory"

from wallet.identity import InMemoryIdentityDirectory, IdentitySession
from wallet.ledger import Ledger
from wallet.models.limits import RateLimits


T0 = datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock for deterministic time windows."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def directory() -> InMemoryIdentityDirectory:
    return InMemoryIdentityDirectory()


@pytest.fixture
def alice(directory):
    return directory.register("Alice Smith", "alice@example.com", "alice-password")


@pytest.fixture
def bob(directory):
    return directory.register("Bob Jones", "bob@example.com", "bob-password")


@pytest.fixture
def carol(directory):
    return directory.register("Carol White", "carol@example.com", "carol-password")


@pytest.fixture
def limits() -> RateLimits:
    return RateLimits()


@pytest.fixture
def ledger(directory, limits, clock) -> Ledger:
    return Ledger(directory, limits=limits, clock=clock)


@pytest.fixture
def session(directory) -> IdentitySession:
    return IdentitySession(directory)
