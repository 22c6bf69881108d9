"""Shared fixtures."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from whitelist_gateway.access.gateway import AuthorizationGateway
from whitelist_gateway.access.scheduler import TimeoutScheduler
from whitelist_gateway.storage.memory import InMemoryRepository


class FakeClock:
    """Manually advanced clock for repository timestamps."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def repository(clock: FakeClock) -> InMemoryRepository:
    return InMemoryRepository(clock=clock)


@pytest_asyncio.fixture()
async def scheduler(repository: InMemoryRepository):
    # Long timeout: tests fire expiry by hand unless they build their own scheduler
    scheduler = TimeoutScheduler(
        repository, request_timeout=3600, sweep_interval=3600, sweep_max_age=7200
    )
    yield scheduler
    await scheduler.stop()


@pytest.fixture()
def gateway(repository: InMemoryRepository, scheduler: TimeoutScheduler) -> AuthorizationGateway:
    return AuthorizationGateway(repository, scheduler)
