from datetime import UTC, datetime

import pytest
from fastapi import FastAPI

from barberflow.auth.verify import auth_dependency
from barberflow.features.negotiation.api import notifications as notification_routes
from barberflow.features.negotiation.api import router as appointment_routes
from barberflow.features.negotiation.domain.clock import FrozenClock
from barberflow.features.negotiation.jobs.expiry_job import ExpiryScheduler
from barberflow.features.negotiation.repository import (
    InMemoryAppointmentRepository,
    InMemoryNotificationRepository,
)
from barberflow.features.negotiation.runtime import NegotiationRuntime
from barberflow.features.negotiation.services.negotiation_service import NegotiationService
from barberflow.routes import health

START = datetime(2026, 1, 5, 10, 0, tzinfo=UTC)


class FakeRedis:
    """Just enough of redis.asyncio.Redis (decode_responses=True) for the repositories."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.zsets: dict[str, dict[str, float]] = {}

    async def ping(self) -> bool:
        return True

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def set(self, key: str, value: str) -> bool:
        self.store[key] = value
        return True

    async def delete(self, *keys: str) -> int:
        return sum(1 for key in keys if self.store.pop(key, None) is not None)

    async def zadd(self, key: str, mapping: dict[str, float]) -> int:
        zset = self.zsets.setdefault(key, {})
        added = sum(1 for member in mapping if member not in zset)
        zset.update(mapping)
        return added

    async def zrem(self, key: str, *members: str) -> int:
        zset = self.zsets.get(key, {})
        return sum(1 for member in members if zset.pop(member, None) is not None)

    async def zrangebyscore(self, key: str, min_score, max_score) -> list[str]:
        low = float(min_score)
        high = float(max_score)
        zset = self.zsets.get(key, {})
        return [m for m, s in sorted(zset.items(), key=lambda item: item[1]) if low <= s <= high]

    async def zrevrange(self, key: str, start: int, end: int) -> list[str]:
        members = [m for m, _ in sorted(self.zsets.get(key, {}).items(), key=lambda item: item[1], reverse=True)]
        return members[start:] if end == -1 else members[start : end + 1]


class RecordingTimers:
    """Stands in for ExpiryScheduler where only the schedule/cancel calls matter."""

    def __init__(self):
        self.scheduled: dict[str, datetime] = {}
        self.cancelled: list[str] = []

    def schedule(self, appointment_id: str, when: datetime) -> None:
        self.scheduled[appointment_id] = when

    def cancel(self, appointment_id: str) -> None:
        self.scheduled.pop(appointment_id, None)
        self.cancelled.append(appointment_id)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def clock():
    return FrozenClock(START)


@pytest.fixture
def timers():
    return RecordingTimers()


@pytest.fixture
def service(clock, timers):
    negotiation = NegotiationService(
        InMemoryAppointmentRepository(),
        InMemoryNotificationRepository(),
        clock=clock,
    )
    negotiation.attach_timers(timers)
    return negotiation


@pytest.fixture
def auth_override():
    """Mutable claims; tests switch identity with auth_override.update(...)."""
    claims = {"sub": "customer-1", "role": "customer"}

    def _override():
        return dict(claims)

    _override.claims = claims
    _override.update = claims.update
    return _override


@pytest.fixture
def apply_auth_override(auth_override):
    def _apply(app):
        app.dependency_overrides[auth_dependency] = auth_override

    return _apply


@pytest.fixture
def app(service, timers, apply_auth_override):
    """Negotiation routers on a bare app, wired to the frozen-clock service."""
    application = FastAPI()
    application.include_router(health.router)
    application.include_router(appointment_routes.router)
    application.include_router(notification_routes.router)

    scheduler = ExpiryScheduler(service)
    # Keep real timers out of route tests
    service.attach_timers(timers)
    application.state.negotiation = NegotiationRuntime(service=service, scheduler=scheduler)

    apply_auth_override(application)
    return application
