"""
Wiring for the negotiation feature.

Builds the repositories for the configured storage backend, the
NegotiationService on top of them and the ExpiryScheduler that keeps its
timers. Used by the API lifespan and by the standalone expiry worker.
"""

from dataclasses import dataclass

from barberflow.config import Settings
from barberflow.features.negotiation.domain.clock import Clock, system_clock
from barberflow.features.negotiation.jobs.expiry_job import ExpiryScheduler
from barberflow.features.negotiation.repository import (
    InMemoryAppointmentRepository,
    InMemoryNotificationRepository,
    RedisAppointmentRepository,
    RedisNotificationRepository,
)
from barberflow.features.negotiation.services.expiry_policy import ExpiryPolicy
from barberflow.features.negotiation.services.negotiation_service import NegotiationService
from barberflow.infrastructure.observability.logging import get_logger
from barberflow.services.redis_client import FastRedisClient

logger = get_logger(__name__)


@dataclass
class NegotiationRuntime:
    service: NegotiationService
    scheduler: ExpiryScheduler
    redis: FastRedisClient | None = None

    async def ping_storage(self) -> bool:
        if self.redis is None:
            return True
        return await self.redis.ping()

    async def close(self) -> None:
        """Stop timers first, then release storage."""
        await self.scheduler.stop()
        if self.redis is not None:
            await self.redis.close()


async def build_runtime(settings: Settings, clock: Clock = system_clock) -> NegotiationRuntime:
    policy = ExpiryPolicy(
        decision_window_minutes=settings.DECISION_WINDOW_MINUTES,
        barber_selection_window_minutes=settings.STORE_SELECTION_BARBER_WINDOW_MINUTES,
    )

    redis_client = None
    if settings.uses_redis():
        redis_client = FastRedisClient(settings.REDIS_URL)
        await redis_client.initialize()
        appointments = RedisAppointmentRepository(redis_client.client, settings.REDIS_KEY_PREFIX)
        notifications = RedisNotificationRepository(redis_client.client, settings.REDIS_KEY_PREFIX)
    else:
        appointments = InMemoryAppointmentRepository()
        notifications = InMemoryNotificationRepository()

    service = NegotiationService(appointments, notifications, clock=clock, policy=policy)

    expiry_config = settings.get_expiry_config()
    scheduler = ExpiryScheduler(
        service,
        sweep_interval_seconds=expiry_config["sweep_interval_seconds"],
        recovery_horizon_minutes=expiry_config["recovery_horizon_minutes"],
        retry_max_attempts=expiry_config["retry_max_attempts"],
        retry_base_delay=expiry_config["retry_base_delay"],
    )

    logger.info(
        "Negotiation runtime built",
        storage="redis" if redis_client else "memory",
        decision_window_minutes=settings.DECISION_WINDOW_MINUTES,
    )
    return NegotiationRuntime(service=service, scheduler=scheduler, redis=redis_client)
