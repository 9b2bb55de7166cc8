"""
Appointment persistence.

Two interchangeable backends share one async interface:
- InMemoryAppointmentRepository: process-local dicts (default, tests)
- RedisAppointmentRepository: JSON documents plus a sorted set of
  pending deadlines used to rebuild the expiry schedule after restart
"""

from datetime import datetime
from typing import Protocol

from barberflow.features.negotiation.domain.models import Appointment, AppointmentStatus
from barberflow.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class AppointmentRepository(Protocol):
    async def get(self, appointment_id: str) -> Appointment | None: ...

    async def save(self, appointment: Appointment, expires_at: datetime | None = None) -> None: ...

    async def list_pending_expiring(self, before: datetime) -> list[Appointment]: ...


class InMemoryAppointmentRepository:
    def __init__(self):
        self._appointments: dict[str, Appointment] = {}
        self._pending_deadlines: dict[str, datetime] = {}

    async def get(self, appointment_id: str) -> Appointment | None:
        appointment = self._appointments.get(appointment_id)
        return appointment.model_copy(deep=True) if appointment else None

    async def save(self, appointment: Appointment, expires_at: datetime | None = None) -> None:
        """Store the appointment; expires_at indexes it for expiry recovery while pending."""
        self._appointments[appointment.id] = appointment.model_copy(deep=True)
        if appointment.status == AppointmentStatus.PENDING and expires_at is not None:
            self._pending_deadlines[appointment.id] = expires_at
        else:
            self._pending_deadlines.pop(appointment.id, None)

    async def list_pending_expiring(self, before: datetime) -> list[Appointment]:
        due = sorted(
            (deadline, appointment_id)
            for appointment_id, deadline in self._pending_deadlines.items()
            if deadline <= before
        )
        return [self._appointments[appointment_id].model_copy(deep=True) for _, appointment_id in due]

    async def ping(self) -> bool:
        return True


class RedisAppointmentRepository:
    """Redis-backed store; client is a redis.asyncio.Redis with decode_responses=True."""

    def __init__(self, client, key_prefix: str = "barberflow"):
        self.client = client
        self.key_prefix = key_prefix

    def _key(self, appointment_id: str) -> str:
        return f"{self.key_prefix}:appointment:{appointment_id}"

    @property
    def _pending_key(self) -> str:
        return f"{self.key_prefix}:appointments:pending"

    async def get(self, appointment_id: str) -> Appointment | None:
        raw = await self.client.get(self._key(appointment_id))
        if not raw:
            return None
        return Appointment.model_validate_json(raw)

    async def save(self, appointment: Appointment, expires_at: datetime | None = None) -> None:
        await self.client.set(self._key(appointment.id), appointment.model_dump_json())

        if appointment.status == AppointmentStatus.PENDING and expires_at is not None:
            await self.client.zadd(self._pending_key, {appointment.id: expires_at.timestamp()})
        else:
            await self.client.zrem(self._pending_key, appointment.id)

    async def list_pending_expiring(self, before: datetime) -> list[Appointment]:
        appointment_ids = await self.client.zrangebyscore(self._pending_key, "-inf", before.timestamp())

        appointments = []
        for appointment_id in appointment_ids:
            appointment = await self.get(appointment_id)
            if appointment is None:
                # Index entry outlived its document
                logger.warning("Dropping orphaned pending index entry", appointment_id=appointment_id)
                await self.client.zrem(self._pending_key, appointment_id)
                continue
            appointments.append(appointment)
        return appointments

    async def ping(self) -> bool:
        return bool(await self.client.ping())
