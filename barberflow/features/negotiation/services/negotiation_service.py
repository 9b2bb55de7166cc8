"""
Negotiation Service for the appointment lifecycle.

Runs every command for one appointment under that appointment's lock:
load, apply the transition engine, persist, emit notifications and keep
the expiry timer in step with the new state.
"""

import uuid
from typing import Protocol

from pydantic import BaseModel

from barberflow.features.negotiation.domain.clock import Clock, system_clock
from barberflow.features.negotiation.domain.errors import AppointmentError, ErrorKind
from barberflow.features.negotiation.domain.models import (
    Appointment,
    AppointmentRequester,
    AppointmentStatus,
    Role,
    StoreSelectionType,
)
from barberflow.features.negotiation.repository import AppointmentRepository, NotificationRepository
from barberflow.features.negotiation.services.decision_matrix import DecisionView, evaluate
from barberflow.features.negotiation.services.expiry_policy import ExpiryPolicy, default_policy
from barberflow.features.negotiation.services.locks import AppointmentLocks
from barberflow.features.negotiation.services.notification_service import NotificationService
from barberflow.features.negotiation.services.transition_engine import Transition, TransitionEngine
from barberflow.infrastructure.observability.logging import get_logger, log_transition

logger = get_logger(__name__)


class ExpiryTimers(Protocol):
    def schedule(self, appointment_id: str, when) -> None: ...

    def cancel(self, appointment_id: str) -> None: ...


class DecisionResult(BaseModel):
    """Outcome of a decision command; failures carry the same shape."""

    success: bool
    message: str
    new_status: AppointmentStatus | None = None
    error: ErrorKind | None = None


class NegotiationService:
    def __init__(
        self,
        appointments: AppointmentRepository,
        notifications: NotificationRepository,
        clock: Clock = system_clock,
        policy: ExpiryPolicy | None = None,
    ):
        self.appointments = appointments
        self.clock = clock
        self.policy = policy or default_policy
        self.engine = TransitionEngine(self.policy)
        self.locks = AppointmentLocks()
        self.notifier = NotificationService(notifications, appointments, clock, self.policy)
        self.timers: ExpiryTimers | None = None

    def attach_timers(self, timers: ExpiryTimers) -> None:
        self.timers = timers

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get(self, appointment_id: str) -> Appointment:
        appointment = await self.appointments.get(appointment_id)
        if appointment is None:
            raise AppointmentError(ErrorKind.NOT_FOUND, "Appointment not found", appointment_id)
        return appointment

    async def view(self, appointment_id: str, role: Role, party_id: str) -> tuple[Appointment, DecisionView]:
        """Live appointment plus what this caller may do with it."""
        appointment = await self.get(appointment_id)
        self._ensure_actor(appointment, role, party_id)
        return appointment, evaluate(appointment, None, role, self.clock.now(), self.policy)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def create(
        self,
        requester: AppointmentRequester,
        parties: dict[Role, str],
        store_selection_type: StoreSelectionType | None = None,
        note: str | None = None,
    ) -> Appointment:
        """Create a pending appointment; ValueError on an invalid role combination."""
        appointment_id = uuid.uuid4().hex
        transition = self.engine.create(
            appointment_id, requester, parties, self.clock.now(), store_selection_type, note
        )
        async with self.locks.hold(appointment_id):
            await self._apply(transition)
        return transition.appointment

    async def decide(self, appointment_id: str, role: Role, actor_id: str, approve: bool) -> DecisionResult:
        async with self.locks.hold(appointment_id):
            appointment = await self.appointments.get(appointment_id)
            if appointment is None:
                return DecisionResult(
                    success=False, message="Appointment not found", error=ErrorKind.NOT_FOUND
                )

            try:
                self._ensure_actor(appointment, role, actor_id)
                transition = self.engine.decide(appointment, role, approve, self.clock.now())
            except AppointmentError as e:
                status = e.status
                if e.kind == ErrorKind.EXPIRED:
                    # Late answer: settle the negotiation now instead of waiting for the timer
                    expired = await self._expire_locked(appointment)
                    if expired is not None:
                        status = expired.status

                logger.info(
                    "Decision refused",
                    appointment_id=appointment_id,
                    role=role.value,
                    error=e.kind.value,
                    status=status.name if status is not None else None,
                )
                return DecisionResult(success=False, message=e.message, new_status=status, error=e.kind)

            await self._apply(transition)

        return DecisionResult(
            success=True,
            message="Decision recorded",
            new_status=transition.appointment.status,
        )

    async def attach_store(self, appointment_id: str, actor_id: str, store_id: str) -> Appointment:
        """Free barber picks the venue for a store selection request."""
        async with self.locks.hold(appointment_id):
            appointment = await self.get(appointment_id)
            self._ensure_actor(appointment, Role.FREE_BARBER, actor_id)
            try:
                transition = self.engine.attach_store(appointment, store_id, self.clock.now())
            except AppointmentError as e:
                if e.kind == ErrorKind.EXPIRED:
                    await self._expire_locked(appointment)
                raise
            await self._apply(transition)
        return transition.appointment

    async def cancel(self, appointment_id: str, role: Role, actor_id: str) -> Appointment:
        async with self.locks.hold(appointment_id):
            appointment = await self.get(appointment_id)
            self._ensure_actor(appointment, role, actor_id)
            transition = self.engine.cancel(appointment, self.clock.now(), role)
            await self._apply(transition)
        return transition.appointment

    async def complete(self, appointment_id: str, role: Role, actor_id: str) -> Appointment:
        async with self.locks.hold(appointment_id):
            appointment = await self.get(appointment_id)
            self._ensure_actor(appointment, role, actor_id)
            transition = self.engine.complete(appointment, self.clock.now(), role)
            await self._apply(transition)
        return transition.appointment

    async def expire(self, appointment_id: str) -> Appointment | None:
        """
        Expire the appointment if its active deadline has passed.

        Returns the updated appointment, or None when there was nothing to
        do (unknown, already terminal or not yet due). Safe to call any
        number of times.
        """
        async with self.locks.hold(appointment_id):
            appointment = await self.appointments.get(appointment_id)
            if appointment is None:
                logger.warning("Expiry fired for unknown appointment", appointment_id=appointment_id)
                return None
            return await self._expire_locked(appointment)

    # ------------------------------------------------------------------
    # Internals (caller holds the appointment lock)
    # ------------------------------------------------------------------

    async def _expire_locked(self, appointment: Appointment) -> Appointment | None:
        transition = self.engine.expire(appointment, self.clock.now())
        if transition is None:
            return None
        await self._apply(transition)
        return transition.appointment

    async def _apply(self, transition: Transition) -> None:
        appointment = transition.appointment
        deadline = self.policy.active_deadline(appointment)

        if transition.operation == "expire":
            # Emit first: a retry after a failed save re-emits instead of dropping
            await self.notifier.emit(appointment, transition.notifications)
            await self.appointments.save(appointment, deadline)
        else:
            await self.appointments.save(appointment, deadline)
            await self.notifier.emit(appointment, transition.notifications)

        log_transition(
            appointment.id,
            transition.operation,
            transition.previous_status.name,
            appointment.status.name,
            role=transition.role.value if transition.role else None,
        )

        if self.timers is None:
            return
        if appointment.status == AppointmentStatus.PENDING and deadline is not None:
            self.timers.schedule(appointment.id, deadline)
        elif transition.left_pending:
            self.timers.cancel(appointment.id)

    @staticmethod
    def _ensure_actor(appointment: Appointment, role: Role, actor_id: str) -> None:
        if appointment.parties.get(role) != actor_id:
            raise AppointmentError(
                ErrorKind.NOT_PARTICIPANT,
                "Caller is not a party to this appointment",
                appointment.id,
                appointment.status,
            )
