"""
Notification emission and the read-side adapter.

Emission turns a Transition's outgoing notifications into one stored
Notification per recipient, each carrying a camelCase snapshot of the
appointment. The read side renders every notification through the
decision matrix, preferring the live appointment over the snapshot.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from barberflow.features.negotiation.domain.clock import Clock, system_clock
from barberflow.features.negotiation.domain.errors import AppointmentError, ErrorKind
from barberflow.features.negotiation.domain.models import (
    Appointment,
    AppointmentStatus,
    Notification,
    NotificationType,
    Role,
)
from barberflow.features.negotiation.repository import AppointmentRepository, NotificationRepository
from barberflow.features.negotiation.services.decision_matrix import DecisionView, evaluate
from barberflow.features.negotiation.services.expiry_policy import ExpiryPolicy, default_policy
from barberflow.features.negotiation.services.normalizer import normalize
from barberflow.features.negotiation.services.transition_engine import OutgoingNotification
from barberflow.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

TITLES: dict[NotificationType, str] = {
    NotificationType.APPOINTMENT_CREATED: "New appointment request",
    NotificationType.APPOINTMENT_APPROVED: "Appointment approved",
    NotificationType.APPOINTMENT_REJECTED: "Appointment rejected",
    NotificationType.APPOINTMENT_CANCELLED: "Appointment cancelled",
    NotificationType.APPOINTMENT_COMPLETED: "Appointment completed",
    NotificationType.APPOINTMENT_UNANSWERED: "Appointment was not answered in time",
    NotificationType.APPOINTMENT_DECISION_UPDATED: "Appointment decision updated",
    NotificationType.FREE_BARBER_REJECTED_INITIAL: "Barber declined your request",
    NotificationType.STORE_REJECTED_SELECTION: "Store declined the request",
    NotificationType.STORE_APPROVED_SELECTION: "Store approved, waiting for customer confirmation",
    NotificationType.STORE_SELECTION_TIMEOUT: "Store did not answer in time",
    NotificationType.CUSTOMER_REJECTED_FINAL: "Customer declined the appointment",
    NotificationType.CUSTOMER_APPROVED_FINAL: "Customer confirmed the appointment",
    NotificationType.CUSTOMER_FINAL_TIMEOUT: "Customer did not confirm in time",
}

DECISION_FIELDS: dict[Role, str] = {
    Role.STORE: "storeDecision",
    Role.FREE_BARBER: "freeBarberDecision",
    Role.CUSTOMER: "customerDecision",
}

PARTY_FIELDS: dict[Role, tuple[str, str]] = {
    Role.STORE: ("store", "storeId"),
    Role.FREE_BARBER: ("freeBarber", "userId"),
    Role.CUSTOMER: ("customer", "userId"),
}


@dataclass(slots=True)
class NotificationView:
    notification: Notification
    decision: DecisionView


def build_payload(
    appointment: Appointment, recipient_role: Role, policy: ExpiryPolicy | None = None
) -> dict[str, Any]:
    """Snapshot of the appointment as the recipient should see it."""
    policy = policy or default_policy

    payload: dict[str, Any] = {
        "appointmentId": appointment.id,
        "recipientRole": recipient_role.value,
        "appointmentRequester": int(appointment.requester),
        "status": int(appointment.status),
        "storeSelectionType": (
            int(appointment.store_selection_type) if appointment.store_selection_type is not None else None
        ),
        "note": appointment.note,
    }

    for role, field_name in DECISION_FIELDS.items():
        decision = appointment.decision_for(role)
        payload[field_name] = int(decision) if decision is not None else None

    for role, (field_name, id_key) in PARTY_FIELDS.items():
        if role in appointment.parties:
            payload[field_name] = {id_key: appointment.parties[role]}

    if appointment.status == AppointmentStatus.PENDING:
        deadline = policy.active_deadline(appointment)
        if deadline is not None:
            payload["pendingExpiresAt"] = deadline.isoformat()

    return payload


class NotificationService:
    def __init__(
        self,
        repository: NotificationRepository,
        appointments: AppointmentRepository,
        clock: Clock = system_clock,
        policy: ExpiryPolicy | None = None,
    ):
        self.repository = repository
        self.appointments = appointments
        self.clock = clock
        self.policy = policy or default_policy

    async def emit(
        self, appointment: Appointment, outgoing: list[OutgoingNotification]
    ) -> list[Notification]:
        """Store one notification per recipient role present on the appointment."""
        created: list[Notification] = []
        now = self.clock.now()

        for item in outgoing:
            for role in item.recipients:
                if role not in appointment.parties:
                    continue
                notification = Notification(
                    id=uuid.uuid4().hex,
                    appointment_id=appointment.id,
                    type=item.type,
                    recipient_role=role,
                    recipient_id=appointment.parties[role],
                    title=TITLES[item.type],
                    created_at=now,
                    payload=build_payload(appointment, role, self.policy),
                )
                await self.repository.add(notification)
                created.append(notification)

        if created:
            logger.info(
                "Notifications emitted",
                appointment_id=appointment.id,
                count=len(created),
                types=sorted({n.type.name for n in created}),
            )
        return created

    async def view(self, notification: Notification, now: datetime | None = None) -> NotificationView:
        """Render a notification through the decision matrix."""
        now = now or self.clock.now()
        appointment = await self.appointments.get(notification.appointment_id)
        if appointment is None:
            snapshot = normalize(notification.payload)
            if snapshot.appointment_id is None:
                snapshot.appointment_id = notification.appointment_id
            appointment = snapshot.to_appointment(notification.created_at)

        decision = evaluate(appointment, notification.type, notification.recipient_role, now, self.policy)
        return NotificationView(notification=notification, decision=decision)

    async def list_for(self, role: Role, recipient_id: str) -> list[NotificationView]:
        now = self.clock.now()
        notifications = await self.repository.list_for_recipient(role, recipient_id)
        return [await self.view(notification, now) for notification in notifications]

    async def unread_count(self, role: Role, recipient_id: str) -> int:
        return await self.repository.unread_count(role, recipient_id)

    async def mark_read(self, notification_id: str, role: Role, recipient_id: str) -> Notification:
        """Flag a notification as read. Repeated calls are harmless and never touch decisions."""
        notification = await self._owned(notification_id, role, recipient_id)
        if not notification.is_read:
            await self.repository.mark_read(notification_id)
            notification.is_read = True
        return notification

    async def delete(self, notification_id: str, role: Role, recipient_id: str) -> None:
        await self._owned(notification_id, role, recipient_id)
        await self.repository.delete(notification_id)
        logger.info("Notification deleted", notification_id=notification_id, role=role.value)

    async def _owned(self, notification_id: str, role: Role, recipient_id: str) -> Notification:
        notification = await self.repository.get(notification_id)
        # Someone else's notification is reported as missing
        if (
            notification is None
            or notification.recipient_role != role
            or notification.recipient_id != recipient_id
        ):
            raise AppointmentError(ErrorKind.NOT_FOUND, "Notification not found")
        return notification
