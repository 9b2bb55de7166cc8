"""Request and response bodies for the negotiation API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from barberflow.features.negotiation.domain.models import (
    Appointment,
    AppointmentRequester,
    AppointmentStatus,
    DecisionStatus,
    Notification,
    NotificationType,
    StoreSelectionType,
)
from barberflow.features.negotiation.services.decision_matrix import Actions, DecisionView, Outcome


class CreateAppointmentRequest(BaseModel):
    """The caller is always the requester; their own id field is ignored."""

    store_id: str | None = None
    free_barber_id: str | None = None
    customer_id: str | None = None
    store_selection_type: StoreSelectionType | None = None
    note: str | None = Field(default=None, max_length=500)


class DecisionRequest(BaseModel):
    approve: bool


class AttachStoreRequest(BaseModel):
    store_id: str = Field(min_length=1)


class DecisionViewResponse(BaseModel):
    actions: Actions
    outcome: Outcome
    can_approve: bool
    can_reject: bool
    deadline: datetime | None = None

    @classmethod
    def from_view(cls, view: DecisionView) -> "DecisionViewResponse":
        return cls(
            actions=view.actions,
            outcome=view.outcome,
            can_approve=view.can_approve,
            can_reject=view.can_reject,
            deadline=view.deadline,
        )


class AppointmentResponse(BaseModel):
    id: str
    requester: AppointmentRequester
    store_selection_type: StoreSelectionType | None
    status: AppointmentStatus
    created_at: datetime
    updated_at: datetime | None
    pending_expires_at: datetime | None
    parties: dict[str, str]
    decisions: dict[str, DecisionStatus]
    note: str | None
    store_id: str | None
    view: DecisionViewResponse | None = None

    @classmethod
    def from_appointment(
        cls, appointment: Appointment, view: DecisionView | None = None
    ) -> "AppointmentResponse":
        return cls(
            id=appointment.id,
            requester=appointment.requester,
            store_selection_type=appointment.store_selection_type,
            status=appointment.status,
            created_at=appointment.created_at,
            updated_at=appointment.updated_at,
            pending_expires_at=appointment.pending_expires_at,
            parties={role.value: party_id for role, party_id in appointment.parties.items()},
            decisions={role.value: decision for role, decision in appointment.decisions.items()},
            note=appointment.note,
            store_id=appointment.store_id,
            view=DecisionViewResponse.from_view(view) if view else None,
        )


class NotificationResponse(BaseModel):
    id: str
    appointment_id: str
    type: NotificationType
    title: str
    is_read: bool
    created_at: datetime
    payload: dict[str, Any]
    view: DecisionViewResponse

    @classmethod
    def from_notification(cls, notification: Notification, view: DecisionView) -> "NotificationResponse":
        return cls(
            id=notification.id,
            appointment_id=notification.appointment_id,
            type=notification.type,
            title=notification.title,
            is_read=notification.is_read,
            created_at=notification.created_at,
            payload=notification.payload,
            view=DecisionViewResponse.from_view(view),
        )


class UnreadCountResponse(BaseModel):
    count: int
