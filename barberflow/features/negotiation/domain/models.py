"""
Domain models for the appointment negotiation feature.

Integer enum values match the wire format the booking clients already
consume (notification payloads carry them verbatim).
"""

from datetime import datetime
from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, Field


class Role(str, Enum):
    STORE = "store"
    FREE_BARBER = "freebarber"
    CUSTOMER = "customer"


class AppointmentRequester(IntEnum):
    CUSTOMER = 1
    STORE = 2
    FREE_BARBER = 3

    @property
    def role(self) -> Role:
        return {
            AppointmentRequester.CUSTOMER: Role.CUSTOMER,
            AppointmentRequester.STORE: Role.STORE,
            AppointmentRequester.FREE_BARBER: Role.FREE_BARBER,
        }[self]


class StoreSelectionType(IntEnum):
    CUSTOM_REQUEST = 0
    STORE_SELECTION = 1


class AppointmentStatus(IntEnum):
    """
    Appointment lifecycle status.

    Flow: pending → approved → completed
              ↘ rejected     ↘ cancelled
              ↘ unanswered
    """

    PENDING = 0
    APPROVED = 1
    COMPLETED = 2
    CANCELLED = 3
    REJECTED = 4
    UNANSWERED = 5

    @property
    def is_terminal(self) -> bool:
        return self in (
            AppointmentStatus.REJECTED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.COMPLETED,
            AppointmentStatus.UNANSWERED,
        )


class DecisionStatus(IntEnum):
    PENDING = 0
    APPROVED = 1
    REJECTED = 2
    NO_ANSWER = 3


class NotificationType(IntEnum):
    APPOINTMENT_CREATED = 0
    APPOINTMENT_APPROVED = 1
    APPOINTMENT_REJECTED = 2
    APPOINTMENT_CANCELLED = 3
    APPOINTMENT_COMPLETED = 4
    APPOINTMENT_UNANSWERED = 5
    APPOINTMENT_DECISION_UPDATED = 6

    # Store selection flow
    FREE_BARBER_REJECTED_INITIAL = 7
    STORE_REJECTED_SELECTION = 8
    STORE_APPROVED_SELECTION = 9
    STORE_SELECTION_TIMEOUT = 10
    CUSTOMER_REJECTED_FINAL = 11
    CUSTOMER_APPROVED_FINAL = 12
    CUSTOMER_FINAL_TIMEOUT = 13


# Notification types that announce a finished negotiation, mapped to the
# outcome they always render.
TERMINAL_NOTIFICATION_STATUS: dict[NotificationType, AppointmentStatus] = {
    NotificationType.APPOINTMENT_APPROVED: AppointmentStatus.APPROVED,
    NotificationType.APPOINTMENT_REJECTED: AppointmentStatus.REJECTED,
    NotificationType.APPOINTMENT_CANCELLED: AppointmentStatus.CANCELLED,
    NotificationType.APPOINTMENT_COMPLETED: AppointmentStatus.COMPLETED,
    NotificationType.APPOINTMENT_UNANSWERED: AppointmentStatus.UNANSWERED,
    NotificationType.FREE_BARBER_REJECTED_INITIAL: AppointmentStatus.REJECTED,
    NotificationType.STORE_REJECTED_SELECTION: AppointmentStatus.REJECTED,
    NotificationType.STORE_SELECTION_TIMEOUT: AppointmentStatus.UNANSWERED,
    NotificationType.CUSTOMER_REJECTED_FINAL: AppointmentStatus.REJECTED,
    NotificationType.CUSTOMER_APPROVED_FINAL: AppointmentStatus.APPROVED,
    NotificationType.CUSTOMER_FINAL_TIMEOUT: AppointmentStatus.UNANSWERED,
}


class Appointment(BaseModel):
    """The unit of negotiation."""

    id: str
    requester: AppointmentRequester
    store_selection_type: StoreSelectionType | None = None
    status: AppointmentStatus = AppointmentStatus.PENDING
    created_at: datetime
    updated_at: datetime | None = None
    pending_expires_at: datetime | None = None
    parties: dict[Role, str] = Field(default_factory=dict)
    decisions: dict[Role, DecisionStatus] = Field(default_factory=dict)
    note: str | None = None
    store_id: str | None = None

    def is_store_selection(self) -> bool:
        return self.store_selection_type == StoreSelectionType.STORE_SELECTION

    def has_store(self) -> bool:
        """True once a venue is attached (always true for non-selection flows with a store)."""
        if self.is_store_selection():
            return self.store_id is not None
        return Role.STORE in self.parties

    def participates(self, role: Role) -> bool:
        return role in self.parties

    def decision_for(self, role: Role) -> DecisionStatus | None:
        if not self.participates(role):
            return None
        return self.decisions.get(role, DecisionStatus.PENDING)

    def pending_roles(self) -> list[Role]:
        return [
            role
            for role in self.parties
            if self.decisions.get(role, DecisionStatus.PENDING) == DecisionStatus.PENDING
        ]

    def requester_role(self) -> Role:
        return self.requester.role

    def responder_roles(self) -> list[Role]:
        """Participants other than the requester."""
        requester = self.requester_role()
        return [role for role in self.parties if role != requester]


class Notification(BaseModel):
    """Point-in-time snapshot of an appointment delivered to one recipient."""

    id: str
    appointment_id: str
    type: NotificationType
    recipient_role: Role
    recipient_id: str | None = None
    title: str = ""
    is_read: bool = False
    created_at: datetime
    payload: dict[str, Any] = Field(default_factory=dict)
