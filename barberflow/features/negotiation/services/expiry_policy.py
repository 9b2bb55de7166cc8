"""
Decision deadlines.

Rules, in order:
1. Outside the store selection flow every decision has a short window
   from creation.
2. In the store selection flow the FreeBarber gets a long window to
   accept in principle while no venue is attached; every other decision
   uses the short window.
3. An explicit pending_expires_at on the appointment (server-issued after
   a venue attach or a Store approval) overrides the computed value.
"""

from datetime import datetime, timedelta

from barberflow.features.negotiation.domain.models import Appointment, AppointmentStatus, DecisionStatus, Role

DEFAULT_DECISION_WINDOW_MINUTES = 5
STORE_SELECTION_BARBER_WINDOW_MINUTES = 30


class ExpiryPolicy:
    def __init__(
        self,
        decision_window_minutes: int = DEFAULT_DECISION_WINDOW_MINUTES,
        barber_selection_window_minutes: int = STORE_SELECTION_BARBER_WINDOW_MINUTES,
    ):
        self.decision_window = timedelta(minutes=decision_window_minutes)
        self.barber_selection_window = timedelta(minutes=barber_selection_window_minutes)

    def deadline(self, appointment: Appointment, viewer_role: Role) -> datetime:
        """Deadline for a pending decision as seen by viewer_role."""
        if appointment.pending_expires_at is not None:
            return appointment.pending_expires_at

        if (
            appointment.is_store_selection()
            and viewer_role == Role.FREE_BARBER
            and not appointment.has_store()
        ):
            return appointment.created_at + self.barber_selection_window

        return appointment.created_at + self.decision_window

    def awaited_roles(self, appointment: Appointment) -> list[Role]:
        """Roles whose answer the negotiation is currently waiting on."""
        if appointment.status != AppointmentStatus.PENDING:
            return []

        if appointment.is_store_selection():
            if not appointment.has_store():
                return [Role.FREE_BARBER]
            if appointment.decisions.get(Role.STORE) == DecisionStatus.APPROVED:
                return [Role.CUSTOMER]
            return [Role.STORE]

        return [role for role in appointment.responder_roles() if role in appointment.pending_roles()]

    def active_deadline(self, appointment: Appointment) -> datetime | None:
        """Earliest deadline among awaited roles, or None when nothing is pending."""
        roles = self.awaited_roles(appointment)
        if not roles:
            return None
        return min(self.deadline(appointment, role) for role in roles)

    def is_expired(self, appointment: Appointment, role: Role, now: datetime) -> bool:
        return now > self.deadline(appointment, role)

    def window_from(self, moment: datetime) -> datetime:
        """A fresh short window starting at moment."""
        return moment + self.decision_window


default_policy = ExpiryPolicy()
