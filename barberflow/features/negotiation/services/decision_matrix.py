"""
Role-dependent visibility of decision actions.

evaluate() is the single place that answers "what does this viewer see
for this appointment/notification right now": which buttons (if any)
and which outcome to display instead of stale buttons.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from barberflow.features.negotiation.domain.models import (
    TERMINAL_NOTIFICATION_STATUS,
    Appointment,
    AppointmentStatus,
    DecisionStatus,
    NotificationType,
    Role,
)
from barberflow.features.negotiation.services.expiry_policy import ExpiryPolicy, default_policy


class Actions(str, Enum):
    NONE = "none"
    APPROVE_REJECT = "approve_reject"
    REJECT_ONLY = "reject_only"


class Outcome(str, Enum):
    ACTION_REQUIRED = "action_required"
    WAITING = "waiting"
    EXPIRED = "expired"
    APPROVED = "approved"
    REJECTED = "rejected"
    NO_ANSWER = "no_answer"
    UNANSWERED = "unanswered"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


STATUS_OUTCOMES: dict[AppointmentStatus, Outcome] = {
    AppointmentStatus.PENDING: Outcome.WAITING,
    AppointmentStatus.APPROVED: Outcome.APPROVED,
    AppointmentStatus.REJECTED: Outcome.REJECTED,
    AppointmentStatus.UNANSWERED: Outcome.UNANSWERED,
    AppointmentStatus.CANCELLED: Outcome.CANCELLED,
    AppointmentStatus.COMPLETED: Outcome.COMPLETED,
}

DECISION_OUTCOMES: dict[DecisionStatus, Outcome] = {
    DecisionStatus.APPROVED: Outcome.APPROVED,
    DecisionStatus.REJECTED: Outcome.REJECTED,
    DecisionStatus.NO_ANSWER: Outcome.NO_ANSWER,
}

# None stands for "looking at the live appointment, not a notification"
DECIDABLE_TYPES = {
    None,
    NotificationType.APPOINTMENT_CREATED,
    NotificationType.APPOINTMENT_DECISION_UPDATED,
    NotificationType.STORE_APPROVED_SELECTION,
}


@dataclass(slots=True, frozen=True)
class DecisionView:
    actions: Actions
    outcome: Outcome
    deadline: datetime | None = None

    @property
    def can_approve(self) -> bool:
        return self.actions == Actions.APPROVE_REJECT

    @property
    def can_reject(self) -> bool:
        return self.actions in (Actions.APPROVE_REJECT, Actions.REJECT_ONLY)


def evaluate(
    appointment: Appointment,
    notification_type: NotificationType | None,
    viewer_role: Role,
    now: datetime,
    policy: ExpiryPolicy | None = None,
) -> DecisionView:
    policy = policy or default_policy

    # Status notifications always render their terminal outcome
    if notification_type in TERMINAL_NOTIFICATION_STATUS:
        return DecisionView(Actions.NONE, STATUS_OUTCOMES[TERMINAL_NOTIFICATION_STATUS[notification_type]])

    if not appointment.participates(viewer_role):
        return DecisionView(Actions.NONE, STATUS_OUTCOMES[appointment.status])

    if appointment.status != AppointmentStatus.PENDING:
        return DecisionView(Actions.NONE, STATUS_OUTCOMES[appointment.status])

    # Still pending overall, but this viewer has already answered
    own = appointment.decision_for(viewer_role)
    if own in DECISION_OUTCOMES:
        return DecisionView(Actions.NONE, DECISION_OUTCOMES[own])

    awaited = policy.awaited_roles(appointment)
    if viewer_role in awaited:
        deadline = policy.deadline(appointment, viewer_role)
    else:
        deadline = policy.active_deadline(appointment)

    if deadline is not None and now > deadline:
        return DecisionView(Actions.NONE, Outcome.EXPIRED, deadline)

    actions = actions_for(appointment, notification_type, viewer_role, awaited)
    outcome = Outcome.ACTION_REQUIRED if actions != Actions.NONE else Outcome.WAITING
    return DecisionView(actions, outcome, deadline)


def actions_for(
    appointment: Appointment,
    notification_type: NotificationType | None,
    viewer_role: Role,
    awaited: list[Role],
) -> Actions:
    """Buttons for a pending, in-window viewer whose own decision is still open."""
    if viewer_role not in awaited or notification_type not in DECIDABLE_TYPES:
        return Actions.NONE

    if not appointment.is_store_selection():
        if notification_type == NotificationType.STORE_APPROVED_SELECTION:
            return Actions.NONE
        return Actions.APPROVE_REJECT

    if viewer_role == Role.FREE_BARBER:
        # Before a venue exists the barber may only decline; accepting
        # happens by choosing a store
        if (
            notification_type in (None, NotificationType.APPOINTMENT_CREATED)
            and not appointment.has_store()
            and appointment.decisions.get(Role.CUSTOMER) != DecisionStatus.APPROVED
        ):
            return Actions.REJECT_ONLY
        return Actions.NONE

    if viewer_role == Role.STORE:
        if notification_type in (None, NotificationType.APPOINTMENT_CREATED):
            return Actions.APPROVE_REJECT
        return Actions.NONE

    # Customer final confirmation, only reachable once the store approved
    if appointment.decisions.get(Role.STORE) == DecisionStatus.APPROVED:
        return Actions.APPROVE_REJECT
    return Actions.NONE
