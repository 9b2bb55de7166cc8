"""
Appointment state machine.

Every operation works on a deep copy of the appointment and returns a
Transition describing the new state plus the notifications the caller
must emit. Nothing here touches storage, locks or wall-clock time; the
negotiation service owns those concerns.

States: pending → {approved, rejected, unanswered}; approved → {completed, cancelled}.
"""

from dataclasses import dataclass, field
from datetime import datetime

from barberflow.features.negotiation.domain.errors import AppointmentError, ErrorKind
from barberflow.features.negotiation.domain.models import (
    Appointment,
    AppointmentRequester,
    AppointmentStatus,
    DecisionStatus,
    NotificationType,
    Role,
    StoreSelectionType,
)
from barberflow.features.negotiation.services.expiry_policy import ExpiryPolicy, default_policy


@dataclass(slots=True)
class OutgoingNotification:
    type: NotificationType
    recipients: list[Role]


@dataclass(slots=True)
class Transition:
    operation: str
    appointment: Appointment
    previous_status: AppointmentStatus
    role: Role | None = None
    notifications: list[OutgoingNotification] = field(default_factory=list)

    @property
    def status_changed(self) -> bool:
        return self.appointment.status != self.previous_status

    @property
    def left_pending(self) -> bool:
        return (
            self.previous_status == AppointmentStatus.PENDING
            and self.appointment.status != AppointmentStatus.PENDING
        )


class TransitionEngine:
    def __init__(self, policy: ExpiryPolicy | None = None):
        self.policy = policy or default_policy

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create(
        self,
        appointment_id: str,
        requester: AppointmentRequester,
        parties: dict[Role, str],
        now: datetime,
        store_selection_type: StoreSelectionType | None = None,
        note: str | None = None,
    ) -> Transition:
        """Build a new pending appointment with initialized decisions."""
        requester_role = requester.role
        if requester_role not in parties:
            raise ValueError("Requester must be one of the appointment parties")

        if store_selection_type == StoreSelectionType.STORE_SELECTION:
            if requester != AppointmentRequester.CUSTOMER:
                raise ValueError("Store selection requests can only be made by a customer")
            if Role.FREE_BARBER not in parties:
                raise ValueError("Store selection requires a free barber")
            if Role.STORE in parties:
                raise ValueError("Store selection starts without a store")
            decisions = {Role.CUSTOMER: DecisionStatus.PENDING, Role.FREE_BARBER: DecisionStatus.PENDING}
        else:
            if len(parties) < 2:
                raise ValueError("An appointment needs at least two parties")
            if note:
                raise ValueError("Notes are only supported for store selection requests")
            decisions = {
                role: DecisionStatus.APPROVED if role == requester_role else DecisionStatus.PENDING
                for role in parties
            }

        appointment = Appointment(
            id=appointment_id,
            requester=requester,
            store_selection_type=store_selection_type,
            status=AppointmentStatus.PENDING,
            created_at=now,
            updated_at=now,
            parties=dict(parties),
            decisions=decisions,
            note=note,
        )

        return Transition(
            operation="create",
            appointment=appointment,
            previous_status=AppointmentStatus.PENDING,
            role=requester_role,
            notifications=[
                OutgoingNotification(
                    NotificationType.APPOINTMENT_CREATED, self.policy.awaited_roles(appointment)
                )
            ],
        )

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def decide(self, appointment: Appointment, role: Role, approve: bool, now: datetime) -> Transition:
        """Record an approve/reject from role and derive the next status."""
        self._ensure_participant(appointment, role)

        awaited = self.policy.awaited_roles(appointment)
        if appointment.status == AppointmentStatus.UNANSWERED or (
            appointment.status == AppointmentStatus.PENDING and self.policy.is_expired(appointment, role, now)
        ):
            raise AppointmentError(
                ErrorKind.EXPIRED,
                "Decision window has expired",
                appointment.id,
                appointment.status,
            )

        if appointment.decision_for(role) != DecisionStatus.PENDING:
            raise AppointmentError(
                ErrorKind.ALREADY_DECIDED,
                "Decision already given",
                appointment.id,
                appointment.status,
            )

        if appointment.status != AppointmentStatus.PENDING:
            raise AppointmentError(
                ErrorKind.INVALID_TRANSITION,
                "Appointment is not pending",
                appointment.id,
                appointment.status,
            )

        if role not in awaited:
            message = (
                "Customer confirmation requires store approval first"
                if role == Role.CUSTOMER
                else f"It is not the {role.value} turn to decide"
            )
            raise AppointmentError(ErrorKind.INVALID_TRANSITION, message, appointment.id, appointment.status)

        if appointment.is_store_selection():
            return self._decide_store_selection(appointment, role, approve, now)
        return self._decide_direct(appointment, role, approve, now)

    def _decide_direct(self, appointment: Appointment, role: Role, approve: bool, now: datetime) -> Transition:
        updated = self._copy(appointment, now)
        updated.decisions[role] = DecisionStatus.APPROVED if approve else DecisionStatus.REJECTED
        others = [r for r in updated.parties if r != role]

        if not approve:
            self._finish(updated, AppointmentStatus.REJECTED)
            notification_type = NotificationType.APPOINTMENT_REJECTED
        elif all(updated.decisions.get(r) == DecisionStatus.APPROVED for r in updated.responder_roles()):
            self._finish(updated, AppointmentStatus.APPROVED)
            notification_type = NotificationType.APPOINTMENT_APPROVED
        else:
            notification_type = NotificationType.APPOINTMENT_DECISION_UPDATED

        return Transition(
            operation="decide",
            appointment=updated,
            previous_status=appointment.status,
            role=role,
            notifications=[OutgoingNotification(notification_type, others)],
        )

    def _decide_store_selection(
        self, appointment: Appointment, role: Role, approve: bool, now: datetime
    ) -> Transition:
        updated = self._copy(appointment, now)
        notifications: list[OutgoingNotification] = []

        if role == Role.FREE_BARBER:
            # Acceptance in principle is expressed by attaching a store
            if approve:
                raise AppointmentError(
                    ErrorKind.INVALID_TRANSITION,
                    "Free barber accepts by choosing a store",
                    appointment.id,
                    appointment.status,
                )
            updated.decisions[Role.FREE_BARBER] = DecisionStatus.REJECTED
            self._finish(updated, AppointmentStatus.REJECTED)
            notifications.append(
                OutgoingNotification(NotificationType.FREE_BARBER_REJECTED_INITIAL, [Role.CUSTOMER])
            )

        elif role == Role.STORE:
            if approve:
                updated.decisions[Role.STORE] = DecisionStatus.APPROVED
                # Customer gets a fresh window for the final confirmation
                updated.pending_expires_at = self.policy.window_from(now)
                notifications.append(
                    OutgoingNotification(
                        NotificationType.STORE_APPROVED_SELECTION, [Role.CUSTOMER, Role.FREE_BARBER]
                    )
                )
            else:
                updated.decisions[Role.STORE] = DecisionStatus.REJECTED
                self._finish(updated, AppointmentStatus.REJECTED)
                notifications.append(
                    OutgoingNotification(
                        NotificationType.STORE_REJECTED_SELECTION, [Role.FREE_BARBER, Role.CUSTOMER]
                    )
                )

        else:
            updated.decisions[Role.CUSTOMER] = DecisionStatus.APPROVED if approve else DecisionStatus.REJECTED
            self._finish(updated, AppointmentStatus.APPROVED if approve else AppointmentStatus.REJECTED)
            notifications.append(
                OutgoingNotification(
                    NotificationType.CUSTOMER_APPROVED_FINAL
                    if approve
                    else NotificationType.CUSTOMER_REJECTED_FINAL,
                    [Role.FREE_BARBER, Role.STORE],
                )
            )

        return Transition(
            operation="decide",
            appointment=updated,
            previous_status=appointment.status,
            role=role,
            notifications=notifications,
        )

    # ------------------------------------------------------------------
    # Store selection attach
    # ------------------------------------------------------------------

    def attach_store(self, appointment: Appointment, store_id: str, now: datetime) -> Transition:
        """Attach the venue chosen by the free barber and open the Store decision."""
        if not appointment.is_store_selection():
            raise AppointmentError(
                ErrorKind.INVALID_TRANSITION,
                "Only store selection requests accept a store",
                appointment.id,
                appointment.status,
            )
        if appointment.status == AppointmentStatus.UNANSWERED:
            raise AppointmentError(
                ErrorKind.EXPIRED, "Decision window has expired", appointment.id, appointment.status
            )
        if appointment.status != AppointmentStatus.PENDING:
            raise AppointmentError(
                ErrorKind.INVALID_TRANSITION,
                "Appointment is not pending",
                appointment.id,
                appointment.status,
            )
        if appointment.has_store():
            raise AppointmentError(
                ErrorKind.INVALID_TRANSITION,
                "A store is already attached",
                appointment.id,
                appointment.status,
            )
        if appointment.decisions.get(Role.FREE_BARBER) == DecisionStatus.REJECTED:
            raise AppointmentError(
                ErrorKind.INVALID_TRANSITION,
                "Free barber already rejected this request",
                appointment.id,
                appointment.status,
            )
        if self.policy.is_expired(appointment, Role.FREE_BARBER, now):
            raise AppointmentError(
                ErrorKind.EXPIRED, "Decision window has expired", appointment.id, appointment.status
            )

        updated = self._copy(appointment, now)
        updated.store_id = store_id
        updated.parties[Role.STORE] = store_id
        updated.decisions[Role.FREE_BARBER] = DecisionStatus.APPROVED
        updated.decisions[Role.STORE] = DecisionStatus.PENDING
        updated.pending_expires_at = self.policy.window_from(now)

        return Transition(
            operation="attach_store",
            appointment=updated,
            previous_status=appointment.status,
            role=Role.FREE_BARBER,
            notifications=[
                OutgoingNotification(NotificationType.APPOINTMENT_CREATED, [Role.STORE]),
                OutgoingNotification(NotificationType.APPOINTMENT_DECISION_UPDATED, [Role.CUSTOMER]),
            ],
        )

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    def expire(self, appointment: Appointment, now: datetime) -> Transition | None:
        """
        Mark a lapsed negotiation as unanswered.

        Returns None when there is nothing to do: the appointment is no
        longer pending or its active deadline has not passed yet.
        """
        if appointment.status != AppointmentStatus.PENDING:
            return None

        deadline = self.policy.active_deadline(appointment)
        if deadline is None or now <= deadline:
            return None

        awaited = self.policy.awaited_roles(appointment)
        updated = self._copy(appointment, now)
        for role in updated.parties:
            if updated.decisions.get(role, DecisionStatus.PENDING) == DecisionStatus.PENDING:
                updated.decisions[role] = DecisionStatus.NO_ANSWER
        self._finish(updated, AppointmentStatus.UNANSWERED)

        everyone = list(updated.parties)
        if appointment.is_store_selection() and awaited == [Role.STORE]:
            notifications = [
                OutgoingNotification(
                    NotificationType.STORE_SELECTION_TIMEOUT, [Role.FREE_BARBER, Role.CUSTOMER]
                ),
                OutgoingNotification(NotificationType.APPOINTMENT_UNANSWERED, [Role.STORE]),
            ]
        elif appointment.is_store_selection() and awaited == [Role.CUSTOMER]:
            notifications = [OutgoingNotification(NotificationType.CUSTOMER_FINAL_TIMEOUT, everyone)]
        else:
            notifications = [OutgoingNotification(NotificationType.APPOINTMENT_UNANSWERED, everyone)]

        return Transition(
            operation="expire",
            appointment=updated,
            previous_status=appointment.status,
            notifications=notifications,
        )

    # ------------------------------------------------------------------
    # Post-booking actions
    # ------------------------------------------------------------------

    def cancel(self, appointment: Appointment, now: datetime, actor: Role | None = None) -> Transition:
        return self._close_approved(
            appointment, now, actor, AppointmentStatus.CANCELLED, NotificationType.APPOINTMENT_CANCELLED
        )

    def complete(self, appointment: Appointment, now: datetime, actor: Role | None = None) -> Transition:
        return self._close_approved(
            appointment, now, actor, AppointmentStatus.COMPLETED, NotificationType.APPOINTMENT_COMPLETED
        )

    def _close_approved(
        self,
        appointment: Appointment,
        now: datetime,
        actor: Role | None,
        target: AppointmentStatus,
        notification_type: NotificationType,
    ) -> Transition:
        if appointment.status != AppointmentStatus.APPROVED:
            raise AppointmentError(
                ErrorKind.INVALID_TRANSITION,
                f"Only approved appointments can be {target.name.lower()}",
                appointment.id,
                appointment.status,
            )

        updated = self._copy(appointment, now)
        updated.status = target
        recipients = [role for role in updated.parties if role != actor]

        return Transition(
            operation=target.name.lower(),
            appointment=updated,
            previous_status=appointment.status,
            role=actor,
            notifications=[OutgoingNotification(notification_type, recipients)],
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _ensure_participant(appointment: Appointment, role: Role) -> None:
        if not appointment.participates(role):
            raise AppointmentError(
                ErrorKind.NOT_PARTICIPANT,
                f"{role.value} is not a party to this appointment",
                appointment.id,
                appointment.status,
            )

    @staticmethod
    def _copy(appointment: Appointment, now: datetime) -> Appointment:
        updated = appointment.model_copy(deep=True)
        updated.updated_at = now
        return updated

    @staticmethod
    def _finish(appointment: Appointment, status: AppointmentStatus) -> None:
        appointment.status = status
        appointment.pending_expires_at = None


default_engine = TransitionEngine()
