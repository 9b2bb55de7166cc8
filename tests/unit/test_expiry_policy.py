"""
Tests for decision deadlines.
"""

from datetime import UTC, datetime, timedelta

from barberflow.features.negotiation.domain.models import (
    Appointment,
    AppointmentRequester,
    AppointmentStatus,
    DecisionStatus,
    Role,
    StoreSelectionType,
)
from barberflow.features.negotiation.services.expiry_policy import ExpiryPolicy

T0 = datetime(2026, 1, 5, 10, 0, tzinfo=UTC)

policy = ExpiryPolicy()


def _direct() -> Appointment:
    return Appointment(
        id="a1",
        requester=AppointmentRequester.CUSTOMER,
        store_selection_type=StoreSelectionType.CUSTOM_REQUEST,
        created_at=T0,
        parties={Role.CUSTOMER: "c1", Role.STORE: "s1"},
        decisions={Role.CUSTOMER: DecisionStatus.APPROVED, Role.STORE: DecisionStatus.PENDING},
    )


def _selection(**overrides) -> Appointment:
    data = {
        "id": "a2",
        "requester": AppointmentRequester.CUSTOMER,
        "store_selection_type": StoreSelectionType.STORE_SELECTION,
        "created_at": T0,
        "parties": {Role.CUSTOMER: "c1", Role.FREE_BARBER: "fb1"},
        "decisions": {Role.CUSTOMER: DecisionStatus.PENDING, Role.FREE_BARBER: DecisionStatus.PENDING},
    }
    data.update(overrides)
    return Appointment(**data)


def test_direct_flow_uses_short_window_for_every_viewer():
    appointment = _direct()

    assert policy.deadline(appointment, Role.STORE) == T0 + timedelta(minutes=5)
    assert policy.deadline(appointment, Role.CUSTOMER) == T0 + timedelta(minutes=5)


def test_free_barber_gets_long_window_before_store_is_attached():
    appointment = _selection()

    assert policy.deadline(appointment, Role.FREE_BARBER) == T0 + timedelta(minutes=30)
    assert policy.deadline(appointment, Role.CUSTOMER) == T0 + timedelta(minutes=5)


def test_explicit_pending_expires_at_overrides_computed_deadline():
    explicit = T0 + timedelta(minutes=12)
    appointment = _selection(pending_expires_at=explicit)

    assert policy.deadline(appointment, Role.FREE_BARBER) == explicit
    assert policy.deadline(appointment, Role.CUSTOMER) == explicit


def test_free_barber_window_closes_after_store_attached():
    appointment = _selection(
        store_id="s1",
        parties={Role.CUSTOMER: "c1", Role.FREE_BARBER: "fb1", Role.STORE: "s1"},
    )

    assert policy.deadline(appointment, Role.FREE_BARBER) == T0 + timedelta(minutes=5)


def test_is_expired_is_strictly_after_deadline():
    appointment = _direct()
    deadline = T0 + timedelta(minutes=5)

    assert policy.is_expired(appointment, Role.STORE, deadline) is False
    assert policy.is_expired(appointment, Role.STORE, deadline + timedelta(seconds=1)) is True


def test_awaited_roles_follow_store_selection_phases():
    before_store = _selection()
    store_pending = _selection(
        store_id="s1",
        parties={Role.CUSTOMER: "c1", Role.FREE_BARBER: "fb1", Role.STORE: "s1"},
        decisions={
            Role.CUSTOMER: DecisionStatus.PENDING,
            Role.FREE_BARBER: DecisionStatus.APPROVED,
            Role.STORE: DecisionStatus.PENDING,
        },
    )
    customer_pending = store_pending.model_copy(deep=True)
    customer_pending.decisions[Role.STORE] = DecisionStatus.APPROVED

    assert policy.awaited_roles(before_store) == [Role.FREE_BARBER]
    assert policy.awaited_roles(store_pending) == [Role.STORE]
    assert policy.awaited_roles(customer_pending) == [Role.CUSTOMER]


def test_active_deadline_is_none_once_terminal():
    appointment = _direct()
    appointment.status = AppointmentStatus.APPROVED

    assert policy.awaited_roles(appointment) == []
    assert policy.active_deadline(appointment) is None


def test_window_lengths_are_configurable():
    custom = ExpiryPolicy(decision_window_minutes=2, barber_selection_window_minutes=10)

    assert custom.deadline(_direct(), Role.STORE) == T0 + timedelta(minutes=2)
    assert custom.deadline(_selection(), Role.FREE_BARBER) == T0 + timedelta(minutes=10)
