"""
Tests for role-dependent action visibility.
"""

from datetime import UTC, datetime, timedelta

from barberflow.features.negotiation.domain.models import (
    AppointmentRequester,
    NotificationType,
    Role,
    StoreSelectionType,
)
from barberflow.features.negotiation.services.decision_matrix import Actions, Outcome, evaluate
from barberflow.features.negotiation.services.transition_engine import TransitionEngine

T0 = datetime(2026, 1, 5, 10, 0, tzinfo=UTC)

engine = TransitionEngine()


def at(minutes: float) -> datetime:
    return T0 + timedelta(minutes=minutes)


def _custom_request():
    return engine.create(
        "a1",
        AppointmentRequester.CUSTOMER,
        {Role.CUSTOMER: "c1", Role.STORE: "s1"},
        T0,
        store_selection_type=StoreSelectionType.CUSTOM_REQUEST,
    ).appointment


def _store_selection():
    return engine.create(
        "a2",
        AppointmentRequester.CUSTOMER,
        {Role.CUSTOMER: "c1", Role.FREE_BARBER: "fb1"},
        T0,
        store_selection_type=StoreSelectionType.STORE_SELECTION,
    ).appointment


def test_store_sees_approve_reject_on_created():
    view = evaluate(_custom_request(), NotificationType.APPOINTMENT_CREATED, Role.STORE, at(1))

    assert view.actions == Actions.APPROVE_REJECT
    assert view.outcome == Outcome.ACTION_REQUIRED
    assert view.deadline == at(5)
    assert view.can_approve and view.can_reject


def test_requester_only_waits():
    view = evaluate(_custom_request(), None, Role.CUSTOMER, at(1))

    assert view.actions == Actions.NONE
    assert view.outcome == Outcome.APPROVED  # requester's own decision is recorded as approved


def test_deadline_passed_shows_expired_instead_of_buttons():
    view = evaluate(_custom_request(), NotificationType.APPOINTMENT_CREATED, Role.STORE, at(6))

    assert view.actions == Actions.NONE
    assert view.outcome == Outcome.EXPIRED


def test_status_notification_always_renders_outcome():
    view = evaluate(_custom_request(), NotificationType.APPOINTMENT_APPROVED, Role.STORE, at(1))

    assert view.actions == Actions.NONE
    assert view.outcome == Outcome.APPROVED


def test_non_participant_gets_no_actions():
    view = evaluate(_custom_request(), NotificationType.APPOINTMENT_CREATED, Role.FREE_BARBER, at(1))

    assert view.actions == Actions.NONE
    assert view.outcome == Outcome.WAITING


def test_own_terminal_decision_is_shown():
    approved = engine.decide(_custom_request(), Role.STORE, True, at(1)).appointment

    view = evaluate(approved, NotificationType.APPOINTMENT_CREATED, Role.STORE, at(2))

    assert view.actions == Actions.NONE
    assert view.outcome == Outcome.APPROVED


def test_free_barber_can_only_reject_before_store_is_chosen():
    view = evaluate(_store_selection(), NotificationType.APPOINTMENT_CREATED, Role.FREE_BARBER, at(20))

    assert view.actions == Actions.REJECT_ONLY
    assert view.can_reject and not view.can_approve
    assert view.deadline == at(30)


def test_customer_waits_while_barber_picks_a_store():
    view = evaluate(_store_selection(), None, Role.CUSTOMER, at(1))

    assert view.actions == Actions.NONE
    assert view.outcome == Outcome.WAITING


def test_store_decides_after_attach_then_customer_confirms():
    attached = engine.attach_store(_store_selection(), "s1", at(5)).appointment

    store_view = evaluate(attached, NotificationType.APPOINTMENT_CREATED, Role.STORE, at(6))
    barber_view = evaluate(attached, NotificationType.APPOINTMENT_CREATED, Role.FREE_BARBER, at(6))
    assert store_view.actions == Actions.APPROVE_REJECT
    assert barber_view.actions == Actions.NONE

    store_approved = engine.decide(attached, Role.STORE, True, at(6)).appointment
    customer_view = evaluate(
        store_approved, NotificationType.STORE_APPROVED_SELECTION, Role.CUSTOMER, at(7)
    )

    assert customer_view.actions == Actions.APPROVE_REJECT
    assert customer_view.deadline == at(11)


def test_store_approved_selection_is_informational_for_free_barber():
    attached = engine.attach_store(_store_selection(), "s1", at(5)).appointment
    store_approved = engine.decide(attached, Role.STORE, True, at(6)).appointment

    view = evaluate(store_approved, NotificationType.STORE_APPROVED_SELECTION, Role.FREE_BARBER, at(7))

    assert view.actions == Actions.NONE


def test_unanswered_appointment_shows_status_to_silent_party():
    expired = engine.expire(_custom_request(), at(6)).appointment

    view = evaluate(expired, NotificationType.APPOINTMENT_CREATED, Role.STORE, at(7))

    assert view.actions == Actions.NONE
    assert view.outcome == Outcome.UNANSWERED


def test_non_awaited_viewer_sees_expired_after_active_deadline():
    view = evaluate(_store_selection(), None, Role.CUSTOMER, at(31))

    assert view.outcome == Outcome.EXPIRED


def test_requester_sees_rejection_once_store_rejects():
    rejected = engine.decide(_custom_request(), Role.STORE, False, at(1)).appointment

    view = evaluate(rejected, None, Role.CUSTOMER, at(2))
    from_created = evaluate(rejected, NotificationType.APPOINTMENT_CREATED, Role.CUSTOMER, at(2))

    assert view.actions == Actions.NONE
    assert view.outcome == Outcome.REJECTED
    assert from_created.outcome == Outcome.REJECTED


def test_requester_sees_unanswered_after_expiry():
    expired = engine.expire(_custom_request(), at(6)).appointment

    view = evaluate(expired, None, Role.CUSTOMER, at(7))

    assert view.outcome == Outcome.UNANSWERED


def test_own_decision_shown_while_other_responder_still_pending():
    appointment = engine.create(
        "a3",
        AppointmentRequester.CUSTOMER,
        {Role.CUSTOMER: "c1", Role.STORE: "s1", Role.FREE_BARBER: "fb1"},
        T0,
        store_selection_type=StoreSelectionType.CUSTOM_REQUEST,
    ).appointment
    store_approved = engine.decide(appointment, Role.STORE, True, at(1)).appointment

    store_view = evaluate(store_approved, NotificationType.APPOINTMENT_CREATED, Role.STORE, at(2))
    barber_view = evaluate(store_approved, NotificationType.APPOINTMENT_CREATED, Role.FREE_BARBER, at(2))

    assert store_approved.status.name == "PENDING"
    assert store_view.outcome == Outcome.APPROVED
    assert store_view.actions == Actions.NONE
    assert barber_view.actions == Actions.APPROVE_REJECT
