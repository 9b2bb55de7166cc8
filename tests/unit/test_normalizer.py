"""
Tests for notification payload normalization.
"""

import json
from datetime import UTC, datetime

import pytest

from barberflow.features.negotiation.domain.models import (
    AppointmentRequester,
    AppointmentStatus,
    DecisionStatus,
    Role,
    StoreSelectionType,
)
from barberflow.features.negotiation.services.normalizer import (
    normalize,
    normalize_decision,
    parse_timestamp,
)


def test_legacy_boolean_true_is_never_approved():
    decision, reliable = normalize_decision(True)

    assert decision == DecisionStatus.PENDING
    assert reliable is False


@pytest.mark.parametrize(
    "raw,expected",
    [
        (None, DecisionStatus.PENDING),
        (0, DecisionStatus.PENDING),
        (1, DecisionStatus.APPROVED),
        (2, DecisionStatus.REJECTED),
        (3, DecisionStatus.NO_ANSWER),
        ("1", DecisionStatus.APPROVED),
        ("Rejected", DecisionStatus.REJECTED),
        ("NoAnswer", DecisionStatus.NO_ANSWER),
    ],
)
def test_known_decision_shapes(raw, expected):
    decision, reliable = normalize_decision(raw)

    assert decision == expected
    assert reliable is True


@pytest.mark.parametrize("raw", [False, 7, "maybe", 1.5, {"value": 1}])
def test_unknown_decision_shapes_are_pending_and_unreliable(raw):
    assert normalize_decision(raw) == (DecisionStatus.PENDING, False)


@pytest.mark.parametrize("raw", [None, "", "   ", "{}", "not json", b"", "[1, 2]"])
def test_empty_or_invalid_payload_gives_empty_snapshot(raw):
    assert normalize(raw).is_empty()


def test_full_camel_case_payload():
    payload = {
        "appointmentId": "a1",
        "recipientRole": "freebarber",
        "appointmentRequester": 1,
        "status": 0,
        "storeSelectionType": 1,
        "customer": {"userId": "c1"},
        "freeBarber": {"userId": "fb1"},
        "store": {"storeId": "s1"},
        "storeDecision": 1,
        "freeBarberDecision": 1,
        "customerDecision": None,
        "note": "Evening works",
        "pendingExpiresAt": "2026-01-05T10:11:00Z",
    }

    snapshot = normalize(json.dumps(payload))

    assert snapshot.appointment_id == "a1"
    assert snapshot.recipient_role == Role.FREE_BARBER
    assert snapshot.requester == AppointmentRequester.CUSTOMER
    assert snapshot.status == AppointmentStatus.PENDING
    assert snapshot.store_selection_type == StoreSelectionType.STORE_SELECTION
    assert snapshot.parties == {Role.STORE: "s1", Role.FREE_BARBER: "fb1", Role.CUSTOMER: "c1"}
    assert snapshot.decisions[Role.STORE] == DecisionStatus.APPROVED
    assert snapshot.decisions[Role.CUSTOMER] == DecisionStatus.PENDING
    assert snapshot.store_id == "s1"
    assert snapshot.unreliable_decisions == set()
    assert snapshot.pending_expires_at == datetime(2026, 1, 5, 10, 11, tzinfo=UTC)


def test_boolean_decisions_are_flagged_per_role():
    snapshot = normalize(
        {
            "appointmentId": "a1",
            "customer": {"userId": "c1"},
            "store": {"storeId": "s1"},
            "storeDecision": True,
            "customerDecision": 1,
        }
    )

    assert snapshot.decisions[Role.STORE] == DecisionStatus.PENDING
    assert snapshot.unreliable_decisions == {Role.STORE}


def test_snake_case_keys_are_accepted():
    snapshot = normalize(
        {
            "appointment_id": "a9",
            "store_selection_type": "CustomRequest",
            "free_barber": {"user_id": "fb1"},
            "store": {"store_id": "s1"},
            "store_decision": 2,
        }
    )

    assert snapshot.appointment_id == "a9"
    assert snapshot.store_selection_type == StoreSelectionType.CUSTOM_REQUEST
    assert snapshot.parties == {Role.STORE: "s1", Role.FREE_BARBER: "fb1"}
    assert snapshot.decisions[Role.STORE] == DecisionStatus.REJECTED


def test_naive_timestamp_is_read_as_utc():
    assert parse_timestamp("2026-01-05T10:00:00") == datetime(2026, 1, 5, 10, 0, tzinfo=UTC)
    assert parse_timestamp("2026-01-05T12:00:00+02:00") == datetime(2026, 1, 5, 10, 0, tzinfo=UTC)
    assert parse_timestamp("yesterday") is None


def test_snapshot_rebuilds_appointment_for_display():
    created = datetime(2026, 1, 5, 10, 0, tzinfo=UTC)
    snapshot = normalize(
        {
            "appointmentId": "a1",
            "recipientRole": "store",
            "customer": {"userId": "c1"},
            "store": {"storeId": "s1"},
            "customerDecision": 1,
        }
    )

    appointment = snapshot.to_appointment(created)

    assert appointment.id == "a1"
    assert appointment.requester == AppointmentRequester.CUSTOMER
    assert appointment.decisions == {Role.STORE: DecisionStatus.PENDING, Role.CUSTOMER: DecisionStatus.APPROVED}
    assert appointment.created_at == created


def test_missing_requester_is_inferred_for_store_barber_requests():
    snapshot = normalize(
        {
            "appointmentId": "a1",
            "recipientRole": "store",
            "freeBarber": {"userId": "fb1"},
            "store": {"storeId": "s1"},
        }
    )

    appointment = snapshot.to_appointment(datetime(2026, 1, 5, tzinfo=UTC))

    assert appointment.requester == AppointmentRequester.FREE_BARBER
