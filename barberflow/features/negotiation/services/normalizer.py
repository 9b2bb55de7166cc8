"""
Notification payload normalization.

Producers have emitted per-role decision fields in three shapes over
time: missing/null, a legacy boolean, and the integer DecisionStatus.
Everything downstream of this module only ever sees DecisionStatus.
Booleans are never trusted as a terminal answer.
"""

import json
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from barberflow.features.negotiation.domain.models import (
    Appointment,
    AppointmentRequester,
    AppointmentStatus,
    DecisionStatus,
    Role,
    StoreSelectionType,
)
from barberflow.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# payload key -> role, camelCase first (what the backend serializes)
DECISION_KEYS: dict[Role, tuple[str, ...]] = {
    Role.STORE: ("storeDecision", "store_decision"),
    Role.FREE_BARBER: ("freeBarberDecision", "free_barber_decision", "freebarberDecision"),
    Role.CUSTOMER: ("customerDecision", "customer_decision"),
}

PARTY_KEYS: dict[Role, tuple[str, ...]] = {
    Role.STORE: ("store",),
    Role.FREE_BARBER: ("freeBarber", "free_barber", "freebarber"),
    Role.CUSTOMER: ("customer",),
}

PARTY_ID_KEYS = ("storeOwnerUserId", "storeId", "userId", "id", "store_id", "user_id")


class AppointmentSnapshot(BaseModel):
    """Strict view of a notification payload."""

    appointment_id: str | None = None
    recipient_role: Role | None = None
    requester: AppointmentRequester | None = None
    status: AppointmentStatus = AppointmentStatus.PENDING
    store_selection_type: StoreSelectionType | None = None
    parties: dict[Role, str] = Field(default_factory=dict)
    decisions: dict[Role, DecisionStatus] = Field(default_factory=dict)
    unreliable_decisions: set[Role] = Field(default_factory=set)
    note: str | None = None
    pending_expires_at: datetime | None = None
    store_id: str | None = None

    def is_empty(self) -> bool:
        return self.appointment_id is None and not self.parties

    def to_appointment(self, created_at: datetime) -> Appointment:
        """
        Rebuild an Appointment for display decisions when only the
        notification is available. created_at is the notification's
        emission time, the best creation estimate a payload offers.
        """
        return Appointment(
            id=self.appointment_id or "",
            requester=self.requester or _infer_requester(self),
            store_selection_type=self.store_selection_type,
            status=self.status,
            created_at=created_at,
            pending_expires_at=self.pending_expires_at,
            parties=dict(self.parties),
            decisions={role: self.decisions.get(role, DecisionStatus.PENDING) for role in self.parties},
            note=self.note,
            store_id=self.store_id,
        )


def normalize(raw: Any) -> AppointmentSnapshot:
    """Parse a raw payload (dict or JSON text) into an AppointmentSnapshot."""
    data = _load(raw)
    if not data:
        return AppointmentSnapshot()

    parties = _parties(data)
    decisions: dict[Role, DecisionStatus] = {}
    unreliable: set[Role] = set()
    for role, keys in DECISION_KEYS.items():
        value = _first(data, keys)
        decision, reliable = normalize_decision(value)
        if not reliable:
            unreliable.add(role)
        if role in parties or value is not None:
            decisions[role] = decision

    selection = _int_enum(StoreSelectionType, _first(data, ("storeSelectionType", "store_selection_type")))
    store_id = parties.get(Role.STORE) if selection == StoreSelectionType.STORE_SELECTION else None

    snapshot = AppointmentSnapshot(
        appointment_id=_text(_first(data, ("appointmentId", "appointment_id"))),
        recipient_role=_role(_first(data, ("recipientRole", "recipient_role"))),
        requester=_int_enum(AppointmentRequester, _first(data, ("appointmentRequester", "requester"))),
        status=_int_enum(AppointmentStatus, _first(data, ("status",))) or AppointmentStatus.PENDING,
        store_selection_type=selection,
        parties=parties,
        decisions=decisions,
        unreliable_decisions=unreliable,
        note=_text(data.get("note")),
        pending_expires_at=parse_timestamp(_first(data, ("pendingExpiresAt", "pending_expires_at"))),
        store_id=store_id,
    )

    if unreliable:
        logger.debug(
            "Payload carried legacy decision values",
            appointment_id=snapshot.appointment_id,
            roles=sorted(role.value for role in unreliable),
        )
    return snapshot


def normalize_decision(value: Any) -> tuple[DecisionStatus, bool]:
    """
    Map one raw decision field to (DecisionStatus, reliable).

    Absent/null is a plain pending decision. Booleans and unknown values
    read as pending but are flagged unreliable.
    """
    if value is None:
        return DecisionStatus.PENDING, True

    # bool is an int subclass; check it first
    if isinstance(value, bool):
        return DecisionStatus.PENDING, False

    decision = _int_enum(DecisionStatus, value)
    if decision is None:
        return DecisionStatus.PENDING, False
    return decision, True


def parse_timestamp(value: Any) -> datetime | None:
    """Parse ISO timestamps; offset-less values are UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _load(raw: Any) -> dict:
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (str, bytes)):
        text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        if not text.strip():
            return {}
        try:
            loaded = json.loads(text)
        except ValueError:
            logger.warning("Unparseable notification payload", length=len(text))
            return {}
        return loaded if isinstance(loaded, dict) else {}
    return {}


def _first(data: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _int_enum(enum_cls, value: Any):
    """Accept ints, digit strings and member names; anything else is None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, int):
        try:
            return enum_cls(value)
        except ValueError:
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return _int_enum(enum_cls, int(text))
        key = text.upper().replace(" ", "_")
        for member in enum_cls:
            if member.name.replace("_", "") == key.replace("_", ""):
                return member
    return None


def _role(value: Any) -> Role | None:
    if not isinstance(value, str):
        return None
    try:
        return Role(value.strip().lower().replace("_", ""))
    except ValueError:
        return None


def _text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _parties(data: dict) -> dict[Role, str]:
    parties: dict[Role, str] = {}
    for role, keys in PARTY_KEYS.items():
        ref = _first(data, keys)
        if not ref:
            continue
        if isinstance(ref, dict):
            party_id = _first(ref, PARTY_ID_KEYS)
            parties[role] = str(party_id) if party_id is not None else ""
        else:
            parties[role] = str(ref)
    return parties


def _infer_requester(snapshot: AppointmentSnapshot) -> AppointmentRequester:
    """Best guess when an old payload omits appointmentRequester."""
    if snapshot.store_selection_type == StoreSelectionType.STORE_SELECTION or Role.CUSTOMER in snapshot.parties:
        return AppointmentRequester.CUSTOMER
    # Store <-> FreeBarber request: the recipient of a Created payload is the responder
    if snapshot.recipient_role == Role.STORE:
        return AppointmentRequester.FREE_BARBER
    return AppointmentRequester.STORE
