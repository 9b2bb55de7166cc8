"""Error taxonomy for negotiation commands."""

from enum import Enum


class ErrorKind(str, Enum):
    NOT_PARTICIPANT = "not_participant"
    EXPIRED = "expired"
    ALREADY_DECIDED = "already_decided"
    INVALID_TRANSITION = "invalid_transition"
    NOT_FOUND = "not_found"


class AppointmentError(Exception):
    """Raised when a negotiation command cannot be applied."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        appointment_id: str | None = None,
        status=None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.appointment_id = appointment_id
        # Status of the appointment at the time the command was refused
        self.status = status

    def __repr__(self) -> str:
        return f"AppointmentError(kind={self.kind.value!r}, message={self.message!r})"
