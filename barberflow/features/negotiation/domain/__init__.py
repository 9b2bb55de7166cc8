"""
Domain layer for appointment negotiation.

Pydantic models and enums shared by the engine, repositories and API.
"""

from .clock import Clock, FrozenClock, SystemClock, system_clock  # noqa: F401
from .errors import AppointmentError, ErrorKind  # noqa: F401
from .models import (  # noqa: F401
    Appointment,
    AppointmentRequester,
    AppointmentStatus,
    DecisionStatus,
    Notification,
    NotificationType,
    Role,
    StoreSelectionType,
)
