"""
Appointment negotiation feature package.

Keeps every layer of the negotiation flow co-located: domain models, the
pure policy/engine/matrix services, repositories, the expiry job and the
API routers.
"""

# Re-export the primary building blocks for easy access.
from .domain.models import Appointment, AppointmentStatus, Notification, Role  # noqa: F401
from .services.negotiation_service import DecisionResult, NegotiationService  # noqa: F401
from .jobs.expiry_job import ExpiryScheduler, start_expiry_sweep_scheduler  # noqa: F401
from .runtime import NegotiationRuntime, build_runtime  # noqa: F401

# Routers stay in .api (imported by barberflow.main); auth depends on the domain package.
