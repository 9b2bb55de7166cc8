"""
Service layer for the negotiation feature.
"""

from .decision_matrix import Actions, DecisionView, Outcome, evaluate
from .expiry_policy import ExpiryPolicy, default_policy
from .locks import AppointmentLocks
from .negotiation_service import DecisionResult, NegotiationService
from .normalizer import AppointmentSnapshot, normalize, normalize_decision
from .notification_service import NotificationService, NotificationView, build_payload
from .transition_engine import OutgoingNotification, Transition, TransitionEngine, default_engine

__all__ = [
    "Actions",
    "AppointmentLocks",
    "AppointmentSnapshot",
    "DecisionResult",
    "DecisionView",
    "ExpiryPolicy",
    "NegotiationService",
    "NotificationService",
    "NotificationView",
    "OutgoingNotification",
    "Outcome",
    "Transition",
    "TransitionEngine",
    "build_payload",
    "default_engine",
    "default_policy",
    "evaluate",
    "normalize",
    "normalize_decision",
]
