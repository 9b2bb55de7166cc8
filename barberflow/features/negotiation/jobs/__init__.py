"""
Job runners for the negotiation feature.
"""

from .expiry_job import ExpiryScheduler, start_expiry_sweep_scheduler

__all__ = ["ExpiryScheduler", "start_expiry_sweep_scheduler"]
