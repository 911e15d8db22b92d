"""
User-facing workflows of the HealthSphere portal.
"""

from .booking import BookingState, BookingWorkflow, SlotView

__all__ = [
    "BookingState",
    "BookingWorkflow",
    "SlotView",
]
