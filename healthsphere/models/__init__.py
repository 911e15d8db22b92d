"""
Data models for the HealthSphere portal client.
"""

from .booking import (
    Appointment,
    AppointmentRequest,
    BookingDraft,
    BookingOutcome,
    BookingResult,
    SlotSet,
)
from .directory import DoctorSummary
from .records import MedicalRecord
from .session import Role, Session

__all__ = [
    "Role",
    "Session",
    "DoctorSummary",
    "SlotSet",
    "BookingDraft",
    "AppointmentRequest",
    "Appointment",
    "BookingOutcome",
    "BookingResult",
    "MedicalRecord",
]
