"""
Booking-related data models.
"""

from datetime import date as Date
from datetime import datetime, time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from healthsphere.config import DEFAULT_APPOINTMENT_STATUS, DEFAULT_APPOINTMENT_TYPE

# Field names as reported back to the user when a draft is incomplete
REQUIRED_DRAFT_FIELDS = ("doctorId", "date", "slot", "reason")


class SlotSet(BaseModel):
    """
    Bookable times for one doctor on one date.

    An empty slot list is a valid result meaning "no openings".
    """

    doctor_id: int
    date: Date
    slots: List[time] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def is_empty(self) -> bool:
        return not self.slots


class AppointmentRequest(BaseModel):
    """
    Submission payload for the backend's booking endpoint.
    """

    doctor_id: int
    patient_id: int
    appointment_date_time: datetime
    type: str = DEFAULT_APPOINTMENT_TYPE
    reason: str
    status: str = DEFAULT_APPOINTMENT_STATUS

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    @field_serializer("appointment_date_time")
    def serialize_date_time(self, value: datetime) -> str:
        return value.isoformat(timespec="seconds")

    def to_payload(self) -> dict:
        """JSON body with the backend's camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class BookingDraft(BaseModel):
    """
    The in-progress booking input, owned by a single workflow.
    """

    doctor_id: Optional[int] = None
    date: Optional[Date] = None
    slot: Optional[time] = None
    reason_text: str = ""

    model_config = {"validate_assignment": True}

    @property
    def missing_fields(self) -> List[str]:
        """Names of required fields that are still empty."""
        present = {
            "doctorId": self.doctor_id is not None,
            "date": self.date is not None,
            "slot": self.slot is not None,
            "reason": bool(self.reason_text.strip()),
        }
        return [name for name in REQUIRED_DRAFT_FIELDS if not present[name]]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields

    @property
    def is_empty(self) -> bool:
        return (
            self.doctor_id is None
            and self.date is None
            and self.slot is None
            and not self.reason_text
        )

    def reset(self) -> None:
        """Clear every field after a successful submission."""
        self.doctor_id = None
        self.date = None
        self.slot = None
        self.reason_text = ""

    def to_request(self, patient_id: int) -> AppointmentRequest:
        """
        Freeze the draft into a submission payload.

        Raises:
            ValueError: if the draft is incomplete
        """
        if not self.is_complete:
            raise ValueError(f"Draft is missing: {', '.join(self.missing_fields)}")
        return AppointmentRequest(
            doctor_id=self.doctor_id,
            patient_id=patient_id,
            appointment_date_time=datetime.combine(self.date, self.slot),
            reason=self.reason_text.strip(),
        )


class Appointment(BaseModel):
    """
    An appointment as returned by the backend.
    """

    id: Optional[int] = None
    doctor_id: Optional[int] = None
    patient_id: Optional[int] = None
    appointment_date_time: datetime
    type: str = DEFAULT_APPOINTMENT_TYPE
    reason: str = ""
    status: str = DEFAULT_APPOINTMENT_STATUS

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class BookingOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    REMOTE_ERROR = "REMOTE_ERROR"


class BookingResult(BaseModel):
    """
    Result of a booking attempt.
    """

    outcome: BookingOutcome = Field(description="Which way the attempt ended")
    message: str = Field(description="Human-readable result message")
    missing_fields: List[str] = Field(
        default_factory=list, description="Required fields left empty"
    )
    appointment: Optional[Appointment] = Field(
        default=None, description="Appointment created by the backend"
    )

    @property
    def success(self) -> bool:
        return self.outcome is BookingOutcome.SUCCESS

    @classmethod
    def validation_error(cls, missing_fields: List[str]) -> "BookingResult":
        return cls(
            outcome=BookingOutcome.VALIDATION_ERROR,
            message="Please fill all fields",
            missing_fields=missing_fields,
        )

    @classmethod
    def remote_error(cls, message: str) -> "BookingResult":
        return cls(outcome=BookingOutcome.REMOTE_ERROR, message=message)
