"""
Directory data models.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DoctorSummary(BaseModel):
    """
    Read-only projection of a doctor as listed by the backend.
    """

    doctor_id: int = Field(description="Doctor identifier used for bookings")
    name: str = Field(description="Display name, without title")
    specialization: Optional[str] = Field(default=None, description="Medical specialty")

    model_config = ConfigDict(frozen=True)

    @property
    def label(self) -> str:
        """Human-readable label for a selection list."""
        if self.specialization:
            return f"Dr. {self.name} - {self.specialization}"
        return f"Dr. {self.name}"

    @classmethod
    def from_record(cls, record: dict) -> "DoctorSummary":
        """
        Project a backend doctor record.

        Records either carry the profile flat (id, firstName, lastName) or
        link a user account (userId, user.firstName, user.lastName).

        Raises:
            ValueError: if the record has no usable identifier or a malformed user
        """
        if not isinstance(record, dict):
            raise ValueError(f"Doctor record is not an object: {record!r}")

        doctor_id = record.get("userId") or record.get("id")
        if doctor_id is None:
            raise ValueError(f"Doctor record has no identifier: {record!r}")

        user = record.get("user") or {}
        if not isinstance(user, dict):
            raise ValueError(f"Doctor record has a malformed user: {user!r}")
        first = user.get("firstName") or record.get("firstName") or ""
        last = user.get("lastName") or record.get("lastName") or ""

        try:
            doctor_id = int(doctor_id)
        except TypeError as e:
            raise ValueError(f"Doctor identifier is not a number: {doctor_id!r}") from e

        return cls(
            doctor_id=doctor_id,
            name=f"{first} {last}".strip(),
            specialization=record.get("specialization") or None,
        )
