"""
Medical record data models.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class MedicalRecord(BaseModel):
    """
    A patient's medical record entry, read-only on the client.

    Unknown backend fields (vitals, attachments) are kept as extras.
    """

    id: Optional[int] = None
    patient_id: Optional[int] = None
    doctor_id: Optional[int] = None
    record_date: Optional[datetime] = None
    diagnosis: str = ""
    treatment: str = ""
    notes: str = ""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")
