"""
Read-only listings: appointments and medical records.
"""

from typing import List

import pydantic
from loguru import logger

from healthsphere.models.booking import Appointment
from healthsphere.models.records import MedicalRecord
from healthsphere.services.api_client import PortalApiClient
from healthsphere.services.envelopes import LISTING_DECODERS, normalize


def _parse_all(model, items: list, what: str) -> list:
    parsed = []
    for item in items:
        try:
            parsed.append(model.model_validate(item))
        except pydantic.ValidationError as e:
            logger.warning(f"Skipping {what}: {e.error_count()} invalid field(s)")
    return parsed


class RecordsService:
    """Thin typed wrapper around the listing endpoints."""

    def __init__(self, api: PortalApiClient):
        self._api = api

    async def list_patient_appointments(self, patient_id: int) -> List[Appointment]:
        payload = await self._api.get_patient_appointments(patient_id)
        items = normalize(payload, LISTING_DECODERS).items
        return _parse_all(Appointment, items, "appointment")

    async def list_doctor_appointments(self, doctor_id: int) -> List[Appointment]:
        payload = await self._api.get_doctor_appointments(doctor_id)
        items = normalize(payload, LISTING_DECODERS).items
        return _parse_all(Appointment, items, "appointment")

    async def list_patient_records(self, patient_id: int) -> List[MedicalRecord]:
        payload = await self._api.get_patient_records(patient_id)
        items = normalize(payload, LISTING_DECODERS).items
        return _parse_all(MedicalRecord, items, "medical record")
