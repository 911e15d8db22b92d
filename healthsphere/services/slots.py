"""
Slot Query Service - bookable times for a doctor on a date.
"""

from datetime import date, time
from typing import List, Optional

from loguru import logger

from healthsphere.exceptions import ValidationError
from healthsphere.services.api_client import PortalApiClient
from healthsphere.services.envelopes import SLOT_DECODERS, normalize


def parse_slot(value) -> time:
    """Parse "HH:MM" or "HH:MM:SS" into a time of day."""
    if isinstance(value, time):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Slot is not a time string: {value!r}")
    return time.fromisoformat(value.strip())


class SlotQueryService:
    """Queries available slots. Only called with both a doctor and a date."""

    def __init__(self, api: PortalApiClient):
        self._api = api

    async def list_slots(self, doctor_id: Optional[int], day: Optional[date]) -> List[time]:
        """
        Fetch the open slots, in backend order.

        An empty list means "no openings" and is not an error.

        Raises:
            ValidationError: if doctor_id or day is missing
            RemoteError: on network or server failure
        """
        missing = [
            name for name, value in (("doctorId", doctor_id), ("date", day)) if value is None
        ]
        if missing:
            raise ValidationError("Select a doctor and a date first", missing)

        payload = await self._api.get_available_slots(doctor_id, day)
        normalized = normalize(payload, SLOT_DECODERS)
        if not normalized.recognized:
            logger.warning(f"Unrecognized slot response for doctor {doctor_id} on {day}")

        slots = []
        for raw in normalized.items:
            try:
                slots.append(parse_slot(raw))
            except ValueError as e:
                logger.warning(f"Skipping slot {raw!r}: {e}")

        logger.info(f"Found {len(slots)} slots for doctor {doctor_id} on {day}")
        return slots
