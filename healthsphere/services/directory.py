"""
Directory Client - lists the doctors a patient can book with.
"""

from typing import List, NamedTuple, Optional

from loguru import logger

from healthsphere.models.directory import DoctorSummary
from healthsphere.services.api_client import PortalApiClient
from healthsphere.services.envelopes import DOCTOR_DECODERS, normalize

DIRECTORY_UNAVAILABLE = "The doctor directory is unavailable right now. Please try again later."


class DirectoryListing(NamedTuple):
    """Doctors in source order, plus a notice when the answer was not understood."""

    doctors: List[DoctorSummary]
    notice: Optional[str] = None


class DirectoryClient:
    """
    Fetches the doctor directory. Always refetched, never cached.
    """

    def __init__(self, api: PortalApiClient):
        self._api = api

    async def list_doctors(self) -> DirectoryListing:
        """
        Fetch and normalize the doctor list.

        Returns:
            DirectoryListing; an unrecognized response shape yields an
            empty list with a "directory unavailable" notice

        Raises:
            RemoteError: on network or server failure
        """
        payload = await self._api.get_doctors()
        normalized = normalize(payload, DOCTOR_DECODERS)

        if not normalized.recognized:
            logger.warning(f"Unrecognized doctor directory response: {type(payload).__name__}")
            return DirectoryListing([], DIRECTORY_UNAVAILABLE)

        doctors = []
        for record in normalized.items:
            try:
                doctors.append(DoctorSummary.from_record(record))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping doctor record: {e}")

        logger.info(f"Found {len(doctors)} doctors ({normalized.matched} envelope)")
        return DirectoryListing(doctors)
