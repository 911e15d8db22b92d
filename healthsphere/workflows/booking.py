"""
Booking Workflow - doctor, date, slot and reason, then submission.

The workflow owns one BookingDraft and walks it through:

    SELECTING_DOCTOR -> SELECTING_DATE -> SELECTING_SLOT -> COMPOSING
        -> SUBMITTING -> SUCCEEDED | FAILED

Changing an earlier choice invalidates everything downstream of it.
Slot fetches are tagged with a generation number and the doctor/date
they were issued for; a reply is applied only if that selection is
still the current one, so a slow reply for an old selection can never
overwrite the slots of a newer one.
"""

import calendar
from datetime import date, time
from enum import Enum
from typing import Callable, List, Optional, Tuple

import pydantic
from loguru import logger

from healthsphere.exceptions import RemoteError, ValidationError
from healthsphere.models.booking import (
    Appointment,
    BookingDraft,
    BookingOutcome,
    BookingResult,
    SlotSet,
)
from healthsphere.models.directory import DoctorSummary
from healthsphere.services.api_client import PortalApiClient
from healthsphere.services.directory import DirectoryClient
from healthsphere.services.session_store import SessionStore
from healthsphere.services.slots import SlotQueryService, parse_slot

NO_SLOTS_MESSAGE = "No available slots for the selected date"
DOCTORS_FAILED_MESSAGE = "Failed to load doctors"
SLOTS_FAILED_MESSAGE = "Failed to load available slots"
BOOKING_FAILED_MESSAGE = "Failed to schedule appointment"
BOOKING_SUCCESS_MESSAGE = "Appointment scheduled successfully!"


class BookingState(str, Enum):
    SELECTING_DOCTOR = "SELECTING_DOCTOR"
    SELECTING_DATE = "SELECTING_DATE"
    SELECTING_SLOT = "SELECTING_SLOT"
    COMPOSING = "COMPOSING"
    SUBMITTING = "SUBMITTING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class SlotView(str, Enum):
    """What the slot panel shows."""

    NEEDS_SELECTION = "NEEDS_SELECTION"
    LOADING = "LOADING"
    EMPTY = "EMPTY"
    AVAILABLE = "AVAILABLE"
    ERROR = "ERROR"


def add_months(day: date, months: int) -> date:
    """Same day n months later, clamped to the end of a shorter month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return day.replace(year=year, month=month, day=min(day.day, last_day))


class BookingWorkflow:
    """
    Client-side appointment booking for the signed-in patient.
    """

    def __init__(
        self,
        session_store: SessionStore,
        api: PortalApiClient,
        directory: Optional[DirectoryClient] = None,
        slots: Optional[SlotQueryService] = None,
        window_months: int = 1,
        today: Callable[[], date] = date.today,
    ):
        self._session_store = session_store
        self._api = api
        self._directory = directory or DirectoryClient(api)
        self._slots = slots or SlotQueryService(api)
        self._window_months = window_months
        self._today = today

        self.state = BookingState.SELECTING_DOCTOR
        self.draft = BookingDraft()

        self.doctors: List[DoctorSummary] = []
        self.doctors_loading = False
        self.directory_notice: Optional[str] = None

        self.slot_set: Optional[SlotSet] = None
        self.slots_loading = False
        self.slot_error: Optional[str] = None
        self._slot_generation = 0

        self.error: Optional[str] = None
        self.notice: Optional[str] = None
        self.last_result: Optional[BookingResult] = None

    # ==================== Directory ====================

    async def load_doctors(self) -> List[DoctorSummary]:
        """
        Fetch the doctor list. Failures leave an error banner and an
        empty list; calling again retries.
        """
        self.doctors_loading = True
        self.directory_notice = None
        try:
            listing = await self._directory.list_doctors()
        except RemoteError as e:
            logger.error(f"Error loading doctors: {e}")
            self.error = DOCTORS_FAILED_MESSAGE
            self.doctors = []
        else:
            self.doctors = listing.doctors
            self.directory_notice = listing.notice
        finally:
            self.doctors_loading = False
        return self.doctors

    # ==================== Selection ====================

    @property
    def date_window(self) -> Tuple[date, date]:
        """Bookable dates: today through the same day next month, inclusive."""
        today = self._today()
        return today, add_months(today, self._window_months)

    async def select_doctor(self, doctor_id: int) -> None:
        """
        Choose the doctor. A different doctor invalidates the slots and
        the chosen slot; with a date already set, slots are refetched.

        Raises:
            ValidationError: if the doctor is not in the loaded directory
        """
        if doctor_id is None or not any(d.doctor_id == doctor_id for d in self.doctors):
            raise ValidationError(f"Unknown doctor: {doctor_id}", ["doctorId"])

        changed = self.draft.doctor_id != doctor_id
        self.draft.doctor_id = doctor_id
        if changed:
            self._invalidate_slots()

        if self.draft.date is None:
            self.state = BookingState.SELECTING_DATE
        elif changed or self.slot_set is None:
            await self._refresh_slots()

    async def select_date(self, day: date) -> None:
        """
        Choose the date and fetch its slots.

        Raises:
            ValidationError: without a doctor, or outside the date window
        """
        if self.draft.doctor_id is None:
            self.state = BookingState.SELECTING_DOCTOR
            raise ValidationError("Select a doctor first", ["doctorId"])

        earliest, latest = self.date_window
        if day is None or not earliest <= day <= latest:
            raise ValidationError(
                f"Choose a date between {earliest.isoformat()} and {latest.isoformat()}",
                ["date"],
            )

        self.draft.date = day
        self._invalidate_slots()
        await self._refresh_slots()

    async def retry_slots(self) -> None:
        """Re-issue the slot fetch for the current doctor and date."""
        if self.draft.doctor_id is None or self.draft.date is None:
            missing = [name for name in ("doctorId", "date") if name in self.draft.missing_fields]
            raise ValidationError("Select a doctor and a date first", missing)
        await self._refresh_slots()

    def select_slot(self, slot: time | str) -> None:
        """
        Choose one of the fetched slots.

        Raises:
            ValidationError: while slots are loading, or if the slot was not offered
        """
        try:
            slot = parse_slot(slot)
        except ValueError as e:
            raise ValidationError(str(e), ["slot"]) from e

        if self.slots_loading:
            raise ValidationError("Available slots are still loading", ["slot"])
        if self.slot_set is None or slot not in self.slot_set.slots:
            raise ValidationError(f"Slot {slot.strftime('%H:%M')} is not available", ["slot"])

        self.draft.slot = slot
        self.state = BookingState.COMPOSING

    def set_reason(self, text: str) -> None:
        self.draft.reason_text = text or ""

    @property
    def slot_view(self) -> SlotView:
        if self.draft.doctor_id is None or self.draft.date is None:
            return SlotView.NEEDS_SELECTION
        if self.slots_loading:
            return SlotView.LOADING
        if self.slot_error:
            return SlotView.ERROR
        if self.slot_set is None:
            return SlotView.NEEDS_SELECTION
        if self.slot_set.is_empty:
            return SlotView.EMPTY
        return SlotView.AVAILABLE

    @property
    def slot_message(self) -> Optional[str]:
        view = self.slot_view
        if view is SlotView.EMPTY:
            return NO_SLOTS_MESSAGE
        if view is SlotView.ERROR:
            return self.slot_error
        return None

    def _invalidate_slots(self) -> None:
        # bumping the generation also orphans any fetch still in flight
        self._slot_generation += 1
        self.slot_set = None
        self.slot_error = None
        self.slots_loading = False
        self.draft.slot = None

    def _is_current(self, generation: int, doctor_id: int, day: date) -> bool:
        return (
            generation == self._slot_generation
            and self.draft.doctor_id == doctor_id
            and self.draft.date == day
        )

    async def _refresh_slots(self) -> None:
        self._slot_generation += 1
        generation = self._slot_generation
        doctor_id, day = self.draft.doctor_id, self.draft.date

        self.state = BookingState.SELECTING_SLOT
        self.slot_set = None
        self.slot_error = None
        self.draft.slot = None
        self.slots_loading = True

        try:
            slots = await self._slots.list_slots(doctor_id, day)
        except RemoteError as e:
            if not self._is_current(generation, doctor_id, day):
                logger.debug(f"Ignoring failed stale slot fetch for doctor {doctor_id} on {day}")
                return
            logger.error(f"Error loading available slots: {e}")
            self.slots_loading = False
            self.slot_error = SLOTS_FAILED_MESSAGE
            self.error = SLOTS_FAILED_MESSAGE
            return

        if not self._is_current(generation, doctor_id, day):
            logger.debug(f"Discarding stale slots for doctor {doctor_id} on {day}")
            return

        self.slot_set = SlotSet(doctor_id=doctor_id, date=day, slots=slots)
        self.slots_loading = False

    # ==================== Submission ====================

    async def submit(self) -> BookingResult:
        """
        Validate the draft and book the appointment.

        Missing fields short-circuit with a validation result and no
        network call. A remote failure keeps the draft for a retry.
        """
        if self.state is BookingState.SUBMITTING:
            raise ValidationError("A booking is already being submitted")

        missing = self.draft.missing_fields
        if missing:
            self.error = "Please fill all fields"
            self.last_result = BookingResult.validation_error(missing)
            return self.last_result

        session = self._session_store.get()
        if session is None:
            return self._fail("You are signed out. Please sign in again.")

        request = self.draft.to_request(patient_id=session.subject_id)
        self.state = BookingState.SUBMITTING
        self.error = None
        logger.info(f"Scheduling appointment: {request.to_payload()}")

        try:
            response = await self._api.schedule_appointment(request.to_payload())
        except RemoteError as e:
            return self._fail(e.message or BOOKING_FAILED_MESSAGE)

        if not response:
            return self._fail("No response data received")

        appointment = None
        if isinstance(response, dict):
            try:
                appointment = Appointment.model_validate(response)
            except pydantic.ValidationError:
                logger.debug("Booking response is not an appointment record")

        self.state = BookingState.SUCCEEDED
        self.last_result = BookingResult(
            outcome=BookingOutcome.SUCCESS,
            message=BOOKING_SUCCESS_MESSAGE,
            appointment=appointment,
        )
        self.notice = BOOKING_SUCCESS_MESSAGE
        logger.info(f"Appointment scheduled for {request.appointment_date_time.isoformat()}")

        self.draft.reset()
        self._invalidate_slots()
        self.state = BookingState.SELECTING_DOCTOR
        return self.last_result

    def _fail(self, message: str) -> BookingResult:
        logger.error(f"Error scheduling appointment: {message}")
        self.state = BookingState.FAILED
        self.error = message
        self.last_result = BookingResult.remote_error(message)
        return self.last_result

    # ==================== Banners ====================

    def dismiss_error(self) -> None:
        self.error = None

    def dismiss_notice(self) -> None:
        self.notice = None
