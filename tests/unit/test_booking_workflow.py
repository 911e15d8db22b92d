"""
Unit tests for the Booking Workflow state machine.
"""

import asyncio
from datetime import date, time

import pytest

from healthsphere.exceptions import RemoteError, ValidationError
from healthsphere.models.booking import BookingDraft, BookingOutcome
from healthsphere.models.directory import DoctorSummary
from healthsphere.models.session import Role, Session
from healthsphere.services.directory import DirectoryListing
from healthsphere.services.session_store import MemoryStorage, SessionStore
from healthsphere.workflows.booking import (
    NO_SLOTS_MESSAGE,
    BookingState,
    BookingWorkflow,
    SlotView,
    add_months,
)

TODAY = date(2024, 5, 20)
JUNE_1 = date(2024, 6, 1)
JUNE_3 = date(2024, 6, 3)

DOCTORS = [
    DoctorSummary(doctor_id=7, name="Sarah Johnson", specialization="Cardiology"),
    DoctorSummary(doctor_id=8, name="Michael Chen"),
]


# ============================================================================
# Fakes
# ============================================================================


class FakeDirectory:
    def __init__(self, doctors=DOCTORS, error=None):
        self.doctors = doctors
        self.error = error
        self.calls = 0

    async def list_doctors(self):
        self.calls += 1
        if self.error:
            raise self.error
        return DirectoryListing(list(self.doctors))


class FakeSlots:
    """Answers immediately from a table keyed by (doctor_id, date)."""

    def __init__(self, table=None, error=None):
        self.table = table or {}
        self.error = error
        self.calls = []

    async def list_slots(self, doctor_id, day):
        self.calls.append((doctor_id, day))
        if self.error:
            raise self.error
        return [time.fromisoformat(s) for s in self.table.get((doctor_id, day), [])]


class GatedSlots:
    """Holds every answer until the test releases it."""

    def __init__(self, table):
        self.table = table
        self.gates = {}

    async def list_slots(self, doctor_id, day):
        gate = self.gates.setdefault((doctor_id, day), asyncio.Event())
        await gate.wait()
        return [time.fromisoformat(s) for s in self.table[(doctor_id, day)]]

    def release(self, doctor_id, day):
        self.gates.setdefault((doctor_id, day), asyncio.Event()).set()


class FakeBookingApi:
    def __init__(self, response=None, error=None):
        self.response = response if response is not None else {"id": 101}
        self.error = error
        self.payloads = []

    async def schedule_appointment(self, payload):
        self.payloads.append(payload)
        if self.error:
            raise self.error
        return self.response


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def store():
    store = SessionStore(MemoryStorage())
    store.set(Session(id=42, display_name="Jane Roe", role=Role.PATIENT, credential_token="tok"))
    return store


@pytest.fixture
def api():
    return FakeBookingApi()


def make_workflow(store, api, slots=None, directory=None) -> BookingWorkflow:
    return BookingWorkflow(
        store,
        api,
        directory=directory or FakeDirectory(),
        slots=slots or FakeSlots({(7, JUNE_1): ["09:00", "09:30"]}),
        today=lambda: TODAY,
    )


async def run_pending():
    """Let spawned tasks advance to their next suspension point."""
    for _ in range(3):
        await asyncio.sleep(0)


# ============================================================================
# Tests
# ============================================================================


class TestHappyPath:
    """Test the full booking scenario."""

    @pytest.mark.asyncio
    async def test_book_checkup(self, store, api):
        workflow = make_workflow(store, api)
        await workflow.load_doctors()
        assert workflow.state is BookingState.SELECTING_DOCTOR

        await workflow.select_doctor(7)
        assert workflow.state is BookingState.SELECTING_DATE

        await workflow.select_date(JUNE_1)
        assert workflow.state is BookingState.SELECTING_SLOT
        assert workflow.slot_view is SlotView.AVAILABLE
        assert workflow.slot_set.slots == [time(9, 0), time(9, 30)]

        workflow.select_slot("09:00")
        assert workflow.state is BookingState.COMPOSING

        workflow.set_reason("checkup")
        result = await workflow.submit()

        assert result.outcome is BookingOutcome.SUCCESS
        assert api.payloads == [
            {
                "doctorId": 7,
                "patientId": 42,
                "appointmentDateTime": "2024-06-01T09:00:00",
                "type": "CONSULTATION",
                "reason": "checkup",
                "status": "SCHEDULED",
            }
        ]
        assert workflow.state is BookingState.SELECTING_DOCTOR
        assert workflow.draft.is_empty
        assert workflow.slot_set is None
        assert workflow.notice == "Appointment scheduled successfully!"

    @pytest.mark.asyncio
    async def test_appointment_returned_by_backend_is_parsed(self, store):
        api = FakeBookingApi(
            response={
                "id": 101,
                "doctorId": 7,
                "patientId": 42,
                "appointmentDateTime": "2024-06-01T09:00:00",
                "type": "CONSULTATION",
                "reason": "checkup",
                "status": "SCHEDULED",
            }
        )
        workflow = make_workflow(store, api)
        await workflow.load_doctors()
        await workflow.select_doctor(7)
        await workflow.select_date(JUNE_1)
        workflow.select_slot(time(9, 30))
        workflow.set_reason("checkup")

        result = await workflow.submit()
        assert result.appointment.id == 101
        assert result.appointment.appointment_date_time.hour == 9


class TestValidation:
    """Test that incomplete drafts never reach the network."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["doctor_id", "date", "slot", "reason_text"])
    async def test_missing_field(self, store, api, missing):
        workflow = make_workflow(store, api)
        fields = {"doctor_id": 7, "date": JUNE_1, "slot": time(9, 0), "reason_text": "checkup"}
        fields[missing] = "" if missing == "reason_text" else None
        workflow.draft = BookingDraft(**fields)

        result = await workflow.submit()

        assert result.outcome is BookingOutcome.VALIDATION_ERROR
        assert len(result.missing_fields) == 1
        assert api.payloads == []

    @pytest.mark.asyncio
    async def test_blank_reason_is_missing(self, store, api):
        workflow = make_workflow(store, api)
        workflow.draft = BookingDraft(doctor_id=7, date=JUNE_1, slot=time(9, 0), reason_text="   ")
        result = await workflow.submit()
        assert result.missing_fields == ["reason"]
        assert api.payloads == []

    @pytest.mark.asyncio
    async def test_empty_draft_lists_every_field(self, store, api):
        result = await make_workflow(store, api).submit()
        assert result.missing_fields == ["doctorId", "date", "slot", "reason"]
        assert api.payloads == []

    @pytest.mark.asyncio
    async def test_unknown_doctor(self, store, api):
        workflow = make_workflow(store, api)
        await workflow.load_doctors()
        with pytest.raises(ValidationError):
            await workflow.select_doctor(99)
        assert workflow.draft.doctor_id is None

    @pytest.mark.asyncio
    async def test_date_requires_doctor(self, store, api):
        workflow = make_workflow(store, api)
        with pytest.raises(ValidationError) as exc_info:
            await workflow.select_date(JUNE_1)
        assert exc_info.value.missing_fields == ["doctorId"]
        assert workflow.state is BookingState.SELECTING_DOCTOR

    @pytest.mark.asyncio
    async def test_slot_must_be_offered(self, store, api):
        workflow = make_workflow(store, api)
        await workflow.load_doctors()
        await workflow.select_doctor(7)
        await workflow.select_date(JUNE_1)
        with pytest.raises(ValidationError):
            workflow.select_slot("13:00")
        with pytest.raises(ValidationError):
            workflow.select_slot("lunchtime")

    @pytest.mark.asyncio
    async def test_signed_out_submission_fails(self, store, api):
        workflow = make_workflow(store, api)
        workflow.draft = BookingDraft(doctor_id=7, date=JUNE_1, slot=time(9, 0), reason_text="checkup")
        store.clear()

        result = await workflow.submit()
        assert result.outcome is BookingOutcome.REMOTE_ERROR
        assert api.payloads == []


class TestDateWindow:
    """Test the bookable date range."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("day", [TODAY, JUNE_1, date(2024, 6, 20)])
    async def test_dates_inside_window(self, store, api, day):
        workflow = make_workflow(store, api)
        await workflow.load_doctors()
        await workflow.select_doctor(7)
        await workflow.select_date(day)
        assert workflow.draft.date == day

    @pytest.mark.asyncio
    @pytest.mark.parametrize("day", [date(2024, 5, 19), date(2024, 6, 21)])
    async def test_dates_outside_window(self, store, api, day):
        workflow = make_workflow(store, api)
        await workflow.load_doctors()
        await workflow.select_doctor(7)
        with pytest.raises(ValidationError):
            await workflow.select_date(day)
        assert workflow.draft.date is None

    def test_window_bounds(self, store, api):
        assert make_workflow(store, api).date_window == (TODAY, date(2024, 6, 20))

    @pytest.mark.parametrize(
        "day, expected",
        [
            (date(2024, 1, 31), date(2024, 2, 29)),
            (date(2023, 1, 31), date(2023, 2, 28)),
            (date(2024, 12, 15), date(2025, 1, 15)),
        ],
    )
    def test_add_months_clamps(self, day, expected):
        assert add_months(day, 1) == expected


class TestInvalidation:
    """Test that earlier choices invalidate later ones."""

    @pytest.mark.asyncio
    async def test_changing_doctor_clears_slot_and_refetches(self, store, api):
        slots = FakeSlots({(7, JUNE_1): ["09:00"], (8, JUNE_1): ["14:00"]})
        workflow = make_workflow(store, api, slots=slots)
        await workflow.load_doctors()
        await workflow.select_doctor(7)
        await workflow.select_date(JUNE_1)
        workflow.select_slot("09:00")

        await workflow.select_doctor(8)

        assert workflow.draft.slot is None
        assert workflow.state is BookingState.SELECTING_SLOT
        assert workflow.slot_set.slots == [time(14, 0)]
        assert slots.calls == [(7, JUNE_1), (8, JUNE_1)]

    @pytest.mark.asyncio
    async def test_reselecting_same_doctor_keeps_slot(self, store, api):
        slots = FakeSlots({(7, JUNE_1): ["09:00"]})
        workflow = make_workflow(store, api, slots=slots)
        await workflow.load_doctors()
        await workflow.select_doctor(7)
        await workflow.select_date(JUNE_1)
        workflow.select_slot("09:00")

        await workflow.select_doctor(7)

        assert workflow.draft.slot == time(9, 0)
        assert slots.calls == [(7, JUNE_1)]

    @pytest.mark.asyncio
    async def test_changing_date_clears_slot(self, store, api):
        slots = FakeSlots({(7, JUNE_1): ["09:00"], (7, JUNE_3): ["10:00"]})
        workflow = make_workflow(store, api, slots=slots)
        await workflow.load_doctors()
        await workflow.select_doctor(7)
        await workflow.select_date(JUNE_1)
        workflow.select_slot("09:00")

        await workflow.select_date(JUNE_3)

        assert workflow.draft.slot is None
        assert workflow.slot_set.date == JUNE_3

    @pytest.mark.asyncio
    async def test_no_fetch_without_date(self, store, api):
        slots = FakeSlots()
        workflow = make_workflow(store, api, slots=slots)
        await workflow.load_doctors()
        await workflow.select_doctor(7)
        assert slots.calls == []
        assert workflow.slot_view is SlotView.NEEDS_SELECTION


class TestStaleResponses:
    """Test that superseded slot fetches never overwrite fresher state."""

    @pytest.mark.asyncio
    async def test_late_reply_for_old_date_is_ignored(self, store, api):
        slots = GatedSlots({(7, JUNE_1): ["09:00"], (7, JUNE_3): ["15:00", "15:30"]})
        workflow = make_workflow(store, api, slots=slots)
        await workflow.load_doctors()
        await workflow.select_doctor(7)

        first = asyncio.create_task(workflow.select_date(JUNE_1))
        await run_pending()
        second = asyncio.create_task(workflow.select_date(JUNE_3))
        await run_pending()

        slots.release(7, JUNE_3)
        await second
        slots.release(7, JUNE_1)
        await first

        assert workflow.slot_set.date == JUNE_3
        assert workflow.slot_set.slots == [time(15, 0), time(15, 30)]
        assert workflow.slot_view is SlotView.AVAILABLE

    @pytest.mark.asyncio
    async def test_old_reply_while_new_one_pending(self, store, api):
        slots = GatedSlots({(7, JUNE_1): ["09:00"], (8, JUNE_1): ["11:00"]})
        workflow = make_workflow(store, api, slots=slots)
        await workflow.load_doctors()
        await workflow.select_doctor(7)

        first = asyncio.create_task(workflow.select_date(JUNE_1))
        await run_pending()
        second = asyncio.create_task(workflow.select_doctor(8))
        await run_pending()

        slots.release(7, JUNE_1)
        await first

        # doctor 7's answer arrived first but doctor 8 is selected
        assert workflow.slot_set is None
        assert workflow.slot_view is SlotView.LOADING
        with pytest.raises(ValidationError):
            workflow.select_slot("09:00")

        slots.release(8, JUNE_1)
        await second
        assert workflow.slot_set.doctor_id == 8
        assert workflow.slot_set.slots == [time(11, 0)]

    @pytest.mark.asyncio
    async def test_stale_failure_is_ignored(self, store, api):
        class FailingThenGated(GatedSlots):
            async def list_slots(self, doctor_id, day):
                result = await super().list_slots(doctor_id, day)
                if day == JUNE_1:
                    raise RemoteError("timeout")
                return result

        slots = FailingThenGated({(7, JUNE_1): [], (7, JUNE_3): ["10:00"]})
        workflow = make_workflow(store, api, slots=slots)
        await workflow.load_doctors()
        await workflow.select_doctor(7)

        first = asyncio.create_task(workflow.select_date(JUNE_1))
        await run_pending()
        second = asyncio.create_task(workflow.select_date(JUNE_3))
        await run_pending()

        slots.release(7, JUNE_3)
        await second
        slots.release(7, JUNE_1)
        await first

        assert workflow.slot_view is SlotView.AVAILABLE
        assert workflow.error is None


class TestEmptyAndErrorStates:
    """Test that no-openings and failures render differently."""

    @pytest.mark.asyncio
    async def test_zero_slots_is_not_an_error(self, store, api):
        workflow = make_workflow(store, api, slots=FakeSlots({(7, JUNE_1): []}))
        await workflow.load_doctors()
        await workflow.select_doctor(7)
        await workflow.select_date(JUNE_1)

        assert workflow.slot_view is SlotView.EMPTY
        assert workflow.slot_message == NO_SLOTS_MESSAGE
        assert workflow.slot_error is None
        assert workflow.error is None

    @pytest.mark.asyncio
    async def test_slot_fetch_failure_then_retry(self, store, api):
        slots = FakeSlots({(7, JUNE_1): ["09:00"]}, error=RemoteError("Server error", 500))
        workflow = make_workflow(store, api, slots=slots)
        await workflow.load_doctors()
        await workflow.select_doctor(7)
        await workflow.select_date(JUNE_1)

        assert workflow.slot_view is SlotView.ERROR
        assert workflow.error == "Failed to load available slots"

        slots.error = None
        workflow.dismiss_error()
        await workflow.retry_slots()
        assert workflow.slot_view is SlotView.AVAILABLE
        assert workflow.error is None

    @pytest.mark.asyncio
    async def test_directory_failure_is_recoverable(self, store, api):
        directory = FakeDirectory(error=RemoteError("Service unavailable", 503))
        workflow = make_workflow(store, api, directory=directory)

        assert await workflow.load_doctors() == []
        assert workflow.error == "Failed to load doctors"
        assert not workflow.doctors_loading

        directory.error = None
        assert await workflow.load_doctors() == DOCTORS
        assert directory.calls == 2

    @pytest.mark.asyncio
    async def test_submission_failure_preserves_draft(self, store):
        api = FakeBookingApi(error=RemoteError("The selected slot is no longer available", 409))
        workflow = make_workflow(store, api)
        await workflow.load_doctors()
        await workflow.select_doctor(7)
        await workflow.select_date(JUNE_1)
        workflow.select_slot("09:30")
        workflow.set_reason("checkup")

        result = await workflow.submit()

        assert result.outcome is BookingOutcome.REMOTE_ERROR
        assert result.message == "The selected slot is no longer available"
        assert workflow.state is BookingState.FAILED
        assert workflow.error == "The selected slot is no longer available"
        assert workflow.draft == BookingDraft(
            doctor_id=7, date=JUNE_1, slot=time(9, 30), reason_text="checkup"
        )

        # retry without re-entering anything
        api.error = None
        retry = await workflow.submit()
        assert retry.success
        assert len(api.payloads) == 2
        assert api.payloads[0] == api.payloads[1]

    @pytest.mark.asyncio
    async def test_empty_booking_response_is_failure(self, store):
        api = FakeBookingApi(response={})
        workflow = make_workflow(store, api)
        workflow.draft = BookingDraft(doctor_id=7, date=JUNE_1, slot=time(9, 0), reason_text="checkup")

        result = await workflow.submit()
        assert result.outcome is BookingOutcome.REMOTE_ERROR
        assert workflow.state is BookingState.FAILED
