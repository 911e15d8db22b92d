"""
Mock Backend Server.

A FastAPI stand-in for the HealthSphere REST backend, implementing the
same contract the portal client speaks (base path /api, bearer tokens).
Data lives in memory and is reseeded on startup.
"""

import asyncio
import secrets
from contextlib import asynccontextmanager
from datetime import date, datetime, time
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel

from healthsphere.config import get_settings
from healthsphere.models.booking import AppointmentRequest

# ============================================================================
# Seed Data
# ============================================================================

SEED_PASSWORD = "healthsphere"

SEED_USERS = [
    {"id": 1, "email": "patient@healthsphere.com", "firstName": "John", "lastName": "Doe", "role": "PATIENT"},
    {"id": 3, "email": "admin@healthsphere.com", "firstName": "Ada", "lastName": "Admin", "role": "ADMIN"},
    {"id": 7, "email": "doctor@healthsphere.com", "firstName": "Sarah", "lastName": "Johnson", "role": "DOCTOR"},
    {"id": 8, "email": "m.chen@healthsphere.com", "firstName": "Michael", "lastName": "Chen", "role": "DOCTOR"},
    {"id": 12, "email": "e.davis@healthsphere.com", "firstName": "Emily", "lastName": "Davis", "role": "DOCTOR"},
]

# Doctor profiles come in both shapes the real backend has produced:
# linked to a user account, or flat.
SEED_DOCTORS = [
    {"userId": 7, "user": {"firstName": "Sarah", "lastName": "Johnson"}, "specialization": "Cardiology"},
    {"userId": 8, "user": {"firstName": "Michael", "lastName": "Chen"}, "specialization": "Dermatology"},
    {"id": 12, "firstName": "Emily", "lastName": "Davis", "specialization": "General Practice"},
]

SEED_RECORDS = [
    {
        "id": 1,
        "patientId": 1,
        "doctorId": 7,
        "recordDate": "2024-01-15T10:30:00",
        "diagnosis": "Hypertension",
        "treatment": "Lifestyle changes and medication",
        "notes": "Follow up in 3 months",
        "bloodPressureSystolic": 140,
        "bloodPressureDiastolic": 90,
    },
    {
        "id": 2,
        "patientId": 1,
        "doctorId": 12,
        "recordDate": "2024-03-02T09:00:00",
        "diagnosis": "Seasonal allergies",
        "treatment": "Antihistamines",
        "notes": "",
        "temperature": 36.8,
    },
]

# Half-hour consultation slots, mornings and afternoons
SLOT_TIMES = [
    time(9, 0), time(9, 30), time(10, 0), time(10, 30), time(11, 0), time(11, 30),
    time(14, 0), time(14, 30), time(15, 0), time(15, 30), time(16, 0), time(16, 30),
]


# ============================================================================
# Data Models
# ============================================================================


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    token: str
    user: dict


# ============================================================================
# In-Memory Data Store
# ============================================================================


class PortalStore:
    """
    In-memory backend state with lock-protected writes.
    """

    def __init__(self):
        self._users: Dict[str, dict] = {}
        self._tokens: Dict[str, int] = {}
        self._doctors: List[dict] = []
        self._appointments: Dict[int, dict] = {}
        self._records: List[dict] = []
        self._next_appointment_id = 1
        self._lock = asyncio.Lock()
        self.reset()

    # Public accessors for testing
    @property
    def appointments(self) -> Dict[int, dict]:
        return self._appointments

    @property
    def tokens(self) -> Dict[str, int]:
        return self._tokens

    def reset(self) -> None:
        """Reseed every collection."""
        self._users = {user["email"]: dict(user) for user in SEED_USERS}
        self._tokens = {get_settings().mock_auth_token: 1}
        self._doctors = [dict(doctor) for doctor in SEED_DOCTORS]
        self._appointments = {}
        self._records = [dict(record) for record in SEED_RECORDS]
        self._next_appointment_id = 1

    def login(self, email: str, password: str) -> Optional[LoginResponse]:
        user = self._users.get(email)
        if user is None or password != SEED_PASSWORD:
            return None
        token = secrets.token_urlsafe(24)
        self._tokens[token] = user["id"]
        return LoginResponse(token=token, user=user)

    def user_for_token(self, token: str) -> Optional[int]:
        return self._tokens.get(token)

    def doctors(self) -> List[dict]:
        return list(self._doctors)

    def doctor_exists(self, doctor_id: int) -> bool:
        return any(
            (doctor.get("userId") or doctor.get("id")) == doctor_id for doctor in self._doctors
        )

    def _booked_times(self, doctor_id: int, day: date) -> set:
        return {
            datetime.fromisoformat(apt["appointmentDateTime"]).time()
            for apt in self._appointments.values()
            if apt["doctorId"] == doctor_id
            and apt["status"] != "CANCELLED"
            and datetime.fromisoformat(apt["appointmentDateTime"]).date() == day
        }

    def available_slots(self, doctor_id: int, day: date) -> List[str]:
        """Open slots for a doctor on a date; none on weekends."""
        if day.weekday() >= 5:
            return []
        booked = self._booked_times(doctor_id, day)
        return [slot.strftime("%H:%M") for slot in SLOT_TIMES if slot not in booked]

    async def book(self, request: AppointmentRequest) -> Optional[dict]:
        """
        Book a slot. Returns None if the slot is not open.
        """
        start = request.appointment_date_time
        async with self._lock:
            if start.time() not in SLOT_TIMES or start.date().weekday() >= 5:
                return None
            if start.time() in self._booked_times(request.doctor_id, start.date()):
                return None

            appointment = {"id": self._next_appointment_id, **request.to_payload()}
            self._appointments[appointment["id"]] = appointment
            self._next_appointment_id += 1
            return appointment

    def appointments_for(self, field: str, user_id: int) -> List[dict]:
        return sorted(
            (apt for apt in self._appointments.values() if apt[field] == user_id),
            key=lambda apt: apt["appointmentDateTime"],
        )

    def records_for(self, patient_id: int) -> List[dict]:
        return [record for record in self._records if record["patientId"] == patient_id]


# Global store instance
store = PortalStore()


# ============================================================================
# FastAPI Application
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting HealthSphere mock backend")
    store.reset()
    yield
    logger.info("Shutting down HealthSphere mock backend")


app = FastAPI(
    title="HealthSphere Mock Backend",
    description="In-memory stand-in for the HealthSphere REST API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def require_user(authorization: Optional[str] = Header(default=None)) -> int:
    """Resolve the bearer token to a user id, or answer 401."""
    scheme, _, token = (authorization or "").partition(" ")
    user_id = store.user_for_token(token) if scheme.lower() == "bearer" else None
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return user_id


# ============================================================================
# API Endpoints
# ============================================================================


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


@app.post("/api/auth/login", response_model=LoginResponse)
async def login(request: LoginRequest):
    response = store.login(request.email, request.password)
    if response is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    logger.info(f"Issued token for {request.email}")
    return response


@app.get("/api/doctors")
async def list_doctors(user_id: int = Depends(require_user)):
    return {"success": True, "data": store.doctors()}


@app.get("/api/appointments/available-slots")
async def available_slots(
    doctor_id: int = Query(..., alias="doctorId", description="Doctor identifier"),
    day: date = Query(..., alias="date", description="Requested date (YYYY-MM-DD)"),
    user_id: int = Depends(require_user),
):
    if not store.doctor_exists(doctor_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Doctor not found",
        )
    return {"doctorId": doctor_id, "date": day.isoformat(), "availableSlots": store.available_slots(doctor_id, day)}


@app.post("/api/appointments", status_code=status.HTTP_201_CREATED)
async def schedule_appointment(request: AppointmentRequest, user_id: int = Depends(require_user)):
    if not store.doctor_exists(request.doctor_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Doctor not found",
        )

    appointment = await store.book(request)
    if appointment is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="The selected slot is no longer available",
        )

    logger.info(f"Booked appointment {appointment['id']} with doctor {request.doctor_id}")
    return appointment


@app.get("/api/appointments/patient/{patient_id}")
async def patient_appointments(patient_id: int, user_id: int = Depends(require_user)):
    return store.appointments_for("patientId", patient_id)


@app.get("/api/appointments/doctor/{doctor_id}")
async def doctor_appointments(doctor_id: int, user_id: int = Depends(require_user)):
    return store.appointments_for("doctorId", doctor_id)


@app.get("/api/medical-records/patient/{patient_id}")
async def patient_records(patient_id: int, user_id: int = Depends(require_user)):
    return store.records_for(patient_id)


# ============================================================================
# Run Server
# ============================================================================


def run_server(host: Optional[str] = None, port: Optional[int] = None):
    """Run the mock backend. A single worker, since state is in memory."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "healthsphere.api.mock_backend:app",
        host=host or settings.mock_backend_host,
        port=port or settings.mock_backend_port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
