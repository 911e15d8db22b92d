"""
Portal API Client - HTTP access to the HealthSphere backend.

Every call carries the bearer token of the current session. A 401 answer
clears the session and notifies the registered handler, which sends the
user back to the login screen.
"""

from datetime import date
from typing import Any, Callable, Optional

import httpx
from loguru import logger

from healthsphere.config import Settings, get_settings
from healthsphere.exceptions import AuthExpired, RemoteError
from healthsphere.services.session_store import SessionStore


class PortalApiClient:
    """
    Async client for the backend REST contract (base path /api).

    The session store is passed in explicitly; the client never reads
    ambient global state to find the credential.
    """

    def __init__(
        self,
        session_store: SessionStore,
        settings: Optional[Settings] = None,
        on_auth_expired: Optional[Callable[[], None]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._session_store = session_store
        self._on_auth_expired = on_auth_expired
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client with connection pooling."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.settings.api_base_url,
                timeout=httpx.Timeout(self.settings.api_timeout),
                limits=httpx.Limits(
                    max_connections=self.settings.connection_pool_size,
                    max_keepalive_connections=max(self.settings.connection_pool_size // 2, 1),
                ),
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _handle_auth_expired(self) -> None:
        logger.warning("Backend rejected the session credential, signing out")
        self._session_store.clear()
        if self._on_auth_expired is not None:
            self._on_auth_expired()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Prefer the backend's own message over the bare status line."""
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            for key in ("message", "detail", "error"):
                if isinstance(body.get(key), str):
                    return body[key]
        return f"Request failed with status {response.status_code}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
        session_bound: bool = True,
    ) -> Any:
        """
        Send one request and decode its JSON body.

        Args:
            session_bound: whether a 401 means the current session expired.
                Only the login call itself sets this to False.

        Raises:
            AuthExpired: on 401 for a session-bound call
            RemoteError: on any other non-2xx status or transport failure
        """
        client = await self._get_client()

        headers = {}
        token = self._session_store.token
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await client.request(method, path, params=params, json=json, headers=headers)
        except httpx.RequestError as e:
            logger.error(f"Request error on {method} {path}: {e}")
            raise RemoteError(f"Could not reach the server: {e}") from e

        if response.status_code == 401 and session_bound:
            self._handle_auth_expired()
            raise AuthExpired()

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            message = self._error_message(response)
            logger.error(f"HTTP error on {method} {path}: {response.status_code} {message}")
            raise RemoteError(message, status_code=response.status_code) from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Invalid JSON from {method} {path}: {e}")
            raise RemoteError("The server returned an unreadable response") from e

    # Auth

    async def login(self, email: str, password: str) -> Any:
        return await self._request(
            "POST",
            "/auth/login",
            json={"email": email, "password": password},
            session_bound=False,
        )

    # Directory

    async def get_doctors(self) -> Any:
        return await self._request("GET", "/doctors")

    # Appointments

    async def get_available_slots(self, doctor_id: int, day: date) -> Any:
        return await self._request(
            "GET",
            "/appointments/available-slots",
            params={"doctorId": doctor_id, "date": day.isoformat()},
        )

    async def schedule_appointment(self, payload: dict) -> Any:
        return await self._request("POST", "/appointments", json=payload)

    async def get_patient_appointments(self, patient_id: int) -> Any:
        return await self._request("GET", f"/appointments/patient/{patient_id}")

    async def get_doctor_appointments(self, doctor_id: int) -> Any:
        return await self._request("GET", f"/appointments/doctor/{doctor_id}")

    # Medical records

    async def get_patient_records(self, patient_id: int) -> Any:
        return await self._request("GET", f"/medical-records/patient/{patient_id}")
