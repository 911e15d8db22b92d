"""
Auth Gateway - exchanges credentials for a session.

Two credential policies share one interface:

- MockCredentialPolicy: the placeholder sign-in used while the backend
  has no authentication endpoint. It never rejects; the role is read
  from the email address.
- RemoteCredentialExchange: verifies the credentials against
  POST /auth/login.

Callers only see authenticate() returning a Session or raising
AuthError, whichever policy is configured.
"""

import asyncio
from enum import Enum
from typing import Any, Optional, Protocol

import pydantic
from loguru import logger

from healthsphere.config import Settings, get_settings
from healthsphere.exceptions import AuthError, RemoteError
from healthsphere.models.session import Role, Session
from healthsphere.services.api_client import PortalApiClient
from healthsphere.services.session_store import SessionStore


class AuthState(str, Enum):
    LOADING = "LOADING"
    READY = "READY"


class CredentialPolicy(Protocol):
    async def exchange(self, email: str, password: str) -> Session: ...


def classify_role(email: str) -> Role:
    """
    Placeholder role dispatch on the email address.

    Case-sensitive substring match; "admin" takes precedence over
    "doctor", anything else is a patient.
    """
    role = Role.PATIENT
    if "doctor" in email:
        role = Role.DOCTOR
    if "admin" in email:
        role = Role.ADMIN
    return role


class MockCredentialPolicy:
    """Always succeeds after a fixed delay."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    async def exchange(self, email: str, password: str) -> Session:
        await asyncio.sleep(self.settings.mock_login_delay)
        return Session(
            id=1,
            display_name="John Doe",
            email=email,
            role=classify_role(email),
            credential_token=self.settings.mock_auth_token,
        )


class RemoteCredentialExchange:
    """Verified sign-in against the backend's login endpoint."""

    def __init__(self, api: PortalApiClient):
        self._api = api

    @staticmethod
    def _unwrap(payload: Any) -> dict:
        if isinstance(payload, dict) and payload.get("success") and isinstance(payload.get("data"), dict):
            return payload["data"]
        if isinstance(payload, dict):
            return payload
        raise AuthError("Malformed login response")

    async def exchange(self, email: str, password: str) -> Session:
        try:
            payload = await self._api.login(email, password)
        except RemoteError as e:
            if e.status_code in (400, 401, 403):
                raise AuthError("Invalid email or password") from e
            raise AuthError(f"Login failed: {e.message}") from e

        body = self._unwrap(payload)
        token = body.get("token") or body.get("accessToken")
        user = body.get("user")
        if not token or not isinstance(user, dict):
            raise AuthError("Malformed login response")

        try:
            return Session.from_identity(user, token)
        except pydantic.ValidationError as e:
            raise AuthError(f"Login returned an invalid identity: {e.error_count()} error(s)") from e


def build_credential_policy(settings: Settings, api: PortalApiClient) -> CredentialPolicy:
    """Pick the credential policy named by AUTH_MODE."""
    if settings.auth_mode == "remote":
        return RemoteCredentialExchange(api)
    return MockCredentialPolicy(settings)


class AuthGateway:
    """
    Signs users in and out and reports when the session is known.

    state is LOADING until initialize() has restored any persisted
    session; the rest of the app waits for READY before routing.
    """

    def __init__(self, session_store: SessionStore, policy: CredentialPolicy):
        self._session_store = session_store
        self._policy = policy
        self._state = AuthState.LOADING

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is AuthState.READY

    async def initialize(self) -> Optional[Session]:
        """Restore the persisted session, then signal readiness."""
        session = self._session_store.get()
        self._state = AuthState.READY
        if session:
            logger.info(f"Restored session for {session.email or session.subject_id} ({session.role.value})")
        return session

    async def authenticate(self, email: str, password: str) -> Session:
        """
        Sign in and store the resulting session.

        Raises:
            AuthError: if the credentials are missing or rejected
        """
        email = (email or "").strip()
        if not email or not password:
            raise AuthError("Email and password are required")

        try:
            session = await self._policy.exchange(email, password)
        except AuthError as e:
            logger.warning(f"Login failed for {email}: {e}")
            raise

        self._session_store.set(session)
        logger.info(f"Signed in {email} as {session.role.value}")
        return session

    def logout(self) -> None:
        """Forget the session and its credential."""
        self._session_store.clear()
        logger.info("Signed out")
