"""
Portal - wires the session, API client, auth gateway and router together.

One Portal is one client instance: one session store, one current
screen. Everything that needs the session receives the store
explicitly from here.
"""

from typing import Optional

import httpx
from loguru import logger

from healthsphere.config import Settings, get_settings
from healthsphere.models.session import Session
from healthsphere.routing import LOGIN_PATH, ROOT_PATH, Router
from healthsphere.services.api_client import PortalApiClient
from healthsphere.services.auth import AuthGateway, build_credential_policy
from healthsphere.services.records import RecordsService
from healthsphere.services.session_store import JsonFileStorage, MemoryStorage, SessionStore
from healthsphere.workflows.booking import BookingWorkflow


class Portal:
    """
    Composition root of the portal client.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        storage: Optional[MemoryStorage | JsonFileStorage] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.session_store = SessionStore(storage or JsonFileStorage(self.settings.session_file))
        self.router = Router(self.session_store)
        self.api = PortalApiClient(
            self.session_store,
            settings=self.settings,
            on_auth_expired=self.router.force_login,
            transport=transport,
        )
        self.auth = AuthGateway(
            self.session_store, build_credential_policy(self.settings, self.api)
        )
        self.records = RecordsService(self.api)

    async def __aenter__(self) -> "Portal":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def session(self) -> Optional[Session]:
        return self.session_store.get()

    @property
    def location(self) -> Optional[str]:
        return self.router.location

    async def start(self, path: str = ROOT_PATH) -> str:
        """Restore any persisted session and open the first screen."""
        await self.auth.initialize()
        return self.router.navigate(path)

    def navigate(self, path: str) -> Optional[str]:
        """
        Open a screen, following authorization redirects.

        Returns None while the auth gateway is still loading.
        """
        if not self.auth.is_ready:
            logger.debug(f"Navigation to {path} deferred, session not loaded yet")
            return None
        return self.router.navigate(path)

    async def login(self, email: str, password: str) -> str:
        """Sign in and land on the role's dashboard."""
        await self.auth.authenticate(email, password)
        return self.router.navigate(LOGIN_PATH)

    def logout(self) -> str:
        self.auth.logout()
        return self.router.navigate(LOGIN_PATH)

    def booking_workflow(self) -> BookingWorkflow:
        """A fresh booking workflow for the signed-in patient."""
        return BookingWorkflow(
            self.session_store,
            self.api,
            window_months=self.settings.booking_window_months,
        )

    async def close(self) -> None:
        await self.api.close()
