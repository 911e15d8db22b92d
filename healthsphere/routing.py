"""
Route authorization for the portal screens.

authorize() is a pure decision over a session and a set of required
roles. Router applies it to the screen table on every navigation,
following redirects until it lands on a screen the session may see.
"""

from typing import Dict, FrozenSet, Iterable, Optional, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict

from healthsphere.models.session import Role, Session
from healthsphere.services.session_store import SessionStore

LOGIN_PATH = "/login"
ROOT_PATH = "/"


class Allow(BaseModel):
    model_config = ConfigDict(frozen=True)


class RedirectTo(BaseModel):
    target: str

    model_config = ConfigDict(frozen=True)


Decision = Union[Allow, RedirectTo]


class RouteRequest(BaseModel):
    """One navigation attempt against a known screen."""

    path: str
    required_roles: FrozenSet[Role] = frozenset()

    model_config = ConfigDict(frozen=True)


# Screens and the roles allowed to see them
SCREENS: Dict[str, FrozenSet[Role]] = {
    "/patient/dashboard": frozenset({Role.PATIENT}),
    "/patient/appointments": frozenset({Role.PATIENT}),
    "/patient/records": frozenset({Role.PATIENT}),
    "/doctor/dashboard": frozenset({Role.DOCTOR}),
    "/admin/dashboard": frozenset({Role.ADMIN}),
}

# Section roots forward to the section's dashboard
SECTIONS: Dict[str, Role] = {f"/{role.value.lower()}": role for role in Role}


def authorize(
    session: Optional[Session],
    required_roles: Iterable[Role] = (),
    path: Optional[str] = None,
) -> Decision:
    """
    Decide whether a session may open a screen.

    Rules, in order:
    1. no session: only the login screen is reachable
    2. signed in, asking for the login screen: go home
    3. signed in, role not among the required roles: go home
    4. otherwise allow
    """
    if session is None:
        return Allow() if path == LOGIN_PATH else RedirectTo(target=LOGIN_PATH)

    home = session.role.home_path
    if path == LOGIN_PATH:
        return RedirectTo(target=home)

    required = frozenset(required_roles)
    if required and session.role not in required:
        return RedirectTo(target=home)

    return Allow()


def normalize_path(path: str) -> str:
    path = (path or ROOT_PATH).split("?", 1)[0].split("#", 1)[0]
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/") or ROOT_PATH
    return path


def match_route(path: str) -> Optional[RouteRequest]:
    """Look up a screen; None for paths with no screen."""
    if path == LOGIN_PATH:
        return RouteRequest(path=path)
    if path in SCREENS:
        return RouteRequest(path=path, required_roles=SCREENS[path])
    if path in SECTIONS:
        return RouteRequest(path=path, required_roles=frozenset({SECTIONS[path]}))
    return None


def resolve(session: Optional[Session], path: str) -> Decision:
    """Apply the screen table and authorize() to one requested path."""
    path = normalize_path(path)

    if path == ROOT_PATH:
        return RedirectTo(target=session.role.home_path if session else LOGIN_PATH)

    route = match_route(path)
    if route is None:
        return RedirectTo(target=ROOT_PATH)

    decision = authorize(session, route.required_roles, route.path)
    if isinstance(decision, Allow) and route.path in SECTIONS:
        return RedirectTo(target=f"{route.path}/dashboard")
    return decision


class Router:
    """
    Tracks the current screen for one client.

    The session is read from the store on every navigation, never cached,
    so a logout or an expired credential takes effect on the next move.
    """

    def __init__(self, session_store: SessionStore, max_redirects: int = 5):
        self._session_store = session_store
        self._max_redirects = max_redirects
        self.location: Optional[str] = None

    def navigate(self, path: str) -> str:
        """Follow redirects from path to the screen actually shown."""
        session = self._session_store.get()
        current = normalize_path(path)

        for _ in range(self._max_redirects + 1):
            decision = resolve(session, current)
            if isinstance(decision, Allow):
                self.location = current
                return current
            logger.debug(f"Redirect {current} -> {decision.target}")
            current = decision.target

        raise RuntimeError(f"Too many redirects while navigating to {path}")

    def force_login(self) -> str:
        """Send the user back to the login screen."""
        return self.navigate(LOGIN_PATH)
