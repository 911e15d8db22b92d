"""
Session Store - durable holder of the signed-in identity.

The identity and the bearer token live under two fixed keys of a
key-value storage scoped to this client instance. Both keys are always
written and removed together in a single storage write, so a completed
clear never leaves one without the other.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import pydantic
from loguru import logger

from healthsphere.config import STORAGE_TOKEN_KEY, STORAGE_USER_KEY
from healthsphere.models.session import Session


class MemoryStorage:
    """Process-local storage, used by tests and throwaway clients."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Any:
        return self._data.get(key)

    def set_many(self, values: Dict[str, Any]) -> None:
        self._data.update(values)

    def delete_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def snapshot(self) -> Dict[str, Any]:
        return dict(self._data)


class JsonFileStorage:
    """
    Key-value storage persisted as a single JSON document.

    Every mutation rewrites the whole document through a temporary file
    and an atomic rename, so readers only ever see a complete state.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (ValueError, OSError) as e:
            logger.warning(f"Ignoring unreadable client storage {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Any:
        return self._read().get(key)

    def set_many(self, values: Dict[str, Any]) -> None:
        data = self._read()
        data.update(values)
        self._write(data)

    def delete_many(self, keys: Iterable[str]) -> None:
        data = self._read()
        for key in keys:
            data.pop(key, None)
        self._write(data)

    def snapshot(self) -> Dict[str, Any]:
        return self._read()


class SessionStore:
    """
    Single source of truth for who is signed in on this client.

    Reads always go to the storage, so a session written by an earlier
    process (before a reload) is visible, and a cleared session is never
    served from a stale in-memory copy.
    """

    def __init__(self, storage: MemoryStorage | JsonFileStorage):
        self._storage = storage

    def set(self, session: Session) -> None:
        """Persist the session, replacing any previous one."""
        self._storage.set_many(
            {
                STORAGE_USER_KEY: session.to_identity(),
                STORAGE_TOKEN_KEY: session.credential_token,
            }
        )
        logger.debug(f"Session stored for user {session.subject_id} ({session.role.value})")

    def get(self) -> Optional[Session]:
        """
        Return the active session, or None.

        Partial or undecodable state (unknown role, missing token) fails
        closed: it is cleared and reported as no session.
        """
        identity = self._storage.get(STORAGE_USER_KEY)
        token = self._storage.get(STORAGE_TOKEN_KEY)

        if identity is None and token is None:
            return None

        if not isinstance(identity, dict) or not token:
            logger.warning("Discarding incomplete stored session")
            self.clear()
            return None

        try:
            return Session.from_identity(identity, token)
        except pydantic.ValidationError as e:
            logger.warning(f"Discarding invalid stored session: {e.error_count()} error(s)")
            self.clear()
            return None

    def clear(self) -> None:
        """Remove identity and token together."""
        self._storage.delete_many([STORAGE_USER_KEY, STORAGE_TOKEN_KEY])
        logger.debug("Session cleared")

    @property
    def token(self) -> Optional[str]:
        session = self.get()
        return session.credential_token if session else None
