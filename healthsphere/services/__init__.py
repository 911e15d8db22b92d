"""
Services layer for the HealthSphere portal client.
"""

from .api_client import PortalApiClient
from .auth import AuthGateway, MockCredentialPolicy, RemoteCredentialExchange
from .directory import DirectoryClient, DirectoryListing
from .records import RecordsService
from .session_store import JsonFileStorage, MemoryStorage, SessionStore
from .slots import SlotQueryService

__all__ = [
    "PortalApiClient",
    "AuthGateway",
    "MockCredentialPolicy",
    "RemoteCredentialExchange",
    "DirectoryClient",
    "DirectoryListing",
    "RecordsService",
    "SessionStore",
    "JsonFileStorage",
    "MemoryStorage",
    "SlotQueryService",
]
