"""
Session and role data models.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from healthsphere.exceptions import AuthError


class Role(str, Enum):
    """The closed set of portal roles."""

    PATIENT = "PATIENT"
    DOCTOR = "DOCTOR"
    ADMIN = "ADMIN"

    @property
    def home_path(self) -> str:
        """Dashboard path for this role."""
        return f"/{self.value.lower()}/dashboard"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        """
        Decode a role value coming from storage or the backend.

        Raises:
            AuthError: if the value is not one of the known roles
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise AuthError(f"Unknown role: {value!r}") from None


class Session(BaseModel):
    """
    The authenticated identity and bearer credential of this client.

    The stored form of the identity uses the backend's camelCase keys
    (id, firstName, lastName, email, role); the credential is stored
    separately.
    """

    subject_id: int = Field(alias="id", description="Backend user identifier")
    display_name: str = Field(default="", description="Name shown in the portal")
    email: str = Field(default="", description="Login email")
    role: Role = Field(description="Role that gates reachable screens")
    credential_token: str = Field(
        min_length=1, description="Bearer token attached to API calls"
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("role", mode="before")
    @classmethod
    def decode_role(cls, v: Any) -> Role:
        """Fail closed on unknown roles."""
        try:
            return Role.parse(v)
        except AuthError as e:
            # pydantic only wraps ValueError/AssertionError into a validation error
            raise ValueError(str(e)) from e

    @classmethod
    def from_identity(cls, identity: dict, token: str) -> "Session":
        """Build a session from a stored or backend user record."""
        first = identity.get("firstName") or ""
        last = identity.get("lastName") or ""
        display_name = identity.get("displayName") or f"{first} {last}".strip()
        return cls(
            id=identity.get("id"),
            display_name=display_name,
            email=identity.get("email") or "",
            role=identity.get("role"),
            credential_token=token,
        )

    def to_identity(self) -> dict:
        """Serialize the identity part for storage."""
        first, _, last = self.display_name.partition(" ")
        return {
            "id": self.subject_id,
            "email": self.email,
            "firstName": first,
            "lastName": last,
            "displayName": self.display_name,
            "role": self.role.value,
        }
