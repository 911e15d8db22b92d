"""
Configuration management for the HealthSphere portal client.

This module provides centralized configuration using Pydantic settings
for type-safe environment variable management.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Backend API Configuration
    api_base_url: str = Field(
        default="http://localhost:8080/api", alias="HEALTHSPHERE_API_URL"
    )
    api_timeout: float = Field(default=10, alias="HEALTHSPHERE_API_TIMEOUT")
    connection_pool_size: int = Field(default=10, alias="CONNECTION_POOL_SIZE")

    # Authentication Configuration
    auth_mode: Literal["mock", "remote"] = Field(default="mock", alias="AUTH_MODE")
    mock_login_delay: float = Field(default=1.0, alias="MOCK_LOGIN_DELAY")
    mock_auth_token: str = Field(default="mock-jwt-token", alias="MOCK_AUTH_TOKEN")

    # Client State Configuration
    session_file: Path = Field(
        default=Path("~/.healthsphere/session.json"), alias="SESSION_FILE"
    )

    # Booking Configuration
    booking_window_months: int = Field(default=1, alias="BOOKING_WINDOW_MONTHS")

    # Application Configuration
    app_name: str = Field(default="HealthSphere", alias="APP_NAME")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Local stand-in backend
    mock_backend_host: str = Field(default="0.0.0.0", alias="MOCK_BACKEND_HOST")
    mock_backend_port: int = Field(default=8080, alias="MOCK_BACKEND_PORT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once,
    improving performance for repeated access.
    """
    return Settings()


# Fixed keys under which the session is persisted
STORAGE_USER_KEY = "user"
STORAGE_TOKEN_KEY = "authToken"

# Appointment defaults applied to every booking submitted from the portal
DEFAULT_APPOINTMENT_TYPE = "CONSULTATION"
DEFAULT_APPOINTMENT_STATUS = "SCHEDULED"
