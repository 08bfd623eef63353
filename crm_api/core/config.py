"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the client-side token
broker and the operator scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal, Optional

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from crm_api.core.errors import ConfigurationError


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class _Settings(BaseSettings):
    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")


class GoogleSettings(_Settings):
    """OAuth client credentials used for the calendar token exchange.

    Both values are optional at load time: a missing client id or secret is
    reported as a ``ConfigurationError`` when an exchange is attempted, so the
    endpoint can still answer with a JSON error body.
    """

    client_id: Optional[str] = Field(None, validation_alias="GOOGLE_CLIENT_ID")
    client_secret: Optional[str] = Field(None, validation_alias="GOOGLE_CLIENT_SECRET")
    redirect_uri: str = Field(
        "postmessage",
        validation_alias="GOOGLE_REDIRECT_URI",
        description="Popup code flows use the literal 'postmessage'.",
    )

    def require_oauth_client(self) -> tuple[str, str]:
        """Return ``(client_id, client_secret)`` or raise when either is missing."""
        if not self.client_id or not self.client_secret:
            raise ConfigurationError("Missing server-side Google OAuth2 credentials.")
        return self.client_id, self.client_secret


class OAuthSettings(_Settings):
    """OAuth flow configuration."""

    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")
    refresh_buffer_seconds: int = Field(300, validation_alias="OAUTH_REFRESH_BUFFER")
    exchange_timeout_seconds: float = Field(10.0, validation_alias="OAUTH_EXCHANGE_TIMEOUT")
    retry_attempts: int = Field(3, validation_alias="OAUTH_RETRY_ATTEMPTS")
    retry_backoff_seconds: float = Field(1.0, validation_alias="OAUTH_RETRY_BACKOFF")
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        ("https://www.googleapis.com/auth/calendar.events",),
        validation_alias="OAUTH_SCOPES",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())


class StorageSettings(_Settings):
    """Where per-user credential documents live."""

    backend: Literal["sqlite", "dynamodb", "firestore"] = Field(
        "sqlite", validation_alias="CREDENTIAL_STORE_BACKEND"
    )
    sqlite_path: str = Field("data/credentials.db", validation_alias="CREDENTIAL_DB_PATH")
    region_name: str = Field("us-east-1", validation_alias="AWS_REGION")
    dynamodb_table_name: Optional[str] = Field(None, validation_alias="DYNAMODB_TABLE_NAME")


class FirebaseSettings(_Settings):
    """Firebase Admin configuration for the Firestore backend."""

    project_id: Optional[str] = Field(None, validation_alias="FIREBASE_PROJECT_ID")
    service_account_json: Optional[str] = Field(
        None,
        validation_alias="FIREBASE_SERVICE_ACCOUNT",
        description="Inline JSON service account; falls back to ADC when omitted.",
    )


class DriveSettings(_Settings):
    """Service account used by the upload proxy."""

    service_account_email: Optional[str] = Field(
        None, validation_alias="GOOGLE_SERVICE_ACCOUNT_EMAIL"
    )
    private_key: Optional[str] = Field(None, validation_alias="GOOGLE_PRIVATE_KEY")
    folder_id: Optional[str] = Field(
        None,
        validation_alias="GOOGLE_DRIVE_FOLDER_ID",
        description="Optional target folder to contain uploaded files.",
    )


class SecuritySettings(_Settings):
    """Security-related configuration."""

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class CalendarSettings(_Settings):
    """Defaults applied to Calendar API requests."""

    calendar_id: str = Field("primary", validation_alias="CALENDAR_ID")
    time_zone: str = Field(
        "America/Argentina/Buenos_Aires", validation_alias="CALENDAR_TIME_ZONE"
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    auth_endpoint_url: str = Field(
        "http://localhost:8000/api",
        validation_alias="CALENDAR_AUTH_ENDPOINT_URL",
        description="Base URL the client-side broker uses to reach /calendar-auth.",
    )
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    google: GoogleSettings = Field(default_factory=GoogleSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    firebase: FirebaseSettings = Field(default_factory=FirebaseSettings)
    drive: DriveSettings = Field(default_factory=DriveSettings)
    calendar: CalendarSettings = Field(default_factory=CalendarSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()


__all__ = [
    "AppSettings",
    "CalendarSettings",
    "DriveSettings",
    "FirebaseSettings",
    "GoogleSettings",
    "OAuthSettings",
    "SecuritySettings",
    "StorageSettings",
    "get_settings",
]
