"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    build_calendar_client,
    get_calendar_auth_service,
    get_credential_repository,
    get_document_store,
    get_drive_client,
    get_google_oauth_client,
    get_token_cipher_service,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "build_calendar_client",
    "get_app_settings",
    "get_calendar_auth_service",
    "get_credential_repository",
    "get_document_store",
    "get_drive_client",
    "get_google_oauth_client",
    "get_token_cipher_service",
]
