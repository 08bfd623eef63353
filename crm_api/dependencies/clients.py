"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

import secrets
from functools import lru_cache

from crm_api.clients import (
    AuthorizationEndpointClient,
    CalendarApiAdapter,
    DynamoDBClient,
    FirestoreStore,
    GoogleDriveClient,
    GoogleOAuthClient,
    OAuthStateEncoder,
    SQLiteStore,
    get_firestore_client,
)
from crm_api.core.config import AppSettings
from crm_api.dependencies.config import get_app_settings
from crm_api.services import (
    CalendarAuthService,
    CalendarConsentFlow,
    CalendarTokenBroker,
    CredentialRepository,
    DocumentStore,
    TokenCipherService,
)
from crm_api.utils.retry import RetryConfig


@lru_cache()
def get_google_oauth_client() -> GoogleOAuthClient:
    """Create a singleton Google OAuth client."""
    settings = get_app_settings()
    return GoogleOAuthClient(settings.google, settings.oauth)


@lru_cache()
def get_document_store() -> DocumentStore:
    """Provide the configured credential document store."""
    settings = get_app_settings()
    backend = settings.storage.backend
    if backend == "dynamodb":
        return DynamoDBClient(settings.storage)
    if backend == "firestore":
        return FirestoreStore(get_firestore_client(settings.firebase))
    return SQLiteStore(settings.storage.sqlite_path)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = get_app_settings()
    return TokenCipherService.from_settings(settings.security, settings.google)


@lru_cache()
def get_credential_repository() -> CredentialRepository:
    return CredentialRepository(get_document_store(), get_token_cipher_service())


@lru_cache()
def get_calendar_auth_service() -> CalendarAuthService:
    """Provide the calendar token lifecycle service.

    Cached so concurrent refreshes for a user share one in-flight exchange.
    """
    return CalendarAuthService(
        repository=get_credential_repository(),
        oauth_client=get_google_oauth_client(),
    )


@lru_cache()
def get_drive_client() -> GoogleDriveClient:
    """Provide Google Drive client instance."""
    return GoogleDriveClient(get_app_settings().drive)


def build_calendar_client(
    settings: AppSettings | None = None,
) -> tuple[CalendarApiAdapter, CalendarConsentFlow]:
    """Wire the client-side pieces: broker, calendar adapter and consent flow."""
    settings = settings or get_app_settings()
    endpoint = AuthorizationEndpointClient(
        settings.auth_endpoint_url, timeout=settings.oauth.exchange_timeout_seconds
    )
    broker = CalendarTokenBroker(
        endpoint,
        get_credential_repository(),
        buffer_ms=settings.oauth.refresh_buffer_seconds * 1000,
        retry_config=RetryConfig(
            attempts=settings.oauth.retry_attempts,
            backoff_seconds=settings.oauth.retry_backoff_seconds,
        ),
    )
    adapter = CalendarApiAdapter(broker, settings.calendar, endpoint=endpoint)
    consent = CalendarConsentFlow(
        endpoint,
        # State only round-trips through this process, so a per-process key
        # keeps the client secret out of client code.
        OAuthStateEncoder(secret_key=secrets.token_hex(32)),
        client_id=settings.google.client_id or "",
        scopes=settings.oauth.scopes,
        redirect_uri=settings.google.redirect_uri,
        state_ttl_seconds=settings.oauth.state_ttl_seconds,
        on_token=broker.remember,
    )
    return adapter, consent


__all__ = [
    "build_calendar_client",
    "get_calendar_auth_service",
    "get_credential_repository",
    "get_document_store",
    "get_drive_client",
    "get_google_oauth_client",
    "get_token_cipher_service",
]
