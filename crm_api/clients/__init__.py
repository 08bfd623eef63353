"""Expose constructed client wrappers."""

from .calendar_auth_endpoint import AuthorizationEndpointClient
from .dynamodb import DynamoDBClient
from .firestore import FirestoreStore, get_firestore_client, init_firebase
from .google_auth import GoogleOAuthClient, OAuthStateEncoder
from .google_calendar import (
    CalendarApiAdapter,
    CalendarNotAuthorizedError,
    CalendarUnauthorizedError,
)
from .google_drive import GoogleDriveClient
from .sqlite_store import SQLiteStore

__all__ = [
    "AuthorizationEndpointClient",
    "CalendarApiAdapter",
    "CalendarNotAuthorizedError",
    "CalendarUnauthorizedError",
    "DynamoDBClient",
    "FirestoreStore",
    "GoogleDriveClient",
    "GoogleOAuthClient",
    "OAuthStateEncoder",
    "SQLiteStore",
    "get_firestore_client",
    "init_firebase",
]
