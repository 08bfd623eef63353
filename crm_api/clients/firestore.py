"""
Firestore document store backed by firebase-admin.

Documents live at ``users/{uid}/integrations/{integration}``, the layout the
web client already reads from.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Dict, Optional

import firebase_admin
from firebase_admin import credentials, firestore

from crm_api.core.config import FirebaseSettings
from crm_api.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

_init_lock = threading.Lock()
_firebase_app: Optional[firebase_admin.App] = None


def init_firebase(settings: FirebaseSettings) -> firebase_admin.App:
    """Initialize the process-wide Firebase app; later calls return the same app."""
    global _firebase_app
    with _init_lock:
        if _firebase_app is not None:
            return _firebase_app
        try:
            _firebase_app = firebase_admin.get_app()
            return _firebase_app
        except ValueError:
            pass

        options = {"projectId": settings.project_id} if settings.project_id else None
        if settings.service_account_json:
            try:
                service_account = json.loads(settings.service_account_json)
            except ValueError as exc:
                raise ConfigurationError("FIREBASE_SERVICE_ACCOUNT is not valid JSON.") from exc
            credential = credentials.Certificate(service_account)
            _firebase_app = firebase_admin.initialize_app(credential, options)
        else:
            _firebase_app = firebase_admin.initialize_app(options=options)
        logger.info("Initialized Firebase app for project %s", settings.project_id or "<default>")
        return _firebase_app


def get_firestore_client(settings: FirebaseSettings) -> Any:
    """Return a Firestore client bound to the shared Firebase app."""
    return firestore.client(app=init_firebase(settings))


class FirestoreStore:
    """Get and merge-write integration documents in Firestore."""

    def __init__(self, client: Any) -> None:
        self._db = client

    def _document(self, user_id: str, integration: str) -> Any:
        return (
            self._db.collection("users")
            .document(user_id)
            .collection("integrations")
            .document(integration)
        )

    def get_document(self, user_id: str, integration: str) -> Optional[Dict[str, Any]]:
        snapshot = self._document(user_id, integration).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict()

    def merge_document(
        self, user_id: str, integration: str, fields: Dict[str, Any]
    ) -> None:
        self._document(user_id, integration).set(fields, merge=True)


__all__ = ["FirestoreStore", "get_firestore_client", "init_firebase"]
