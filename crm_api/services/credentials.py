"""
Credential store for per-user calendar tokens.

Wraps any document store exposing ``get_document`` / ``merge_document`` and
owns the record layout: refresh tokens are encrypted at rest, and every write
is a merge so fields a caller does not mention are left untouched.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from crm_api.models.credentials import CachedAccessToken, CredentialRecord, TokenGrant
from crm_api.services.token_cipher import TokenCipherService, TokenDecryptionError

logger = logging.getLogger(__name__)

CALENDAR_INTEGRATION = "calendar"


class DocumentStore(Protocol):
    def get_document(self, user_id: str, integration: str) -> Optional[Dict[str, Any]]:
        ...

    def merge_document(
        self, user_id: str, integration: str, fields: Dict[str, Any]
    ) -> None:
        ...


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class CredentialRepository:
    """Reads and merge-writes ``users/{uid}/integrations/calendar``."""

    def __init__(
        self,
        store: DocumentStore,
        cipher: TokenCipherService,
        *,
        integration: str = CALENDAR_INTEGRATION,
    ) -> None:
        self._store = store
        self._cipher = cipher
        self._integration = integration

    def _load(self, user_id: str) -> Optional[Dict[str, Any]]:
        document = self._store.get_document(user_id, self._integration)
        if document is None:
            return None

        # Documents written by the old browser code kept the refresh token in
        # plaintext; move it behind the cipher the first time we see it.
        legacy_refresh_token = document.get("refresh_token")
        if legacy_refresh_token and not document.get("refresh_token_encrypted"):
            migrated = {
                "refresh_token_encrypted": self._cipher.encrypt(legacy_refresh_token),
                "refresh_token": None,
                "updated_at": _utcnow_iso(),
            }
            self._store.merge_document(user_id, self._integration, migrated)
            document.update(migrated)
            logger.info("Migrated plaintext refresh token for user %s", user_id)
        return document

    @staticmethod
    def _expiry(document: Dict[str, Any]) -> Optional[int]:
        # expires_at is the field name the browser used before expiry_date.
        raw = document.get("expiry_date")
        if raw is None:
            raw = document.get("expires_at")
        if raw is None:
            return None
        return int(raw)

    def get(self, user_id: str) -> Optional[CredentialRecord]:
        """Return the full record, refresh token decrypted. Server side only."""
        document = self._load(user_id)
        if document is None:
            return None

        refresh_token = None
        encrypted = document.get("refresh_token_encrypted")
        if encrypted:
            try:
                refresh_token = self._cipher.decrypt(encrypted)
            except TokenDecryptionError:
                logger.warning(
                    "Stored refresh token for user %s cannot be decrypted; "
                    "treating it as absent.",
                    user_id,
                )

        return CredentialRecord(
            user_id=user_id,
            access_token=document.get("access_token"),
            expires_at=self._expiry(document),
            refresh_token=refresh_token,
            scope=document.get("scope"),
            token_type=document.get("token_type"),
            updated_at=document.get("updated_at"),
        )

    def read_access_token(self, user_id: str) -> Optional[CachedAccessToken]:
        """Return only the access token and its expiry."""
        document = self._store.get_document(user_id, self._integration)
        if document is None:
            return None
        return CachedAccessToken(
            access_token=document.get("access_token"),
            expires_at=self._expiry(document),
        )

    def store_exchange(self, user_id: str, grant: TokenGrant) -> None:
        """Persist the result of a code exchange.

        The refresh token is written only when the provider issued one, so a
        repeat consent that omits it keeps the stored value.
        """
        fields: Dict[str, Any] = {
            "access_token": grant.access_token,
            "expiry_date": grant.expiry_date,
            "updated_at": _utcnow_iso(),
        }
        if grant.scope is not None:
            fields["scope"] = grant.scope
        if grant.token_type is not None:
            fields["token_type"] = grant.token_type
        if grant.refresh_token:
            fields["refresh_token_encrypted"] = self._cipher.encrypt(grant.refresh_token)
        self._store.merge_document(user_id, self._integration, fields)

    def store_refresh(self, user_id: str, grant: TokenGrant) -> None:
        """Persist a renewed access token; the refresh token is never touched."""
        self._store.merge_document(
            user_id,
            self._integration,
            {
                "access_token": grant.access_token,
                "expiry_date": grant.expiry_date,
                "updated_at": _utcnow_iso(),
            },
        )

    def clear_access_token(
        self, user_id: str, *, drop_refresh_token: bool = False
    ) -> None:
        fields: Dict[str, Any] = {
            "access_token": None,
            "expiry_date": None,
            "expires_at": None,
            "updated_at": _utcnow_iso(),
        }
        if drop_refresh_token:
            fields["refresh_token_encrypted"] = None
        self._store.merge_document(user_id, self._integration, fields)


__all__ = ["CALENDAR_INTEGRATION", "CredentialRepository", "DocumentStore"]
