"""Symmetric encryption for refresh tokens kept in the credential store."""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken

from crm_api.core.config import GoogleSettings, SecuritySettings
from crm_api.core.errors import ConfigurationError


class TokenDecryptionError(ValueError):
    """Stored ciphertext cannot be read with the current key."""


class TokenCipherService:
    """Encrypt and decrypt sensitive strings using a derived Fernet key."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    @classmethod
    def from_settings(
        cls, security: SecuritySettings, google: GoogleSettings
    ) -> "TokenCipherService":
        """Key off TOKEN_ENCRYPTION_SECRET, falling back to the OAuth client secret."""
        secret = security.token_encryption_secret or google.client_secret
        if not secret:
            raise ConfigurationError(
                "Neither TOKEN_ENCRYPTION_SECRET nor GOOGLE_CLIENT_SECRET is set."
            )
        return cls(secret=secret)

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise TokenDecryptionError(
                "Failed to decrypt token; the key may have been rotated."
            ) from exc
        return plaintext.decode("utf-8")


__all__ = ["TokenCipherService", "TokenDecryptionError"]
