"""
Google OAuth utilities.

These helpers build the consent URL, sign consent state, and perform the
authorization-code and refresh-token exchanges against Google's token
endpoint.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import logging
import time
from hashlib import sha256
from typing import Any, Dict, Iterable
from urllib.parse import urlencode

import httpx

from crm_api.core.config import GoogleSettings, OAuthSettings
from crm_api.core.errors import (
    ExchangeError,
    InvalidConsentStateError,
    TransientError,
)
from crm_api.models.credentials import TokenGrant

logger = logging.getLogger(__name__)

AUTH_BASE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
REVOKE_URL = "https://oauth2.googleapis.com/revoke"


def build_authorization_url(
    *,
    client_id: str,
    redirect_uri: str,
    scopes: Iterable[str],
    state: str,
    access_type: str = "offline",
) -> str:
    """Construct the Google OAuth consent URL.

    ``access_type=offline`` together with ``prompt=consent`` is what makes
    Google issue a refresh token.
    """
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": " ".join(scopes),
        "access_type": access_type,
        "include_granted_scopes": "true",
        "prompt": "consent",
        "state": state,
    }
    return f"{AUTH_BASE_URL}?{urlencode(params)}"


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            raise InvalidConsentStateError("Malformed OAuth state.") from exc
        signature, serialized = decoded[:32], decoded[32:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise InvalidConsentStateError("Invalid OAuth state signature.")
        return json.loads(serialized)


def _expiry_from_payload(payload: Dict[str, Any], issued_at_ms: int) -> int:
    expiry_date = payload.get("expiry_date")
    if expiry_date is not None:
        return int(expiry_date)
    expires_in = payload.get("expires_in")
    if expires_in is None:
        raise ExchangeError("Token payload carries neither expires_in nor expiry_date.")
    return issued_at_ms + int(expires_in) * 1000


class GoogleOAuthClient:
    """Exchange authorization codes and refresh tokens with Google."""

    def __init__(
        self,
        google_settings: GoogleSettings,
        oauth_settings: OAuthSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._google = google_settings
        self._oauth = oauth_settings
        self._transport = transport

    def ensure_configured(self) -> None:
        self._google.require_oauth_client()

    def build_authorization_url(self, state: str) -> str:
        client_id, _ = self._google.require_oauth_client()
        return build_authorization_url(
            client_id=client_id,
            redirect_uri=self._google.redirect_uri,
            scopes=self._oauth.scopes,
            state=state,
        )

    async def _post_form(self, url: str, data: Dict[str, str]) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                timeout=self._oauth.exchange_timeout_seconds,
                transport=self._transport,
            ) as client:
                return await client.post(url, data=data)
        except httpx.TimeoutException as exc:
            raise TransientError(f"Timed out calling {url}.") from exc
        except httpx.TransportError as exc:
            raise TransientError(f"Network error calling {url}: {exc}") from exc

    async def _token_request(self, data: Dict[str, str]) -> Dict[str, Any]:
        issued_at_ms = int(time.time() * 1000)
        response = await self._post_form(TOKEN_URL, data)

        if response.status_code >= 500:
            raise TransientError(
                f"Token endpoint returned {response.status_code}: {response.text}"
            )
        if response.status_code != httpx.codes.OK:
            raise ExchangeError(response.text)

        try:
            payload = response.json()
        except ValueError as exc:
            raise ExchangeError("Token endpoint returned invalid JSON.") from exc
        if not payload.get("access_token"):
            raise ExchangeError("Incomplete token payload returned from Google.")
        payload["expiry_date"] = _expiry_from_payload(payload, issued_at_ms)
        return payload

    async def exchange_authorization_code(self, code: str) -> TokenGrant:
        """Exchange a one-time authorization code for an access/refresh token pair."""
        client_id, client_secret = self._google.require_oauth_client()
        payload = await self._token_request(
            {
                "code": code,
                "client_id": client_id,
                "client_secret": client_secret,
                "redirect_uri": self._google.redirect_uri,
                "grant_type": "authorization_code",
            }
        )
        return TokenGrant(
            access_token=payload["access_token"],
            expiry_date=payload["expiry_date"],
            refresh_token=payload.get("refresh_token"),
            scope=payload.get("scope"),
            token_type=payload.get("token_type"),
        )

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        """Mint a new access token from a stored refresh token."""
        client_id, client_secret = self._google.require_oauth_client()
        payload = await self._token_request(
            {
                "client_id": client_id,
                "client_secret": client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            }
        )
        return TokenGrant(
            access_token=payload["access_token"],
            expiry_date=payload["expiry_date"],
            refresh_token=payload.get("refresh_token"),
            scope=payload.get("scope"),
            token_type=payload.get("token_type"),
        )

    async def revoke_token(self, token: str) -> bool:
        """Revoke a token upstream. Returns False when Google refuses it."""
        response = await self._post_form(REVOKE_URL, {"token": token})
        if response.status_code != httpx.codes.OK:
            logger.warning("Token revocation returned %s", response.status_code)
            return False
        return True


__all__ = [
    "AUTH_BASE_URL",
    "GoogleOAuthClient",
    "OAuthStateEncoder",
    "REVOKE_URL",
    "TOKEN_URL",
    "build_authorization_url",
]
