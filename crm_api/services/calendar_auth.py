"""
Server side of the calendar token lifecycle.

``CalendarAuthService`` is the only component that sees refresh tokens or the
OAuth client secret. It exchanges authorization codes, renews access tokens
from stored refresh tokens and clears credentials on sign-out.
"""

from __future__ import annotations

import logging
from typing import Protocol

from crm_api.core.errors import NoRefreshTokenError, NotFoundError, TransientError
from crm_api.models.credentials import IssuedAccessToken, TokenGrant
from crm_api.services.credentials import CredentialRepository
from crm_api.utils.inflight import InflightRegistry

logger = logging.getLogger(__name__)


class TokenExchanger(Protocol):
    def ensure_configured(self) -> None:
        ...

    async def exchange_authorization_code(self, code: str) -> TokenGrant:
        ...

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        ...

    async def revoke_token(self, token: str) -> bool:
        ...


class CalendarAuthService:
    """Exchanges and renews Google Calendar tokens for a user."""

    def __init__(
        self,
        repository: CredentialRepository,
        oauth_client: TokenExchanger,
    ) -> None:
        self._repository = repository
        self._oauth = oauth_client
        self._refreshes: InflightRegistry[IssuedAccessToken] = InflightRegistry()

    async def exchange_code(self, *, code: str, uid: str) -> IssuedAccessToken:
        """Trade a one-time authorization code for tokens and persist them."""
        self._oauth.ensure_configured()
        logger.info("Exchanging authorization code for user %s", uid)
        grant = await self._oauth.exchange_authorization_code(code)
        self._repository.store_exchange(uid, grant)
        if not grant.refresh_token:
            logger.info(
                "No refresh token issued for user %s; keeping any stored one.", uid
            )
        return IssuedAccessToken(access_token=grant.access_token, expiry_date=grant.expiry_date)

    async def refresh_token(self, *, uid: str) -> IssuedAccessToken:
        """Renew the access token from the stored refresh token.

        Concurrent calls for the same user share one upstream exchange.
        """
        self._oauth.ensure_configured()
        return await self._refreshes.run(uid, lambda: self._refresh(uid))

    async def _refresh(self, uid: str) -> IssuedAccessToken:
        record = self._repository.get(uid)
        if record is None:
            logger.warning("No calendar integration found for user %s", uid)
            raise NotFoundError(f"No credential record for user {uid}.")
        if not record.refresh_token:
            logger.warning("User %s has no refresh token; re-consent required", uid)
            raise NoRefreshTokenError(f"Credential record for user {uid} has no refresh token.")

        logger.info("Refreshing access token for user %s", uid)
        grant = await self._oauth.refresh_access_token(record.refresh_token)
        self._repository.store_refresh(uid, grant)
        return IssuedAccessToken(access_token=grant.access_token, expiry_date=grant.expiry_date)

    async def sign_out(self, *, uid: str, revoke: bool = False) -> None:
        """Clear the access token; with ``revoke`` also drop the refresh token.

        Revocation upstream is best effort: the stored refresh token is dropped
        even when Google refuses or cannot be reached.
        """
        record = self._repository.get(uid)
        if record is None:
            raise NotFoundError(f"No credential record for user {uid}.")

        if revoke:
            token = record.refresh_token or record.access_token
            if token:
                self._oauth.ensure_configured()
                try:
                    await self._oauth.revoke_token(token)
                except TransientError as exc:
                    logger.warning("Upstream revocation failed for user %s: %s", uid, exc)
        self._repository.clear_access_token(uid, drop_refresh_token=revoke)
        logger.info("Signed out calendar integration for user %s (revoke=%s)", uid, revoke)


__all__ = ["CalendarAuthService", "TokenExchanger"]
