"""
Client-side token broker.

Decides whether a locally known access token is still usable and, when it is
not, asks the authorization endpoint for a fresh one. Failures never escape:
callers get ``None`` and fall back to the consent flow.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional, Protocol

from crm_api.core.errors import CalendarAuthError, NoRefreshTokenError, NotFoundError
from crm_api.models.credentials import CachedAccessToken, IssuedAccessToken, now_ms
from crm_api.utils.inflight import InflightRegistry
from crm_api.utils.retry import RetryConfig, retry_transient

logger = logging.getLogger(__name__)

REFRESH_BUFFER_MS = 5 * 60 * 1000


class AccessTokenReader(Protocol):
    def read_access_token(self, user_id: str) -> Optional[CachedAccessToken]:
        ...


class RefreshEndpoint(Protocol):
    async def refresh_token(self, *, uid: str) -> IssuedAccessToken:
        ...


class CalendarTokenBroker:
    """Hand out access tokens that stay valid for at least the buffer window."""

    def __init__(
        self,
        endpoint: RefreshEndpoint,
        reader: AccessTokenReader,
        *,
        buffer_ms: int = REFRESH_BUFFER_MS,
        retry_config: RetryConfig | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._endpoint = endpoint
        self._reader = reader
        self._buffer_ms = buffer_ms
        self._retry = retry_config or RetryConfig()
        self._clock = clock
        self._cache: Dict[str, CachedAccessToken] = {}
        self._rejected: Dict[str, str] = {}
        self._refreshes: InflightRegistry[Optional[str]] = InflightRegistry()

    def _usable(self, uid: str, cached: Optional[CachedAccessToken]) -> bool:
        if cached is None or cached.access_token == self._rejected.get(uid):
            return False
        return cached.is_usable(now=self._clock(), buffer_ms=self._buffer_ms)

    async def get_valid_access_token(self, uid: str) -> Optional[str]:
        cached = self._cache.get(uid)
        if self._usable(uid, cached):
            return cached.access_token

        try:
            stored = self._reader.read_access_token(uid)
        except Exception:
            logger.exception("Could not read cached credentials for user %s", uid)
            stored = None
        if self._usable(uid, stored):
            self._cache[uid] = stored
            return stored.access_token

        logger.info("Access token for user %s expired or near expiry; refreshing", uid)
        return await self._refreshes.run(uid, lambda: self._refresh(uid))

    async def _refresh(self, uid: str) -> Optional[str]:
        try:
            issued = await retry_transient(
                lambda: self._endpoint.refresh_token(uid=uid),
                retry_config=self._retry,
            )
        except (NotFoundError, NoRefreshTokenError) as exc:
            logger.info("User %s must re-consent: %s", uid, exc)
            self._cache.pop(uid, None)
            return None
        except CalendarAuthError as exc:
            logger.error("Failed to refresh token for user %s: %s", uid, exc)
            return None
        except Exception:
            logger.exception("Unexpected error refreshing token for user %s", uid)
            return None

        self._cache[uid] = CachedAccessToken(
            access_token=issued.access_token, expires_at=issued.expiry_date
        )
        return issued.access_token

    def remember(self, uid: str, issued: IssuedAccessToken) -> None:
        """Seed the cache with a token obtained through the consent flow."""
        self._cache[uid] = CachedAccessToken(
            access_token=issued.access_token, expires_at=issued.expiry_date
        )

    def forget(self, uid: str) -> None:
        self._cache.pop(uid, None)

    def reject(self, uid: str, access_token: str) -> None:
        """Drop a token the Calendar API refused, even if the store still holds it."""
        self._cache.pop(uid, None)
        self._rejected[uid] = access_token


__all__ = ["CalendarTokenBroker", "REFRESH_BUFFER_MS"]
