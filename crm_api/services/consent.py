"""
Consent flow that obtains the first authorization code for a user.

The flow builds the Google consent URL (offline access, calendar scope), and
when the provider hands back a code it forwards it straight to the
authorization endpoint. At most one consent is pending per user.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Protocol

from crm_api.clients.google_auth import OAuthStateEncoder, build_authorization_url
from crm_api.core.errors import CalendarAuthError, InvalidConsentStateError
from crm_api.models.credentials import IssuedAccessToken

logger = logging.getLogger(__name__)

SuccessCallback = Callable[[IssuedAccessToken], Any]
ErrorCallback = Callable[[Exception], Any]


class ExchangeEndpoint(Protocol):
    async def exchange_code(self, *, code: str, uid: str) -> IssuedAccessToken:
        ...


class ConsentDeniedError(CalendarAuthError):
    """The user closed the popup or the provider returned an error."""

    code = "consent_denied"


@dataclass
class PendingConsent:
    uid: str
    nonce: str
    authorization_url: str
    issued_at: float
    on_success: SuccessCallback
    on_error: ErrorCallback


class CalendarConsentFlow:
    """Drive the consent popup and hand the resulting code to the endpoint."""

    def __init__(
        self,
        endpoint: ExchangeEndpoint,
        state_encoder: OAuthStateEncoder,
        *,
        client_id: str,
        scopes: Iterable[str],
        redirect_uri: str = "postmessage",
        state_ttl_seconds: int = 900,
        on_token: Optional[Callable[[str, IssuedAccessToken], None]] = None,
    ) -> None:
        self._endpoint = endpoint
        self._state_encoder = state_encoder
        self._client_id = client_id
        self._scopes = tuple(scopes)
        self._redirect_uri = redirect_uri
        self._state_ttl_seconds = state_ttl_seconds
        self._on_token = on_token
        self._pending: Dict[str, PendingConsent] = {}

    def _expired(self, pending: PendingConsent) -> bool:
        return time.time() - pending.issued_at > self._state_ttl_seconds

    def is_pending(self, uid: str) -> bool:
        pending = self._pending.get(uid)
        return pending is not None and not self._expired(pending)

    def begin_consent(
        self, uid: str, on_success: SuccessCallback, on_error: ErrorCallback
    ) -> str:
        """Return the consent URL for ``uid``.

        While a consent for the same user is still pending, the pending URL is
        returned again and the new callbacks are ignored.
        """
        pending = self._pending.get(uid)
        if pending is not None and not self._expired(pending):
            logger.info("Consent already in flight for user %s; reusing it", uid)
            return pending.authorization_url

        nonce = uuid.uuid4().hex
        issued_at = time.time()
        state = self._state_encoder.encode(
            {"uid": uid, "nonce": nonce, "issued_at": issued_at}
        )
        url = build_authorization_url(
            client_id=self._client_id,
            redirect_uri=self._redirect_uri,
            scopes=self._scopes,
            state=state,
        )
        self._pending[uid] = PendingConsent(
            uid=uid,
            nonce=nonce,
            authorization_url=url,
            issued_at=issued_at,
            on_success=on_success,
            on_error=on_error,
        )
        return url

    def _claim(self, state: str) -> PendingConsent:
        payload = self._state_encoder.decode(state)
        pending = self._pending.get(payload.get("uid", ""))
        if pending is None or pending.nonce != payload.get("nonce"):
            raise InvalidConsentStateError("No consent pending for this state.")
        del self._pending[pending.uid]
        if self._expired(pending):
            raise InvalidConsentStateError("OAuth state token has expired.")
        return pending

    async def complete_consent(
        self,
        state: str,
        *,
        code: Optional[str] = None,
        error: Optional[str] = None,
    ) -> Optional[IssuedAccessToken]:
        """Finish the consent started by :meth:`begin_consent`.

        Exactly one of the pending callbacks is invoked. Returns the issued
        token on success and ``None`` otherwise.
        """
        pending = self._claim(state)

        if not code:
            failure: Exception = ConsentDeniedError(error or "No authorization code returned.")
            logger.info("Consent for user %s did not return a code: %s", pending.uid, failure)
            pending.on_error(failure)
            return None

        try:
            issued = await self._endpoint.exchange_code(code=code, uid=pending.uid)
        except Exception as exc:
            logger.warning("Code exchange failed for user %s: %s", pending.uid, exc)
            pending.on_error(exc)
            return None

        if self._on_token is not None:
            self._on_token(pending.uid, issued)
        pending.on_success(issued)
        return issued


__all__ = ["CalendarConsentFlow", "ConsentDeniedError", "PendingConsent"]
