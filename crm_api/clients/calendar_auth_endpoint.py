"""HTTP client the browser side uses to reach ``/calendar-auth``."""

from __future__ import annotations

from typing import Any, Dict

import httpx

from crm_api.core.errors import (
    ERRORS_BY_CODE,
    CalendarAuthError,
    InvalidRequestError,
    NotFoundError,
    TransientError,
)
from crm_api.models.credentials import IssuedAccessToken


def _error_from_response(response: httpx.Response) -> CalendarAuthError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    error_cls = ERRORS_BY_CODE.get(body.get("code", ""))
    if error_cls is None:
        # Bodies without a code: classify from the status alone.
        if response.status_code in (502, 503, 504):
            error_cls = TransientError
        elif response.status_code == 404:
            error_cls = NotFoundError
        elif response.status_code == 400:
            error_cls = InvalidRequestError
        else:
            error_cls = CalendarAuthError
    details = body.get("details") or body.get("error") or response.text
    return error_cls(f"{response.status_code}: {details}")


class AuthorizationEndpointClient:
    """Call the authorization endpoint's explicit operations over HTTP."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.post("/calendar-auth", json=payload)
        except httpx.TimeoutException as exc:
            raise TransientError("Timed out calling the authorization endpoint.") from exc
        except httpx.TransportError as exc:
            raise TransientError(f"Cannot reach the authorization endpoint: {exc}") from exc

        if response.status_code != httpx.codes.OK:
            raise _error_from_response(response)
        try:
            body = response.json()
        except ValueError as exc:
            raise CalendarAuthError("Authorization endpoint returned invalid JSON.") from exc
        if not body.get("success"):
            raise CalendarAuthError(str(body.get("error", "Unknown failure")))
        return body

    async def exchange_code(self, *, code: str, uid: str) -> IssuedAccessToken:
        body = await self._post({"operation": "exchange_code", "code": code, "uid": uid})
        return IssuedAccessToken(access_token=body["access_token"], expiry_date=body["expiry_date"])

    async def refresh_token(self, *, uid: str) -> IssuedAccessToken:
        body = await self._post({"operation": "refresh_access_token", "uid": uid})
        return IssuedAccessToken(access_token=body["access_token"], expiry_date=body["expiry_date"])

    async def sign_out(self, *, uid: str, revoke: bool = False) -> None:
        await self._post({"operation": "sign_out", "uid": uid, "revoke": revoke})


__all__ = ["AuthorizationEndpointClient"]
