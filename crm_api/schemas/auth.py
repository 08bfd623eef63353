"""Schemas for the calendar authorization endpoint."""

from __future__ import annotations

from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from crm_api.core.errors import InvalidRequestError


class ExchangeCodeRequest(BaseModel):
    """Trade a one-time authorization code for the user's first token pair."""

    operation: Literal["exchange_code"] = "exchange_code"
    code: str = Field(..., min_length=1, description="Authorization code from the consent popup.")
    uid: str = Field(..., min_length=1, description="Identifier of the owning user.")


class RefreshTokenRequest(BaseModel):
    """Renew the access token from the refresh token stored for ``uid``."""

    operation: Literal["refresh_access_token"] = "refresh_access_token"
    uid: str = Field(..., min_length=1)


class SignOutRequest(BaseModel):
    """Clear the stored access token, optionally revoking the refresh token."""

    operation: Literal["sign_out"] = "sign_out"
    uid: str = Field(..., min_length=1)
    revoke: bool = False


CalendarAuthRequest = Annotated[
    Union[ExchangeCodeRequest, RefreshTokenRequest, SignOutRequest],
    Field(discriminator="operation"),
]

_request_adapter: TypeAdapter[CalendarAuthRequest] = TypeAdapter(CalendarAuthRequest)


def parse_calendar_auth_request(
    body: Any,
) -> Union[ExchangeCodeRequest, RefreshTokenRequest, SignOutRequest]:
    """Resolve a request body to one operation.

    Bodies carrying ``operation`` are validated against the tagged variant.
    Bodies without it follow the older payload-shape convention: ``code`` and
    ``uid`` together exchange a code, ``uid`` alone refreshes.
    """
    if not isinstance(body, dict):
        raise InvalidRequestError("Request body must be a JSON object.")

    try:
        if "operation" in body:
            return _request_adapter.validate_python(body)
        if body.get("code") and body.get("uid"):
            return ExchangeCodeRequest(code=body["code"], uid=body["uid"])
        if body.get("uid") and not body.get("code"):
            return RefreshTokenRequest(uid=body["uid"])
    except ValidationError as exc:
        raise InvalidRequestError(str(exc)) from exc
    raise InvalidRequestError("Expected either {code, uid} or {uid}.")


class TokenResponse(BaseModel):
    success: Literal[True] = True
    access_token: str
    expiry_date: int = Field(..., description="Expiry as epoch milliseconds.")


class SignOutResponse(BaseModel):
    success: Literal[True] = True


class ErrorResponse(BaseModel):
    success: Literal[False] = False
    error: str
    code: str
    details: Optional[str] = None

    def to_content(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


__all__ = [
    "CalendarAuthRequest",
    "ErrorResponse",
    "ExchangeCodeRequest",
    "RefreshTokenRequest",
    "SignOutRequest",
    "SignOutResponse",
    "TokenResponse",
    "parse_calendar_auth_request",
]
