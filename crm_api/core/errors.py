"""
Error taxonomy for the calendar credential lifecycle.

Each error carries the HTTP status, the public message and the stable code
the endpoint reports, so routes and the client-side broker agree on meaning.
"""

from __future__ import annotations

from http import HTTPStatus


class CalendarAuthError(Exception):
    """Base class for failures surfaced by the authorization endpoint."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    public_message: str = "Authentication failed"
    code: str = "internal_error"
    retryable: bool = False

    def __init__(self, details: str | None = None) -> None:
        super().__init__(details or self.public_message)
        self.details = details


class InvalidRequestError(CalendarAuthError):
    """The request payload did not describe a known operation."""

    status_code = HTTPStatus.BAD_REQUEST
    public_message = "Invalid request parameters"
    code = "invalid_request"


class ConfigurationError(CalendarAuthError):
    """Server-side OAuth or storage credentials are not configured."""

    public_message = "Server configuration error"
    code = "configuration_error"


class ExchangeError(CalendarAuthError):
    """The identity provider rejected the authorization code or refresh token."""

    code = "exchange_failed"


class NotFoundError(CalendarAuthError):
    """No credential record exists for the user."""

    status_code = HTTPStatus.NOT_FOUND
    public_message = "No calendar integration found"
    code = "not_found"


class NoRefreshTokenError(CalendarAuthError):
    """A record exists but holds no refresh token; the user must consent again."""

    status_code = HTTPStatus.NOT_FOUND
    public_message = "No refresh token available. Re-auth required."
    code = "no_refresh_token"


class TransientError(CalendarAuthError):
    """Network failure or timeout talking to the identity provider."""

    status_code = HTTPStatus.SERVICE_UNAVAILABLE
    public_message = "Token service temporarily unavailable"
    code = "transient"
    retryable = True


class InvalidConsentStateError(CalendarAuthError):
    """The consent state token was tampered with, unknown or expired."""

    status_code = HTTPStatus.BAD_REQUEST
    public_message = "Invalid OAuth state"
    code = "invalid_state"


ERRORS_BY_CODE: dict[str, type[CalendarAuthError]] = {
    cls.code: cls
    for cls in (
        CalendarAuthError,
        InvalidRequestError,
        ConfigurationError,
        ExchangeError,
        NotFoundError,
        NoRefreshTokenError,
        TransientError,
        InvalidConsentStateError,
    )
}


__all__ = [
    "CalendarAuthError",
    "ConfigurationError",
    "ERRORS_BY_CODE",
    "ExchangeError",
    "InvalidConsentStateError",
    "InvalidRequestError",
    "NoRefreshTokenError",
    "NotFoundError",
    "TransientError",
]
