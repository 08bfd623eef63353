"""Public schema exports."""

from .auth import (
    CalendarAuthRequest,
    ErrorResponse,
    ExchangeCodeRequest,
    RefreshTokenRequest,
    SignOutRequest,
    SignOutResponse,
    TokenResponse,
    parse_calendar_auth_request,
)
from .calendar import CalendarEventInput
from .drive import DriveUploadResponse

__all__ = [
    "CalendarAuthRequest",
    "CalendarEventInput",
    "DriveUploadResponse",
    "ErrorResponse",
    "ExchangeCodeRequest",
    "RefreshTokenRequest",
    "SignOutRequest",
    "SignOutResponse",
    "TokenResponse",
    "parse_calendar_auth_request",
]
