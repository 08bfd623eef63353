"""
Domain models for calendar credential persistence.
"""

from __future__ import annotations

import time
from typing import Optional

from pydantic import BaseModel, Field


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


class TokenGrant(BaseModel):
    """Tokens returned by the identity provider for one exchange."""

    access_token: str
    expiry_date: int = Field(..., description="Absolute expiry, epoch milliseconds.")
    refresh_token: Optional[str] = None
    scope: Optional[str] = None
    token_type: Optional[str] = None


class IssuedAccessToken(BaseModel):
    """What the endpoint hands back to the client: never a refresh token."""

    access_token: str
    expiry_date: int


class CachedAccessToken(BaseModel):
    """The part of a credential record the client side is allowed to see."""

    access_token: Optional[str] = None
    expires_at: Optional[int] = None

    def is_usable(self, *, now: int, buffer_ms: int) -> bool:
        """True when the token outlives ``now`` by strictly more than the buffer."""
        if not self.access_token or self.expires_at is None:
            return False
        return self.expires_at - now > buffer_ms


class CredentialRecord(CachedAccessToken):
    """Per-user calendar credentials as persisted by the endpoint."""

    user_id: str
    refresh_token: Optional[str] = None
    scope: Optional[str] = None
    token_type: Optional[str] = None
    updated_at: Optional[str] = None


__all__ = [
    "CachedAccessToken",
    "CredentialRecord",
    "IssuedAccessToken",
    "TokenGrant",
    "now_ms",
]
