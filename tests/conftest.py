"""Pytest configuration shared across the suite."""

from __future__ import annotations

import asyncio
import sqlite3
from contextlib import closing
from typing import Callable

import pytest

try:
    from . import _bootstrap  # noqa: F401
except ImportError:  # pragma: no cover - rootdir-relative import
    import _bootstrap  # type: ignore # noqa: F401

from crm_api.clients import SQLiteStore
from crm_api.core.errors import ConfigurationError
from crm_api.models.credentials import TokenGrant
from crm_api.services import CredentialRepository, TokenCipherService


class DummyOAuthClient:
    """Stands in for Google's token endpoint and records every call."""

    def __init__(self) -> None:
        self.exchange_grant = TokenGrant(
            access_token="T1", refresh_token="R1", expiry_date=1700000000000
        )
        self.refresh_grant = TokenGrant(access_token="T2", expiry_date=1700003600000)
        self.configured = True
        self.revoke_error: Exception | None = None
        self.codes: list[str] = []
        self.refreshes: list[str] = []
        self.revoked: list[str] = []

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError("Missing Google OAuth credentials.")

    async def exchange_authorization_code(self, code: str) -> TokenGrant:
        self.codes.append(code)
        return self.exchange_grant

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        self.refreshes.append(refresh_token)
        await asyncio.sleep(0.01)
        return self.refresh_grant

    async def revoke_token(self, token: str) -> bool:
        self.revoked.append(token)
        if self.revoke_error is not None:
            raise self.revoke_error
        return True


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def cipher() -> TokenCipherService:
    return TokenCipherService(secret="secret-key")


@pytest.fixture
def store(tmp_path) -> SQLiteStore:
    return SQLiteStore(str(tmp_path / "credentials.db"))


@pytest.fixture
def document_count(store: SQLiteStore, tmp_path) -> Callable[[str], int]:
    """Count the rows stored for a user, straight from the SQLite file."""

    def _count(user_id: str) -> int:
        with closing(sqlite3.connect(tmp_path / "credentials.db")) as conn:
            (total,) = conn.execute(
                "SELECT COUNT(*) FROM kv_records WHERE pk = ?", (f"user#{user_id}",)
            ).fetchone()
        return total

    return _count


@pytest.fixture
def repository(store: SQLiteStore, cipher: TokenCipherService) -> CredentialRepository:
    return CredentialRepository(store, cipher)


@pytest.fixture
def oauth_client() -> DummyOAuthClient:
    return DummyOAuthClient()
