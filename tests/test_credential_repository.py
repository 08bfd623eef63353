from __future__ import annotations

from crm_api.clients import SQLiteStore
from crm_api.models.credentials import TokenGrant
from crm_api.services import CredentialRepository, TokenCipherService


def test_store_exchange_encrypts_refresh_token_at_rest(
    repository: CredentialRepository, store: SQLiteStore
) -> None:
    repository.store_exchange(
        "u1",
        TokenGrant(
            access_token="T1",
            refresh_token="R1",
            expiry_date=1700000000000,
            scope="https://www.googleapis.com/auth/calendar.events",
            token_type="Bearer",
        ),
    )

    raw = store.get_document("u1", "calendar")
    assert raw["access_token"] == "T1"
    assert raw["expiry_date"] == 1700000000000
    assert "R1" not in raw["refresh_token_encrypted"]
    assert "refresh_token" not in raw

    record = repository.get("u1")
    assert record.refresh_token == "R1"
    assert record.token_type == "Bearer"


def test_store_refresh_keeps_refresh_token(repository: CredentialRepository) -> None:
    repository.store_exchange(
        "u1", TokenGrant(access_token="T1", refresh_token="R1", expiry_date=1)
    )

    repository.store_refresh("u1", TokenGrant(access_token="T2", expiry_date=2))

    record = repository.get("u1")
    assert record.access_token == "T2"
    assert record.expires_at == 2
    assert record.refresh_token == "R1"


def test_repeat_consent_without_refresh_token_keeps_stored_one(
    repository: CredentialRepository,
) -> None:
    repository.store_exchange(
        "u1", TokenGrant(access_token="T1", refresh_token="R1", expiry_date=1)
    )

    repository.store_exchange("u1", TokenGrant(access_token="T3", expiry_date=3))

    record = repository.get("u1")
    assert record.access_token == "T3"
    assert record.refresh_token == "R1"


def test_read_access_token_exposes_no_refresh_token(
    repository: CredentialRepository,
) -> None:
    repository.store_exchange(
        "u1", TokenGrant(access_token="T1", refresh_token="R1", expiry_date=5)
    )

    cached = repository.read_access_token("u1")

    assert cached.access_token == "T1"
    assert cached.expires_at == 5
    assert "R1" not in cached.model_dump_json()


def test_legacy_browser_document_is_migrated(
    store: SQLiteStore, cipher: TokenCipherService
) -> None:
    store.merge_document(
        "legacy",
        "calendar",
        {"access_token": "old", "expires_at": 1234, "refresh_token": "plain-refresh"},
    )
    repository = CredentialRepository(store, cipher)

    record = repository.get("legacy")

    assert record.expires_at == 1234
    assert record.refresh_token == "plain-refresh"
    raw = store.get_document("legacy", "calendar")
    assert raw["refresh_token"] is None
    assert cipher.decrypt(raw["refresh_token_encrypted"]) == "plain-refresh"


def test_clear_access_token_keeps_refresh_token_unless_dropped(
    repository: CredentialRepository,
) -> None:
    repository.store_exchange(
        "u1", TokenGrant(access_token="T1", refresh_token="R1", expiry_date=5)
    )

    repository.clear_access_token("u1")
    record = repository.get("u1")
    assert record.access_token is None
    assert record.expires_at is None
    assert record.refresh_token == "R1"

    repository.clear_access_token("u1", drop_refresh_token=True)
    assert repository.get("u1").refresh_token is None


def test_undecryptable_refresh_token_reads_as_absent(
    store: SQLiteStore, repository: CredentialRepository
) -> None:
    other = CredentialRepository(store, TokenCipherService(secret="rotated"))
    other.store_exchange(
        "u1", TokenGrant(access_token="T1", refresh_token="R1", expiry_date=5)
    )

    assert repository.get("u1").refresh_token is None


def test_missing_user_has_no_record(repository: CredentialRepository) -> None:
    assert repository.get("nobody") is None
    assert repository.read_access_token("nobody") is None
