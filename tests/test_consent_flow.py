from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest

from crm_api.clients import OAuthStateEncoder
from crm_api.core.errors import ExchangeError, InvalidConsentStateError
from crm_api.models.credentials import IssuedAccessToken
from crm_api.services import CalendarConsentFlow, ConsentDeniedError


class FakeEndpoint:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.exchanges: list[tuple[str, str]] = []

    async def exchange_code(self, *, code: str, uid: str) -> IssuedAccessToken:
        self.exchanges.append((code, uid))
        if self.error is not None:
            raise self.error
        return IssuedAccessToken(access_token="T1", expiry_date=1700000000000)


class Outcome:
    def __init__(self) -> None:
        self.successes: list[IssuedAccessToken] = []
        self.errors: list[Exception] = []

    def on_success(self, issued: IssuedAccessToken) -> None:
        self.successes.append(issued)

    def on_error(self, exc: Exception) -> None:
        self.errors.append(exc)


def _flow(endpoint: FakeEndpoint, **kwargs) -> CalendarConsentFlow:
    return CalendarConsentFlow(
        endpoint,
        OAuthStateEncoder(secret_key="state-key"),
        client_id="client",
        scopes=["https://www.googleapis.com/auth/calendar.events"],
        **kwargs,
    )


def _state(url: str) -> str:
    return parse_qs(urlparse(url).query)["state"][0]


@pytest.mark.asyncio
async def test_successful_consent_forwards_code_and_calls_success_once() -> None:
    endpoint = FakeEndpoint()
    remembered: list[tuple[str, IssuedAccessToken]] = []
    flow = _flow(endpoint, on_token=lambda uid, issued: remembered.append((uid, issued)))
    outcome = Outcome()

    url = flow.begin_consent("u1", outcome.on_success, outcome.on_error)
    query = parse_qs(urlparse(url).query)
    assert query["access_type"] == ["offline"]
    assert query["redirect_uri"] == ["postmessage"]

    issued = await flow.complete_consent(_state(url), code="C1")

    assert issued.access_token == "T1"
    assert endpoint.exchanges == [("C1", "u1")]
    assert outcome.successes == [issued]
    assert outcome.errors == []
    assert remembered == [("u1", issued)]
    assert not flow.is_pending("u1")


@pytest.mark.asyncio
async def test_closed_popup_reports_error_without_exchange() -> None:
    endpoint = FakeEndpoint()
    flow = _flow(endpoint)
    outcome = Outcome()

    url = flow.begin_consent("u1", outcome.on_success, outcome.on_error)
    assert await flow.complete_consent(_state(url), error="access_denied") is None

    assert endpoint.exchanges == []
    assert outcome.successes == []
    assert len(outcome.errors) == 1
    assert isinstance(outcome.errors[0], ConsentDeniedError)


@pytest.mark.asyncio
async def test_failed_exchange_reports_error() -> None:
    endpoint = FakeEndpoint(error=ExchangeError("invalid_grant"))
    flow = _flow(endpoint)
    outcome = Outcome()

    url = flow.begin_consent("u1", outcome.on_success, outcome.on_error)
    assert await flow.complete_consent(_state(url), code="bad") is None

    assert outcome.successes == []
    assert isinstance(outcome.errors[0], ExchangeError)


@pytest.mark.asyncio
async def test_overlapping_consent_reuses_pending_url() -> None:
    flow = _flow(FakeEndpoint())
    first, second = Outcome(), Outcome()

    url_one = flow.begin_consent("u1", first.on_success, first.on_error)
    url_two = flow.begin_consent("u1", second.on_success, second.on_error)

    assert url_one == url_two
    assert flow.is_pending("u1")
    await flow.complete_consent(_state(url_one), code="C1")
    assert len(first.successes) == 1
    assert second.successes == []


@pytest.mark.asyncio
async def test_state_can_only_be_used_once() -> None:
    flow = _flow(FakeEndpoint())
    outcome = Outcome()

    url = flow.begin_consent("u1", outcome.on_success, outcome.on_error)
    await flow.complete_consent(_state(url), code="C1")

    with pytest.raises(InvalidConsentStateError):
        await flow.complete_consent(_state(url), code="C1")


@pytest.mark.asyncio
async def test_expired_state_is_rejected(monkeypatch) -> None:
    clock = [1000.0]
    monkeypatch.setattr("crm_api.services.consent.time.time", lambda: clock[0])
    endpoint = FakeEndpoint()
    flow = _flow(endpoint, state_ttl_seconds=60)
    outcome = Outcome()

    url = flow.begin_consent("u1", outcome.on_success, outcome.on_error)
    clock[0] += 61
    assert not flow.is_pending("u1")

    with pytest.raises(InvalidConsentStateError):
        await flow.complete_consent(_state(url), code="C1")
    assert endpoint.exchanges == []
