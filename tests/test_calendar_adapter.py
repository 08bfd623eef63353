from __future__ import annotations

from datetime import datetime

import httplib2
import pytest
from googleapiclient.errors import HttpError

from crm_api.clients import (
    CalendarApiAdapter,
    CalendarNotAuthorizedError,
    CalendarUnauthorizedError,
)
from crm_api.core.config import CalendarSettings
from crm_api.models.credentials import CachedAccessToken, IssuedAccessToken
from crm_api.schemas import CalendarEventInput
from crm_api.services import CalendarTokenBroker
from crm_api.utils.retry import RetryConfig

# 2100-01-01
FAR_FUTURE = 4102444800000


class FakeRequest:
    def __init__(self, result=None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error

    def execute(self):
        if self.error is not None:
            raise self.error
        return self.result


class FakeEvents:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[str, dict]] = []

    def _request(self, name: str, result, **kwargs) -> FakeRequest:
        self.calls.append((name, kwargs))
        return FakeRequest(result, self.error)

    def list(self, **kwargs) -> FakeRequest:
        return self._request("list", {"items": [{"id": "e1"}]}, **kwargs)

    def insert(self, **kwargs) -> FakeRequest:
        return self._request("insert", {"id": "new", **kwargs["body"]}, **kwargs)

    def update(self, **kwargs) -> FakeRequest:
        return self._request("update", {"id": kwargs["eventId"]}, **kwargs)

    def delete(self, **kwargs) -> FakeRequest:
        return self._request("delete", "", **kwargs)


class FakeService:
    def __init__(self, events: FakeEvents) -> None:
        self._events = events

    def events(self) -> FakeEvents:
        return self._events


class FakeBroker:
    def __init__(self, token: str | None = "T1") -> None:
        self.token = token
        self.forgotten: list[str] = []

    async def get_valid_access_token(self, uid: str) -> str | None:
        return self.token

    def forget(self, uid: str) -> None:
        self.forgotten.append(uid)


class FakeEndpoint:
    def __init__(self) -> None:
        self.sign_outs: list[tuple[str, bool]] = []

    async def sign_out(self, *, uid: str, revoke: bool = False) -> None:
        self.sign_outs.append((uid, revoke))


def _adapter(events: FakeEvents, broker: FakeBroker | None = None, endpoint=None):
    tokens: list[str] = []

    def factory(credentials):
        tokens.append(credentials.token)
        return FakeService(events)

    adapter = CalendarApiAdapter(
        broker or FakeBroker(),
        CalendarSettings(),
        endpoint=endpoint,
        service_factory=factory,
    )
    return adapter, tokens


@pytest.mark.asyncio
async def test_requests_require_installed_token() -> None:
    adapter, _ = _adapter(FakeEvents(), FakeBroker(token=None))

    assert await adapter.ensure_auth("u1") is False
    assert adapter.signed_in is False
    with pytest.raises(CalendarNotAuthorizedError):
        await adapter.list_upcoming_events()


@pytest.mark.asyncio
async def test_list_month_events_pads_the_month_and_uses_broker_token() -> None:
    events = FakeEvents()
    adapter, tokens = _adapter(events)

    assert await adapter.ensure_auth("u1") is True
    items = await adapter.list_month_events(2024, 2)

    assert items == [{"id": "e1"}]
    assert tokens == ["T1"]
    name, kwargs = events.calls[0]
    assert name == "list"
    assert kwargs["calendarId"] == "primary"
    assert kwargs["timeMin"].startswith("2024-01-18")
    assert kwargs["timeMax"].startswith("2024-03-14")
    assert kwargs["singleEvents"] is True
    assert kwargs["orderBy"] == "startTime"
    assert kwargs["showDeleted"] is False


@pytest.mark.asyncio
async def test_insert_event_sends_wall_clock_time_in_configured_zone() -> None:
    events = FakeEvents()
    adapter, _ = _adapter(events)
    await adapter.ensure_auth("u1")

    await adapter.insert_event(
        CalendarEventInput(
            summary="Visita",
            location="Av. Corrientes 1234",
            start=datetime(2024, 5, 10, 15, 30),
        )
    )

    _, kwargs = events.calls[0]
    body = kwargs["body"]
    assert body["start"] == {
        "dateTime": "2024-05-10T15:30:00",
        "timeZone": "America/Argentina/Buenos_Aires",
    }
    assert body["end"]["dateTime"] == "2024-05-10T16:30:00"
    assert body["location"] == "Av. Corrientes 1234"


@pytest.mark.asyncio
async def test_update_and_delete_target_the_event_id() -> None:
    events = FakeEvents()
    adapter, _ = _adapter(events)
    await adapter.ensure_auth("u1")

    event = CalendarEventInput(summary="Firma", start=datetime(2024, 5, 10, 9, 0))
    await adapter.update_event("e1", event)
    await adapter.delete_event("e1")

    assert [(name, kwargs["eventId"]) for name, kwargs in events.calls] == [
        ("update", "e1"),
        ("delete", "e1"),
    ]


class StoredTokenReader:
    def __init__(self, access_token: str) -> None:
        self.cached = CachedAccessToken(access_token=access_token, expires_at=FAR_FUTURE)

    def read_access_token(self, user_id: str) -> CachedAccessToken | None:
        return self.cached


class RefreshingEndpoint:
    def __init__(self) -> None:
        self.refreshes: list[str] = []

    async def refresh_token(self, *, uid: str) -> IssuedAccessToken:
        self.refreshes.append(uid)
        return IssuedAccessToken(access_token="T2", expiry_date=FAR_FUTURE)


@pytest.mark.asyncio
async def test_unauthorized_response_signs_out_without_retry() -> None:
    error = HttpError(
        httplib2.Response({"status": 401}),
        b'{"error": {"message": "Invalid Credentials"}}',
    )
    events = FakeEvents(error=error)
    endpoint = RefreshingEndpoint()
    broker = CalendarTokenBroker(
        endpoint,
        StoredTokenReader("T1"),
        retry_config=RetryConfig(attempts=1, backoff_seconds=0),
    )
    adapter, tokens = _adapter(events, broker)
    await adapter.ensure_auth("u1")

    with pytest.raises(CalendarUnauthorizedError):
        await adapter.list_upcoming_events()

    assert adapter.signed_in is False
    assert len(events.calls) == 1
    assert tokens == ["T1"]

    # the stored copy of T1 is still "valid", but must not be handed out again
    assert await adapter.ensure_auth("u1") is True
    events.error = None
    await adapter.list_upcoming_events()
    assert tokens == ["T1", "T2"]
    assert endpoint.refreshes == ["u1"]


@pytest.mark.asyncio
async def test_other_http_errors_propagate_and_keep_session() -> None:
    error = HttpError(httplib2.Response({"status": 500}), b"{}")
    adapter, _ = _adapter(FakeEvents(error=error))
    await adapter.ensure_auth("u1")

    with pytest.raises(HttpError):
        await adapter.list_upcoming_events()

    assert adapter.signed_in is True


@pytest.mark.asyncio
async def test_sign_out_clears_local_state_and_endpoint() -> None:
    broker = FakeBroker()
    endpoint = FakeEndpoint()
    adapter, _ = _adapter(FakeEvents(), broker, endpoint)
    await adapter.ensure_auth("u1")

    await adapter.sign_out("u1", revoke=True)

    assert adapter.signed_in is False
    assert broker.forgotten == ["u1"]
    assert endpoint.sign_outs == [("u1", True)]


def test_event_end_before_start_is_rejected() -> None:
    with pytest.raises(ValueError):
        CalendarEventInput(
            summary="x",
            start=datetime(2024, 5, 10, 10, 0),
            end=datetime(2024, 5, 10, 9, 0),
        )


def test_issued_token_has_no_refresh_token_field() -> None:
    assert set(IssuedAccessToken.model_fields) == {"access_token", "expiry_date"}
