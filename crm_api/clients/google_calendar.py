"""Google Calendar client wrapper used by the CRM calendar and dashboard."""

from __future__ import annotations

import asyncio
import calendar
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from crm_api.core.config import CalendarSettings
from crm_api.schemas.calendar import CalendarEventInput

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from crm_api.clients.calendar_auth_endpoint import AuthorizationEndpointClient
    from crm_api.services.token_broker import CalendarTokenBroker

logger = logging.getLogger(__name__)

MONTH_VIEW_PADDING = timedelta(days=14)


class CalendarNotAuthorizedError(Exception):
    """No access token is installed; call ``ensure_auth`` or run the consent flow."""


class CalendarUnauthorizedError(Exception):
    """Google rejected the installed token with HTTP 401; the user is signed out."""


def _build_calendar_service(credentials: Credentials) -> Any:
    return build("calendar", "v3", credentials=credentials, cache_discovery=False)


def _rfc3339(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


class CalendarApiAdapter:
    """List, insert, update and delete events with a currently valid token.

    A 401 from Google flips ``signed_in`` to False instead of refreshing and
    retrying, so a revoked refresh token cannot cause a refresh loop.
    """

    def __init__(
        self,
        broker: "CalendarTokenBroker",
        settings: CalendarSettings,
        *,
        endpoint: Optional["AuthorizationEndpointClient"] = None,
        service_factory: Callable[[Credentials], Any] = _build_calendar_service,
    ) -> None:
        self._broker = broker
        self._settings = settings
        self._endpoint = endpoint
        self._service_factory = service_factory
        self._credentials: Optional[Credentials] = None
        self._uid: Optional[str] = None

    @property
    def signed_in(self) -> bool:
        return self._credentials is not None

    async def ensure_auth(self, uid: str) -> bool:
        """Install a valid access token for ``uid``; False means re-consent."""
        self._uid = uid
        access_token = await self._broker.get_valid_access_token(uid)
        if access_token is None:
            self._credentials = None
            return False
        self._credentials = Credentials(token=access_token)
        return True

    async def _execute(self, build_request: Callable[[Any], Any]) -> Any:
        credentials = self._credentials
        if credentials is None:
            raise CalendarNotAuthorizedError("Calendar client has no access token installed.")

        def _run() -> Any:
            service = self._service_factory(credentials)
            return build_request(service.events()).execute()

        try:
            return await asyncio.to_thread(_run)
        except HttpError as exc:
            if exc.resp.status == 401:
                logger.warning("Calendar API rejected the access token; signing out")
                self._credentials = None
                if self._uid is not None:
                    self._broker.reject(self._uid, credentials.token)
                raise CalendarUnauthorizedError(str(exc)) from exc
            raise

    async def list_events(
        self,
        *,
        time_min: datetime,
        time_max: datetime,
        max_results: int = 250,
    ) -> List[Dict[str, Any]]:
        response = await self._execute(
            lambda events: events.list(
                calendarId=self._settings.calendar_id,
                timeMin=_rfc3339(time_min),
                timeMax=_rfc3339(time_max),
                showDeleted=False,
                singleEvents=True,
                maxResults=max_results,
                orderBy="startTime",
                timeZone=self._settings.time_zone,
            )
        )
        return response.get("items", [])

    async def list_month_events(self, year: int, month: int) -> List[Dict[str, Any]]:
        """Events for a month grid, padded two weeks on either side."""
        last_day = calendar.monthrange(year, month)[1]
        start = datetime(year, month, 1, tzinfo=timezone.utc) - MONTH_VIEW_PADDING
        end = datetime(year, month, last_day, tzinfo=timezone.utc) + MONTH_VIEW_PADDING
        return await self.list_events(time_min=start, time_max=end, max_results=250)

    async def list_upcoming_events(
        self, *, days: int = 30, max_results: int = 50
    ) -> List[Dict[str, Any]]:
        now = datetime.now(timezone.utc)
        return await self.list_events(
            time_min=now, time_max=now + timedelta(days=days), max_results=max_results
        )

    async def insert_event(self, event: CalendarEventInput) -> Dict[str, Any]:
        body = event.to_body(self._settings.time_zone)
        return await self._execute(
            lambda events: events.insert(calendarId=self._settings.calendar_id, body=body)
        )

    async def update_event(self, event_id: str, event: CalendarEventInput) -> Dict[str, Any]:
        body = event.to_body(self._settings.time_zone)
        return await self._execute(
            lambda events: events.update(
                calendarId=self._settings.calendar_id, eventId=event_id, body=body
            )
        )

    async def delete_event(self, event_id: str) -> None:
        await self._execute(
            lambda events: events.delete(
                calendarId=self._settings.calendar_id, eventId=event_id
            )
        )

    async def sign_out(self, uid: str, *, revoke: bool = False) -> None:
        """Drop local credentials and clear the stored access token."""
        self._credentials = None
        self._broker.forget(uid)
        if self._endpoint is not None:
            await self._endpoint.sign_out(uid=uid, revoke=revoke)


__all__ = [
    "CalendarApiAdapter",
    "CalendarNotAuthorizedError",
    "CalendarUnauthorizedError",
]
