"""Schemas for Google Calendar events created from the CRM."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, model_validator

DEFAULT_EVENT_DURATION = timedelta(hours=1)


def _local_wall_clock(value: datetime) -> str:
    # Google interprets an offset-free dateTime in the supplied timeZone, so
    # only the wall-clock reading is sent.
    return value.replace(tzinfo=None, microsecond=0).isoformat(timespec="seconds")


class CalendarEventInput(BaseModel):
    """A meeting or visit scheduled from the CRM calendar page."""

    summary: str = Field(..., min_length=1)
    description: Optional[str] = None
    location: Optional[str] = Field(None, description="Usually the property address.")
    start: datetime
    end: Optional[datetime] = Field(
        None, description="Defaults to one hour after the start."
    )

    @model_validator(mode="after")
    def _check_order(self) -> "CalendarEventInput":
        if self.end is not None and self.end < self.start:
            raise ValueError("Event end must not precede its start.")
        return self

    @property
    def effective_end(self) -> datetime:
        return self.end or self.start + DEFAULT_EVENT_DURATION

    def to_body(self, time_zone: str) -> Dict[str, Any]:
        """Render the Calendar API event resource."""
        return {
            "summary": self.summary,
            "location": self.location,
            "description": self.description,
            "start": {"dateTime": _local_wall_clock(self.start), "timeZone": time_zone},
            "end": {
                "dateTime": _local_wall_clock(self.effective_end),
                "timeZone": time_zone,
            },
        }


__all__ = ["CalendarEventInput", "DEFAULT_EVENT_DURATION"]
