"""Google Calendar adapter."""

from datetime import date, datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel

from voice_assistant.errors import ValidationError
from voice_assistant.models import Credential, Provider

from .base import BaseAdapter, Handler, require

GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
DEFAULT_TIMEZONE = "America/New_York"


class CalendarEvent(BaseModel):
    id: str
    title: str
    start: str
    end: str
    all_day: bool = False
    location: str | None = None


def _parse_event(item: dict) -> CalendarEvent:
    start = item.get("start", {})
    end = item.get("end", {})

    if "date" in start:
        start_str = start["date"]
        end_str = end.get("date", start_str)
        all_day = True
    else:
        start_str = start.get("dateTime", "")
        end_str = end.get("dateTime", "")
        all_day = False

    return CalendarEvent(
        id=item.get("id", ""),
        title=item.get("summary", "(No title)"),
        start=start_str,
        end=end_str,
        all_day=all_day,
        location=item.get("location"),
    )


class GoogleCalendarAdapter(BaseAdapter):
    """Google Calendar v3 on the user's primary calendar."""

    api_name = "Google Calendar"

    def __init__(self, timezone: str = DEFAULT_TIMEZONE, **kwargs):
        super().__init__(**kwargs)
        self.timezone = timezone

    @property
    def provider(self) -> Provider:
        return Provider.CALENDAR

    def handlers(self) -> dict[str, Handler]:
        return {
            "listEvents": self.list_events,
            "createEvent": self.create_event,
            "updateEvent": self.update_event,
            "deleteEvent": self.delete_event,
        }

    def _zone(self, name: str | None) -> ZoneInfo:
        try:
            return ZoneInfo(name or self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValidationError(f"Unknown timezone: {name}")

    async def list_events(self, params: dict[str, Any], credential: Credential) -> dict:
        """Events from the start of ``date`` (default today) for ``days`` days."""
        tz = self._zone(params.get("timezone"))

        if params.get("date"):
            try:
                day = date.fromisoformat(str(params["date"]))
            except ValueError:
                raise ValidationError(f"Invalid date: {params['date']}")
        else:
            day = datetime.now(tz).date()

        try:
            days = int(params.get("days", 1))
        except (TypeError, ValueError):
            raise ValidationError("days must be a number")
        if not 1 <= days <= 30:
            raise ValidationError("days must be between 1 and 30")

        time_min = datetime(day.year, day.month, day.day, tzinfo=tz)
        time_max = time_min + timedelta(days=days)

        response = await self._request(
            "GET",
            f"{GOOGLE_CALENDAR_API}/calendars/primary/events",
            credential,
            params={
                "timeMin": time_min.isoformat(),
                "timeMax": time_max.isoformat(),
                "singleEvents": "true",
                "orderBy": "startTime",
                "maxResults": 50,
            },
        )

        events = [_parse_event(item) for item in response.json().get("items", [])]
        return {
            "date": day.isoformat(),
            "days": days,
            "events": [e.model_dump() for e in events],
            "count": len(events),
        }

    async def create_event(self, params: dict[str, Any], credential: Credential) -> dict:
        require(params, "title", "start", "end")
        tz_name = params.get("timezone") or self.timezone
        self._zone(tz_name)

        if params.get("all_day"):
            payload = {
                "summary": params["title"],
                "start": {"date": params["start"]},
                "end": {"date": params["end"]},
            }
        else:
            payload = {
                "summary": params["title"],
                "start": {"dateTime": params["start"], "timeZone": tz_name},
                "end": {"dateTime": params["end"], "timeZone": tz_name},
            }

        if params.get("location"):
            payload["location"] = params["location"]
        if params.get("description"):
            payload["description"] = params["description"]

        response = await self._request(
            "POST",
            f"{GOOGLE_CALENDAR_API}/calendars/primary/events",
            credential,
            json=payload,
        )
        return {"event": _parse_event(response.json()).model_dump()}

    async def update_event(self, params: dict[str, Any], credential: Credential) -> dict:
        require(params, "event_id")
        tz_name = params.get("timezone") or self.timezone

        payload: dict = {}
        if params.get("title") is not None:
            payload["summary"] = params["title"]
        if params.get("location") is not None:
            payload["location"] = params["location"]
        if params.get("description") is not None:
            payload["description"] = params["description"]
        if params.get("start") is not None:
            payload["start"] = {"dateTime": params["start"], "timeZone": tz_name}
        if params.get("end") is not None:
            payload["end"] = {"dateTime": params["end"], "timeZone": tz_name}

        if not payload:
            raise ValidationError("Nothing to update")

        response = await self._request(
            "PATCH",
            f"{GOOGLE_CALENDAR_API}/calendars/primary/events/{params['event_id']}",
            credential,
            json=payload,
        )
        return {"event": _parse_event(response.json()).model_dump()}

    async def delete_event(self, params: dict[str, Any], credential: Credential) -> dict:
        require(params, "event_id")
        await self._request(
            "DELETE",
            f"{GOOGLE_CALENDAR_API}/calendars/primary/events/{params['event_id']}",
            credential,
        )
        return {"deleted": True, "event_id": params["event_id"]}
