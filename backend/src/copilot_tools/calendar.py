"""Calendar providers: Google Calendar (OAuth refresh token) or in-process."""

from __future__ import annotations

import logging
import os
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo

import httpx

from src.copilot_orchestrator.errors import ToolExecutionError

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/{calendar_id}/events"
DEFAULT_DURATION = timedelta(hours=1)


def parse_event_time(value: str, tz: ZoneInfo) -> datetime:
    """ISO-8601 to an aware datetime; naive values are taken as local to ``tz``."""
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise ToolExecutionError(
            f"Invalid time '{value}', expected ISO 8601 like 2025-11-20T14:00:00"
        ) from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


class CalendarProvider(ABC):
    def __init__(self, tz_name: str) -> None:
        self.tz = ZoneInfo(tz_name)

    @abstractmethod
    async def list_events(self, max_results: int) -> list[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    async def insert_event(self, event: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None

    async def get_calendar_events(self, max_results: int = 5) -> dict[str, Any]:
        if max_results < 1:
            raise ToolExecutionError("max_results must be at least 1")
        events = await self.list_events(max_results)
        return {"events": [self._describe(e) for e in events]}

    async def create_calendar_event(
        self,
        summary: str,
        start_time: str,
        end_time: str | None = None,
        location: str | None = None,
    ) -> dict[str, Any]:
        start = parse_event_time(start_time, self.tz)
        end = parse_event_time(end_time, self.tz) if end_time else start + DEFAULT_DURATION
        if end <= start:
            raise ToolExecutionError("end_time must be after start_time")
        event: dict[str, Any] = {
            "summary": summary,
            "start": {"dateTime": start.isoformat(), "timeZone": str(self.tz)},
            "end": {"dateTime": end.isoformat(), "timeZone": str(self.tz)},
        }
        if location:
            event["location"] = location
        created = await self.insert_event(event)
        return {"created": True, **self._describe(created)}

    def _describe(self, event: dict[str, Any]) -> dict[str, Any]:
        """Flatten an API event into what the model needs, with local display times."""
        start_raw = event.get("start", {})
        start = start_raw.get("dateTime") or start_raw.get("date")
        end = event.get("end", {}).get("dateTime") or event.get("end", {}).get("date")
        out: dict[str, Any] = {
            "id": event.get("id"),
            "summary": event.get("summary", "(no title)"),
            "start": start,
            "end": end,
        }
        if event.get("location"):
            out["location"] = event["location"]
        if start_raw.get("dateTime"):
            local = parse_event_time(start_raw["dateTime"], self.tz).astimezone(self.tz)
            out["display_start"] = local.strftime("%A %d %B at %H:%M")
        return out


class InMemoryCalendar(CalendarProvider):
    """Process-local calendar used when no Google credentials are configured."""

    def __init__(self, tz_name: str, clock: Callable[[], datetime] | None = None) -> None:
        super().__init__(tz_name)
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.events: list[dict[str, Any]] = []

    async def list_events(self, max_results: int) -> list[dict[str, Any]]:
        now = self.clock()
        upcoming = [
            e for e in self.events if parse_event_time(e["end"]["dateTime"], self.tz) >= now
        ]
        upcoming.sort(key=lambda e: parse_event_time(e["start"]["dateTime"], self.tz))
        return upcoming[:max_results]

    async def insert_event(self, event: dict[str, Any]) -> dict[str, Any]:
        stored = {"id": uuid.uuid4().hex, **event}
        self.events.append(stored)
        return stored


class GoogleCalendarClient(CalendarProvider):
    """Calendar v3 events API with an OAuth 2.0 refresh-token grant."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        tz_name: str,
        calendar_id: str = "primary",
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        super().__init__(tz_name)
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.calendar_id = calendar_id
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._access_token: str | None = None
        self._expires_at = 0.0

    async def _token(self) -> str:
        # Refresh a minute early
        if self._access_token and time.monotonic() < self._expires_at - 60:
            return self._access_token
        try:
            response = await self._client.post(
                TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": self.refresh_token,
                    "grant_type": "refresh_token",
                },
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            logger.warning("Calendar token refresh failed: %s", e)
            raise ToolExecutionError("Could not authenticate with the calendar service") from e
        self._access_token = payload["access_token"]
        self._expires_at = time.monotonic() + float(payload.get("expires_in", 3600))
        return self._access_token

    async def _request(self, method: str, **kwargs: Any) -> dict[str, Any]:
        token = await self._token()
        url = EVENTS_URL.format(calendar_id=self.calendar_id)
        try:
            response = await self._client.request(
                method, url, headers={"Authorization": f"Bearer {token}"}, **kwargs
            )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.warning("Calendar %s request failed: %s", method, e)
            raise ToolExecutionError("Calendar service request failed") from e

    async def list_events(self, max_results: int) -> list[dict[str, Any]]:
        payload = await self._request(
            "GET",
            params={
                "timeMin": datetime.now(timezone.utc).isoformat(),
                "maxResults": max_results,
                "singleEvents": "true",
                "orderBy": "startTime",
            },
        )
        return payload.get("items", [])

    async def insert_event(self, event: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", json=event)

    async def aclose(self) -> None:
        await self._client.aclose()


def calendar_from_env(tz_name: str) -> CalendarProvider:
    client_id = os.getenv("GOOGLE_CALENDAR_CLIENT_ID")
    client_secret = os.getenv("GOOGLE_CALENDAR_CLIENT_SECRET")
    refresh_token = os.getenv("GOOGLE_CALENDAR_REFRESH_TOKEN")
    if client_id and client_secret and refresh_token:
        logger.info("Using Google Calendar")
        return GoogleCalendarClient(
            client_id,
            client_secret,
            refresh_token,
            tz_name=tz_name,
            calendar_id=os.getenv("GOOGLE_CALENDAR_ID", "primary"),
        )
    logger.info("Google Calendar credentials not set; using in-memory calendar")
    return InMemoryCalendar(tz_name)
