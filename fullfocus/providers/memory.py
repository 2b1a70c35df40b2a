"""
In-memory calendar provider.

Holds calendars and events in process. Used by tests and the demo command.
"""

from collections.abc import Iterable
from datetime import datetime

from fullfocus.models import CalendarInfo, ProviderEvent, ensure_aware

from .base import CalendarProvider, overlaps


class MemoryCalendarProvider(CalendarProvider):
    """Calendar provider backed by plain Python lists."""

    name = "memory"

    def __init__(self, access_granted: bool = True):
        super().__init__()
        self.access_granted = access_granted
        self.calendars: dict[str, CalendarInfo] = {}
        self.events: list[ProviderEvent] = []
        self.query_count = 0

    async def request_access(self) -> bool:
        return self.access_granted

    async def list_calendars(self) -> list[CalendarInfo]:
        return list(self.calendars.values())

    async def query_events(
        self,
        start: datetime,
        end: datetime,
        calendar_ids: Iterable[str],
    ) -> list[ProviderEvent]:
        self.query_count += 1
        wanted = set(calendar_ids)
        return [
            event
            for event in self.events
            if event.calendar_id in wanted and overlaps(event, start, end)
        ]

    def add_calendar(self, calendar_id: str, title: str = "") -> CalendarInfo:
        calendar = CalendarInfo(id=calendar_id, title=title or calendar_id)
        self.calendars[calendar_id] = calendar
        self.notify_changed()
        return calendar

    def add_event(self, event: ProviderEvent | None = None, **fields) -> ProviderEvent:
        """Add an event, either prebuilt or from keyword fields."""
        if event is None:
            event = ProviderEvent(**fields)
        event = event.model_copy(
            update={"start": ensure_aware(event.start), "end": ensure_aware(event.end)}
        )
        if event.calendar_id and event.calendar_id not in self.calendars:
            self.calendars[event.calendar_id] = CalendarInfo(
                id=event.calendar_id, title=event.calendar_id
            )
        self.events.append(event)
        self.notify_changed()
        return event

    def remove_event(self, event_id: str):
        self.events = [event for event in self.events if event.id != event_id]
        self.notify_changed()

    def clear(self):
        self.events = []
        self.notify_changed()
