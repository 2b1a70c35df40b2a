"""
Base calendar provider.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from datetime import datetime

from fullfocus.models import CalendarInfo, ProviderEvent

logger = logging.getLogger(__name__)

ChangeListener = Callable[[], None]


class CalendarProvider(ABC):
    """
    Base class for calendar data sources.

    Each provider:
    - Lists the calendars it can read
    - Returns events whose interval intersects a time window
    - Notifies subscribers when its data changes out of band
    """

    name: str = "base"

    def __init__(self):
        self._listeners: list[ChangeListener] = []

    async def request_access(self) -> bool:
        """Ask for permission to read calendars. Returns True when granted."""
        return True

    @abstractmethod
    async def list_calendars(self) -> list[CalendarInfo]:
        """Return all calendars the provider can read."""

    @abstractmethod
    async def query_events(
        self,
        start: datetime,
        end: datetime,
        calendar_ids: Iterable[str],
    ) -> list[ProviderEvent]:
        """Return events in the given calendars overlapping [start, end]."""

    async def check_for_changes(self):
        """Detect out-of-band changes. Providers that can't push override this."""

    def subscribe(self, listener: ChangeListener):
        """Register a callback run whenever the calendar data changes."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ChangeListener):
        """Remove a previously registered change callback."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def notify_changed(self):
        """Tell all subscribers the calendar data changed."""
        logger.debug(f"[{self.name}] calendar data changed")
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:
                logger.error(f"[{self.name}] change listener failed: {e}", exc_info=True)


def overlaps(event: ProviderEvent, start: datetime, end: datetime) -> bool:
    """True when the event's interval intersects [start, end]."""
    return event.start <= end and event.end >= start
