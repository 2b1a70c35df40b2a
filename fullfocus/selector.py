"""
Next-event selection.

Queries the provider over a rolling look-ahead window restricted to the
enabled calendars and picks the soonest-starting event.
"""

import logging
from datetime import datetime, timedelta

from .links import first_meeting_url
from .models import CalendarEvent, Configuration, ProviderEvent
from .providers.base import CalendarProvider

logger = logging.getLogger(__name__)

DEFAULT_LOOKAHEAD_HOURS = 8


def to_calendar_event(event: ProviderEvent) -> CalendarEvent:
    """Build the monitor's event value from a provider record."""
    return CalendarEvent(
        id=event.id,
        title=event.title,
        start_date=event.start,
        end_date=event.end,
        meeting_url=first_meeting_url(event),
    )


class NextEventSelector:
    """Finds the next event for a given moment and configuration."""

    def __init__(
        self,
        provider: CalendarProvider,
        lookahead_hours: int = DEFAULT_LOOKAHEAD_HOURS,
    ):
        self.provider = provider
        self.lookahead = timedelta(hours=lookahead_hours)

    async def select(self, now: datetime, config: Configuration) -> CalendarEvent | None:
        """
        Return the soonest-starting event in [now, now + lookahead].

        No enabled calendars means no events at all, not "every calendar".
        Raises whatever the provider raises; callers decide how to degrade.
        """
        if not config.enabled_calendar_ids:
            return None

        events = await self.provider.query_events(
            now,
            now + self.lookahead,
            sorted(config.enabled_calendar_ids),
        )
        if not events:
            return None

        # sorted() is stable, so equal start times keep provider order
        first = sorted(events, key=lambda event: event.start)[0]
        logger.debug(f"Next event: {first.title!r} at {first.start.isoformat()}")
        return to_calendar_event(first)
