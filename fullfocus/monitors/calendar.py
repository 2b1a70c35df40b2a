"""
Calendar monitor - tracks the next event and fires one alert per event.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from fullfocus.errors import AccessDenied, ProviderError
from fullfocus.models import CalendarEvent, Configuration, local_now
from fullfocus.notifiers.alert import AlertPresenter
from fullfocus.preferences import ConfigurationStore
from fullfocus.providers import CalendarProvider
from fullfocus.selector import DEFAULT_LOOKAHEAD_HOURS, NextEventSelector

from .base import BaseMonitor

logger = logging.getLogger(__name__)


class AlertLatch:
    """
    One-shot alert memory.

    Remembers the id of the last event an alert fired for. It is cleared
    whenever a different next event is selected, so every new next event
    gets exactly one chance to alert.
    """

    def __init__(self):
        self.last_alert_event_id: str | None = None

    def reset(self):
        self.last_alert_event_id = None

    def should_fire(self, event: CalendarEvent | None, now: datetime, lead_seconds: int) -> bool:
        if event is None:
            return False
        if self.last_alert_event_id == event.id:
            return False
        seconds_until_start = (event.start_date - now).total_seconds()
        return 0 < seconds_until_start <= lead_seconds

    def mark_fired(self, event: CalendarEvent):
        self.last_alert_event_id = event.id


class CalendarMonitor(BaseMonitor):
    """
    Monitor for the next calendar event.

    On every check:
    - Re-reads the configuration and the provider
    - Replaces the held next event when its identity changes
    - Fires the presenter once when the event enters the lead-time window
    """

    name = "calendar"

    def __init__(
        self,
        provider: CalendarProvider,
        config_store: ConfigurationStore,
        presenter: AlertPresenter,
        clock: Callable[[], datetime] = local_now,
        lookahead_hours: int = DEFAULT_LOOKAHEAD_HOURS,
    ):
        super().__init__(provider, config_store, clock)
        self.presenter = presenter
        self.selector = NextEventSelector(provider, lookahead_hours=lookahead_hours)
        self.latch = AlertLatch()
        self.next_event: CalendarEvent | None = None
        self.access_granted: bool | None = None
        self._access_denied_logged = False

    def current_next_event(self) -> CalendarEvent | None:
        """The event currently considered next, if any."""
        return self.next_event

    async def request_access(self) -> bool:
        """Ask the provider for calendar access."""
        self.access_granted = await self.provider.request_access()
        if self.access_granted:
            self._access_denied_logged = False
            logger.info("Calendar access granted")
        else:
            logger.warning("Calendar access denied; no events will be shown")
        return self.access_granted

    async def check(self) -> dict[str, Any]:
        """Re-select the next event and evaluate the alert condition."""
        now = self.clock()
        config = await self.config_store.get()

        await self.update_next_event(now, config)
        alerted = self.evaluate_alert(now, config)

        return {
            "next_event": self.next_event.title if self.next_event else None,
            "alerted": alerted,
        }

    async def refresh(self) -> dict[str, Any]:
        """Force an immediate re-evaluation, re-asking for access if needed."""
        if not self.access_granted:
            await self.request_access()
        return await self.check()

    async def update_next_event(self, now: datetime, config: Configuration):
        """Select the next event and reset the latch when it changes."""
        try:
            selected = await self.selector.select(now, config)
        except AccessDenied as e:
            if not self._access_denied_logged:
                logger.warning(f"Calendar access denied: {e}")
                self._access_denied_logged = True
            self.access_granted = False
            selected = None
        except ProviderError as e:
            logger.error(f"Calendar query failed: {e}")
            selected = None
        except Exception as e:
            logger.error(f"Unexpected calendar provider failure: {e}", exc_info=True)
            selected = None
        else:
            if self._access_denied_logged:
                logger.info("Calendar access restored")
                self._access_denied_logged = False

        if selected is None:
            if self.next_event is not None:
                logger.info("No upcoming events")
            self.next_event = None
            self.latch.reset()
            return

        if self.next_event is None or self.next_event.id != selected.id:
            logger.info(
                f"Next event: {selected.title!r} at "
                f"{selected.start_date.astimezone().strftime('%Y-%m-%d %H:%M')}"
            )
            self.next_event = selected
            self.latch.reset()

    def evaluate_alert(self, now: datetime, config: Configuration) -> bool:
        """Fire the presenter if the next event is inside the lead window."""
        event = self.next_event
        if not self.latch.should_fire(event, now, config.lead_seconds):
            return False

        self.presenter.show(event)
        self.latch.mark_fired(event)
        logger.info(
            f"Alert fired for {event.title!r} "
            f"({config.alert_lead_time_minutes} minute lead time)"
        )
        return True

    def show_test_alert(self, event: CalendarEvent | None = None) -> bool:
        """Show an alert without touching the latch."""
        if event is None:
            event = self.next_event or make_test_event(self.clock())
        return self.presenter.show(event)


def make_test_event(now: datetime) -> CalendarEvent:
    """A synthetic event one minute out, used for test alerts."""
    return CalendarEvent(
        id=str(uuid.uuid4()),
        title="Test Event",
        start_date=now + timedelta(minutes=1),
        end_date=now + timedelta(hours=1),
    )
