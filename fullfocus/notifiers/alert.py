"""
Alert presenter.

Shows one alert surface per display for an event and keeps a single
"showing" flag so only one alert is up at a time. Dismissing any surface
dismisses all of them.
"""

import asyncio
import logging
import webbrowser
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from fullfocus.models import CalendarEvent, local_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertContent:
    """What an alert surface displays."""

    event_id: str
    title: str
    minutes_until_start: int
    start_time: str
    meeting_url: str | None = None

    @property
    def headline(self) -> str:
        plural = "" if self.minutes_until_start == 1 else "s"
        return (
            f"Starts in {self.minutes_until_start} minute{plural} "
            f"at {self.start_time}"
        )


def build_alert_content(event: CalendarEvent, now: datetime) -> AlertContent:
    """Render-time view of an event; minutes are floored and never negative."""
    seconds = (event.start_date - now).total_seconds()
    return AlertContent(
        event_id=event.id,
        title=event.title,
        minutes_until_start=max(int(seconds // 60), 0),
        start_time=event.start_date.astimezone().strftime("%H:%M"),
        meeting_url=event.meeting_url,
    )


class AlertSurface(ABC):
    """A single visible alert on one display."""

    @abstractmethod
    def close(self):
        """Remove the alert from its display."""


class SurfaceBackend(ABC):
    """Creates alert surfaces for the connected displays."""

    name: str = "base"
    # True when the user closes alerts from the surface itself
    interactive: bool = False

    @abstractmethod
    def displays(self) -> list[str]:
        """Return an identifier for each connected display."""

    @abstractmethod
    def open(
        self,
        display: str,
        content: AlertContent,
        on_dismiss: Callable[[], None],
        on_join: Callable[[], None],
    ) -> AlertSurface:
        """
        Show ``content`` on ``display``.

        ``on_dismiss`` closes every surface. ``on_join`` opens the meeting
        link and then dismisses.
        """


class AlertPresenter:
    """
    Full-screen style alert presenter.

    show() is a no-op while an alert is already up. dismiss() always clears
    the showing flag, even if closing a surface fails.
    """

    def __init__(
        self,
        backend: SurfaceBackend,
        clock: Callable[[], datetime] = local_now,
        open_url: Callable[[str], object] = webbrowser.open,
    ):
        self.backend = backend
        self.clock = clock
        self.open_url = open_url
        self._surfaces: list[AlertSurface] = []
        self._showing = False
        self._content: AlertContent | None = None

    @property
    def is_showing(self) -> bool:
        return self._showing

    @property
    def current(self) -> AlertContent | None:
        """Content of the alert currently shown, if any."""
        return self._content

    def show(self, event: CalendarEvent) -> bool:
        """Show an alert for ``event``. Returns False if one is already up."""
        if self._showing:
            logger.debug(f"Alert already showing, ignoring {event.title!r}")
            return False

        self._showing = True
        self._content = build_alert_content(event, self.clock())
        self._surfaces = []

        try:
            for display in self.backend.displays():
                surface = self.backend.open(
                    display, self._content, self.dismiss, self._join
                )
                self._surfaces.append(surface)
        except Exception as e:
            logger.error(f"Failed to show alert for {event.title!r}: {e}", exc_info=True)
            self.dismiss()
            return False

        logger.info(
            f"Alert shown for {event.title!r} on {len(self._surfaces)} display(s): "
            f"{self._content.headline}"
        )
        return True

    def dismiss(self):
        """Close every alert surface and clear the showing flag."""
        surfaces, self._surfaces = self._surfaces, []
        for surface in surfaces:
            try:
                surface.close()
            except Exception as e:
                logger.warning(f"Failed to close alert surface: {e}")

        if self._showing:
            logger.debug("Alert dismissed")
        self._showing = False
        self._content = None

    def _join(self):
        self.open_meeting_link()

    def open_meeting_link(self) -> bool:
        """Open the current alert's meeting link and dismiss the alert."""
        if not self._content or not self._content.meeting_url:
            return False
        url = self._content.meeting_url
        self.dismiss()
        logger.info(f"Opening meeting link {url}")
        self.open_url(url)
        return True


class TimedSurface(AlertSurface):
    """
    Surface that dismisses the whole alert after ``display_seconds``.

    The timer runs on the current asyncio loop; without a running loop the
    surface stays up until dismissed explicitly.
    """

    def __init__(self, on_dismiss: Callable[[], None], display_seconds: float):
        self._handle = None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._handle = loop.call_later(display_seconds, on_dismiss)

    def close(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
