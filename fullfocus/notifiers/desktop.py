"""
Desktop notification alert surfaces.

Uses plyer for cross-platform notifications. Desktop notifications are not
tied to a particular monitor, so this backend reports a single display.
"""

import logging
from collections.abc import Callable

from plyer import notification

from .alert import AlertContent, SurfaceBackend, TimedSurface

logger = logging.getLogger(__name__)


class DesktopNotifier(SurfaceBackend):
    """
    Cross-platform desktop notification backend.

    The notification carries the title, the "starts in" line and the meeting
    link. The alert counts as showing until ``display_seconds`` pass.
    """

    name = "desktop"

    def __init__(
        self,
        app_name: str = "FullFocus",
        display_seconds: int = 60,
        app_icon: str | None = None,
    ):
        self.app_name = app_name
        self.display_seconds = display_seconds
        self.app_icon = app_icon

    def displays(self) -> list[str]:
        return ["desktop"]

    def open(
        self,
        display: str,
        content: AlertContent,
        on_dismiss: Callable[[], None],
        on_join: Callable[[], None],
    ) -> TimedSurface:
        message = content.headline
        if content.meeting_url:
            message = f"{message}\nJoin: {content.meeting_url}"

        self.notify(f"Upcoming meeting: {content.title}", message)
        return TimedSurface(on_dismiss, self.display_seconds)

    def notify(self, title: str, message: str):
        """
        Show a desktop notification.

        Args:
            title: Notification title
            message: Notification message

        Raises whatever plyer raises (NotImplementedError when the platform
        has no notification backend) so the presenter can recover.
        """
        notification.notify(
            title=title[:64],
            message=message,
            app_name=self.app_name,
            app_icon=self.app_icon,
            timeout=self.display_seconds,
        )
        logger.debug(f"Notification sent: {title}")
