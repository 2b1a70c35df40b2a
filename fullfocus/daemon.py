"""
Main daemon for FullFocus.

Watches the calendar in the background and raises an alert shortly before
the next event starts.
"""

import asyncio
import logging
import signal
import sys

from .config import Settings, load_settings
from .monitors.calendar import CalendarMonitor
from .notifiers.alert import AlertPresenter, SurfaceBackend
from .notifiers.console import ConsoleNotifier
from .notifiers.desktop import DesktopNotifier
from .preferences import ConfigurationStore
from .providers import CalendarProvider, FileCalendarProvider, MacCalendarProvider
from .scheduler import PollScheduler
from .state import StateDB

logger = logging.getLogger(__name__)


def setup_logging(settings: Settings):
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.FileHandler(settings.log_file, mode="a", encoding="utf-8")
        )
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


def create_provider(settings: Settings) -> CalendarProvider:
    """Build the calendar provider selected in settings."""
    if settings.provider.kind == "file":
        return FileCalendarProvider(settings.provider.events_file)
    return MacCalendarProvider(timeout=settings.provider.timeout)


def create_backend(settings: Settings) -> SurfaceBackend:
    """Build the alert surface backend selected in settings."""
    if settings.alerts.backend == "fullscreen":
        from .notifiers.fullscreen import FullScreenNotifier
        return FullScreenNotifier()
    if settings.alerts.backend == "console":
        return ConsoleNotifier(display_seconds=settings.alerts.display_seconds)
    return DesktopNotifier(display_seconds=settings.alerts.display_seconds)


class FocusDaemon:
    """
    Main daemon that wires the calendar monitor together.

    Every component is built once here and handed to the ones that need it:
    - StateDB / ConfigurationStore: persisted lead time and calendars
    - CalendarProvider: where events come from
    - AlertPresenter: how alerts are shown
    - CalendarMonitor + PollScheduler: the evaluation pipeline
    """

    def __init__(
        self,
        settings: Settings | None = None,
        provider: CalendarProvider | None = None,
        backend: SurfaceBackend | None = None,
        configure_logging: bool = True,
    ):
        self.settings = settings or load_settings()
        if configure_logging:
            setup_logging(self.settings)

        self.provider = provider
        self.backend = backend
        self.state: StateDB | None = None
        self.config_store: ConfigurationStore | None = None
        self.presenter: AlertPresenter | None = None
        self.monitor: CalendarMonitor | None = None
        self.poller: PollScheduler | None = None
        self.running = False
        self._stop_requested = asyncio.Event()

    async def initialize(self):
        """Initialize all components."""
        logger.info("Initializing FullFocus daemon...")

        self.settings.data_dir.mkdir(parents=True, exist_ok=True)

        self.state = StateDB(self.settings.db_path)
        await self.state.connect()
        self.config_store = ConfigurationStore(
            self.state,
            default_lead_time_minutes=self.settings.alerts.default_lead_time_minutes,
        )

        if self.provider is None:
            self.provider = create_provider(self.settings)
        if self.backend is None:
            self.backend = create_backend(self.settings)

        self.presenter = AlertPresenter(self.backend)
        self.monitor = CalendarMonitor(
            provider=self.provider,
            config_store=self.config_store,
            presenter=self.presenter,
            lookahead_hours=self.settings.monitor.lookahead_hours,
        )
        self.poller = PollScheduler(
            self.monitor,
            interval_seconds=self.settings.monitor.poll_interval_seconds,
            change_check_seconds=self.settings.monitor.change_check_seconds,
        )

        logger.info("Daemon initialization complete")

    async def start(self):
        """Start the daemon."""
        if self.running:
            logger.warning("Daemon is already running")
            return

        await self.initialize()

        # Ask for calendar access, then run one check before the timer starts
        await self.monitor.request_access()
        await self.poller.tick("startup")

        self.poller.start()
        self.running = True

        config = await self.config_store.get()
        logger.info("FullFocus daemon started")
        logger.info(
            f"Provider={self.provider.name}, alerts={self.backend.name}, "
            f"lead time={config.alert_lead_time_minutes}m, "
            f"calendars={len(config.enabled_calendar_ids)}"
        )
        if not config.enabled_calendar_ids:
            logger.warning(
                "No calendars enabled; run 'fullfocus calendars all' to watch every calendar"
            )

    async def stop(self):
        """Stop the daemon."""
        if not self.running:
            return

        logger.info("Stopping FullFocus daemon...")

        if self.poller:
            await self.poller.stop()

        if self.presenter:
            self.presenter.dismiss()

        if self.state:
            await self.state.close()

        self.running = False
        logger.info("Daemon stopped")

    async def run_forever(self):
        """Run the daemon until interrupted."""
        await self.start()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._shutdown, sig)
            except NotImplementedError:
                # Windows event loops have no signal handler support
                pass

        try:
            await self._stop_requested.wait()
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()

    def _shutdown(self, sig):
        """Handle shutdown signals."""
        logger.info(f"Received signal {sig.name}, shutting down...")
        self._stop_requested.set()

    def get_status(self) -> dict:
        """Get current daemon status."""
        next_event = self.monitor.current_next_event() if self.monitor else None
        return {
            "running": self.running,
            "scheduler_running": self.poller.running if self.poller else False,
            "next_event": next_event.title if next_event else None,
            "alert_showing": self.presenter.is_showing if self.presenter else False,
            "settings": {
                "provider": self.settings.provider.kind,
                "alerts": self.settings.alerts.backend,
                "poll_interval_seconds": self.settings.monitor.poll_interval_seconds,
            },
        }


async def run_daemon():
    """Entry point for running the daemon."""
    daemon = FocusDaemon()
    await daemon.run_forever()


def main():
    """Synchronous entry point."""
    try:
        asyncio.run(run_daemon())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
