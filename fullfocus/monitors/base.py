"""
Base monitor class.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime
from typing import Any

from fullfocus.models import local_now
from fullfocus.preferences import ConfigurationStore
from fullfocus.providers import CalendarProvider

logger = logging.getLogger(__name__)


class BaseMonitor(ABC):
    """
    Base class for monitors.

    Each monitor:
    - Reads its data source on every check
    - Compares against its own memory to detect changes
    - Triggers alerts for new items
    """

    name: str = "base"

    def __init__(
        self,
        provider: CalendarProvider,
        config_store: ConfigurationStore,
        clock: Callable[[], datetime] = local_now,
    ):
        self.provider = provider
        self.config_store = config_store
        self.clock = clock
        self.last_run: datetime | None = None

    @abstractmethod
    async def check(self) -> dict[str, Any]:
        """
        Check for updates and return status.

        Returns:
            dict with check results
        """

    async def run(self) -> dict[str, Any]:
        """Run a single check cycle, never raising."""
        try:
            result = await self.check()
            self.last_run = self.clock()
            return result
        except Exception as e:
            logger.error(f"[{self.name}] Error during check: {e}", exc_info=True)
            return {"error": str(e)}
