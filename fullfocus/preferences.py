"""
Configuration store for the alert preferences.

Wraps StateDB with the two values the monitor reads on every evaluation:
the alert lead time and the set of enabled calendars.
"""

import logging

from .models import Configuration, clamp_lead_time
from .state import StateDB

logger = logging.getLogger(__name__)

LEAD_TIME_KEY = "alertLeadTimeMinutes"
ENABLED_CALENDARS_KEY = "enabledCalendarIDs"


class ConfigurationStore:
    """Reads and writes the persisted Configuration."""

    def __init__(self, state: StateDB, default_lead_time_minutes: int = 1):
        self.state = state
        self.default_lead_time_minutes = clamp_lead_time(default_lead_time_minutes)

    async def get(self) -> Configuration:
        """Load the current configuration."""
        lead_time = await self.state.read_int(
            LEAD_TIME_KEY, default=self.default_lead_time_minutes
        )
        enabled = await self.state.read_string_set(ENABLED_CALENDARS_KEY)
        return Configuration(
            alert_lead_time_minutes=lead_time,
            enabled_calendar_ids=frozenset(enabled),
        )

    async def set(self, config: Configuration):
        """Persist a configuration."""
        await self.state.write_int(
            LEAD_TIME_KEY, clamp_lead_time(config.alert_lead_time_minutes)
        )
        await self.state.write_string_set(
            ENABLED_CALENDARS_KEY, config.enabled_calendar_ids
        )
        logger.debug(
            f"Saved configuration: lead={config.alert_lead_time_minutes}m, "
            f"calendars={len(config.enabled_calendar_ids)}"
        )

    async def set_lead_time(self, minutes: int) -> int:
        """Set the alert lead time, returning the clamped value stored."""
        config = await self.get()
        updated = config.model_copy(
            update={"alert_lead_time_minutes": clamp_lead_time(minutes)}
        )
        await self.set(updated)
        return updated.alert_lead_time_minutes

    async def set_enabled_calendars(self, calendar_ids) -> frozenset[str]:
        """Replace the enabled calendar set (select all / deselect all)."""
        config = await self.get()
        updated = config.model_copy(
            update={"enabled_calendar_ids": frozenset(calendar_ids)}
        )
        await self.set(updated)
        return updated.enabled_calendar_ids

    async def enable_calendar(self, calendar_id: str) -> frozenset[str]:
        """Add one calendar to the enabled set."""
        config = await self.get()
        return await self.set_enabled_calendars(
            config.enabled_calendar_ids | {calendar_id}
        )

    async def disable_calendar(self, calendar_id: str) -> frozenset[str]:
        """Remove one calendar from the enabled set."""
        config = await self.get()
        return await self.set_enabled_calendars(
            config.enabled_calendar_ids - {calendar_id}
        )
