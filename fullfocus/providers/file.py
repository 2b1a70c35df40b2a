"""
YAML file calendar provider.

Reads calendars and events from a local YAML file such as:

    calendars:
      - id: work
        title: Work
    events:
      - id: standup
        calendar: work
        title: Daily standup
        start: 2026-10-19T09:30:00+02:00
        end: 2026-10-19T09:45:00+02:00
        location: https://meet.example.com/standup

Edits made to the file while the daemon runs are picked up by
check_for_changes(), which compares the file's modification time.
"""

import asyncio
import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from fullfocus.errors import ProviderError
from fullfocus.models import CalendarInfo, ProviderEvent, ensure_aware

from .base import CalendarProvider, overlaps

logger = logging.getLogger(__name__)


class FileCalendarProvider(CalendarProvider):
    """Calendar provider backed by a YAML document on disk."""

    name = "file"

    def __init__(self, path: Path | str):
        super().__init__()
        self.path = Path(path).expanduser()
        self._loaded = False
        self._mtime: float | None = None
        self._calendars: list[CalendarInfo] = []
        self._events: list[ProviderEvent] = []

    async def request_access(self) -> bool:
        return True

    async def list_calendars(self) -> list[CalendarInfo]:
        await self._ensure_loaded()
        return list(self._calendars)

    async def query_events(
        self,
        start: datetime,
        end: datetime,
        calendar_ids: Iterable[str],
    ) -> list[ProviderEvent]:
        await self._ensure_loaded()
        wanted = set(calendar_ids)
        return [
            event
            for event in self._events
            if event.calendar_id in wanted and overlaps(event, start, end)
        ]

    async def check_for_changes(self):
        """Reload and notify subscribers if the file changed on disk."""
        mtime = self._current_mtime()
        if mtime == self._mtime:
            return
        logger.info(f"Calendar file changed: {self.path}")
        await self._reload()
        self.notify_changed()

    def _current_mtime(self) -> float | None:
        try:
            return self.path.stat().st_mtime
        except FileNotFoundError:
            return None

    async def _ensure_loaded(self):
        if not self._loaded or self._mtime != self._current_mtime():
            await self._reload()

    async def _reload(self):
        loop = asyncio.get_running_loop()
        mtime = self._current_mtime()
        document = await loop.run_in_executor(None, self._read_document)
        self._calendars, self._events = parse_document(document)
        self._mtime = mtime
        self._loaded = True
        logger.debug(
            f"Loaded {len(self._calendars)} calendars and "
            f"{len(self._events)} events from {self.path}"
        )

    def _read_document(self) -> dict[str, Any]:
        if not self.path.exists():
            logger.warning(f"Calendar file not found: {self.path}")
            return {}
        try:
            content = self.path.read_text(encoding="utf-8-sig")
            return yaml.safe_load(content) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ProviderError(f"Could not read calendar file {self.path}: {e}") from e


def parse_document(document: dict[str, Any]) -> tuple[list[CalendarInfo], list[ProviderEvent]]:
    """Turn a loaded YAML document into calendars and events."""
    if not isinstance(document, dict):
        raise ProviderError("Calendar file must contain a mapping at the top level")

    calendars: dict[str, CalendarInfo] = {}
    for item in _section(document, "calendars"):
        if not isinstance(item, dict):
            logger.warning(f"Skipping calendar that is not a mapping: {item!r}")
            continue
        calendar_id = str(item.get("id", "")).strip()
        if not calendar_id:
            logger.warning(f"Skipping calendar without id: {item}")
            continue
        calendars[calendar_id] = CalendarInfo(
            id=calendar_id,
            title=str(item.get("title") or calendar_id),
        )

    events: list[ProviderEvent] = []
    for item in _section(document, "events"):
        if not isinstance(item, dict):
            logger.warning(f"Skipping event that is not a mapping: {item!r}")
            continue
        try:
            event = ProviderEvent(
                id=str(item["id"]),
                calendar_id=str(item.get("calendar", "")),
                title=str(item.get("title", "")),
                start=item["start"],
                end=item.get("end", item["start"]),
                location=item.get("location"),
                notes=item.get("notes"),
                url=item.get("url"),
            )
        except (KeyError, TypeError, ValidationError) as e:
            logger.warning(f"Skipping malformed event {item!r}: {e}")
            continue

        events.append(
            event.model_copy(
                update={"start": ensure_aware(event.start), "end": ensure_aware(event.end)}
            )
        )
        if event.calendar_id and event.calendar_id not in calendars:
            calendars[event.calendar_id] = CalendarInfo(
                id=event.calendar_id, title=event.calendar_id
            )

    return list(calendars.values()), events


def _section(document: dict[str, Any], key: str) -> list[Any]:
    items = document.get(key) or []
    if not isinstance(items, list):
        raise ProviderError(f"'{key}' in the calendar file must be a list")
    return items
