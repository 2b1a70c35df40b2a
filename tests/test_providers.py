"""Tests for calendar providers."""

import os
import subprocess
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from fullfocus.errors import AccessDenied, ProviderError
from fullfocus.models import ProviderEvent
from fullfocus.providers import FileCalendarProvider, MacCalendarProvider, MemoryCalendarProvider
from fullfocus.providers.file import parse_document
from fullfocus.providers.macos import (
    FIELD_SEP,
    RECORD_SEP,
    _wall,
    expand_occurrences,
    parse_events,
)
from tests.factories import NOW

EVENTS_YAML = """
calendars:
  - id: work
    title: Work
events:
  - id: standup
    calendar: work
    title: Daily standup
    start: 2026-10-19T09:30:00+00:00
    end: 2026-10-19T09:45:00+00:00
    location: https://meet.example.com/standup
  - id: lunch
    calendar: personal
    title: Lunch
    start: 2026-10-19T12:00:00+00:00
    end: 2026-10-19T13:00:00+00:00
"""


class TestMemoryProvider:
    async def test_query_filters_by_window_and_calendar(self):
        provider = MemoryCalendarProvider()
        provider.add_event(id="in", calendar_id="work", start=NOW + timedelta(hours=1),
                           end=NOW + timedelta(hours=2))
        provider.add_event(id="other-cal", calendar_id="home", start=NOW + timedelta(hours=1),
                           end=NOW + timedelta(hours=2))
        provider.add_event(id="too-late", calendar_id="work", start=NOW + timedelta(hours=9),
                           end=NOW + timedelta(hours=10))
        provider.add_event(id="ongoing", calendar_id="work", start=NOW - timedelta(hours=1),
                           end=NOW + timedelta(minutes=10))
        provider.add_event(id="finished", calendar_id="work", start=NOW - timedelta(hours=2),
                           end=NOW - timedelta(hours=1))

        events = await provider.query_events(NOW, NOW + timedelta(hours=8), ["work"])

        assert [event.id for event in events] == ["in", "ongoing"]

    async def test_mutations_notify_subscribers(self):
        provider = MemoryCalendarProvider()
        calls = []
        provider.subscribe(lambda: calls.append("changed"))

        provider.add_calendar("work")
        provider.add_event(id="a", calendar_id="work", start=NOW, end=NOW)
        provider.remove_event("a")

        assert calls == ["changed", "changed", "changed"]

    async def test_failing_listener_does_not_break_others(self):
        provider = MemoryCalendarProvider()
        calls = []

        def broken():
            raise RuntimeError("listener bug")

        provider.subscribe(broken)
        provider.subscribe(lambda: calls.append("ok"))
        provider.add_calendar("work")

        assert calls == ["ok"]

    async def test_lists_calendars(self):
        provider = MemoryCalendarProvider()
        provider.add_calendar("work", "Work")
        provider.add_event(id="a", calendar_id="home", start=NOW, end=NOW)

        calendars = await provider.list_calendars()

        assert {(c.id, c.title) for c in calendars} == {("work", "Work"), ("home", "home")}


class TestFileProvider:
    def test_parse_document(self):
        import yaml

        calendars, events = parse_document(yaml.safe_load(EVENTS_YAML))

        assert [c.id for c in calendars] == ["work", "personal"]
        assert events[0].title == "Daily standup"
        assert events[0].location == "https://meet.example.com/standup"
        assert events[0].start == datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)

    def test_parse_skips_malformed_events(self):
        calendars, events = parse_document({
            "events": [
                {"id": "no-start", "calendar": "work"},
                {"id": "ok", "calendar": "work", "start": "2026-10-19T10:00:00+00:00"},
            ]
        })
        assert [event.id for event in events] == ["ok"]
        assert events[0].end == events[0].start

    def test_parse_rejects_non_mapping(self):
        with pytest.raises(ProviderError):
            parse_document(["not", "a", "mapping"])

    def test_parse_skips_entries_that_are_not_mappings(self):
        calendars, events = parse_document({
            "calendars": ["work", {"id": "home", "title": "Home"}],
            "events": ["standup", {"id": "ok", "calendar": "home", "start": NOW}],
        })

        assert [calendar.id for calendar in calendars] == ["home"]
        assert [event.id for event in events] == ["ok"]

    def test_parse_rejects_sections_that_are_not_lists(self):
        with pytest.raises(ProviderError, match="calendars"):
            parse_document({"calendars": {"id": "work"}})

    def test_naive_times_are_local(self):
        _, events = parse_document({
            "events": [{"id": "naive", "calendar": "work", "start": datetime(2026, 10, 19, 10, 0)}]
        })
        assert events[0].start.tzinfo is not None

    async def test_query_events(self, tmp_path):
        path = tmp_path / "events.yaml"
        path.write_text(EVENTS_YAML)
        provider = FileCalendarProvider(path)

        events = await provider.query_events(NOW, NOW + timedelta(hours=8), ["work"])

        assert [event.id for event in events] == ["standup"]

    async def test_missing_file_is_empty(self, tmp_path):
        provider = FileCalendarProvider(tmp_path / "missing.yaml")

        assert await provider.list_calendars() == []
        assert await provider.query_events(NOW, NOW + timedelta(hours=8), ["work"]) == []

    async def test_invalid_yaml_raises_provider_error(self, tmp_path):
        path = tmp_path / "events.yaml"
        path.write_text("events: [unclosed")

        with pytest.raises(ProviderError):
            await FileCalendarProvider(path).list_calendars()

    async def test_detects_external_edits(self, tmp_path):
        path = tmp_path / "events.yaml"
        path.write_text(EVENTS_YAML)
        provider = FileCalendarProvider(path)
        calls = []
        provider.subscribe(lambda: calls.append("changed"))

        await provider.list_calendars()
        await provider.check_for_changes()
        assert calls == []

        path.write_text(EVENTS_YAML.replace("Daily standup", "Renamed standup"))
        stat = path.stat()
        os.utime(path, (stat.st_atime, stat.st_mtime + 5))
        await provider.check_for_changes()

        assert calls == ["changed"]
        events = await provider.query_events(NOW, NOW + timedelta(hours=8), ["work"])
        assert events[0].title == "Renamed standup"


def _completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(["osascript"], returncode, stdout=stdout, stderr=stderr)


class TestMacProvider:
    def test_parse_events(self):
        output = RECORD_SEP.join([
            FIELD_SEP.join(["uid-1", "cal-1", "Standup", "300", "1200", "", "Notes here", ""]),
            FIELD_SEP.join(["uid-2", "cal-1", "Review", "3600", "7200", "Room 1", "",
                            "https://meet.example.com/r"]),
        ]) + RECORD_SEP + "\n"

        events = parse_events(output, NOW)

        assert [event.id for event in events] == ["uid-1", "uid-2"]
        assert events[0].start == NOW + timedelta(minutes=5)
        assert events[0].location is None
        assert events[0].notes == "Notes here"
        assert events[1].url == "https://meet.example.com/r"

    def test_parse_skips_bad_records(self):
        output = RECORD_SEP.join([
            "short",
            FIELD_SEP.join(["uid", "cal", "Bad", "soon", "later", "", "", ""]),
        ])
        assert parse_events(output, NOW) == []

    async def test_not_authorized_raises_access_denied(self):
        provider = MacCalendarProvider()
        denied = _completed(1, stderr="execution error: Not authorized to send Apple events to Calendar. (-1743)")

        with patch("fullfocus.providers.macos.subprocess.run", return_value=denied):
            with pytest.raises(AccessDenied):
                await provider.list_calendars()
            assert await provider.request_access() is False

    async def test_other_failures_raise_provider_error(self):
        provider = MacCalendarProvider()

        with patch("fullfocus.providers.macos.subprocess.run", return_value=_completed(1, stderr="boom")):
            with pytest.raises(ProviderError):
                await provider.list_calendars()

    async def test_missing_osascript(self):
        provider = MacCalendarProvider()

        with patch("fullfocus.providers.macos.subprocess.run", side_effect=FileNotFoundError):
            with pytest.raises(ProviderError):
                await provider.list_calendars()

    async def test_lists_calendars(self):
        provider = MacCalendarProvider()
        output = f"A1{FIELD_SEP}Work{RECORD_SEP}B2{FIELD_SEP}Home{RECORD_SEP}"

        with patch("fullfocus.providers.macos.subprocess.run", return_value=_completed(stdout=output)):
            calendars = await provider.list_calendars()
            assert await provider.request_access() is True

        assert [(c.id, c.title) for c in calendars] == [("A1", "Work"), ("B2", "Home")]

    async def test_query_passes_window_and_calendars(self):
        provider = MacCalendarProvider()
        output = FIELD_SEP.join(["uid-1", "A1", "Standup", "60", "960", "", "", ""]) + RECORD_SEP
        now = datetime.now().astimezone()

        with patch(
            "fullfocus.providers.macos.subprocess.run", return_value=_completed(stdout=output)
        ) as run:
            events = await provider.query_events(now, now + timedelta(hours=8), ["A1"])

        args = run.call_args.args[0]
        assert args[:2] == ["osascript", "-"]
        assert args[-1] == "A1"
        assert int(args[3]) == pytest.approx(8 * 3600, abs=5)
        assert events[0].title == "Standup"

    async def test_query_without_calendars_skips_osascript(self):
        provider = MacCalendarProvider()

        with patch("fullfocus.providers.macos.subprocess.run") as run:
            assert await provider.query_events(NOW, NOW + timedelta(hours=8), []) == []

        run.assert_not_called()


class TestRecurringEvents:
    WINDOW = (NOW, NOW + timedelta(hours=8))

    def _series(self, **fields):
        # daily standup whose series began three days ago at 09:30
        fields.setdefault("id", "series")
        fields.setdefault("calendar_id", "A1")
        fields.setdefault("title", "Standup")
        fields.setdefault("start", NOW - timedelta(days=3) + timedelta(minutes=30))
        fields.setdefault("end", NOW - timedelta(days=3) + timedelta(minutes=45))
        return ProviderEvent(**fields)

    def test_expands_occurrence_inside_window(self):
        occurrences = expand_occurrences(self._series(), "FREQ=DAILY", *self.WINDOW)

        assert len(occurrences) == 1
        occurrence = occurrences[0]
        assert occurrence.start == NOW + timedelta(minutes=30)
        assert occurrence.end - occurrence.start == timedelta(minutes=15)
        assert occurrence.id == f"series/{int(occurrence.start.timestamp())}"
        assert occurrence.title == "Standup"

    def test_excluded_occurrence_is_skipped(self):
        skipped = {_wall(NOW + timedelta(minutes=30))}

        assert expand_occurrences(self._series(), "FREQ=DAILY", *self.WINDOW, skipped) == []

    def test_finished_series(self):
        assert expand_occurrences(
            self._series(), "RRULE:FREQ=DAILY;UNTIL=20261017T235959Z", *self.WINDOW
        ) == []

    def test_unparseable_rule_keeps_series_dates(self):
        assert expand_occurrences(self._series(), "FREQ=SOMETIMES", *self.WINDOW) == []

        in_window = self._series(start=NOW + timedelta(hours=1), end=NOW + timedelta(hours=2))
        assert expand_occurrences(in_window, "FREQ=SOMETIMES", *self.WINDOW) == [in_window]

    def test_parse_events_expands_and_deduplicates(self):
        series = FIELD_SEP.join(
            ["series", "A1", "Standup", "-257400", "-256500", "", "", "", "FREQ=DAILY", ""]
        )
        single = FIELD_SEP.join(["single", "A1", "Review", "3600", "7200", "", "", "", "", ""])
        output = RECORD_SEP.join([series, single, series]) + RECORD_SEP

        events = parse_events(output, NOW, window=self.WINDOW)

        assert sorted(event.start for event in events) == [
            NOW + timedelta(minutes=30),
            NOW + timedelta(hours=1),
        ]
        assert len({event.id for event in events}) == 2

    def test_parse_events_reads_excluded_offsets(self):
        series = FIELD_SEP.join(
            ["series", "A1", "Standup", "-257400", "-256500", "", "", "", "FREQ=DAILY", "1800,"]
        )

        assert parse_events(series + RECORD_SEP, NOW, window=self.WINDOW) == []
