"""Tests for the fullfocus command line."""

from datetime import datetime, timedelta, timezone

import pytest
from typer.testing import CliRunner

from fullfocus.cli import app

runner = CliRunner()


@pytest.fixture
def events_file(isolated_home, monkeypatch):
    """Point the file provider at a calendar with one event in half an hour."""
    start = datetime.now(timezone.utc).replace(microsecond=0) + timedelta(minutes=30)
    path = isolated_home / "events.yaml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        "calendars:\n"
        "  - id: work\n"
        "    title: Work\n"
        "  - id: home\n"
        "    title: Home\n"
        "events:\n"
        "  - id: sync\n"
        "    calendar: work\n"
        "    title: Team Sync\n"
        f"    start: {start.isoformat()}\n"
        f"    end: {(start + timedelta(minutes=30)).isoformat()}\n"
        "    location: https://meet.example.com/team-sync\n"
    )
    monkeypatch.setenv("FULLFOCUS_PROVIDER__KIND", "file")
    monkeypatch.setenv("FULLFOCUS_ALERTS__BACKEND", "console")
    return path


class TestLeadTime:
    def test_shows_default(self):
        result = runner.invoke(app, ["lead-time"])

        assert result.exit_code == 0
        assert "1 minute(s)" in result.output

    def test_set_and_show(self):
        assert runner.invoke(app, ["lead-time", "5"]).exit_code == 0

        result = runner.invoke(app, ["lead-time"])
        assert "5 minute(s)" in result.output

    def test_out_of_range_is_clamped(self):
        result = runner.invoke(app, ["lead-time", "45"])

        assert result.exit_code == 0
        assert "Clamped to 30" in result.output
        assert "30 minute(s)" in runner.invoke(app, ["lead-time"]).output


class TestCalendars:
    def test_enable_and_disable(self):
        result = runner.invoke(app, ["calendars", "enable", "work"])
        assert result.exit_code == 0
        assert "Watching 1 calendar(s)" in result.output

        result = runner.invoke(app, ["calendars", "enable", "home"])
        assert "Watching 2 calendar(s)" in result.output

        result = runner.invoke(app, ["calendars", "disable", "work"])
        assert "Watching 1 calendar(s)" in result.output

        result = runner.invoke(app, ["calendars", "none"])
        assert "No calendars watched" in result.output

    def test_list_marks_enabled(self, events_file):
        runner.invoke(app, ["calendars", "enable", "work"])

        result = runner.invoke(app, ["calendars", "list"])

        assert result.exit_code == 0
        assert "Work" in result.output
        assert "Home" in result.output

    def test_all_watches_every_calendar(self, events_file):
        result = runner.invoke(app, ["calendars", "all"])

        assert result.exit_code == 0
        assert "Watching 2 calendar(s)" in result.output


class TestNext:
    def test_no_calendars_enabled(self, events_file):
        result = runner.invoke(app, ["next"])

        assert result.exit_code == 0
        assert "No upcoming events" in result.output

    def test_shows_next_event(self, events_file):
        runner.invoke(app, ["calendars", "enable", "work"])

        result = runner.invoke(app, ["next"])

        assert result.exit_code == 0
        assert "Team Sync" in result.output
        assert "https://meet.example.com/team-sync" in result.output


class TestAlerts:
    def test_test_alert_without_events(self, events_file):
        result = runner.invoke(app, ["test-alert"])

        assert result.exit_code == 0
        assert "Test Event" in result.output

    def test_test_alert_uses_next_event(self, events_file):
        runner.invoke(app, ["calendars", "enable", "work"])

        result = runner.invoke(app, ["test-alert"])

        assert result.exit_code == 0
        assert "Team Sync" in result.output

    def test_demo_fires_alert(self):
        result = runner.invoke(app, ["demo"])

        assert result.exit_code == 0
        assert "Design Review" in result.output
        assert "Join Call" in result.output

    def test_demo_outside_lead_time(self):
        result = runner.invoke(app, ["demo", "--in", "20", "--lead", "5"])

        assert result.exit_code == 0
        assert "No alert" in result.output


def test_init_creates_config(isolated_home):
    result = runner.invoke(app, ["init"])

    assert result.exit_code == 0
    assert (isolated_home / "config.yaml").exists()
