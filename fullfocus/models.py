"""
Value types shared by the monitor, providers and presenter.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

MIN_LEAD_TIME_MINUTES = 1
MAX_LEAD_TIME_MINUTES = 30


def clamp_lead_time(minutes: int) -> int:
    """Clamp an alert lead time into the supported range."""
    return max(MIN_LEAD_TIME_MINUTES, min(MAX_LEAD_TIME_MINUTES, int(minutes)))


class CalendarInfo(BaseModel):
    """A calendar the provider knows about."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str


class ProviderEvent(BaseModel):
    """
    Raw event record as returned by a calendar provider.

    Carries the free-text fields the meeting-link extractor scans.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    calendar_id: str = ""
    title: str = ""
    start: datetime
    end: datetime
    location: str | None = None
    notes: str | None = None
    url: str | None = None


class CalendarEvent(BaseModel):
    """The event currently considered "next"."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    start_date: datetime
    end_date: datetime
    meeting_url: str | None = None


class Configuration(BaseModel):
    """User-tunable alert configuration."""

    model_config = ConfigDict(frozen=True)

    alert_lead_time_minutes: int = Field(default=MIN_LEAD_TIME_MINUTES)
    enabled_calendar_ids: frozenset[str] = Field(default_factory=frozenset)

    @field_validator("alert_lead_time_minutes")
    @classmethod
    def _clamp_lead_time(cls, value: int) -> int:
        return clamp_lead_time(value)

    @property
    def lead_seconds(self) -> int:
        return self.alert_lead_time_minutes * 60


def ensure_aware(value: datetime) -> datetime:
    """Interpret naive datetimes as local time."""
    if value.tzinfo is None:
        return value.astimezone()
    return value


def local_now() -> datetime:
    """Current local time as an aware datetime."""
    return datetime.now().astimezone()
