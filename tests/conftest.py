import pytest

from fullfocus.models import Configuration
from fullfocus.monitors.calendar import CalendarMonitor
from fullfocus.notifiers.alert import AlertPresenter
from fullfocus.preferences import ConfigurationStore
from fullfocus.providers import MemoryCalendarProvider
from fullfocus.state import StateDB
from tests.factories import FakeClock, RecordingBackend


@pytest.fixture(autouse=True)
def isolated_home(monkeypatch, tmp_path):
    """Keep config and data files out of the real home directory."""
    home = tmp_path / "fullfocus-home"
    monkeypatch.setenv("FULLFOCUS_HOME", str(home))
    for name in (
        "FULLFOCUS_LOG_LEVEL",
        "FULLFOCUS_MONITOR__POLL_INTERVAL_SECONDS",
        "FULLFOCUS_PROVIDER__KIND",
        "FULLFOCUS_ALERTS__BACKEND",
    ):
        monkeypatch.delenv(name, raising=False)
    return home


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider():
    provider = MemoryCalendarProvider()
    provider.add_calendar("work", "Work")
    provider.add_calendar("home", "Home")
    return provider


@pytest.fixture
def backend():
    return RecordingBackend()


@pytest.fixture
def presenter(backend, clock):
    return AlertPresenter(backend, clock=clock, open_url=lambda url: None)


@pytest.fixture
async def state():
    db = StateDB(":memory:")
    await db.connect()
    yield db
    await db.close()


@pytest.fixture
async def store(state):
    store = ConfigurationStore(state)
    await store.set(
        Configuration(alert_lead_time_minutes=10, enabled_calendar_ids={"work"})
    )
    return store


@pytest.fixture
def monitor(provider, store, presenter, clock):
    return CalendarMonitor(
        provider=provider,
        config_store=store,
        presenter=presenter,
        clock=clock,
    )
