"""Tests for the poll scheduler."""

import asyncio
from datetime import timedelta

import pytest

from fullfocus.scheduler import CHANGE_JOB_ID, POLL_JOB_ID, PollScheduler


@pytest.fixture
def poller(monitor):
    return PollScheduler(monitor, interval_seconds=10, change_check_seconds=5)


def _add(provider, event_id, starts_in, clock):
    return provider.add_event(
        id=event_id,
        calendar_id="work",
        title=event_id,
        start=clock() + starts_in,
        end=clock() + starts_in + timedelta(minutes=30),
    )


async def test_tick_runs_monitor(poller, provider, backend, clock):
    _add(provider, "standup", timedelta(minutes=5), clock)

    result = await poller.tick()

    assert result["alerted"] is True
    assert poller.tick_count == 1
    assert backend.titles == ["standup", "standup"]


async def test_repeated_ticks_are_idempotent(poller, provider, backend, presenter, clock):
    _add(provider, "standup", timedelta(minutes=5), clock)

    await poller.tick()
    presenter.dismiss()
    await poller.tick()
    await poller.tick()

    assert backend.titles == ["standup", "standup"]


async def test_start_registers_jobs_and_subscription(poller, provider):
    poller.start()
    try:
        assert poller.running
        job_ids = {job.id for job in poller.scheduler.get_jobs()}
        assert job_ids == {POLL_JOB_ID, CHANGE_JOB_ID}
        assert poller.on_store_changed in provider._listeners
    finally:
        await poller.stop()

    assert not poller.running
    assert not poller.scheduler.running
    assert poller.on_store_changed not in provider._listeners


async def test_can_restart_after_stop(poller, provider):
    poller.start()
    await poller.stop()

    poller.start()
    try:
        assert poller.running
        assert poller.scheduler.running
        assert {job.id for job in poller.scheduler.get_jobs()} == {POLL_JOB_ID, CHANGE_JOB_ID}
        assert poller.on_store_changed in provider._listeners
    finally:
        await poller.stop()


async def test_stop_waits_for_running_check(poller, provider, clock):
    _add(provider, "standup", timedelta(hours=1), clock)
    poller.start()
    tick = asyncio.create_task(poller.tick())
    await asyncio.sleep(0)

    await poller.stop()

    assert tick.done()
    assert poller.tick_count == 1


async def test_change_notification_triggers_evaluation(poller, provider, backend, clock):
    poller.start()
    try:
        _add(provider, "added-externally", timedelta(minutes=2), clock)
        await asyncio.sleep(0.01)
        await poller.wait_idle()
    finally:
        await poller.stop()

    assert poller.tick_count >= 1
    assert backend.titles[:2] == ["added-externally", "added-externally"]


async def test_change_before_start_is_ignored(poller, provider, clock):
    provider.subscribe(poller.on_store_changed)
    _add(provider, "early", timedelta(minutes=2), clock)
    await asyncio.sleep(0)

    assert poller.tick_count == 0
    provider.unsubscribe(poller.on_store_changed)


async def test_start_twice_is_harmless(poller):
    poller.start()
    try:
        poller.start()
        assert len(poller.scheduler.get_jobs()) == 2
    finally:
        await poller.stop()


async def test_change_check_errors_are_contained(poller, provider):
    async def broken():
        raise RuntimeError("disk unplugged")

    provider.check_for_changes = broken

    await poller._check_provider()
