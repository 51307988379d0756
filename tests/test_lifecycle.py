"""Tests for LifecycleScheduler timing. Intervals are shrunk to milliseconds."""

import asyncio
import json

import pytest

from contextcrm.application import (
    ContactChangeDetector,
    KnownContactStore,
    LifecycleScheduler,
    MonitorSettings,
)
from contextcrm.application.stores import KNOWN_CONTACTS_KEY
from contextcrm.domain import AppState, DeviceContact
from contextcrm.infrastructure import (
    InMemoryContactSnapshotSource,
    InMemoryKeyValueStore,
    InMemoryNotificationDispatcher,
)

FAST_STEADY = MonitorSettings(poll_interval=0.01, burst_interval=0.01, burst_iterations=3)
SLOW_STEADY = MonitorSettings(poll_interval=60, burst_interval=0.01, burst_iterations=3)


def _scheduler(settings: MonitorSettings, *, known=("a",), supports_change_events=False):
    storage = InMemoryKeyValueStore({KNOWN_CONTACTS_KEY: json.dumps(list(known))})
    source = InMemoryContactSnapshotSource(
        [DeviceContact(id=i) for i in known],
        supports_change_events=supports_change_events,
    )
    detector = ContactChangeDetector(
        source, KnownContactStore(storage), InMemoryNotificationDispatcher()
    )
    return LifecycleScheduler(detector, source, settings), detector, source


@pytest.mark.asyncio
async def test_steady_polling_until_stopped() -> None:
    scheduler, _, source = _scheduler(FAST_STEADY)
    scheduler.start()
    assert scheduler.polling
    await asyncio.sleep(0.1)
    scheduler.stop()
    await asyncio.sleep(0.02)
    calls = source.list_calls
    assert calls >= 2
    await asyncio.sleep(0.05)
    assert source.list_calls == calls
    assert not scheduler.running


@pytest.mark.asyncio
async def test_start_is_idempotent() -> None:
    scheduler, _, _ = _scheduler(FAST_STEADY)
    scheduler.start()
    task = scheduler._steady_task
    scheduler.start()
    assert scheduler._steady_task is task
    scheduler.stop()


@pytest.mark.asyncio
async def test_stop_twice_and_without_start() -> None:
    scheduler, _, _ = _scheduler(FAST_STEADY)
    scheduler.stop()
    scheduler.start()
    scheduler.stop()
    scheduler.stop()
    assert not scheduler.running
    assert not scheduler.polling
    assert not scheduler.bursting


@pytest.mark.asyncio
async def test_foreground_return_runs_bounded_burst_then_steady() -> None:
    scheduler, _, source = _scheduler(SLOW_STEADY)
    await scheduler.handle_app_state_change(AppState.BACKGROUND)
    scheduler.start()

    await scheduler.handle_app_state_change(AppState.FOREGROUND)
    assert scheduler.bursting
    assert not scheduler.polling

    await asyncio.sleep(0.2)
    assert source.list_calls == 3
    assert not scheduler.bursting
    assert scheduler.polling
    scheduler.stop()


@pytest.mark.asyncio
async def test_burst_catches_contact_added_on_return() -> None:
    scheduler, detector, source = _scheduler(SLOW_STEADY)
    navigated = []
    detector.set_navigation_callback(navigated.append)
    await scheduler.handle_app_state_change(AppState.BACKGROUND)
    scheduler.start()

    await scheduler.handle_app_state_change(AppState.FOREGROUND)
    source.add(DeviceContact(id="b", name="Bea"))
    await asyncio.sleep(0.1)

    assert [p.id for p in navigated] == ["b"]
    scheduler.stop()


@pytest.mark.asyncio
async def test_background_cancels_burst_and_keeps_steady_timer() -> None:
    scheduler, _, _ = _scheduler(SLOW_STEADY)
    await scheduler.handle_app_state_change(AppState.BACKGROUND)
    scheduler.start()
    await scheduler.handle_app_state_change(AppState.FOREGROUND)
    assert scheduler.bursting

    await scheduler.handle_app_state_change(AppState.BACKGROUND)

    assert not scheduler.bursting
    assert scheduler.polling
    scheduler.stop()


@pytest.mark.asyncio
async def test_foreground_with_pending_drains_and_skips_burst() -> None:
    scheduler, detector, source = _scheduler(SLOW_STEADY)
    await scheduler.handle_app_state_change(AppState.BACKGROUND)
    scheduler.start()
    source.add(DeviceContact(id="b"))
    source.add(DeviceContact(id="c"))
    await detector.check_for_new_contacts()
    assert len(detector.pending) == 2
    navigated = []
    detector.set_navigation_callback(navigated.append)

    await scheduler.handle_app_state_change(AppState.FOREGROUND)

    assert [p.id for p in navigated] == ["b"]
    assert detector.pending == ()
    assert not scheduler.bursting
    scheduler.stop()


@pytest.mark.asyncio
async def test_foreground_when_not_running_does_not_poll() -> None:
    scheduler, _, source = _scheduler(SLOW_STEADY)
    await scheduler.handle_app_state_change(AppState.BACKGROUND)
    await scheduler.handle_app_state_change(AppState.FOREGROUND)
    await asyncio.sleep(0.05)
    assert not scheduler.bursting
    assert source.list_calls == 0


@pytest.mark.asyncio
async def test_repeated_foreground_signal_is_ignored() -> None:
    scheduler, _, _ = _scheduler(SLOW_STEADY)
    scheduler.start()
    await scheduler.handle_app_state_change(AppState.FOREGROUND)
    assert not scheduler.bursting
    scheduler.stop()


@pytest.mark.asyncio
async def test_change_events_replace_polling() -> None:
    scheduler, detector, source = _scheduler(FAST_STEADY, supports_change_events=True)
    navigated = []
    detector.set_navigation_callback(navigated.append)
    scheduler.start()
    assert not scheduler.polling

    await asyncio.sleep(0.05)
    assert source.list_calls == 0

    source.add(DeviceContact(id="b"))
    await asyncio.sleep(0.01)
    assert [p.id for p in navigated] == ["b"]

    scheduler.stop()
    source.add(DeviceContact(id="c"))
    await asyncio.sleep(0.01)
    assert source.list_calls == 1


@pytest.mark.asyncio
async def test_change_events_foreground_return_checks_once() -> None:
    scheduler, _, source = _scheduler(SLOW_STEADY, supports_change_events=True)
    await scheduler.handle_app_state_change(AppState.BACKGROUND)
    scheduler.start()

    await scheduler.handle_app_state_change(AppState.FOREGROUND)

    assert source.list_calls == 1
    assert not scheduler.bursting
    scheduler.stop()


@pytest.mark.asyncio
async def test_stop_mid_tick_lets_check_finish() -> None:
    release = asyncio.Event()
    scheduler, detector, source = _scheduler(FAST_STEADY)
    original = source.list_contacts

    async def slow_list():
        await release.wait()
        return await original()

    source.list_contacts = slow_list
    source.add(DeviceContact(id="b"))
    scheduler.start()
    await asyncio.sleep(0.05)

    scheduler.stop()
    release.set()
    await asyncio.sleep(0.01)

    assert "b" in detector.known_contact_ids


@pytest.mark.asyncio
async def test_change_during_slow_read_triggers_follow_up_check() -> None:
    scheduler, detector, source = _scheduler(SLOW_STEADY, supports_change_events=True)
    navigated = []
    detector.set_navigation_callback(navigated.append)
    original = source.list_contacts

    async def slow_list():
        contacts = await original()
        await asyncio.sleep(0.05)
        return contacts

    source.list_contacts = slow_list
    scheduler.start()

    source.add(DeviceContact(id="b"))
    await asyncio.sleep(0.01)
    source.add(DeviceContact(id="c"))
    await asyncio.sleep(0.2)

    assert [p.id for p in navigated] == ["b", "c"]
    assert {"b", "c"} <= detector.known_contact_ids
    scheduler.stop()


@pytest.mark.asyncio
async def test_change_while_other_check_in_flight_is_rechecked() -> None:
    scheduler, detector, source = _scheduler(SLOW_STEADY, supports_change_events=True)
    navigated = []
    detector.set_navigation_callback(navigated.append)
    release = asyncio.Event()
    original = source.list_contacts

    async def stalled():
        contacts = await original()
        await release.wait()
        return contacts

    source.list_contacts = stalled
    scheduler.start()
    manual = asyncio.create_task(detector.check_for_new_contacts())
    await asyncio.sleep(0.01)

    source.add(DeviceContact(id="b"))
    await asyncio.sleep(0.01)
    release.set()
    await manual
    await asyncio.sleep(0.05)

    assert [p.id for p in navigated] == ["b"]
    scheduler.stop()


@pytest.mark.asyncio
async def test_pending_without_callback_still_bursts() -> None:
    scheduler, detector, source = _scheduler(SLOW_STEADY)
    await scheduler.handle_app_state_change(AppState.BACKGROUND)
    scheduler.start()
    source.add(DeviceContact(id="b"))
    await detector.check_for_new_contacts()
    assert detector.has_pending

    await scheduler.handle_app_state_change(AppState.FOREGROUND)

    assert scheduler.bursting
    assert [p.id for p in detector.pending] == ["b"]
    scheduler.stop()
