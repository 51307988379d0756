"""Tests for the ContactMonitorService facade: bootstrap, toggling, persistence."""

import json

import pytest

from contextcrm.application import ContactMonitorService, MonitorSettings, PendingContact
from contextcrm.application.stores import KNOWN_CONTACTS_KEY, MONITORING_ENABLED_KEY
from contextcrm.domain import AppState, DeviceContact, MonitorState
from contextcrm.infrastructure import (
    AsyncioBackgroundTaskApi,
    InMemoryContactSnapshotSource,
    InMemoryKeyValueStore,
    InMemoryNotificationDispatcher,
)

SETTINGS = MonitorSettings(poll_interval=60, burst_interval=60, burst_iterations=1)


def _service(contacts=(), *, storage=None, background_api=None, **source_kwargs):
    source = InMemoryContactSnapshotSource(
        [DeviceContact(id=i, name=f"Person {i}") for i in contacts], **source_kwargs
    )
    storage = storage or InMemoryKeyValueStore()
    dispatcher = InMemoryNotificationDispatcher()
    service = ContactMonitorService(
        source, storage, dispatcher, background_api, settings=SETTINGS
    )
    navigated: list[PendingContact] = []
    service.set_navigation_callback(navigated.append)
    return service, source, storage, dispatcher, navigated


@pytest.mark.asyncio
async def test_initialize_then_check_routes_nothing_for_existing_contacts() -> None:
    service, source, storage, dispatcher, navigated = _service(["a", "b", "c"])

    permissions = await service.initialize()
    result = await service.check_for_new_contacts()

    assert permissions.granted
    assert result.new_contact_ids == []
    assert service.detector.known_contact_ids == {"a", "b", "c"}
    assert set(json.loads(storage.snapshot()[KNOWN_CONTACTS_KEY])) == {"a", "b", "c"}
    assert navigated == []
    assert dispatcher.scheduled == []
    assert service.state is MonitorState.MONITORING
    assert service.is_monitoring
    assert await service.get_monitoring_state() is True

    source.add(DeviceContact(id="d", name="Dee"))
    result = await service.check_for_new_contacts()
    assert result.routed == 1
    assert [p.id for p in navigated] == ["d"]
    service.close()


@pytest.mark.asyncio
async def test_concrete_scenario_known_a_device_a_b() -> None:
    storage = InMemoryKeyValueStore({KNOWN_CONTACTS_KEY: json.dumps(["a"])})
    service, source, storage, dispatcher, navigated = _service(["a"], storage=storage)
    await service.initialize()
    source.add(DeviceContact(id="b", name="Person b"))

    await service.check_for_new_contacts()

    assert service.detector.known_contact_ids == {"a", "b"}
    assert json.loads(storage.snapshot()[KNOWN_CONTACTS_KEY]) == ["a", "b"]
    assert [p.id for p in navigated] == ["b"]
    assert dispatcher.scheduled == []
    service.close()


@pytest.mark.asyncio
async def test_initialize_reports_denied_permission_without_raising() -> None:
    service, source, _, _, navigated = _service(["a"], permission_granted=False)

    permissions = await service.initialize()

    assert permissions.contacts is False
    assert not permissions.granted
    assert service.state is MonitorState.INITIALIZING

    source.permission_granted = True
    await service.check_for_new_contacts()
    assert service.state is MonitorState.MONITORING
    assert navigated == []
    service.close()


@pytest.mark.asyncio
async def test_initialize_propagates_permission_prompt_errors() -> None:
    service, source, _, _, _ = _service()

    async def broken_prompt():
        raise RuntimeError("permission dialog unavailable")

    source.request_permission = broken_prompt
    with pytest.raises(RuntimeError):
        await service.initialize()


@pytest.mark.asyncio
async def test_stop_is_idempotent_and_persists_false() -> None:
    service, _, storage, _, _ = _service()

    await service.stop_monitoring()
    await service.stop_monitoring()

    assert storage.snapshot()[MONITORING_ENABLED_KEY] == "false"
    assert await service.get_monitoring_state() is False
    assert service.state is MonitorState.UNINITIALIZED


@pytest.mark.asyncio
async def test_stop_then_start_resumes_without_new_warmup() -> None:
    service, source, _, _, navigated = _service(["a"])
    await service.initialize()
    await service.stop_monitoring()
    assert service.state is MonitorState.SUSPENDED
    assert not service.is_monitoring

    source.add(DeviceContact(id="b"))
    await service.start_monitoring()

    assert service.state is MonitorState.MONITORING
    assert await service.get_monitoring_state() is True
    await service.check_for_new_contacts()
    assert [p.id for p in navigated] == ["b"]
    service.close()


@pytest.mark.asyncio
async def test_start_before_initialize_bootstraps() -> None:
    service, _, _, _, navigated = _service(["a", "b"])
    await service.start_monitoring()
    assert service.state is MonitorState.MONITORING
    assert navigated == []
    service.close()


@pytest.mark.asyncio
async def test_resume_if_enabled_reads_persisted_toggle() -> None:
    service, _, _, _, _ = _service(["a"])
    assert await service.resume_if_enabled() is False
    assert service.state is MonitorState.UNINITIALIZED

    storage = InMemoryKeyValueStore({MONITORING_ENABLED_KEY: "true"})
    service, _, _, _, _ = _service(["a"], storage=storage)
    assert await service.resume_if_enabled() is True
    assert service.state is MonitorState.MONITORING
    service.close()


@pytest.mark.asyncio
async def test_toggle_registers_and_unregisters_background_task() -> None:
    api = AsyncioBackgroundTaskApi()
    service, _, _, _, _ = _service(["a"], background_api=api)

    await service.set_monitoring_enabled(True)
    assert (await service.background.status()).registered

    await service.set_monitoring_enabled(False)
    assert not (await service.background.status()).registered
    assert await service.get_monitoring_state() is False
    await api.close()


@pytest.mark.asyncio
async def test_background_detection_then_foreground_return() -> None:
    service, source, _, dispatcher, navigated = _service(["a"])
    await service.initialize()
    await service.handle_app_state_change(AppState.BACKGROUND)
    source.add(DeviceContact(id="b"))
    source.add(DeviceContact(id="c"))

    await service.check_for_new_contacts()
    assert len(dispatcher.scheduled) == 2
    assert navigated == []

    await service.handle_app_state_change(AppState.FOREGROUND)
    assert [p.id for p in navigated] == ["b"]
    assert service.detector.pending == ()

    assert service.acknowledge_navigation().id == "c"
    assert [p.id for p in navigated] == ["b", "c"]
    service.close()


@pytest.mark.asyncio
async def test_test_notification_in_foreground_navigates() -> None:
    service, _, _, dispatcher, navigated = _service()
    contact = await service.test_notification()
    assert navigated == [contact]
    assert dispatcher.scheduled == []
