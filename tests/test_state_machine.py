"""Tests for the XState monitor lifecycle machine."""

import json

import pytest

from contextcrm.application.state_machine import (
    INITIALIZE,
    START,
    STOP,
    WARMUP_COMPLETE,
    MonitorStateMachine,
    get_machine_path,
    load_machine,
)
from contextcrm.domain import MonitorState


def test_bundled_machine_loads():
    path = get_machine_path()
    assert path.name == "monitor_machine.json"
    config = load_machine(path)
    assert config["initial"] == "uninitialized"
    assert set(config["states"]) == {s.value for s in MonitorState}


def test_full_lifecycle():
    machine = MonitorStateMachine()
    assert machine.state is MonitorState.UNINITIALIZED
    assert machine.send(INITIALIZE)
    assert machine.state is MonitorState.INITIALIZING
    assert machine.send(WARMUP_COMPLETE)
    assert machine.state is MonitorState.MONITORING
    assert machine.send(STOP)
    assert machine.state is MonitorState.SUSPENDED
    assert machine.send(START)
    assert machine.state is MonitorState.MONITORING


def test_unaccepted_events_leave_state_unchanged():
    machine = MonitorStateMachine()
    assert machine.send(STOP) is False
    assert machine.send(WARMUP_COMPLETE) is False
    assert machine.state is MonitorState.UNINITIALIZED
    machine.send(INITIALIZE)
    machine.send(WARMUP_COMPLETE)
    assert machine.send(INITIALIZE) is False
    assert machine.send(START) is False
    assert machine.state is MonitorState.MONITORING


def test_stop_during_warmup_suspends():
    machine = MonitorStateMachine()
    machine.send(INITIALIZE)
    assert machine.send(STOP)
    assert machine.state is MonitorState.SUSPENDED
    assert machine.send(INITIALIZE)
    assert machine.state is MonitorState.INITIALIZING


def test_load_machine_rejects_unknown_state(tmp_path):
    path = tmp_path / "machine.json"
    path.write_text(
        json.dumps({"id": "m", "initial": "idle", "states": {"idle": {}}}),
        encoding="utf-8",
    )
    with pytest.raises(ValueError, match="Unknown monitor state"):
        load_machine(path)


def test_load_machine_requires_initial(tmp_path):
    path = tmp_path / "machine.json"
    path.write_text(json.dumps({"id": "m", "states": {}}), encoding="utf-8")
    with pytest.raises(ValueError, match="initial"):
        load_machine(path)
