"""
Detector lifecycle as an XState machine, executed with xstate-python.

The machine is standard XState JSON (id, initial, states with on: { EVENT: target })
so the same file can be opened in Stately Studio. State names match MonitorState values.
"""

import json
import logging
import os
from pathlib import Path

from xstate.machine import Machine

from contextcrm.domain import MonitorState

logger = logging.getLogger(__name__)

INITIALIZE = "INITIALIZE"
WARMUP_COMPLETE = "WARMUP_COMPLETE"
START = "START"
STOP = "STOP"


def get_machine_path() -> Path:
    """Return path to the monitor machine JSON (CONTEXT_CRM_MACHINE_PATH env or bundled file)."""
    default = Path(__file__).resolve().parent.parent / "flows" / "monitor_machine.json"
    path = os.environ.get("CONTEXT_CRM_MACHINE_PATH", "").strip()
    if path:
        return Path(path).resolve()
    return default


def load_machine(path: Path | None = None) -> dict:
    if path is None:
        path = get_machine_path()
    config = json.loads(path.read_text(encoding="utf-8"))
    if "initial" not in config or "states" not in config:
        raise ValueError("Machine must have 'initial' and 'states'")
    valid = {s.value for s in MonitorState}
    for name in config["states"]:
        if name not in valid:
            raise ValueError(f"Unknown monitor state '{name}' in machine")
    return config


def transition(machine: Machine, state_value: str, event: str) -> str | None:
    """Return next state value for (state_value, event), or None if no transition."""
    try:
        state = machine.state_from(state_value)
        next_state = machine.transition(state, event)
        if next_state.value == state_value:
            return None
        return next_state.value
    except (ValueError, KeyError):
        return None


class MonitorStateMachine:
    """Current MonitorState plus the transitions the machine allows from it."""

    def __init__(self, config: dict | None = None) -> None:
        if config is None:
            config = load_machine()
        self._machine = Machine(config)
        self._state = MonitorState(config["initial"])

    @property
    def state(self) -> MonitorState:
        return self._state

    def send(self, event: str) -> bool:
        """Apply event. Returns False (state unchanged) if the current state does not accept it."""
        next_value = transition(self._machine, self._state.value, event)
        if next_value is None:
            logger.debug("Ignoring %s in state %s", event, self._state.value)
            return False
        logger.info("Monitor state %s -> %s", self._state.value, next_value)
        self._state = MonitorState(next_value)
        return True
