"""Domain layer: entities and value objects. No dependencies on outer layers."""

from contextcrm.domain.entities import AppState, DeviceContact, MonitorState

__all__ = ["AppState", "DeviceContact", "MonitorState"]
