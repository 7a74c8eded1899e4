"""
Domain layer - Business logic and domain models.

Contains:
- Trigger devices with a unified interface
- Dispense state machine
- Detection debouncer
- Network discovery
"""

from .dispense_state_machine import (
    DispenseStateMachine,
    DispenseState,
    StateContext,
    StateSnapshot,
)
from .debouncer import DetectionDebouncer
from .device_adapters import (
    BaseTriggerDevice,
    NetworkDevice,
    LocalBusDevice,
)
from .discovery import NetworkDiscovery


__all__ = [
    # State
    "DispenseStateMachine",
    "DispenseState",
    "StateContext",
    "StateSnapshot",
    # Detection
    "DetectionDebouncer",
    # Devices
    "BaseTriggerDevice",
    "NetworkDevice",
    "LocalBusDevice",
    # Discovery
    "NetworkDiscovery",
]
