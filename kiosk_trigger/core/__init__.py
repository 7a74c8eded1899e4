"""
Core module - Foundation layer with no external dependencies.

Contains:
- Exceptions
- Interfaces (Protocols)
- Value Objects
"""

from .exceptions import (
    KioskError,
    DeviceError,
    DeviceConnectionError,
    ProtocolError,
    DeviceNotReadyError,
    HardwareTransferError,
    RepositoryError,
    RedisConnectionError,
)
from .interfaces import (
    DeviceKind,
    TriggerableDevice,
    UsbBus,
    UsbHandle,
)
from .value_objects import (
    TriggerOutcome,
    DetectionEvent,
)


__all__ = [
    # Exceptions
    "KioskError",
    "DeviceError",
    "DeviceConnectionError",
    "ProtocolError",
    "DeviceNotReadyError",
    "HardwareTransferError",
    "RepositoryError",
    "RedisConnectionError",
    # Interfaces
    "DeviceKind",
    "TriggerableDevice",
    "UsbBus",
    "UsbHandle",
    # Value Objects
    "TriggerOutcome",
    "DetectionEvent",
]
