"""
Infrastructure layer - External dependencies and implementations.

Contains:
- Repository implementations (Redis)
- USB bus access (pyusb)
- Configuration
"""

from .redis_repository import (
    RedisStateRepository,
    DeviceAddressRepository,
)
from .settings import (
    Settings,
    get_settings,
)
from .usb_bus import (
    PyUsbBus,
    PyUsbHandle,
    UsbPresenceMonitor,
)


__all__ = [
    # Repositories
    "RedisStateRepository",
    "DeviceAddressRepository",
    # USB
    "PyUsbBus",
    "PyUsbHandle",
    "UsbPresenceMonitor",
    # Settings
    "Settings",
    "get_settings",
]
