"""
Interfaces (Protocols) for the kiosk trigger service.

Defines contracts for trigger devices, the USB bus collaborator and the
state repository.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional, Protocol, runtime_checkable

from kiosk_trigger.core.value_objects import TriggerOutcome


# =============================================================================
# Enums
# =============================================================================


class DeviceKind(str, Enum):
    """Transport used to fire the dispensing relay."""

    NETWORK = "network"
    LOCAL_BUS = "local_bus"


# =============================================================================
# Device Interfaces
# =============================================================================


class TriggerableDevice(ABC):
    """
    Capability shared by every relay transport.

    The orchestrator holds one instance polymorphically and only reads
    ``device_kind`` for display.
    """

    @property
    @abstractmethod
    def device_kind(self) -> DeviceKind:
        """Get the transport kind."""
        ...

    @property
    @abstractmethod
    def device_address(self) -> Optional[str]:
        """Get the device address, if the transport has one."""
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Check if device is connected."""
        ...

    @abstractmethod
    async def connect(self) -> bool:
        """
        Connect to the device.

        Returns:
            True if connection successful.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check that the device is reachable.

        Returns:
            True if the device is healthy.
        """
        ...

    @abstractmethod
    async def trigger(self, duration_ms: int = 250) -> TriggerOutcome:
        """
        Fire one relay cycle.

        Args:
            duration_ms: Requested relay on-time.

        Returns:
            Outcome of the attempt.
        """
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the transport."""
        ...


@runtime_checkable
class UsbHandle(Protocol):
    """An opened-or-openable USB device exposed by the bus collaborator."""

    def open(self) -> None:
        ...

    def has_active_configuration(self) -> bool:
        ...

    def select_configuration(self, configuration: int) -> None:
        ...

    def claim_interface(self, interface: int) -> None:
        ...

    def release_interface(self, interface: int) -> None:
        ...

    def control_transfer_out(
        self,
        request: int,
        value: int,
        index: int,
        data: bytes,
    ) -> int:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class UsbBus(Protocol):
    """Bus enumeration collaborator."""

    def find_device(self, vendor_id: int, product_id: int) -> Optional[UsbHandle]:
        """Return the first device matching the identifier pair, or None."""
        ...
