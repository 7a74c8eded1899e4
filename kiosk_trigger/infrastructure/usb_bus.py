"""
USB bus access through pyusb.

Provides the bus-enumeration collaborator used by the USB relay device and
a presence monitor that turns a vanished device into a disconnect
notification. pyusb has no hotplug callbacks, so presence is polled.
"""

import asyncio
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Iterator, Optional, Union

import usb.core
import usb.util

from kiosk_trigger.core.exceptions import HardwareTransferError
from kiosk_trigger.loggers import logger


DisconnectCallback = Callable[[], Union[Awaitable[None], None]]


@contextmanager
def _usb_errors(action: str) -> Iterator[None]:
    try:
        yield
    except usb.core.USBError as e:
        raise HardwareTransferError(f"{action} failed: {e}", device_name="local_bus") from e


# =============================================================================
# Device Handle
# =============================================================================


class PyUsbHandle:
    """UsbHandle backed by a pyusb device."""

    def __init__(self, device: usb.core.Device) -> None:
        self._device = device

    @property
    def device(self) -> usb.core.Device:
        return self._device

    def open(self) -> None:
        """
        Prepare the device for use.

        pyusb opens lazily; on Linux the kernel HID driver has to be
        detached before interface 0 can be claimed.
        """
        try:
            if self._device.is_kernel_driver_active(0):
                with _usb_errors("Detach kernel driver"):
                    self._device.detach_kernel_driver(0)
        except NotImplementedError:
            pass

    def has_active_configuration(self) -> bool:
        try:
            return self._device.get_active_configuration() is not None
        except usb.core.USBError:
            return False

    def select_configuration(self, configuration: int) -> None:
        with _usb_errors("Select configuration"):
            self._device.set_configuration(configuration)

    def claim_interface(self, interface: int) -> None:
        with _usb_errors("Claim interface"):
            usb.util.claim_interface(self._device, interface)

    def release_interface(self, interface: int) -> None:
        with _usb_errors("Release interface"):
            usb.util.release_interface(self._device, interface)

    def control_transfer_out(
        self,
        request: int,
        value: int,
        index: int,
        data: bytes,
    ) -> int:
        """Class-type, interface-recipient OUT control transfer."""
        request_type = usb.util.build_request_type(
            usb.util.CTRL_OUT,
            usb.util.CTRL_TYPE_CLASS,
            usb.util.CTRL_RECIPIENT_INTERFACE,
        )
        with _usb_errors("Control transfer"):
            return self._device.ctrl_transfer(request_type, request, value, index, data)

    def close(self) -> None:
        usb.util.dispose_resources(self._device)


# =============================================================================
# Bus
# =============================================================================


class PyUsbBus:
    """Bus enumeration collaborator backed by ``usb.core.find``."""

    def __init__(self, backend: Any = None) -> None:
        self._backend = backend

    def find_device(self, vendor_id: int, product_id: int) -> Optional[PyUsbHandle]:
        device = usb.core.find(idVendor=vendor_id, idProduct=product_id, backend=self._backend)
        if device is None:
            return None
        return PyUsbHandle(device)


# =============================================================================
# Presence Monitor
# =============================================================================


class UsbPresenceMonitor:
    """
    Polls the bus and fires a notification once the device disappears.

    Attributes:
        interval_s: Poll interval in seconds.
        is_running: Flag indicating if the monitor is active.
    """

    def __init__(
        self,
        bus: Any,
        vendor_id: int,
        product_id: int,
        on_disconnect: DisconnectCallback,
        interval_s: float = 1.0,
    ) -> None:
        self._bus = bus
        self.vendor_id = vendor_id
        self.product_id = product_id
        self._on_disconnect = on_disconnect
        self.interval_s = interval_s
        self.is_running = False
        self._task: Optional[asyncio.Task] = None

    async def _is_present(self) -> bool:
        try:
            handle = await asyncio.to_thread(
                self._bus.find_device, self.vendor_id, self.product_id
            )
        except Exception as e:
            logger.error(f"USB presence poll error: {e}")
            return True
        return handle is not None

    async def _poll_loop(self) -> None:
        while self.is_running:
            await asyncio.sleep(self.interval_s)
            if not self.is_running:
                break
            if await self._is_present():
                continue

            self.is_running = False
            logger.warning(
                f"USB device {self.vendor_id:04x}:{self.product_id:04x} removed"
            )
            result = self._on_disconnect()
            if asyncio.iscoroutine(result):
                await result

    def start(self) -> None:
        """Start polling; calling it twice is a no-op."""
        if self.is_running:
            return
        self.is_running = True
        self._task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        """Stop polling and wait for the poll task to finish."""
        self.is_running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
