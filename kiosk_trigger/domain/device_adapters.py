"""
Device Adapters - Unified trigger interface for both relay transports.

Wraps the HTTP network controller and the USB HID relay behind the
TriggerableDevice capability used by the dispense orchestrator.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

import httpx

from kiosk_trigger.configs import (
    DEFAULT_REQUEST_TIMEOUT_MS,
    DEFAULT_TRIGGER_DURATION_MS,
    HEALTH_ENDPOINT,
    PROBE_TIMEOUT_MS,
    RELAY_CONFIGURATION,
    RELAY_INDEX,
    RELAY_INTERFACE,
    RELAY_OFF_FRAME,
    RELAY_ON_FRAME,
    RELAY_PRODUCT_ID,
    RELAY_REQUEST,
    RELAY_VALUE,
    RELAY_VENDOR_ID,
    TRIGGER_ENDPOINT,
)
from kiosk_trigger.core.exceptions import (
    DeviceConnectionError,
    DeviceError,
    DeviceNotReadyError,
    HardwareTransferError,
    ProtocolError,
)
from kiosk_trigger.core.interfaces import DeviceKind, TriggerableDevice, UsbBus, UsbHandle
from kiosk_trigger.core.value_objects import TriggerOutcome
from kiosk_trigger.loggers import EventLog


Sleeper = Callable[[float], Awaitable[Any]]


# =============================================================================
# Base Device Adapter
# =============================================================================


class BaseTriggerDevice(TriggerableDevice):
    """
    Base class for trigger devices.

    Provides the connected flag and event-log plumbing shared by both
    transports.
    """

    category = "DEVICE"

    def __init__(self, device_kind: DeviceKind, events: Optional[EventLog] = None) -> None:
        self._device_kind = device_kind
        self._connected = False
        self._events = events or EventLog()

    @property
    def device_kind(self) -> DeviceKind:
        return self._device_kind

    @property
    def device_name(self) -> str:
        return self._device_kind.value

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _fail(self, error: DeviceError) -> TriggerOutcome:
        self._events.error(self.category, f"Trigger failed: {error.message}")
        return TriggerOutcome.from_error(error)


# =============================================================================
# Network Device (HTTP)
# =============================================================================


def normalize_address(address: str) -> str:
    """Strip scheme and trailing slash from an operator-entered address."""
    address = address.strip()
    for scheme in ("http://", "https://"):
        if address.startswith(scheme):
            address = address[len(scheme):]
    return address.rstrip("/")


class NetworkDevice(BaseTriggerDevice):
    """
    LAN-attached relay controller reached over HTTP.

    Every request opens its own client with its own timeout so a stale
    in-flight call never affects the next one.
    """

    category = "NETWORK"

    def __init__(
        self,
        address: Optional[str] = None,
        *,
        timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        events: Optional[EventLog] = None,
    ) -> None:
        """
        Initialize the network device.

        Args:
            address: Host (and optional port) of the controller.
            timeout_ms: Timeout applied to each request.
            transport: Optional httpx transport, mainly for tests.
            events: Event log to report to.
        """
        super().__init__(DeviceKind.NETWORK, events)
        self._address: Optional[str] = normalize_address(address) if address else None
        self._timeout_ms = timeout_ms
        self._transport = transport
        self.last_latency_ms: Optional[int] = None
        self.last_health: dict[str, Any] = {}

    @property
    def device_address(self) -> Optional[str]:
        return self._address

    @property
    def base_url(self) -> str:
        return f"http://{self._address}" if self._address else ""

    def set_address(self, address: str) -> None:
        """Point the device at a new address; connection must be re-checked."""
        self._address = normalize_address(address)
        self._connected = False
        self._events.info(self.category, f"Address set: {self._address}")

    async def _request(self, method: str, path: str) -> httpx.Response:
        timeout_s = self._timeout_ms / 1000
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=timeout_s,
                transport=self._transport,
            ) as client:
                return await asyncio.wait_for(client.request(method, path), timeout=timeout_s)
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise DeviceConnectionError(
                f"Timeout after {self._timeout_ms} ms",
                device_name=self.device_name,
            ) from e
        except httpx.HTTPError as e:
            raise DeviceConnectionError(
                f"Network error: {e}",
                device_name=self.device_name,
            ) from e

    async def connect(self) -> bool:
        return await self.health_check()

    async def health_check(self) -> bool:
        """
        Probe ``GET /health``.

        Sets the connected flag true only on a 2xx answer.

        Returns:
            True if the controller answered with 2xx.
        """
        if not self._address:
            self._events.warn(self.category, "Address not set")
            self._connected = False
            return False

        self._events.info(self.category, f"Checking connection: {self.base_url}")
        started = time.perf_counter()
        try:
            response = await self._request("GET", HEALTH_ENDPOINT)
        except DeviceConnectionError as e:
            self._events.error(self.category, f"Connection failed: {e.message}")
            self._connected = False
            return False

        self.last_latency_ms = int((time.perf_counter() - started) * 1000)

        if not response.is_success:
            self._events.error(self.category, f"Connection failed: HTTP {response.status_code}")
            self._connected = False
            return False

        try:
            body = response.json()
        except ValueError:
            body = {}
        self.last_health = body if isinstance(body, dict) else {}
        self._connected = True
        self._events.success(
            self.category,
            f"Connected ({self.last_latency_ms}ms)",
            self.last_health or None,
        )
        return True

    async def trigger(self, duration_ms: int = DEFAULT_TRIGGER_DURATION_MS) -> TriggerOutcome:
        """
        Fire the relay with ``POST /trigger``.

        The relay on-time is decided by the controller; ``duration_ms`` is
        only the fallback when the answer omits it.

        Returns:
            Outcome carrying the reported duration or the failure cause.
        """
        if not self._address:
            return self._fail(
                DeviceNotReadyError("Network address not set", device_name=self.device_name)
            )

        self._events.info(self.category, "Sending trigger request...")
        started = time.perf_counter()
        try:
            response = await self._request("POST", TRIGGER_ENDPOINT)
            if not response.is_success:
                raise ProtocolError(
                    f"HTTP {response.status_code}",
                    device_name=self.device_name,
                    details={"status": response.status_code},
                )
            duration = self._parse_duration(response, duration_ms)
        except DeviceError as e:
            return self._fail(e)

        latency = int((time.perf_counter() - started) * 1000)
        self._events.success(
            self.category,
            f"Trigger succeeded (response: {latency}ms, relay: {duration}ms)",
        )
        return TriggerOutcome.succeeded(duration)

    def _parse_duration(self, response: httpx.Response, default: int) -> int:
        try:
            data = response.json()
        except ValueError as e:
            raise ProtocolError("Malformed trigger response", device_name=self.device_name) from e

        if not isinstance(data, dict):
            raise ProtocolError("Malformed trigger response", device_name=self.device_name)

        duration = data.get("duration")
        if duration is None:
            return default
        if isinstance(duration, bool) or not isinstance(duration, (int, float)):
            raise ProtocolError(
                f"Invalid duration in trigger response: {duration!r}",
                device_name=self.device_name,
            )
        return int(duration)

    async def disconnect(self) -> None:
        # Nothing is held open between requests
        self._connected = False

    @staticmethod
    async def probe(
        client: httpx.AsyncClient,
        address: str,
        timeout_ms: int = PROBE_TIMEOUT_MS,
    ) -> bool:
        """
        Lightweight reachability check used by network discovery.

        Args:
            client: Shared client of the caller's sweep.
            address: Host to probe.
            timeout_ms: Probe timeout.

        Returns:
            True if ``GET /health`` answered with 2xx in time.
        """
        timeout_s = timeout_ms / 1000
        try:
            response = await asyncio.wait_for(
                client.get(f"http://{address}{HEALTH_ENDPOINT}", timeout=timeout_s),
                timeout=timeout_s,
            )
        except (httpx.HTTPError, asyncio.TimeoutError, OSError):
            return False
        return response.is_success


# =============================================================================
# Local Bus Device (USB HID relay)
# =============================================================================


class LocalBusDevice(BaseTriggerDevice):
    """
    USB HID relay wired directly to the kiosk.

    Device enumeration and raw transfers are delegated to a bus
    collaborator; blocking bus calls run in a worker thread.
    """

    category = "USB"

    def __init__(
        self,
        bus: UsbBus,
        *,
        vendor_id: int = RELAY_VENDOR_ID,
        product_id: int = RELAY_PRODUCT_ID,
        events: Optional[EventLog] = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        """
        Initialize the USB relay device.

        Args:
            bus: Bus enumeration collaborator.
            vendor_id: USB vendor id to match.
            product_id: USB product id to match.
            events: Event log to report to.
            sleep: Awaitable used for the relay on-time.
        """
        super().__init__(DeviceKind.LOCAL_BUS, events)
        self._bus = bus
        self.vendor_id = vendor_id
        self.product_id = product_id
        self._sleep = sleep
        self._handle: Optional[UsbHandle] = None

    @property
    def device_address(self) -> Optional[str]:
        return None

    @property
    def handle(self) -> Optional[UsbHandle]:
        return self._handle

    @property
    def is_connected(self) -> bool:
        return self._connected and self._handle is not None

    async def connect(self) -> bool:
        """
        Open the relay: open, select configuration if none, claim interface 0.

        Returns:
            True if every step succeeded.
        """
        self._events.info(self.category, "Connecting to relay...")
        handle: Optional[UsbHandle] = None
        opened = False
        try:
            handle = await asyncio.to_thread(
                self._bus.find_device, self.vendor_id, self.product_id
            )
            if handle is None:
                self._events.warn(
                    self.category,
                    f"No relay found ({self.vendor_id:04x}:{self.product_id:04x})",
                )
                return False

            await asyncio.to_thread(handle.open)
            opened = True
            self._events.debug(self.category, "Device opened")

            if not await asyncio.to_thread(handle.has_active_configuration):
                await asyncio.to_thread(handle.select_configuration, RELAY_CONFIGURATION)
                self._events.debug(self.category, "Configuration selected")

            await asyncio.to_thread(handle.claim_interface, RELAY_INTERFACE)
            self._events.debug(self.category, "Interface claimed")
        except Exception as e:
            self._events.error(self.category, f"Connection failed: {e}")
            self._connected = False
            self._handle = None
            if opened and handle is not None:
                try:
                    await asyncio.to_thread(handle.close)
                except Exception as close_error:
                    self._events.error(self.category, f"Relay close error: {close_error}")
            return False

        self._handle = handle
        self._connected = True
        self._events.success(self.category, "Relay connected")
        return True

    async def health_check(self) -> bool:
        return self.is_connected

    async def trigger(self, duration_ms: int = DEFAULT_TRIGGER_DURATION_MS) -> TriggerOutcome:
        """
        Fire the relay: ON frame, hold ``duration_ms``, OFF frame.

        Returns:
            Success once both transfers complete.
        """
        handle = self._handle
        if handle is None or not self._connected:
            return self._fail(
                DeviceNotReadyError("USB relay not connected", device_name=self.device_name)
            )

        self._events.info(self.category, f"Trigger started ({duration_ms}ms)")
        try:
            await self._send(handle, RELAY_ON_FRAME)
            self._events.debug(self.category, "RELAY ON sent")

            await self._sleep(duration_ms / 1000)

            await self._send(handle, RELAY_OFF_FRAME)
            self._events.debug(self.category, "RELAY OFF sent")
        except HardwareTransferError as e:
            return self._fail(e)
        except Exception as e:
            return self._fail(
                HardwareTransferError(f"Transfer failed: {e}", device_name=self.device_name)
            )

        self._events.success(self.category, "Trigger complete")
        return TriggerOutcome.succeeded(duration_ms)

    async def _send(self, handle: UsbHandle, frame: bytes) -> None:
        await asyncio.to_thread(
            handle.control_transfer_out,
            RELAY_REQUEST,
            RELAY_VALUE,
            RELAY_INDEX,
            frame,
        )

    def handle_bus_disconnect(self, handle: Optional[UsbHandle] = None) -> bool:
        """
        React to a bus-level removal notification.

        Args:
            handle: The removed device; None means "our device".

        Returns:
            True if the notification concerned this device.
        """
        if handle is not None and handle is not self._handle:
            return False

        self._connected = False
        self._handle = None
        self._events.warn(self.category, "Relay disconnected")
        return True

    async def disconnect(self) -> None:
        """Release interface 0 and close the device."""
        handle = self._handle
        if handle is None:
            self._connected = False
            return
        try:
            await asyncio.to_thread(handle.release_interface, RELAY_INTERFACE)
            await asyncio.to_thread(handle.close)
        except Exception as e:
            self._events.error(self.category, f"Relay release error: {e}")
        finally:
            self._handle = None
            self._connected = False
