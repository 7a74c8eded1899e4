"""
Device Service - Application service for trigger device management.

Provides the operator-facing device operations: connecting either
transport, sweeping the LAN for the controller, and releasing the bound
device.
"""

from typing import Any, Callable, Optional

import httpx

from kiosk_trigger.application.orchestrator import DispenseOrchestrator
from kiosk_trigger.core.exceptions import RepositoryError
from kiosk_trigger.core.interfaces import DeviceKind, TriggerableDevice, UsbBus
from kiosk_trigger.domain.device_adapters import LocalBusDevice, NetworkDevice, normalize_address
from kiosk_trigger.domain.discovery import NetworkDiscovery, ProgressCallback
from kiosk_trigger.domain.dispense_state_machine import DispenseStateMachine
from kiosk_trigger.event_system import EventPublisher, EventType
from kiosk_trigger.infrastructure.redis_repository import DeviceAddressRepository
from kiosk_trigger.infrastructure.settings import Settings, get_settings
from kiosk_trigger.infrastructure.usb_bus import UsbPresenceMonitor
from kiosk_trigger.loggers import EventLog


MonitorFactory = Callable[..., Any]


class DeviceService:
    """
    Application service for device management.

    Handles connecting, discovering and releasing the single trigger device
    owned by the orchestrator.
    """

    def __init__(
        self,
        orchestrator: DispenseOrchestrator,
        state_machine: DispenseStateMachine,
        repository: DeviceAddressRepository,
        discovery: NetworkDiscovery,
        usb_bus: UsbBus,
        event_publisher: Optional[EventPublisher] = None,
        settings: Optional[Settings] = None,
        events: Optional[EventLog] = None,
        network_transport: Optional[httpx.AsyncBaseTransport] = None,
        monitor_factory: Optional[MonitorFactory] = UsbPresenceMonitor,
    ) -> None:
        """
        Initialize the device service.

        Args:
            orchestrator: Owner of the bound device.
            state_machine: Kiosk state machine.
            repository: Persistence for the last network address.
            discovery: LAN sweep.
            usb_bus: Bus enumeration collaborator.
            event_publisher: Publisher for bus-removal notifications.
            settings: Application settings.
            events: Event log to report to.
            network_transport: Optional httpx transport for network devices.
            monitor_factory: Builds the USB presence monitor; None disables it.
        """
        self._orchestrator = orchestrator
        self._state_machine = state_machine
        self._repository = repository
        self._discovery = discovery
        self._usb_bus = usb_bus
        self._event_publisher = event_publisher
        self._settings = settings or get_settings()
        self._events = events or EventLog()
        self._network_transport = network_transport
        self._monitor_factory = monitor_factory
        self._monitor: Optional[Any] = None

        self.saved_address: Optional[str] = None
        self.last_scan: list[str] = []

    # =========================================================================
    # Persisted Address
    # =========================================================================

    async def load_saved_address(self) -> Optional[str]:
        """
        Read the last address that connected successfully.

        Returns:
            The address, or None if nothing is saved or Redis is unavailable.
        """
        try:
            self.saved_address = await self._repository.get_last_address()
        except RepositoryError as e:
            self._events.warn("APP", f"Could not load saved address: {e.message}")
            return None

        if self.saved_address:
            self._events.info("APP", f"Loaded saved address: {self.saved_address}")
        return self.saved_address

    # =========================================================================
    # Network Device
    # =========================================================================

    async def connect_network(self, address: str) -> bool:
        """
        Connect to the network controller at ``address`` and bind it.

        The address is persisted only after the health check succeeds.

        Returns:
            True if the device is bound and scanning started.
        """
        address = normalize_address(address or "")
        if not address:
            self._events.warn("APP", "No address entered")
            return False

        await self._begin_connect()
        self._events.info("APP", f"Connecting to network device: {address}")

        device = NetworkDevice(
            address,
            timeout_ms=self._settings.network.request_timeout_ms,
            transport=self._network_transport,
            events=self._events,
        )
        if not await device.connect():
            self._events.error("APP", f"Network device unreachable: {address}")
            return False

        try:
            await self._repository.save_last_address(address)
            self.saved_address = address
        except RepositoryError as e:
            self._events.warn("APP", f"Could not save address: {e.message}")

        self._orchestrator.bind_device(device)
        self._state_machine.device_connected(DeviceKind.NETWORK, address)
        self._orchestrator.start_scanning()
        self._events.success("APP", "Network device connected, scanner started")
        return True

    async def scan_network(self, on_progress: Optional[ProgressCallback] = None) -> list[str]:
        """
        Sweep the LAN for controllers.

        Returns:
            Reachable addresses; the first one is the suggested choice.
        """
        self.last_scan = await self._discovery.scan(on_progress)
        if self.last_scan:
            self._events.success("APP", f"Controller found: {self.last_scan[0]}")
        else:
            self._events.warn("APP", "No controller found")
        return self.last_scan

    # =========================================================================
    # USB Relay
    # =========================================================================

    async def connect_local_bus(self) -> bool:
        """
        Open the USB relay and bind it.

        Returns:
            True if the device is bound and scanning started.
        """
        await self._begin_connect()

        usb_settings = self._settings.usb
        device = LocalBusDevice(
            self._usb_bus,
            vendor_id=usb_settings.vendor_id,
            product_id=usb_settings.product_id,
            events=self._events,
        )
        if not await device.connect():
            self._events.error("APP", "USB relay connection failed")
            return False

        self._orchestrator.bind_device(device)
        self._state_machine.device_connected(DeviceKind.LOCAL_BUS)
        self._orchestrator.start_scanning()
        self._start_monitor()
        self._events.success("APP", "USB relay connected, scanner started")
        return True

    def _start_monitor(self) -> None:
        if self._monitor_factory is None:
            return
        usb_settings = self._settings.usb
        self._monitor = self._monitor_factory(
            self._usb_bus,
            usb_settings.vendor_id,
            usb_settings.product_id,
            self._on_bus_removed,
            usb_settings.presence_poll_interval_s,
        )
        self._monitor.start()

    async def _stop_monitor(self) -> None:
        if self._monitor is not None:
            await self._monitor.stop()
            self._monitor = None

    async def _on_bus_removed(self) -> None:
        if self._event_publisher is not None:
            await self._event_publisher.publish(
                EventType.DEVICE_DISCONNECTED,
                kind=DeviceKind.LOCAL_BUS.value,
            )
        else:
            self.handle_bus_disconnect()

    def handle_bus_disconnect(self) -> bool:
        """
        Apply a bus-removal notification to the bound USB relay.

        The state machine is left alone; the next trigger surfaces the
        missing device.

        Returns:
            True if a bound USB relay was marked disconnected.
        """
        device = self._orchestrator.device
        if isinstance(device, LocalBusDevice):
            return device.handle_bus_disconnect()
        return False

    # =========================================================================
    # Release
    # =========================================================================

    async def _release_current(self) -> Optional[TriggerableDevice]:
        await self._stop_monitor()
        return await self._orchestrator.release_device()

    async def _begin_connect(self) -> None:
        # A replaced device must not leave its kind and address in the snapshot
        if await self._release_current() is not None:
            self._state_machine.device_disconnected()
        else:
            self._state_machine.connecting()

    async def disconnect(self) -> None:
        """Release the bound device and wait for a new one."""
        await self._release_current()
        self._state_machine.device_disconnected()

    async def shutdown(self) -> None:
        """Release the bound device at process teardown."""
        await self._release_current()
