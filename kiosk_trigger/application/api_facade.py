"""
API Facade - Unified interface for the kiosk.

Wires the domain objects together and exposes the operator actions as
coroutines returning plain response dictionaries.
"""

import asyncio
from typing import Any, Optional

import httpx
from redis.asyncio import Redis

from kiosk_trigger.application.device_service import DeviceService, MonitorFactory
from kiosk_trigger.application.orchestrator import DispenseOrchestrator, Sleeper
from kiosk_trigger.core.interfaces import UsbBus
from kiosk_trigger.domain.debouncer import DetectionDebouncer
from kiosk_trigger.domain.discovery import NetworkDiscovery
from kiosk_trigger.domain.dispense_state_machine import DispenseState, DispenseStateMachine
from kiosk_trigger.event_system import EventConsumer, EventPublisher, EventType
from kiosk_trigger.infrastructure.redis_repository import DeviceAddressRepository
from kiosk_trigger.infrastructure.settings import Settings, get_settings
from kiosk_trigger.infrastructure.usb_bus import PyUsbBus, UsbPresenceMonitor
from kiosk_trigger.loggers import EventLog, logger


class KioskFacade:
    """
    Facade for the kiosk API.

    Owns one instance of every component; nothing is a module-level
    singleton, so several facades can coexist in tests.
    """

    def __init__(
        self,
        redis: Redis,
        settings: Optional[Settings] = None,
        usb_bus: Optional[UsbBus] = None,
        network_transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleeper = asyncio.sleep,
        monitor_factory: Optional[MonitorFactory] = UsbPresenceMonitor,
    ) -> None:
        """
        Initialize the kiosk facade.

        Args:
            redis: Redis client instance.
            settings: Application settings.
            usb_bus: Bus enumeration collaborator (pyusb by default).
            network_transport: Optional httpx transport for device and sweep.
            sleep: Awaitable used for the cycle's fixed waits.
            monitor_factory: Builds the USB presence monitor; None disables it.
        """
        self._settings = settings or get_settings()

        self.events = EventLog(max_entries=self._settings.logging.max_entries)
        self.state_machine = DispenseStateMachine(self.events)
        self.debouncer = DetectionDebouncer(self._settings.dispense.debounce_window_ms)
        self.orchestrator = DispenseOrchestrator(
            self.state_machine,
            self.debouncer,
            self._settings.dispense,
            self.events,
            sleep,
        )

        discovery_settings = self._settings.discovery
        discovery = NetworkDiscovery(
            discovery_settings.prefixes,
            probe_timeout_ms=discovery_settings.probe_timeout_ms,
            max_concurrency=discovery_settings.max_concurrency,
            progress_every=discovery_settings.progress_every,
            transport=network_transport,
            events=self.events,
        )

        # Event system
        self._event_queue: asyncio.Queue = asyncio.Queue()
        self._event_publisher = EventPublisher(self._event_queue)
        self._event_consumer = EventConsumer(self._event_queue)

        self.device_service = DeviceService(
            self.orchestrator,
            self.state_machine,
            DeviceAddressRepository(redis, self._settings.network.address_key),
            discovery,
            usb_bus or PyUsbBus(),
            event_publisher=self._event_publisher,
            settings=self._settings,
            events=self.events,
            network_transport=network_transport,
            monitor_factory=monitor_factory,
        )

        self._is_initialized = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def init(self) -> dict[str, Any]:
        """
        Start the kiosk: wait for a device and pre-fill the saved address.

        Returns:
            Dictionary with the saved address, if any.
        """
        self.events.info("APP", "Kiosk starting")
        self.state_machine.connecting()

        if not self._is_initialized:
            self._event_consumer.register_handler(
                EventType.BARCODE_DETECTED, self._handle_barcode_event
            )
            self._event_consumer.register_handler(
                EventType.DEVICE_DISCONNECTED, self._handle_disconnect_event
            )
            self._event_consumer.start_consuming()
            self._is_initialized = True

        saved = await self.device_service.load_saved_address()
        return {
            "success": True,
            "message": "Kiosk initialized",
            "data": {"saved_address": saved},
        }

    async def shutdown(self) -> None:
        """Release the device and stop event processing."""
        try:
            await self.device_service.shutdown()
            await self._event_consumer.stop_consuming()
            self._is_initialized = False
            logger.info("Kiosk shut down successfully")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")

    async def _handle_barcode_event(self, event: dict[str, Any]) -> None:
        await self.orchestrator.handle_code(event["code"])

    def _handle_disconnect_event(self, event: dict[str, Any]) -> None:
        self.device_service.handle_bus_disconnect()

    # =========================================================================
    # Device Operations
    # =========================================================================

    async def connect_network(self, address: str) -> dict[str, Any]:
        connected = await self.device_service.connect_network(address)
        if not connected:
            return {"success": False, "message": f"Cannot reach network device at {address}"}
        return {
            "success": True,
            "message": "Network device connected",
            "data": self.state_machine.snapshot().to_dict(),
        }

    async def scan_network(self) -> dict[str, Any]:
        found = await self.device_service.scan_network()
        if not found:
            return {"success": False, "message": "No network device found", "data": []}
        return {
            "success": True,
            "message": f"Network device found: {found[0]}",
            "data": found,
        }

    async def connect_usb(self) -> dict[str, Any]:
        connected = await self.device_service.connect_local_bus()
        if not connected:
            return {"success": False, "message": "USB relay connection failed"}
        return {
            "success": True,
            "message": "USB relay connected",
            "data": self.state_machine.snapshot().to_dict(),
        }

    async def disconnect(self) -> dict[str, Any]:
        await self.device_service.disconnect()
        return {"success": True, "message": "Device disconnected"}

    # =========================================================================
    # Dispense Operations
    # =========================================================================

    async def barcode_detected(self, code: str) -> dict[str, Any]:
        """Queue a decoded barcode for the dispense flow."""
        await self._event_publisher.publish(EventType.BARCODE_DETECTED, code=str(code))
        return {"success": True, "message": "Barcode queued"}

    async def retry(self) -> dict[str, Any]:
        """Operator retry after a failed dispense."""
        if self.state_machine.state is not DispenseState.ERROR:
            return {
                "success": False,
                "message": f"Retry not available in state {self.state_machine.state.name}",
            }
        self.orchestrator.retry()
        return {"success": True, "message": "Kiosk reset, scanning resumed"}

    # =========================================================================
    # Status
    # =========================================================================

    async def status(self) -> dict[str, Any]:
        device = self.orchestrator.device
        data = self.state_machine.snapshot().to_dict()
        data["scanning"] = self.orchestrator.is_scanning
        data["device_connected"] = bool(device and device.is_connected)
        data["saved_address"] = self.device_service.saved_address
        return {"success": True, "message": "OK", "data": data}

    async def logs(self, limit: int = 50) -> dict[str, Any]:
        limit = max(int(limit), 0)
        entries = self.events.entries()[-limit:] if limit else []
        return {
            "success": True,
            "message": f"{len(entries)} entries",
            "data": [entry.to_dict() for entry in entries],
        }
