"""
Dispense Orchestrator - Runs one scan -> dispense -> reset cycle per card.

Owns the bound trigger device and sequences the state machine around it.
There is no locking: intake is paused for the whole cycle, so at most one
dispense is ever in flight.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

from kiosk_trigger.core.exceptions import DeviceNotReadyError, HardwareTransferError
from kiosk_trigger.core.interfaces import TriggerableDevice
from kiosk_trigger.core.value_objects import TriggerOutcome
from kiosk_trigger.domain.debouncer import DetectionDebouncer
from kiosk_trigger.domain.dispense_state_machine import DispenseStateMachine
from kiosk_trigger.infrastructure.settings import DispenseSettings
from kiosk_trigger.loggers import EventLog


Sleeper = Callable[[float], Awaitable[Any]]


class DispenseOrchestrator:
    """
    Drives the dispense flow for accepted barcodes.

    Attributes:
        settings: Timing of the cycle.
    """

    def __init__(
        self,
        state_machine: DispenseStateMachine,
        debouncer: DetectionDebouncer,
        settings: Optional[DispenseSettings] = None,
        events: Optional[EventLog] = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            state_machine: Kiosk state machine.
            debouncer: Filter for repeated reads.
            settings: Cycle timing.
            events: Event log to report to.
            sleep: Awaitable used for the settle delay and dwell.
        """
        self._state_machine = state_machine
        self._debouncer = debouncer
        self.settings = settings or DispenseSettings()
        self._events = events or EventLog()
        self._sleep = sleep
        self._device: Optional[TriggerableDevice] = None
        self._scanning = False

    @property
    def device(self) -> Optional[TriggerableDevice]:
        """Get the bound device."""
        return self._device

    @property
    def is_scanning(self) -> bool:
        """Check if code intake is enabled."""
        return self._scanning

    # =========================================================================
    # Device Binding
    # =========================================================================

    def bind_device(self, device: TriggerableDevice) -> None:
        """
        Take ownership of a connected device.

        Callers must release the previous device first.
        """
        self._device = device
        self._events.info(
            "APP",
            f"Device bound: {device.device_kind.value}",
            {"address": device.device_address} if device.device_address else None,
        )

    async def release_device(self) -> Optional[TriggerableDevice]:
        """
        Close and forget the bound device.

        Returns:
            The released device, or None if nothing was bound.
        """
        device = self._device
        self._device = None
        self._scanning = False
        if device is not None:
            await device.disconnect()
            self._events.info("APP", f"Device released: {device.device_kind.value}")
        return device

    # =========================================================================
    # Intake
    # =========================================================================

    def start_scanning(self) -> None:
        self._scanning = True
        self._events.info("SCANNER", "Barcode intake started")

    def stop_scanning(self) -> None:
        self._scanning = False
        self._events.info("SCANNER", "Barcode intake stopped")

    async def handle_code(self, code: str, now: Optional[float] = None) -> bool:
        """
        Feed one decoded barcode into the kiosk.

        Args:
            code: Decoded barcode text.
            now: Observation time in milliseconds.

        Returns:
            True if the code started a dispense cycle.
        """
        if not self._scanning:
            self._events.debug("SCANNER", f"Intake paused, ignoring: {code}")
            return False

        if not self._debouncer.accept(code, now):
            self._events.debug("SCANNER", f"Repeat read suppressed: {code}")
            return False

        self._events.success("SCANNER", f"Barcode accepted: {code}")
        await self.dispense(code)
        return True

    # =========================================================================
    # Dispense Cycle
    # =========================================================================

    async def dispense(self, code: str) -> TriggerOutcome:
        """
        Run the full cycle for an accepted code.

        Success ends back in ``SCAN_READY`` with intake resumed; failure ends
        in ``ERROR`` with intake paused until ``retry()``.

        Returns:
            The device's trigger outcome.
        """
        self._scanning = False
        self._state_machine.scan_success(code)

        await self._sleep(self.settings.settle_delay_ms / 1000)

        self._state_machine.dispensing()
        self._events.info("APP", "Dispense started")

        outcome = await self._trigger()

        if not outcome.ok:
            self._events.error("APP", "Dispense failed", outcome.to_dict())
            self._state_machine.error(
                f"Dispense failed: {outcome.message or 'unknown error'}. Please try again."
            )
            return outcome

        self._events.success("APP", "Dispense succeeded", outcome.to_dict())
        self._state_machine.complete()
        await self._sleep(self.settings.complete_dwell_ms / 1000)

        self._state_machine.reset()
        self.start_scanning()
        return outcome

    async def _trigger(self) -> TriggerOutcome:
        device = self._device
        if device is None:
            return TriggerOutcome.from_error(DeviceNotReadyError("No trigger device bound"))

        self._events.info("APP", f"Sending trigger via {device.device_kind.value}")
        try:
            return await device.trigger(self.settings.trigger_duration_ms)
        except Exception as e:
            self._events.error("APP", f"Unexpected trigger error: {e!r}")
            return TriggerOutcome.from_error(
                HardwareTransferError(f"Unexpected device error: {e}")
            )

    def retry(self) -> None:
        """Operator recovery: back to ``SCAN_READY`` and resume intake."""
        self._events.info("APP", "Retry requested")
        self._state_machine.reset()
        self.start_scanning()
