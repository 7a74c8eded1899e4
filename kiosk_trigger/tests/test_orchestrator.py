"""
Tests for the dispense orchestrator: the scan -> dispense -> reset cycle.
"""

from typing import Optional
from unittest.mock import AsyncMock

import pytest

from kiosk_trigger.core.exceptions import HardwareTransferError, ProtocolError
from kiosk_trigger.core.interfaces import DeviceKind, TriggerableDevice
from kiosk_trigger.core.value_objects import TriggerOutcome
from kiosk_trigger.application.orchestrator import DispenseOrchestrator
from kiosk_trigger.domain.debouncer import DetectionDebouncer
from kiosk_trigger.domain.dispense_state_machine import DispenseState, DispenseStateMachine
from kiosk_trigger.infrastructure.settings import DispenseSettings


class ScriptedDevice(TriggerableDevice):
    """Trigger device returning a fixed outcome (or raising)."""

    def __init__(self, outcome: Optional[TriggerOutcome] = None, raises: Optional[Exception] = None):
        self.outcome = outcome or TriggerOutcome.succeeded(250)
        self.raises = raises
        self.durations: list[int] = []
        self.disconnected = False

    @property
    def device_kind(self) -> DeviceKind:
        return DeviceKind.NETWORK

    @property
    def device_address(self) -> Optional[str]:
        return "10.0.0.5"

    @property
    def is_connected(self) -> bool:
        return not self.disconnected

    async def connect(self) -> bool:
        return True

    async def health_check(self) -> bool:
        return True

    async def trigger(self, duration_ms: int = 250) -> TriggerOutcome:
        self.durations.append(duration_ms)
        if self.raises:
            raise self.raises
        return self.outcome

    async def disconnect(self) -> None:
        self.disconnected = True


@pytest.fixture
def state_machine(events):
    machine = DispenseStateMachine(events)
    machine.device_connected(DeviceKind.NETWORK, "10.0.0.5")
    return machine


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def orchestrator(state_machine, events, sleep):
    orchestrator = DispenseOrchestrator(
        state_machine,
        DetectionDebouncer(3000),
        DispenseSettings(),
        events,
        sleep,
    )
    return orchestrator


def bind(orchestrator, device):
    orchestrator.bind_device(device)
    orchestrator.start_scanning()
    return device


# =============================================================================
# Dispense Cycle Tests
# =============================================================================


class TestDispenseCycle:
    """End-to-end cycles with a scripted device."""

    @pytest.mark.asyncio
    async def test_successful_cycle(self, orchestrator, state_machine, sleep):
        """Test scan -> settle -> dispense -> dwell -> ready."""
        device = bind(orchestrator, ScriptedDevice())
        seen = []
        state_machine.subscribe(lambda s: seen.append(s.state))

        assert await orchestrator.handle_code("CARD-1", now=0) is True

        assert seen == [
            DispenseState.SCAN_READY,
            DispenseState.SCAN_SUCCESS,
            DispenseState.DISPENSING,
            DispenseState.COMPLETE,
            DispenseState.SCAN_READY,
        ]
        assert device.durations == [250]
        assert [c.args[0] for c in sleep.await_args_list] == [0.5, 2.0]
        assert orchestrator.is_scanning
        assert state_machine.snapshot().barcode is None

    @pytest.mark.asyncio
    async def test_failed_cycle(self, orchestrator, state_machine, sleep):
        """Test that a failed trigger stops in ERROR with intake paused."""
        bind(orchestrator, ScriptedDevice(TriggerOutcome.from_error(ProtocolError("HTTP 500"))))

        await orchestrator.handle_code("CARD-1", now=0)

        snapshot = state_machine.snapshot()
        assert snapshot.state == DispenseState.ERROR
        assert snapshot.error_message == "Dispense failed: HTTP 500. Please try again."
        assert snapshot.barcode == "CARD-1"
        assert not orchestrator.is_scanning
        assert [c.args[0] for c in sleep.await_args_list] == [0.5]

    @pytest.mark.asyncio
    async def test_device_exception_becomes_error(self, orchestrator, state_machine):
        """Test that an unexpected device exception ends in ERROR."""
        bind(orchestrator, ScriptedDevice(raises=RuntimeError("driver crashed")))

        outcome = await orchestrator.dispense("CARD-1")

        assert outcome.error_code == "HardwareTransferError"
        assert state_machine.state == DispenseState.ERROR
        assert "driver crashed" in state_machine.snapshot().error_message

    @pytest.mark.asyncio
    async def test_no_device_bound(self, orchestrator, state_machine):
        """Test that dispensing without a device ends in ERROR."""
        orchestrator.start_scanning()
        await orchestrator.handle_code("CARD-1", now=0)
        assert state_machine.state == DispenseState.ERROR
        assert "No trigger device bound" in state_machine.snapshot().error_message

    @pytest.mark.asyncio
    async def test_custom_trigger_duration(self, state_machine, events, sleep):
        """Test that the configured pulse length reaches the device."""
        orchestrator = DispenseOrchestrator(
            state_machine,
            DetectionDebouncer(),
            DispenseSettings(trigger_duration_ms=400),
            events,
            sleep,
        )
        device = bind(orchestrator, ScriptedDevice())
        await orchestrator.dispense("CARD-1")
        assert device.durations == [400]

    @pytest.mark.asyncio
    async def test_retry_after_error(self, orchestrator, state_machine):
        """Test that retry resets to SCAN_READY and resumes intake."""
        bind(orchestrator, ScriptedDevice(TriggerOutcome.from_error(HardwareTransferError("jammed"))))
        await orchestrator.handle_code("CARD-1", now=0)

        orchestrator.retry()

        snapshot = state_machine.snapshot()
        assert snapshot.state == DispenseState.SCAN_READY
        assert snapshot.error_message is None
        assert orchestrator.is_scanning


# =============================================================================
# Intake Tests
# =============================================================================


class TestIntake:
    """Gating of decoded codes before a cycle starts."""

    @pytest.mark.asyncio
    async def test_paused_intake_ignores_codes(self, orchestrator, state_machine):
        """Test that codes are dropped while intake is paused."""
        device = ScriptedDevice()
        orchestrator.bind_device(device)

        assert await orchestrator.handle_code("CARD-1", now=0) is False
        assert device.durations == []
        assert state_machine.state == DispenseState.SCAN_READY

    @pytest.mark.asyncio
    async def test_repeat_read_suppressed(self, orchestrator):
        """Test that the same card inside the window dispenses once."""
        device = bind(orchestrator, ScriptedDevice())

        assert await orchestrator.handle_code("CARD-1", now=0) is True
        assert await orchestrator.handle_code("CARD-1", now=1500) is False
        assert await orchestrator.handle_code("CARD-2", now=1600) is True
        assert await orchestrator.handle_code("CARD-1", now=1700) is True
        assert device.durations == [250, 250, 250]

    @pytest.mark.asyncio
    async def test_stop_scanning(self, orchestrator):
        bind(orchestrator, ScriptedDevice())
        orchestrator.stop_scanning()
        assert await orchestrator.handle_code("CARD-1", now=0) is False


# =============================================================================
# Device Binding Tests
# =============================================================================


class TestDeviceBinding:
    @pytest.mark.asyncio
    async def test_release_device(self, orchestrator):
        """Test that releasing disconnects and forgets the device."""
        device = bind(orchestrator, ScriptedDevice())

        released = await orchestrator.release_device()

        assert released is device
        assert device.disconnected
        assert orchestrator.device is None
        assert not orchestrator.is_scanning

    @pytest.mark.asyncio
    async def test_release_without_device(self, orchestrator):
        assert await orchestrator.release_device() is None
