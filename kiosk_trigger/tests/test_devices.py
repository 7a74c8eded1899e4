"""
Unit tests for the trigger device adapters.

The network controller is emulated with ``httpx.MockTransport`` and the
USB relay with an in-memory handle.
"""

import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest

from kiosk_trigger.configs import RELAY_OFF_FRAME, RELAY_ON_FRAME
from kiosk_trigger.core.interfaces import DeviceKind
from kiosk_trigger.domain.device_adapters import LocalBusDevice, NetworkDevice, normalize_address


# =============================================================================
# Network Device Tests
# =============================================================================


class TestNormalizeAddress:
    def test_strips_scheme_and_slash(self):
        """Test that operator-entered URLs are reduced to host[:port]."""
        assert normalize_address(" http://192.168.1.50/ ") == "192.168.1.50"
        assert normalize_address("https://relay.local:8080") == "relay.local:8080"
        assert normalize_address("10.0.0.5") == "10.0.0.5"


class TestNetworkDevice:
    """Tests for NetworkDevice."""

    @pytest.mark.asyncio
    async def test_health_check_success(self, make_controller, events):
        """Test that a 2xx health answer marks the device connected."""
        device = NetworkDevice("10.0.0.5", transport=make_controller(), events=events)

        assert await device.connect() is True
        assert device.is_connected
        assert device.device_kind == DeviceKind.NETWORK
        assert device.last_health == {"status": "ok", "uptime": 42}
        assert device.last_latency_ms is not None

    @pytest.mark.asyncio
    async def test_health_check_error_status(self, make_controller, events):
        """Test that a non-2xx health answer leaves the device disconnected."""
        device = NetworkDevice(
            "10.0.0.5",
            transport=make_controller(health_status=503),
            events=events,
        )
        assert await device.health_check() is False
        assert not device.is_connected

    @pytest.mark.asyncio
    async def test_health_check_without_address(self, events):
        """Test that health check fails fast when no address is set."""
        device = NetworkDevice(events=events)
        assert await device.health_check() is False

    @pytest.mark.asyncio
    async def test_health_check_unreachable(self, events):
        """Test that connection errors are reported as a failed check."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        device = NetworkDevice("10.0.0.5", transport=httpx.MockTransport(handler), events=events)
        assert await device.health_check() is False
        assert any("connection refused" in e.message for e in events.entries())

    @pytest.mark.asyncio
    async def test_trigger_success(self, make_controller, events):
        """Test that the reported relay duration is returned."""
        device = NetworkDevice(
            "10.0.0.5",
            transport=make_controller(lambda r: httpx.Response(200, json={"duration": 400})),
            events=events,
        )
        outcome = await device.trigger(250)
        assert outcome.ok is True
        assert outcome.duration_ms == 400

    @pytest.mark.asyncio
    async def test_trigger_does_not_require_health_check(self, make_controller, events):
        """Test that trigger only needs an address, not a prior connect."""
        device = NetworkDevice("10.0.0.5", transport=make_controller(), events=events)
        assert not device.is_connected
        outcome = await device.trigger()
        assert outcome.ok is True

    @pytest.mark.asyncio
    async def test_trigger_default_duration(self, make_controller, events):
        """Test that a missing duration falls back to the requested one."""
        device = NetworkDevice(
            "10.0.0.5",
            transport=make_controller(lambda r: httpx.Response(200, json={"status": "ok"})),
            events=events,
        )
        outcome = await device.trigger(300)
        assert outcome.duration_ms == 300

    @pytest.mark.asyncio
    async def test_trigger_error_status(self, make_controller, events):
        """Test that a non-2xx trigger answer is a protocol error."""
        device = NetworkDevice(
            "10.0.0.5",
            transport=make_controller(lambda r: httpx.Response(500)),
            events=events,
        )
        outcome = await device.trigger()
        assert outcome.ok is False
        assert outcome.message == "HTTP 500"
        assert outcome.error_code == "ProtocolError"

    @pytest.mark.asyncio
    async def test_trigger_malformed_body(self, make_controller, events):
        """Test that a 2xx answer without JSON is a protocol error."""
        device = NetworkDevice(
            "10.0.0.5",
            transport=make_controller(lambda r: httpx.Response(200, content=b"relay fired")),
            events=events,
        )
        outcome = await device.trigger()
        assert outcome.ok is False
        assert outcome.error_code == "ProtocolError"

    @pytest.mark.asyncio
    async def test_trigger_without_address(self, events):
        """Test that trigger fails without any network call when unaddressed."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        device = NetworkDevice(transport=httpx.MockTransport(handler), events=events)
        outcome = await device.trigger()

        assert outcome.ok is False
        assert outcome.error_code == "DeviceNotReadyError"
        assert calls == []

    @pytest.mark.asyncio
    async def test_trigger_timeout(self, events):
        """Test that a slow controller fails with a timeout message."""

        async def handler(request):
            await asyncio.sleep(1)
            return httpx.Response(200, json={})

        device = NetworkDevice(
            "10.0.0.5",
            timeout_ms=50,
            transport=httpx.MockTransport(handler),
            events=events,
        )
        outcome = await device.trigger()
        assert outcome.ok is False
        assert outcome.message == "Timeout after 50 ms"
        assert outcome.error_code == "DeviceConnectionError"

    @pytest.mark.asyncio
    async def test_trigger_posts_to_trigger_endpoint(self, events):
        """Test the request shape sent to the controller."""
        seen = []

        def handler(request):
            seen.append((request.method, str(request.url)))
            return httpx.Response(200, json={"duration": 250})

        device = NetworkDevice("10.0.0.5:8080", transport=httpx.MockTransport(handler), events=events)
        await device.trigger()
        assert seen == [("POST", "http://10.0.0.5:8080/trigger")]

    @pytest.mark.asyncio
    async def test_set_address_resets_connection(self, make_controller, events):
        """Test that changing the address requires a new health check."""
        device = NetworkDevice("10.0.0.5", transport=make_controller(), events=events)
        await device.connect()
        device.set_address("http://10.0.0.6/")
        assert device.device_address == "10.0.0.6"
        assert not device.is_connected

    @pytest.mark.asyncio
    async def test_probe(self, make_controller):
        """Test the lightweight discovery probe."""
        async with httpx.AsyncClient(transport=make_controller()) as client:
            assert await NetworkDevice.probe(client, "10.0.0.5") is True

        async with httpx.AsyncClient(transport=make_controller(health_status=404)) as client:
            assert await NetworkDevice.probe(client, "10.0.0.5") is False


# =============================================================================
# Local Bus Device Tests
# =============================================================================


class TestLocalBusDevice:
    """Tests for LocalBusDevice."""

    @pytest.fixture
    def sleep(self):
        return AsyncMock()

    @pytest.fixture
    def device(self, usb_bus, events, sleep):
        return LocalBusDevice(usb_bus, events=events, sleep=sleep)

    @pytest.mark.asyncio
    async def test_connect_sequence(self, device, usb_bus, usb_handle):
        """Test open, configuration select and interface claim order."""
        assert await device.connect() is True
        assert device.is_connected
        assert usb_bus.queries == [(0x16C0, 0x05DF)]
        assert usb_handle.calls == [
            ("open",),
            ("has_active_configuration",),
            ("select_configuration", 1),
            ("claim_interface", 0),
        ]

    @pytest.mark.asyncio
    async def test_connect_keeps_active_configuration(self, make_handle, make_bus, events):
        """Test that an already configured device is not reconfigured."""
        handle = make_handle(active_configuration=True)
        device = LocalBusDevice(make_bus(handle), events=events)
        assert await device.connect() is True
        assert ("select_configuration", 1) not in handle.calls

    @pytest.mark.asyncio
    async def test_connect_no_device(self, make_bus, events):
        """Test that a missing relay fails the connect."""
        device = LocalBusDevice(make_bus(None), events=events)
        assert await device.connect() is False
        assert not device.is_connected

    @pytest.mark.asyncio
    async def test_connect_claim_failure(self, make_handle, make_bus, events):
        """Test that a refused claim fails the connect and closes the opened device."""
        handle = make_handle(fail_on="claim_interface")
        device = LocalBusDevice(make_bus(handle), events=events)
        assert await device.connect() is False
        assert device.handle is None
        assert handle.calls[-1] == ("close",)

    @pytest.mark.asyncio
    async def test_connect_open_failure_skips_close(self, make_handle, make_bus, events):
        """Test that a device that never opened is not closed."""
        handle = make_handle(fail_on="open")
        device = LocalBusDevice(make_bus(handle), events=events)
        assert await device.connect() is False
        assert ("close",) not in handle.calls

    @pytest.mark.asyncio
    async def test_trigger_sends_on_then_off(self, device, usb_handle, sleep):
        """Test the relay pulse: ON frame, hold, OFF frame."""
        await device.connect()
        outcome = await device.trigger(250)

        assert outcome.ok is True
        assert outcome.duration_ms == 250
        assert usb_handle.transfers == [
            (0x09, 0x0300, 0x00, RELAY_ON_FRAME),
            (0x09, 0x0300, 0x00, RELAY_OFF_FRAME),
        ]
        sleep.assert_awaited_once_with(0.25)

    @pytest.mark.asyncio
    async def test_trigger_transfer_failure(self, make_handle, make_bus, events, sleep):
        """Test that a rejected OFF transfer is a hardware transfer error."""
        handle = make_handle(fail_transfer_at=1)
        device = LocalBusDevice(make_bus(handle), events=events, sleep=sleep)
        await device.connect()

        outcome = await device.trigger()

        assert outcome.ok is False
        assert outcome.error_code == "HardwareTransferError"
        assert len(handle.transfers) == 1

    @pytest.mark.asyncio
    async def test_trigger_not_connected(self, device, usb_handle):
        """Test that trigger fails without touching the bus when closed."""
        outcome = await device.trigger()
        assert outcome.ok is False
        assert outcome.error_code == "DeviceNotReadyError"
        assert usb_handle.transfers == []

    @pytest.mark.asyncio
    async def test_bus_disconnect(self, device, make_handle):
        """Test that removal of our device marks it disconnected."""
        await device.connect()

        assert device.handle_bus_disconnect(make_handle()) is False
        assert device.is_connected

        assert device.handle_bus_disconnect() is True
        assert not device.is_connected
        outcome = await device.trigger()
        assert outcome.error_code == "DeviceNotReadyError"

    @pytest.mark.asyncio
    async def test_disconnect_releases(self, device, usb_handle):
        """Test that disconnect releases the interface and closes."""
        await device.connect()
        await device.disconnect()
        assert ("release_interface", 0) in usb_handle.calls
        assert usb_handle.calls[-1] == ("close",)
        assert not device.is_connected
        assert device.handle is None

    @pytest.mark.asyncio
    async def test_disconnect_release_failure(self, make_handle, make_bus, events):
        """Test that a failing release still clears the handle."""
        handle = make_handle(fail_on="release_interface")
        device = LocalBusDevice(make_bus(handle), events=events)
        await device.connect()
        await device.disconnect()
        assert device.handle is None
        assert any(e.level == "error" for e in events.entries())
