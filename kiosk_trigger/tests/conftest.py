"""
Pytest configuration for kiosk trigger tests.

Disables file logging before the package is imported and provides fake
collaborators for both relay transports.
"""

import os

os.environ.setdefault("KIOSK_LOG_FILE", "")

from typing import Callable, Optional

import httpx
import pytest

from kiosk_trigger.loggers import EventLog


# =============================================================================
# USB Fakes
# =============================================================================


class FakeUsbHandle:
    """In-memory UsbHandle recording every call made on it."""

    def __init__(
        self,
        active_configuration: bool = False,
        fail_on: Optional[str] = None,
        fail_transfer_at: Optional[int] = None,
    ) -> None:
        self.active_configuration = active_configuration
        self.fail_on = fail_on
        self.fail_transfer_at = fail_transfer_at
        self.calls: list[tuple] = []
        self.transfers: list[tuple] = []

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if self.fail_on == name:
            raise RuntimeError(f"{name} refused")

    def open(self) -> None:
        self._record("open")

    def has_active_configuration(self) -> bool:
        self._record("has_active_configuration")
        return self.active_configuration

    def select_configuration(self, configuration: int) -> None:
        self._record("select_configuration", configuration)
        self.active_configuration = True

    def claim_interface(self, interface: int) -> None:
        self._record("claim_interface", interface)

    def release_interface(self, interface: int) -> None:
        self._record("release_interface", interface)

    def control_transfer_out(self, request: int, value: int, index: int, data: bytes) -> int:
        if self.fail_transfer_at is not None and len(self.transfers) == self.fail_transfer_at:
            raise RuntimeError("transfer stalled")
        self.transfers.append((request, value, index, bytes(data)))
        return len(data)

    def close(self) -> None:
        self._record("close")


class FakeUsbBus:
    """Bus returning a fixed handle (or nothing) for any identifier pair."""

    def __init__(self, handle: Optional[FakeUsbHandle] = None) -> None:
        self.handle = handle
        self.queries: list[tuple[int, int]] = []

    def find_device(self, vendor_id: int, product_id: int) -> Optional[FakeUsbHandle]:
        self.queries.append((vendor_id, product_id))
        return self.handle


# =============================================================================
# HTTP Helpers
# =============================================================================


def controller_transport(
    trigger: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
        200, json={"status": "ok", "duration": 250}
    ),
    health_status: int = 200,
) -> httpx.MockTransport:
    """MockTransport emulating a relay controller."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/health":
            return httpx.Response(health_status, json={"status": "ok", "uptime": 42})
        if request.url.path == "/trigger" and request.method == "POST":
            return trigger(request)
        return httpx.Response(404)

    return httpx.MockTransport(handler)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def events():
    """Fresh event log per test."""
    return EventLog(max_entries=200)


@pytest.fixture
def usb_handle():
    return FakeUsbHandle()


@pytest.fixture
def usb_bus(usb_handle):
    return FakeUsbBus(usb_handle)


@pytest.fixture
def make_handle():
    """Factory for USB handles with custom behaviour."""
    return FakeUsbHandle


@pytest.fixture
def make_bus():
    return FakeUsbBus


@pytest.fixture
def make_controller():
    """Factory for relay controller transports."""
    return controller_transport
