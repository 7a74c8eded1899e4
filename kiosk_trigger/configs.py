"""
Protocol constants for the kiosk trigger devices.

This module holds the fixed wire-level values of both trigger transports:
the HTTP endpoints of the network controller and the USB HID relay
identifiers and command frames.
"""

import os
from typing import Final, Optional


# =============================================================================
# Logging
# =============================================================================

LOG_FILE: Final[Optional[str]] = os.environ.get("KIOSK_LOG_FILE", "logs/kiosk.log") or None
LOKI_URL: Final[Optional[str]] = os.environ.get("KIOSK_LOKI_URL") or None


# =============================================================================
# Network Controller (HTTP)
# =============================================================================

HEALTH_ENDPOINT: Final[str] = "/health"
TRIGGER_ENDPOINT: Final[str] = "/trigger"

DEFAULT_REQUEST_TIMEOUT_MS: Final[int] = 5000
PROBE_TIMEOUT_MS: Final[int] = 1000

DEFAULT_SCAN_PREFIXES: Final[tuple[str, ...]] = (
    "192.168.0",
    "192.168.1",
    "192.168.4",
)
HOST_SUFFIX_RANGE: Final[range] = range(1, 255)


# =============================================================================
# USB HID Relay
# =============================================================================

RELAY_VENDOR_ID: Final[int] = 0x16C0
RELAY_PRODUCT_ID: Final[int] = 0x05DF

RELAY_INTERFACE: Final[int] = 0
RELAY_CONFIGURATION: Final[int] = 1

# HID SET_REPORT, feature report 0
RELAY_REQUEST: Final[int] = 0x09
RELAY_VALUE: Final[int] = 0x0300
RELAY_INDEX: Final[int] = 0x00

RELAY_ON_FRAME: Final[bytes] = bytes([0xFF, 0x01, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00])
RELAY_OFF_FRAME: Final[bytes] = bytes([0xFC, 0x01, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00])


# =============================================================================
# Dispense Timing
# =============================================================================

DEFAULT_TRIGGER_DURATION_MS: Final[int] = 250
SETTLE_DELAY_MS: Final[int] = 500
COMPLETE_DWELL_MS: Final[int] = 2000
DEBOUNCE_WINDOW_MS: Final[int] = 3000
