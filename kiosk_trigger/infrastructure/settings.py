"""
Application settings.

Provides typed configuration with environment variable overrides for the
values an installer is expected to change per kiosk.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from kiosk_trigger.configs import (
    COMPLETE_DWELL_MS,
    DEBOUNCE_WINDOW_MS,
    DEFAULT_REQUEST_TIMEOUT_MS,
    DEFAULT_SCAN_PREFIXES,
    DEFAULT_TRIGGER_DURATION_MS,
    LOG_FILE,
    LOKI_URL,
    PROBE_TIMEOUT_MS,
    RELAY_PRODUCT_ID,
    RELAY_VENDOR_ID,
    SETTLE_DELAY_MS,
)


# =============================================================================
# Configuration Classes
# =============================================================================


@dataclass(frozen=True)
class RedisSettings:
    """Redis connection settings."""

    host: str = "localhost"
    port: int = 6379
    decode_responses: bool = True


@dataclass(frozen=True)
class NetworkDeviceSettings:
    """Network controller settings."""

    request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS
    address_key: str = "kiosk:last_network_address"


@dataclass(frozen=True)
class DiscoverySettings:
    """Network discovery sweep settings."""

    prefixes: tuple[str, ...] = DEFAULT_SCAN_PREFIXES
    probe_timeout_ms: int = PROBE_TIMEOUT_MS
    max_concurrency: Optional[int] = 256
    progress_every: int = 100


@dataclass(frozen=True)
class UsbRelaySettings:
    """USB HID relay settings."""

    vendor_id: int = RELAY_VENDOR_ID
    product_id: int = RELAY_PRODUCT_ID
    presence_poll_interval_s: float = 1.0


@dataclass(frozen=True)
class DispenseSettings:
    """Timing of a single dispense cycle."""

    trigger_duration_ms: int = DEFAULT_TRIGGER_DURATION_MS
    settle_delay_ms: int = SETTLE_DELAY_MS
    complete_dwell_ms: int = COMPLETE_DWELL_MS
    debounce_window_ms: int = DEBOUNCE_WINDOW_MS


@dataclass(frozen=True)
class LoggingSettings:
    """Log destinations."""

    log_file: Optional[str] = LOG_FILE
    loki_url: Optional[str] = LOKI_URL
    max_entries: int = 200


@dataclass(frozen=True)
class CommandSettings:
    """Operator command channel settings."""

    command_channel: str = "kiosk_commands"

    @property
    def response_channel(self) -> str:
        """Get response channel name."""
        return f"{self.command_channel}_response"


# =============================================================================
# Main Settings
# =============================================================================


@dataclass
class Settings:
    """
    Main application settings.

    Aggregates all configuration sections.
    """

    redis: RedisSettings = field(default_factory=RedisSettings)
    network: NetworkDeviceSettings = field(default_factory=NetworkDeviceSettings)
    discovery: DiscoverySettings = field(default_factory=DiscoverySettings)
    usb: UsbRelaySettings = field(default_factory=UsbRelaySettings)
    dispense: DispenseSettings = field(default_factory=DispenseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    commands: CommandSettings = field(default_factory=CommandSettings)

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings, applying ``KIOSK_*`` environment overrides.

        Returns:
            Settings instance.
        """
        env = os.environ
        redis = RedisSettings(
            host=env.get("KIOSK_REDIS_HOST", RedisSettings.host),
            port=int(env.get("KIOSK_REDIS_PORT", RedisSettings.port)),
        )

        prefixes = DiscoverySettings.prefixes
        if env.get("KIOSK_SCAN_PREFIXES"):
            prefixes = tuple(
                p.strip() for p in env["KIOSK_SCAN_PREFIXES"].split(",") if p.strip()
            )
        concurrency: Optional[int] = DiscoverySettings.max_concurrency
        if "KIOSK_SCAN_CONCURRENCY" in env:
            raw = env["KIOSK_SCAN_CONCURRENCY"]
            concurrency = int(raw) if raw and int(raw) > 0 else None

        return cls(
            redis=redis,
            discovery=DiscoverySettings(prefixes=prefixes, max_concurrency=concurrency),
        )


# =============================================================================
# Settings Singleton
# =============================================================================


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get application settings singleton.

    Returns:
        Settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings

