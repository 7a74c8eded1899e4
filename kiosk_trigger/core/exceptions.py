"""
Custom exceptions for the kiosk trigger service.

Provides a hierarchy of typed exceptions for better error handling
and more informative error messages.
"""

from typing import Any, Optional


class KioskError(Exception):
    """Base exception for all kiosk errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error message.
            code: Optional error code for programmatic handling.
            details: Optional additional error details.
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for command responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# Device Errors
# =============================================================================


class DeviceError(KioskError):
    """Base exception for trigger device errors."""

    def __init__(
        self,
        message: str,
        device_name: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.device_name = device_name
        if device_name:
            self.details["device"] = device_name


class DeviceConnectionError(DeviceError):
    """Device address unreachable or timed out."""

    pass


class ProtocolError(DeviceError):
    """Device reachable but answered with an error status or bad payload."""

    pass


class DeviceNotReadyError(DeviceError):
    """Trigger requested while the device is not connected."""

    pass


class HardwareTransferError(DeviceError):
    """Bus transfer rejected or device removed mid-operation."""

    pass


# =============================================================================
# Repository Errors
# =============================================================================


class RepositoryError(KioskError):
    """Base exception for repository errors."""

    pass


class RedisConnectionError(RepositoryError):
    """Error connecting to Redis."""

    pass
