"""
Value Objects for the kiosk trigger service.

Immutable objects that represent values in the domain.
Value objects are compared by value, not by identity.
"""

from dataclasses import dataclass
from typing import Any, Optional

from kiosk_trigger.core.exceptions import KioskError


# =============================================================================
# Trigger Outcome
# =============================================================================


@dataclass(frozen=True)
class TriggerOutcome:
    """
    Result of a single trigger attempt.

    Produced once per attempt and never retried internally.

    Attributes:
        ok: Whether the relay cycle completed.
        duration_ms: Relay on-time reported by the device.
        message: Human-readable cause on failure.
        error_code: Name of the typed failure, if any.
    """

    ok: bool
    duration_ms: Optional[int] = None
    message: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def succeeded(cls, duration_ms: int) -> "TriggerOutcome":
        """Create a successful outcome."""
        return cls(ok=True, duration_ms=duration_ms)

    @classmethod
    def from_error(cls, error: KioskError) -> "TriggerOutcome":
        """Create a failed outcome carrying a typed error."""
        return cls(ok=False, message=error.message, error_code=error.code)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"ok": self.ok}
        if self.duration_ms is not None:
            result["duration_ms"] = self.duration_ms
        if self.message:
            result["message"] = self.message
        if self.error_code:
            result["error"] = self.error_code
        return result


# =============================================================================
# Detection Event
# =============================================================================


@dataclass(frozen=True)
class DetectionEvent:
    """
    A decoded barcode observation.

    Attributes:
        code: Decoded barcode text.
        observed_at: Observation time in milliseconds.
    """

    code: str
    observed_at: float
