"""
Detection Debouncer - Suppresses repeated reads of the same card.

The filter is code-keyed and single-slot: only the most recently accepted
code is remembered, so a different code is never held back by an earlier
code's window.
"""

import time
from typing import Optional

from kiosk_trigger.configs import DEBOUNCE_WINDOW_MS
from kiosk_trigger.core.value_objects import DetectionEvent


def monotonic_ms() -> float:
    """Monotonic clock in milliseconds."""
    return time.monotonic() * 1000


class DetectionDebouncer:
    """
    Debounce filter over decoded barcodes.

    Attributes:
        window_ms: Span during which an identical code is ignored.
    """

    def __init__(self, window_ms: int = DEBOUNCE_WINDOW_MS) -> None:
        self.window_ms = window_ms
        self._last: Optional[DetectionEvent] = None

    @property
    def last_event(self) -> Optional[DetectionEvent]:
        """Get the last accepted detection."""
        return self._last

    def accept(self, code: str, now: Optional[float] = None) -> bool:
        """
        Decide whether a detection should start a dispense.

        Args:
            code: Decoded barcode.
            now: Observation time in milliseconds (monotonic clock if omitted).

        Returns:
            True if accepted, False if suppressed as a repeat.
        """
        if now is None:
            now = monotonic_ms()

        last = self._last
        if last is not None and last.code == code and now - last.observed_at < self.window_ms:
            return False

        self._last = DetectionEvent(code=code, observed_at=now)
        return True

    def clear(self) -> None:
        self._last = None
