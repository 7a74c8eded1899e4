"""
Dispense State Machine - Tracks the kiosk's scan/dispense lifecycle.

Transitions are permissive: any state may move to any target, callers are
trusted to request them in a sensible order. Each transition notifies every
subscriber synchronously, in subscription order, before returning.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from kiosk_trigger.core.interfaces import DeviceKind
from kiosk_trigger.loggers import EventLog


# =============================================================================
# Dispense States
# =============================================================================


class DispenseState(str, Enum):
    """States of the kiosk."""

    INITIALIZING = "initializing"   # Process starting
    CONNECTING = "connecting"       # Waiting for a trigger device
    SCAN_READY = "scan_ready"       # Waiting for a barcode
    SCAN_SUCCESS = "scan_success"   # Barcode accepted, settling
    DISPENSING = "dispensing"       # Relay being fired
    COMPLETE = "complete"           # Card released, dwelling
    ERROR = "error"                 # Awaiting operator retry


# =============================================================================
# State Context
# =============================================================================


@dataclass(frozen=True)
class StateSnapshot:
    """Immutable copy of the state context handed to observers."""

    state: DispenseState
    barcode: Optional[str] = None
    error_message: Optional[str] = None
    device_kind: Optional[DeviceKind] = None
    device_address: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "barcode": self.barcode,
            "error_message": self.error_message,
            "device_kind": self.device_kind.value if self.device_kind else None,
            "device_address": self.device_address,
        }


@dataclass
class StateContext:
    """
    Mutable context owned by the state machine.

    Holds all state for the current kiosk session.
    """

    state: DispenseState = DispenseState.INITIALIZING
    barcode: Optional[str] = None
    error_message: Optional[str] = None
    device_kind: Optional[DeviceKind] = None
    device_address: Optional[str] = None

    def snapshot(self) -> StateSnapshot:
        return StateSnapshot(
            state=self.state,
            barcode=self.barcode,
            error_message=self.error_message,
            device_kind=self.device_kind,
            device_address=self.device_address,
        )


StateListener = Callable[[StateSnapshot], None]


# =============================================================================
# Dispense State Machine
# =============================================================================


class DispenseStateMachine:
    """
    State machine for the kiosk dispense lifecycle.

    The context is created once in ``INITIALIZING`` and is only mutated by
    the transition methods below. Observers receive snapshots.
    """

    def __init__(self, events: Optional[EventLog] = None) -> None:
        self._context = StateContext()
        self._listeners: list[StateListener] = []
        self._events = events or EventLog()

    @property
    def state(self) -> DispenseState:
        """Get the current state."""
        return self._context.state

    def snapshot(self) -> StateSnapshot:
        """Get an immutable copy of the current context."""
        return self._context.snapshot()

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register a listener and deliver the current snapshot to it.

        Args:
            listener: Callable receiving each snapshot.

        Returns:
            Callable that removes the listener.
        """
        self._listeners.append(listener)
        listener(self.snapshot())
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: StateListener) -> None:
        """Remove a listener; unknown listeners are ignored."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        snapshot = self.snapshot()
        self._events.debug("STATE", f"-> {snapshot.state.name}", snapshot.to_dict())
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                self._events.error("STATE", f"State listener error: {e}")

    # =========================================================================
    # Transitions
    # =========================================================================

    def connecting(self) -> None:
        self._context.state = DispenseState.CONNECTING
        self._context.error_message = None
        self._notify()

    def device_connected(self, kind: DeviceKind, address: Optional[str] = None) -> None:
        """
        Record a freshly connected trigger device and become scan-ready.

        Args:
            kind: Transport kind of the device.
            address: Network address, for network devices.
        """
        self._context.device_kind = kind
        self._context.device_address = address
        self._context.state = DispenseState.SCAN_READY
        self._context.error_message = None
        self._notify()

    def device_disconnected(self) -> None:
        """Forget the bound device and wait for a new one."""
        self._context.device_kind = None
        self._context.device_address = None
        self._context.barcode = None
        self._context.error_message = None
        self._context.state = DispenseState.CONNECTING
        self._notify()

    def scan_success(self, code: str) -> None:
        self._context.state = DispenseState.SCAN_SUCCESS
        self._context.barcode = code
        self._notify()

    def dispensing(self) -> None:
        self._context.state = DispenseState.DISPENSING
        self._notify()

    def complete(self) -> None:
        self._context.state = DispenseState.COMPLETE
        self._notify()

    def error(self, message: str) -> None:
        self._context.state = DispenseState.ERROR
        self._context.error_message = message
        self._notify()

    def reset(self) -> None:
        """Return to ``SCAN_READY``, clearing barcode and error message."""
        self._context.state = DispenseState.SCAN_READY
        self._context.barcode = None
        self._context.error_message = None
        self._notify()
