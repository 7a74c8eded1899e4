"""
Application layer - Application services and use cases.

Contains:
- Dispense orchestrator
- Device service
- Kiosk facade
- Command handlers
"""

from .orchestrator import DispenseOrchestrator
from .device_service import DeviceService
from .api_facade import KioskFacade
from .command_handler import CommandHandler, CommandResponse


__all__ = [
    "DispenseOrchestrator",
    "DeviceService",
    "KioskFacade",
    "CommandHandler",
    "CommandResponse",
]
