"""
Command Handler - Routes operator commands to facade methods.

Provides command routing with validation and error handling.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from kiosk_trigger.loggers import logger


# Type alias for command handlers
CommandHandlerFunc = Callable[..., Awaitable[dict[str, Any]]]


@dataclass
class CommandResponse:
    """
    Standardized response for command execution.

    Attributes:
        command_id: The ID of the executed command.
        success: Whether the command succeeded.
        message: Human-readable message.
        data: Optional response data.
    """

    command_id: Optional[Any] = None
    success: bool = False
    message: Optional[str] = None
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "command_id": self.command_id,
            "success": self.success,
            "message": self.message,
            "data": self.data,
        }


@dataclass
class CommandDefinition:
    """
    Definition of a command.

    Attributes:
        name: Command name.
        handler: Handler function.
        required_args: List of required argument names.
        optional_args: List of optional argument names.
        description: Human-readable description.
    """

    name: str
    handler: CommandHandlerFunc
    required_args: list[str]
    optional_args: tuple[str, ...] = ()
    description: str = ""


class CommandHandler:
    """
    Routes commands to their appropriate handlers on the kiosk facade.
    """

    def __init__(self, api: Any) -> None:
        """
        Initialize the command handler.

        Args:
            api: The KioskFacade instance.
        """
        self._api = api
        self._commands: dict[str, CommandDefinition] = {}
        self._register_default_commands()

    def _register_default_commands(self) -> None:
        # Device connection
        self.register(
            "connect_network",
            self._api.connect_network,
            ["address"],
            description="Connect to the network relay controller",
        )
        self.register(
            "scan_network",
            self._api.scan_network,
            [],
            description="Sweep the LAN for the relay controller",
        )
        self.register(
            "connect_usb",
            self._api.connect_usb,
            [],
            description="Connect to the USB relay",
        )
        self.register(
            "disconnect",
            self._api.disconnect,
            [],
            description="Release the bound device",
        )

        # Dispense flow
        self.register(
            "barcode_detected",
            self._api.barcode_detected,
            ["code"],
            description="Feed a decoded barcode",
        )
        self.register(
            "retry",
            self._api.retry,
            [],
            description="Reset after a failed dispense",
        )

        # Diagnostics
        self.register(
            "status",
            self._api.status,
            [],
            description="Get kiosk state",
        )
        self.register(
            "logs",
            self._api.logs,
            [],
            optional_args=("limit",),
            description="Get recent event log entries",
        )

    def register(
        self,
        command_name: str,
        handler: CommandHandlerFunc,
        required_args: list[str],
        optional_args: tuple[str, ...] = (),
        description: str = "",
    ) -> None:
        self._commands[command_name] = CommandDefinition(
            name=command_name,
            handler=handler,
            required_args=required_args,
            optional_args=optional_args,
            description=description,
        )

    def get_available_commands(self) -> list[dict[str, Any]]:
        """Get list of available commands with their descriptions."""
        return [
            {
                "name": cmd.name,
                "required_args": cmd.required_args,
                "description": cmd.description,
            }
            for cmd in self._commands.values()
        ]

    async def execute(self, command_data: dict[str, Any]) -> dict[str, Any]:
        """
        Execute a command based on command data.

        Args:
            command_data: Dictionary containing 'command', 'command_id', and 'data'.

        Returns:
            Response dictionary with execution result.
        """
        command = command_data.get("command")
        command_id = command_data.get("command_id")
        data = command_data.get("data", {}) or {}

        response = CommandResponse(command_id=command_id)

        if command not in self._commands:
            logger.warning(f"Unknown command: {command}")
            response.message = f"Unknown command: {command}"
            return response.to_dict()

        definition = self._commands[command]

        kwargs = {arg: data.get(arg) for arg in definition.required_args}
        missing = [arg for arg, value in kwargs.items() if value is None]
        if missing:
            response.message = f"Missing required arguments: {missing}"
            return response.to_dict()
        for arg in definition.optional_args:
            if data.get(arg) is not None:
                kwargs[arg] = data[arg]

        try:
            result = await definition.handler(**kwargs)
        except Exception as e:
            logger.error(f"Error executing command '{command}': {e}")
            response.message = f"Error: {e}"
            return response.to_dict()

        if isinstance(result, dict):
            response.success = result.get("success", False)
            response.message = result.get("message")
            response.data = result.get("data")
        else:
            response.success = True
            response.data = result

        return response.to_dict()


async def kiosk_commands(command_data: dict[str, Any], api: Any) -> dict[str, Any]:
    """
    Execute a command on the kiosk API.

    This is the entry point for command execution from Redis pub/sub.

    Args:
        command_data: Dictionary containing command name, ID, and data.
        api: The KioskFacade instance.

    Returns:
        Response dictionary with execution result.
    """
    handler = CommandHandler(api)
    return await handler.execute(command_data)
