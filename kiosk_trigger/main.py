"""
Kiosk Trigger - Main entry point.

Starts the kiosk and serves operator commands over Redis pub/sub.
"""

import asyncio
import json
from typing import Final

from redis.asyncio import Redis

from kiosk_trigger.application.api_facade import KioskFacade
from kiosk_trigger.application.command_handler import kiosk_commands
from kiosk_trigger.infrastructure.settings import get_settings
from kiosk_trigger.loggers import logger


# =============================================================================
# Constants
# =============================================================================

settings = get_settings()
COMMAND_CHANNEL: Final[str] = settings.commands.command_channel
RESPONSE_CHANNEL: Final[str] = settings.commands.response_channel


# =============================================================================
# Redis Command Listener
# =============================================================================


async def listen_to_redis(redis: Redis, api: KioskFacade) -> None:
    """
    Listen for commands on Redis pub/sub and process them.

    Args:
        redis: Redis client instance.
        api: KioskFacade instance for command execution.
    """
    try:
        await api.init()
    except Exception as e:
        logger.error(f"Critical error during kiosk initialization: {e}")
        await api.shutdown()
        return

    pubsub = redis.pubsub()
    await pubsub.subscribe(COMMAND_CHANNEL)
    logger.info(f"Listening for commands on channel: {COMMAND_CHANNEL}")

    try:
        async for message in pubsub.listen():
            if message.get("type") != "message":
                continue

            raw_data = message.get("data")
            if raw_data == "ping":
                continue

            try:
                command = json.loads(raw_data)
                logger.info(f"Received command: {command}")

                response = await kiosk_commands(command, api)

                await redis.publish(RESPONSE_CHANNEL, json.dumps(response))
                logger.debug(f"Response sent to {RESPONSE_CHANNEL}: {response}")

            except json.JSONDecodeError as e:
                logger.error(f"Command parsing error: {e}")
            except Exception as e:
                logger.error(f"Unexpected error processing command: {e}")
    finally:
        await pubsub.unsubscribe(COMMAND_CHANNEL)
        await api.shutdown()


# =============================================================================
# Main Entry Point
# =============================================================================


async def main() -> None:
    """
    Main entry point for the kiosk service.

    Opens the Redis connection and starts the command listener.
    """
    settings = get_settings()

    redis = Redis(
        host=settings.redis.host,
        port=settings.redis.port,
        decode_responses=settings.redis.decode_responses,
    )

    api = KioskFacade(redis, settings)
    await listen_to_redis(redis, api)


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Application stopped by user")


if __name__ == "__main__":
    run()
