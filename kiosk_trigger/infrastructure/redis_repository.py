"""
Redis Repository implementations.

Provides type-safe access to the kiosk's persisted state. The only value
kept across restarts is the last network address that connected.
"""

from __future__ import annotations

from typing import Any, Optional

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnError

from kiosk_trigger.core.exceptions import RedisConnectionError
from kiosk_trigger.loggers import logger


# =============================================================================
# Base Repository
# =============================================================================


class RedisStateRepository:
    """
    Base repository for Redis state operations.

    Provides common Redis operations with error handling.
    """

    def __init__(self, redis: Redis) -> None:
        """
        Initialize the repository.

        Args:
            redis: Redis client instance.
        """
        self._redis = redis

    async def get(self, key: str) -> Optional[str]:
        """Get a string value by key."""
        try:
            return await self._redis.get(key)
        except (ConnectionError, RedisConnError) as e:
            raise RedisConnectionError(f"Redis connection error: {e}")

    async def set(self, key: str, value: Any) -> None:
        """Set a key-value pair."""
        try:
            await self._redis.set(key, value)
        except (ConnectionError, RedisConnError) as e:
            raise RedisConnectionError(f"Redis connection error: {e}")


# =============================================================================
# Device Address Repository
# =============================================================================


class DeviceAddressRepository(RedisStateRepository):
    """
    Repository for the last successfully used network address.

    Keys:
    - kiosk:last_network_address: host of the relay controller
    """

    KEY_LAST_ADDRESS = "kiosk:last_network_address"

    def __init__(self, redis: Redis, key: Optional[str] = None) -> None:
        super().__init__(redis)
        self._key = key or self.KEY_LAST_ADDRESS

    async def get_last_address(self) -> Optional[str]:
        """Get the saved address, or None if nothing was saved."""
        value = await self.get(self._key)
        if isinstance(value, bytes):
            value = value.decode()
        return value or None

    async def save_last_address(self, address: str) -> None:
        """Remember an address that just connected."""
        await self.set(self._key, address)
        logger.debug(f"Saved last network address: {address}")
