from __future__ import annotations

from typing import Protocol

import redis.asyncio as aioredis

from fusebox.storage import FuseStorage, StorageValue

DEFAULT_KEY_PREFIX = "fusebox:"


class _RedisHashClient(Protocol):
    """Subset of ``redis.asyncio.Redis`` used by the fuse storage."""

    async def hget(self, name: str, key: str) -> bytes | str | None:
        """Return one hash field."""

    async def hset(self, name: str, key: str, value: str | int | float) -> int:
        """Set one hash field."""

    async def hdel(self, name: str, *keys: str) -> int:
        """Delete hash fields."""

    async def hincrby(self, name: str, key: str, amount: int = 1) -> int:
        """Atomically increment one hash field."""

    async def aclose(self) -> None:
        """Release pooled connections."""


class RedisFuseStorage(FuseStorage):
    """Fuse storage backed by one Redis hash per fuse name.

    ``inc`` maps to ``HINCRBY``, which Redis executes atomically, so fuses in
    different processes can share failure counts safely.
    """

    def __init__(
        self,
        client: _RedisHashClient,
        *,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        owns_client: bool = False,
    ) -> None:
        """Create storage over an existing async Redis client.

        Args:
            client: ``redis.asyncio.Redis`` (or compatible) client.
            key_prefix: Prefix prepended to fuse names to build hash keys.
            owns_client: Close ``client`` when ``close`` is called.
        """
        self._client = client
        self._key_prefix = key_prefix
        self._owns_client = owns_client

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        socket_timeout: float = 2.0,
    ) -> RedisFuseStorage:
        """Create storage with its own client built from a Redis URL."""
        client = aioredis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=socket_timeout,
            socket_timeout=socket_timeout,
        )
        return cls(client, key_prefix=key_prefix, owns_client=True)

    def key_for(self, name: str) -> str:
        """Return the Redis hash key holding fuse ``name``."""
        return f"{self._key_prefix}{name}"

    async def get(self, name: str, field: str) -> StorageValue:
        """Return the hash field, decoded to ``str``, or ``None``."""
        value = await self._client.hget(self.key_for(name), field)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def put(self, name: str, field: str, value: StorageValue) -> StorageValue:
        """Set the hash field, or delete it when ``value`` is ``None``."""
        key = self.key_for(name)
        if value is None:
            await self._client.hdel(key, field)
        else:
            await self._client.hset(key, field, value)
        return value

    async def inc(self, name: str, field: str) -> int:
        """Increment the hash field with ``HINCRBY`` and return the new value."""
        return int(await self._client.hincrby(self.key_for(name), field, 1))

    async def close(self) -> None:
        """Close the underlying client when this storage created it."""
        if self._owns_client:
            await self._client.aclose()
