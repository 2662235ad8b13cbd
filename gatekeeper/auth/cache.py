"""Permission cache backends.

The cache maps an API key to its serialized permission set. It is a
disposable read accelerator: every entry can be rebuilt from the store, so
backends raise CacheError on faults and leave recovery to the caller.

Backend: controlled by GATEKEEPER_CACHE_BACKEND.
    "memory"  -> In-process dict (default, lost on restart)
    "redis"   -> Redis, keys are {prefix}{api_key}, optional TTL
    "nats"    -> NATS JetStream key-value bucket
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from .errors import CacheError
from .models import Permission

if TYPE_CHECKING:
    from ..config.settings import Settings

logger = logging.getLogger("gatekeeper.auth.cache")


def encode_permissions(permissions: list[Permission]) -> str:
    """Serialize a permission set to the JSON stored in the cache."""
    return json.dumps([p.to_dict() for p in permissions])


def decode_permissions(data: str | bytes) -> list[Permission]:
    """Deserialize a cached permission set.

    Raises:
        CacheError: If the entry is not a JSON list of {module, action} objects.
    """
    try:
        items = json.loads(data)
        if not isinstance(items, list):
            raise ValueError("cache entry is not a list")
        for item in items:
            if not isinstance(item, dict):
                raise ValueError("cache item is not an object")
            if not isinstance(item.get("module"), str) or not isinstance(item.get("action"), str):
                raise ValueError("cache item fields must be strings")
        return [Permission.from_dict(item) for item in items]
    except (ValueError, KeyError, TypeError) as e:
        raise CacheError("Malformed cache entry", cause=e) from e


class PermissionCache(ABC):
    """Abstract cache of API key -> permission set."""

    name = "abstract"

    async def initialize(self) -> None:
        """Connect to the backend if needed."""

    @abstractmethod
    async def get(self, api_key: str) -> list[Permission] | None:
        """Return the cached set, or None if there is no entry.

        Raises:
            CacheError: On backend failure or a malformed entry.
        """

    @abstractmethod
    async def set(self, api_key: str, permissions: list[Permission]) -> None:
        """Store the set for an API key, replacing any previous entry.

        Raises:
            CacheError: On backend failure.
        """

    @abstractmethod
    async def delete(self, api_key: str) -> None:
        """Drop the entry for an API key. Missing entries are ignored.

        Raises:
            CacheError: On backend failure.
        """

    async def close(self) -> None:
        """Release backend connections."""


class MemoryPermissionCache(PermissionCache):
    """In-memory cache (default)."""

    name = "memory"

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    async def get(self, api_key: str) -> list[Permission] | None:
        data = self._entries.get(api_key)
        if data is None:
            return None
        return decode_permissions(data)

    async def set(self, api_key: str, permissions: list[Permission]) -> None:
        self._entries[api_key] = encode_permissions(permissions)

    async def delete(self, api_key: str) -> None:
        self._entries.pop(api_key, None)

    def clear(self) -> None:
        """For testing: simulate process restart."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisPermissionCache(PermissionCache):
    """Redis-backed cache using redis.asyncio."""

    name = "redis"

    def __init__(
        self,
        redis_url: str,
        prefix: str = "gatekeeper:permissions:",
        ttl: int | None = None,
        client: Any | None = None,
    ) -> None:
        self._url = redis_url
        self._prefix = prefix
        self._ttl = ttl
        self._client = client

    def _key(self, api_key: str) -> str:
        return f"{self._prefix}{api_key}"

    async def initialize(self) -> None:
        if self._client is not None:
            return

        import redis.asyncio as aioredis

        self._client = aioredis.Redis.from_url(
            self._url,
            socket_connect_timeout=2,
            socket_timeout=2,
            decode_responses=True,
        )
        logger.info(f"Redis cache configured: {self._url}")

    def _require_client(self) -> Any:
        if self._client is None:
            raise CacheError("Redis cache not initialized")
        return self._client

    async def get(self, api_key: str) -> list[Permission] | None:
        from redis.exceptions import RedisError

        client = self._require_client()
        try:
            data = await client.get(self._key(api_key))
        except RedisError as e:
            raise CacheError("Failed to read from Redis", cause=e) from e

        if data is None:
            return None
        return decode_permissions(data)

    async def set(self, api_key: str, permissions: list[Permission]) -> None:
        from redis.exceptions import RedisError

        client = self._require_client()
        try:
            await client.set(self._key(api_key), encode_permissions(permissions), ex=self._ttl)
        except RedisError as e:
            raise CacheError("Failed to write to Redis", cause=e) from e

    async def delete(self, api_key: str) -> None:
        from redis.exceptions import RedisError

        client = self._require_client()
        try:
            await client.delete(self._key(api_key))
        except RedisError as e:
            raise CacheError("Failed to delete from Redis", cause=e) from e

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class NatsKVPermissionCache(PermissionCache):
    """NATS JetStream key-value cache.

    Opens its own NATS connection and binds to the bucket, creating it if it
    does not exist yet.
    """

    name = "nats"

    def __init__(self, nats_url: str, bucket: str = "permissions_cache", kv: Any | None = None) -> None:
        self._url = nats_url
        self._bucket = bucket
        self._nc: Any | None = None
        self._kv = kv

    async def initialize(self) -> None:
        if self._kv is not None:
            return

        import nats
        from nats.errors import Error as NatsError
        from nats.js.errors import BucketNotFoundError

        try:
            self._nc = await nats.connect(servers=self._url)
            js = self._nc.jetstream()
            try:
                self._kv = await js.key_value(self._bucket)
            except BucketNotFoundError:
                self._kv = await js.create_key_value(bucket=self._bucket)
        except (NatsError, asyncio.TimeoutError, OSError) as e:
            logger.error(f"Failed to initialize NATS KV cache: {e}")
            raise CacheError("Failed to initialize NATS KV cache", cause=e) from e

        logger.info(f"NATS KV cache bound to bucket '{self._bucket}'")

    def _require_kv(self) -> Any:
        if self._kv is None:
            raise CacheError("NATS KV cache not initialized")
        return self._kv

    async def get(self, api_key: str) -> list[Permission] | None:
        from nats.errors import Error as NatsError
        from nats.js.errors import KeyNotFoundError

        kv = self._require_kv()
        try:
            entry = await kv.get(api_key)
        except KeyNotFoundError:
            return None
        except (NatsError, asyncio.TimeoutError) as e:
            raise CacheError("Failed to read from NATS KV", cause=e) from e

        if entry.value is None:
            return None
        return decode_permissions(entry.value)

    async def set(self, api_key: str, permissions: list[Permission]) -> None:
        from nats.errors import Error as NatsError

        kv = self._require_kv()
        try:
            await kv.put(api_key, encode_permissions(permissions).encode())
        except (NatsError, asyncio.TimeoutError) as e:
            raise CacheError("Failed to write to NATS KV", cause=e) from e

    async def delete(self, api_key: str) -> None:
        from nats.errors import Error as NatsError

        kv = self._require_kv()
        try:
            await kv.delete(api_key)
        except (NatsError, asyncio.TimeoutError) as e:
            raise CacheError("Failed to delete from NATS KV", cause=e) from e

    async def close(self) -> None:
        if self._nc is not None:
            await self._nc.close()
            self._nc = None
        self._kv = None


def create_cache(settings: Settings) -> PermissionCache:
    """Create the cache backend selected in settings."""
    backend = settings.cache_backend.lower()

    if backend == "redis":
        return RedisPermissionCache(
            settings.redis_url,
            prefix=settings.cache_prefix,
            ttl=settings.cache_ttl,
        )
    if backend == "nats":
        return NatsKVPermissionCache(settings.nats_url, bucket=settings.cache_bucket)
    if backend != "memory":
        logger.warning(f"Unknown cache backend '{settings.cache_backend}', using memory")
    return MemoryPermissionCache()
