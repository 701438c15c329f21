"""
Persistent-connection backend client.

Wraps redis.asyncio with a lazily created connection pool, keep-alive,
periodic health checks and exponential-backoff retries. Connection lifecycle
events (connect, ready, reconnecting) are logged; the hooks never change how
commands are executed.
"""
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Set

from loguru import logger
from redis.asyncio import ConnectionPool, Redis
from redis.asyncio.connection import SSLConnection
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    RedisError,
    TimeoutError as RedisTimeoutError,
)

from ..config.settings import BackendProvider, CacheLayerSettings
from ..core.exceptions import (
    BackendConnectionError,
    BackendResponseError,
    BackendTimeoutError,
    ConfigurationError,
)
from .protocols import BackendCapabilities

SCAN_BATCH_SIZE = 500


class LoggingRetry(Retry):
    """Retry policy that logs each reconnect attempt before backing off."""

    def __init__(self, backoff: ExponentialBackoff, retries: int):
        super().__init__(backoff, retries)
        self.backoff_policy = backoff

    async def call_with_retry(self, do, fail):
        failures = 0

        async def _logged_fail(error):
            nonlocal failures
            failures += 1
            if failures <= self._retries:
                delay_ms = int(self.backoff_policy.compute(failures) * 1000)
                logger.warning(f"Redis reconnecting in {delay_ms}ms (attempt {failures}): {error}")
            return await fail(error)

        return await super().call_with_retry(do, _logged_fail)


async def _on_connection_established(connection) -> None:
    """Connect hook: log, run the default handshake, log readiness."""
    logger.info(f"Redis connected successfully ({connection.host}:{connection.port})")
    await connection.on_connect()
    logger.info("Redis ready to accept commands")


class RedisBackend:
    """Redis client over a pooled persistent connection."""

    provider = BackendProvider.NATIVE.value
    capabilities = BackendCapabilities(pattern_scan=True, multi_get=True, pipeline=True)

    def __init__(self, settings: CacheLayerSettings, client: Optional[Redis] = None):
        """
        Initialize the native client.

        Args:
            settings: Settings providing host, port, credentials and timeouts
            client: Optional pre-built redis client for testing or DI

        Raises:
            ConfigurationError: If no host is configured
        """
        if client is None and not settings.redis_host:
            raise ConfigurationError(
                "Redis host is required for the native backend (set REDIS_HOST)",
                details={"provider": self.provider},
            )
        self.settings = settings
        self.host = settings.redis_host
        self.port = settings.redis_port
        self._client: Optional[Redis] = client
        self._pool: Optional[ConnectionPool] = None

    def _build_pool(self) -> ConnectionPool:
        settings = self.settings
        backoff = ExponentialBackoff(
            cap=max(settings.redis_command_timeout, settings.redis_retry_delay_ms / 1000),
            base=settings.redis_retry_delay_ms / 1000,
        )
        pool_kwargs: Dict[str, Any] = {
            "host": settings.redis_host,
            "port": settings.redis_port,
            "db": settings.redis_db,
            "username": settings.redis_username,
            "password": settings.password,
            "max_connections": settings.redis_pool_size,
            "socket_connect_timeout": settings.redis_connect_timeout,
            "socket_timeout": settings.redis_command_timeout,
            "socket_keepalive": True,
            "health_check_interval": settings.redis_health_check_interval,
            "retry": LoggingRetry(backoff, settings.redis_max_retries),
            "decode_responses": True,
            "redis_connect_func": _on_connection_established,
        }
        if settings.redis_tls:
            pool_kwargs["connection_class"] = SSLConnection
        return ConnectionPool(**pool_kwargs)

    def _get_client(self) -> Redis:
        if self._client is None:
            logger.info(f"Creating Redis connection pool for {self.host}:{self.port}...")
            self._pool = self._build_pool()
            self._client = Redis(connection_pool=self._pool)
        return self._client

    @contextmanager
    def _translate_errors(self, operation: str, key: Optional[str] = None) -> Iterator[None]:
        """Map redis exceptions onto the BackendError hierarchy."""
        details = {"operation": operation, "key": key, "provider": self.provider}
        try:
            yield
        except RedisTimeoutError as e:
            raise BackendTimeoutError(f"Redis {operation} timed out: {e}", details=details) from e
        except RedisConnectionError as e:
            raise BackendConnectionError(f"Redis {operation} connection failed: {e}", details=details) from e
        except RedisError as e:
            raise BackendResponseError(f"Redis {operation} failed: {e}", details=details) from e

    # Strings and keys

    async def get(self, key: str) -> Optional[str]:
        with self._translate_errors("get", key):
            return await self._get_client().get(key)

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        with self._translate_errors("set", key):
            return bool(await self._get_client().set(key, value, ex=int(ttl) if ttl else None))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        with self._translate_errors("delete", keys[0]):
            return int(await self._get_client().delete(*keys))

    async def exists(self, key: str) -> bool:
        with self._translate_errors("exists", key):
            return await self._get_client().exists(key) > 0

    async def mget(self, keys: List[str]) -> List[Optional[str]]:
        if not keys:
            return []
        with self._translate_errors("mget", keys[0]):
            return list(await self._get_client().mget(keys))

    async def ttl(self, key: str) -> int:
        with self._translate_errors("ttl", key):
            return int(await self._get_client().ttl(key))

    async def expire(self, key: str, ttl: int) -> bool:
        with self._translate_errors("expire", key):
            return bool(await self._get_client().expire(key, int(ttl)))

    # Hashes

    async def hgetall(self, key: str) -> Dict[str, str]:
        with self._translate_errors("hgetall", key):
            return dict(await self._get_client().hgetall(key))

    async def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        with self._translate_errors("hincrby", key):
            return int(await self._get_client().hincrby(key, field, amount))

    # Sets

    async def sadd(self, key: str, *members: str) -> int:
        if not members:
            return 0
        with self._translate_errors("sadd", key):
            return int(await self._get_client().sadd(key, *members))

    async def srem(self, key: str, *members: str) -> int:
        if not members:
            return 0
        with self._translate_errors("srem", key):
            return int(await self._get_client().srem(key, *members))

    async def smembers(self, key: str) -> Set[str]:
        with self._translate_errors("smembers", key):
            return set(await self._get_client().smembers(key))

    # Sorted sets

    async def zadd(self, key: str, mapping: Mapping[str, float]) -> int:
        if not mapping:
            return 0
        with self._translate_errors("zadd", key):
            return int(await self._get_client().zadd(key, dict(mapping)))

    async def zrange(self, key: str, start: int, end: int, desc: bool = False) -> List[str]:
        with self._translate_errors("zrange", key):
            return list(await self._get_client().zrange(key, start, end, desc=desc))

    async def zremrangebyrank(self, key: str, start: int, end: int) -> int:
        with self._translate_errors("zremrangebyrank", key):
            return int(await self._get_client().zremrangebyrank(key, start, end))

    async def zcard(self, key: str) -> int:
        with self._translate_errors("zcard", key):
            return int(await self._get_client().zcard(key))

    # Enumeration

    async def scan_keys(self, pattern: str) -> List[str]:
        """Enumerate keys with SCAN (never KEYS) to avoid blocking the server."""
        with self._translate_errors("scan", pattern):
            return [
                key async for key in self._get_client().scan_iter(match=pattern, count=SCAN_BATCH_SIZE)
            ]

    # Connectivity

    async def ping(self) -> bool:
        with self._translate_errors("ping"):
            return bool(await self._get_client().ping())

    async def info(self) -> Dict[str, Any]:
        with self._translate_errors("info"):
            server = await self._get_client().info("server")
        return {
            "provider": self.provider,
            "host": self.host,
            "port": self.port,
            "tls": self.settings.redis_tls,
            "server": {
                "redis_version": server.get("redis_version"),
                "redis_mode": server.get("redis_mode"),
                "os": server.get("os"),
                "uptime_in_seconds": server.get("uptime_in_seconds"),
            },
        }

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            if self._pool is not None:
                await self._pool.disconnect()
            self._client = None
            self._pool = None
            logger.info("Redis connection closed")
