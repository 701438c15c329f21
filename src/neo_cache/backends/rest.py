"""
Request/response backend client.

Talks to an Upstash-compatible Redis REST endpoint: every command is one
HTTP POST whose JSON body is ``[COMMAND, *args]``, authenticated with a bearer
token. There is no persistent connection state beyond httpx's own pooling.
"""
from typing import Any, Dict, List, Mapping, Optional, Set

import httpx
from loguru import logger

from ..config.settings import BackendProvider, CacheLayerSettings
from ..core.exceptions import (
    BackendConnectionError,
    BackendResponseError,
    BackendTimeoutError,
    ConfigurationError,
    UnsupportedOperationError,
)
from ..utils.masking import mask_url
from .protocols import BackendCapabilities


class RestBackend:
    """Redis client speaking the REST command protocol over httpx."""

    provider = BackendProvider.REST.value
    capabilities = BackendCapabilities(pattern_scan=False, multi_get=False, pipeline=False)

    def __init__(
        self,
        settings: CacheLayerSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the REST client.

        Args:
            settings: Settings providing redis_rest_url and redis_rest_token
            transport: Optional httpx transport, mainly for tests

        Raises:
            ConfigurationError: If the URL or token is missing
        """
        if not settings.redis_rest_url or not settings.rest_token:
            raise ConfigurationError(
                "Redis REST URL and token are required "
                "(set REDIS_REST_URL and REDIS_REST_TOKEN)",
                details={"provider": self.provider},
            )
        self.url = settings.redis_rest_url.rstrip("/")
        self._token = settings.rest_token
        self._timeout = httpx.Timeout(
            settings.redis_command_timeout,
            connect=settings.redis_connect_timeout,
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.url,
                headers={"Authorization": f"Bearer {self._token}"},
                timeout=self._timeout,
                transport=self._transport,
            )
            logger.debug(f"Redis REST client created for {mask_url(self.url)}")
        return self._client

    async def execute(self, *command: Any) -> Any:
        """
        Send one command and return its ``result`` field.

        Raises:
            BackendTimeoutError: On connect or read timeout
            BackendConnectionError: On transport failure
            BackendResponseError: On an error payload or malformed response
        """
        body = [str(part) for part in command]
        name = body[0]
        try:
            response = await self._get_client().post("/", json=body)
        except httpx.TimeoutException as e:
            raise BackendTimeoutError(
                f"Redis REST command {name} timed out", details={"command": name}
            ) from e
        except httpx.TransportError as e:
            raise BackendConnectionError(
                f"Redis REST endpoint unreachable: {e}", details={"command": name}
            ) from e

        try:
            payload = response.json()
        except ValueError as e:
            raise BackendResponseError(
                f"Malformed Redis REST response (HTTP {response.status_code})",
                details={"command": name, "status": response.status_code},
            ) from e

        if not isinstance(payload, dict):
            raise BackendResponseError(
                "Unexpected Redis REST response shape", details={"command": name}
            )
        if "error" in payload:
            raise BackendResponseError(
                f"Redis REST command {name} failed: {payload['error']}",
                details={"command": name, "status": response.status_code},
            )
        if response.status_code >= 400:
            raise BackendResponseError(
                f"Redis REST command {name} failed with HTTP {response.status_code}",
                details={"command": name, "status": response.status_code},
            )
        return payload.get("result")

    # Strings and keys

    async def get(self, key: str) -> Optional[str]:
        return await self.execute("GET", key)

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        if ttl:
            result = await self.execute("SET", key, value, "EX", int(ttl))
        else:
            result = await self.execute("SET", key, value)
        return result == "OK"

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self.execute("DEL", *keys) or 0)

    async def exists(self, key: str) -> bool:
        return int(await self.execute("EXISTS", key) or 0) > 0

    async def mget(self, keys: List[str]) -> List[Optional[str]]:
        raise UnsupportedOperationError(
            "Multi-get is not supported by the REST backend",
            details={"provider": self.provider},
        )

    async def ttl(self, key: str) -> int:
        return int(await self.execute("TTL", key))

    async def expire(self, key: str, ttl: int) -> bool:
        return int(await self.execute("EXPIRE", key, int(ttl)) or 0) == 1

    # Hashes

    async def hgetall(self, key: str) -> Dict[str, str]:
        result = await self.execute("HGETALL", key)
        if not result:
            return {}
        if isinstance(result, dict):
            return result
        # Flat [field, value, field, value, ...] reply
        return dict(zip(result[::2], result[1::2]))

    async def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        return int(await self.execute("HINCRBY", key, field, amount))

    # Sets

    async def sadd(self, key: str, *members: str) -> int:
        if not members:
            return 0
        return int(await self.execute("SADD", key, *members) or 0)

    async def srem(self, key: str, *members: str) -> int:
        if not members:
            return 0
        return int(await self.execute("SREM", key, *members) or 0)

    async def smembers(self, key: str) -> Set[str]:
        return set(await self.execute("SMEMBERS", key) or [])

    # Sorted sets

    async def zadd(self, key: str, mapping: Mapping[str, float]) -> int:
        if not mapping:
            return 0
        args: List[Any] = []
        for member, score in mapping.items():
            args.extend([score, member])
        return int(await self.execute("ZADD", key, *args) or 0)

    async def zrange(self, key: str, start: int, end: int, desc: bool = False) -> List[str]:
        command = "ZREVRANGE" if desc else "ZRANGE"
        return list(await self.execute(command, key, start, end) or [])

    async def zremrangebyrank(self, key: str, start: int, end: int) -> int:
        return int(await self.execute("ZREMRANGEBYRANK", key, start, end) or 0)

    async def zcard(self, key: str) -> int:
        return int(await self.execute("ZCARD", key) or 0)

    # Enumeration

    async def scan_keys(self, pattern: str) -> List[str]:
        raise UnsupportedOperationError(
            "Pattern enumeration is not supported by the REST backend",
            details={"provider": self.provider, "pattern": pattern},
        )

    # Connectivity

    async def ping(self) -> bool:
        return await self.execute("PING") == "PONG"

    async def info(self) -> Dict[str, Any]:
        return {"provider": self.provider, "url": mask_url(self.url)}

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Redis REST client closed")

