"""
Backend client factory.

Owns the backend clients for the lifetime of the factory: one lazily built
client per provider, released together by close(). Applications create one
factory at startup and pass the clients it hands out to the cache and session
components.
"""
from typing import Dict, Optional, Union

from loguru import logger

from ..config.settings import PROVIDER_ALIASES, BackendProvider, CacheLayerSettings, get_settings
from ..core.exceptions import ConfigurationError
from .native import RedisBackend
from .protocols import BackendClient
from .rest import RestBackend


def resolve_provider(
    settings: CacheLayerSettings,
    provider: Optional[Union[BackendProvider, str]] = None,
) -> BackendProvider:
    """Resolve a provider override against the configured default."""
    if isinstance(provider, str):
        provider = PROVIDER_ALIASES.get(provider.strip().lower(), provider.strip().lower())
    try:
        return BackendProvider(provider or settings.redis_provider)
    except ValueError as e:
        raise ConfigurationError(
            f"Unknown Redis provider: {provider!r}",
            details={"provider": str(provider)},
        ) from e


def create_backend(
    settings: CacheLayerSettings,
    provider: Optional[Union[BackendProvider, str]] = None,
) -> BackendClient:
    """
    Build a backend client for the requested provider.

    Args:
        settings: Connection settings
        provider: Provider override, defaults to settings.redis_provider

    Returns:
        A RestBackend or RedisBackend

    Raises:
        ConfigurationError: If the provider is unknown or its connection
            parameters are missing
    """
    selected = resolve_provider(settings, provider)
    if selected is BackendProvider.REST:
        return RestBackend(settings)
    return RedisBackend(settings)


class BackendFactory:
    """Lazily constructs and caches one backend client per provider."""

    def __init__(self, settings: Optional[CacheLayerSettings] = None):
        self.settings = settings or get_settings()
        self._clients: Dict[BackendProvider, BackendClient] = {}

    def get_client(self, provider: Optional[Union[BackendProvider, str]] = None) -> BackendClient:
        """
        Get the client for a provider, building it on first use.

        Args:
            provider: Provider override, defaults to the configured provider

        Returns:
            The cached backend client

        Raises:
            ConfigurationError: If the provider's connection parameters are missing
        """
        selected = resolve_provider(self.settings, provider)
        if selected not in self._clients:
            self._clients[selected] = create_backend(self.settings, selected)
            logger.info(f"Initialized {selected.value} Redis backend")
        return self._clients[selected]

    async def close(self) -> None:
        """Close every client built by this factory."""
        for provider, client in list(self._clients.items()):
            try:
                await client.close()
            except Exception as e:
                logger.error(f"Error closing {provider.value} Redis backend: {e}")
        self._clients.clear()
