"""Configuration management for neo-cache."""

from .settings import BackendProvider, CacheLayerSettings, get_settings
from .logging_config import setup_logging, DEFAULT_LOG_FORMAT

__all__ = [
    "BackendProvider",
    "CacheLayerSettings",
    "get_settings",
    "setup_logging",
    "DEFAULT_LOG_FORMAT",
]
