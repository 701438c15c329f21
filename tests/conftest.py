"""Pytest configuration and fixtures for neo-cache tests."""

import pytest
from loguru import logger

from neo_cache.backends.protocols import BackendCapabilities
from neo_cache.cache.manager import CacheManager
from neo_cache.cache.patterns import CachePatterns
from neo_cache.config.settings import CacheLayerSettings
from neo_cache.sessions.entities import UserIdentity
from neo_cache.sessions.store import SessionStore
from neo_cache.tasks import BackgroundTasks

from fakes import FakeClock, InMemoryBackend

REST_ONLY = BackendCapabilities(pattern_scan=False, multi_get=False, pipeline=False)


@pytest.fixture
def settings():
    """Settings isolated from the environment and .env files."""
    return CacheLayerSettings(
        _env_file=None,
        redis_provider="rest",
        redis_rest_url="https://cache.example.com",
        redis_rest_token="test-token",
        redis_host="localhost",
    )


@pytest.fixture
def clock():
    """Manually advanced millisecond clock."""
    return FakeClock()


@pytest.fixture
def backend(clock):
    """In-memory backend with every capability."""
    return InMemoryBackend(clock=clock)


@pytest.fixture
def rest_like_backend(clock):
    """In-memory backend without scan, multi-get or pipelining."""
    return InMemoryBackend(clock=clock, capabilities=REST_ONLY, provider="rest")


@pytest.fixture
def tasks():
    return BackgroundTasks()


@pytest.fixture
def manager(backend, settings, clock, tasks):
    """Cache manager on the in-memory backend."""
    return CacheManager(backend, settings=settings, clock=clock, tasks=tasks)


@pytest.fixture
def patterns(manager, tasks):
    """Cache pattern helpers sharing the manager's backend."""
    return CachePatterns(manager, tasks=tasks)


@pytest.fixture
def session_store(backend, settings, clock):
    """Session store on the in-memory backend."""
    return SessionStore(backend, settings=settings, clock=clock)


@pytest.fixture
def log_messages():
    """Capture loguru messages emitted during a test."""
    messages = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def identity():
    """Sample authenticated identity."""
    return UserIdentity(
        tenant_id="t1",
        user_id="u1",
        email="ann@example.com",
        name="Ann",
        roles=["admin"],
        permissions=["users:read"],
        organization_name="Acme",
    )
