"""
Tenant-scoped key derivation.

Every key the library touches is built here as
``<resource-prefix>:<tenant_id>:<sub-resource>``. The functions are pure; the
tenant id is always an explicit argument. Tenant ids and namespaces may not
contain the separator or glob metacharacters, so derived keys never collide
across tenants or resource kinds and tenant patterns never match a
neighbouring tenant.
"""
import json
import re
from typing import Any, List, Mapping, Optional

from .core.exceptions import CacheKeyError

SEPARATOR = ":"

CACHE_PREFIX = "cache"
CACHE_TAGS_PREFIX = "cache_tags"
CACHE_METRICS_PREFIX = "cache_metrics"
CACHE_LIST_PREFIX = "cache_list"
SESSION_PREFIX = "session"
USER_SESSIONS_PREFIX = "user_sessions"
SESSION_ACTIVITY_PREFIX = "session_activity"
USER_PREFIX = "user"
ORGANIZATION_PREFIX = "org"

_FORBIDDEN_SEGMENT_CHARS = re.compile(r"[:*?\[\]\\\s]")


def validate_segment(value: str, label: str) -> str:
    """Reject empty segments and segments that could break key isolation."""
    if not isinstance(value, str) or not value:
        raise CacheKeyError(f"{label} must be a non-empty string", details={label: value})
    if _FORBIDDEN_SEGMENT_CHARS.search(value):
        raise CacheKeyError(
            f"{label} contains a forbidden character: {value!r}",
            details={label: value},
        )
    return value


def _require_key(value: str, label: str) -> str:
    if not isinstance(value, str) or not value:
        raise CacheKeyError(f"{label} must be a non-empty string", details={label: value})
    return value


def _join(*parts: str) -> str:
    return SEPARATOR.join(parts)


# Cache entries

def cache_key(tenant_id: str, namespace: str, key: str) -> str:
    """Key of a cache entry: ``cache:<tenant>:<namespace>:<key>``."""
    return _join(
        CACHE_PREFIX,
        validate_segment(tenant_id, "tenant_id"),
        validate_segment(namespace, "namespace"),
        _require_key(key, "key"),
    )


def cache_tag_key(tenant_id: str, tag: str) -> str:
    """Key of a tag's member set: ``cache_tags:<tenant>:<tag>``."""
    return _join(CACHE_TAGS_PREFIX, validate_segment(tenant_id, "tenant_id"), _require_key(tag, "tag"))


def metrics_key(tenant_id: str) -> str:
    """Key of a tenant's counter hash: ``cache_metrics:<tenant>``."""
    return _join(CACHE_METRICS_PREFIX, validate_segment(tenant_id, "tenant_id"))


# Sessions

def session_key(tenant_id: str, session_id: str) -> str:
    return _join(SESSION_PREFIX, validate_segment(tenant_id, "tenant_id"), _require_key(session_id, "session_id"))


def user_sessions_key(tenant_id: str, user_id: str) -> str:
    return _join(USER_SESSIONS_PREFIX, validate_segment(tenant_id, "tenant_id"), _require_key(user_id, "user_id"))


def session_activity_key(tenant_id: str, session_id: str) -> str:
    return _join(
        SESSION_ACTIVITY_PREFIX,
        validate_segment(tenant_id, "tenant_id"),
        _require_key(session_id, "session_id"),
    )


# Users and organizations

def user_profile_key(tenant_id: str, user_id: str) -> str:
    return _join(USER_PREFIX, validate_segment(tenant_id, "tenant_id"), "profile", _require_key(user_id, "user_id"))


def user_permissions_key(tenant_id: str, user_id: str) -> str:
    return _join(
        USER_PREFIX, validate_segment(tenant_id, "tenant_id"), "permissions", _require_key(user_id, "user_id")
    )


def organization_profile_key(tenant_id: str) -> str:
    return _join(ORGANIZATION_PREFIX, validate_segment(tenant_id, "tenant_id"), "profile")


def organization_users_key(tenant_id: str) -> str:
    return _join(ORGANIZATION_PREFIX, validate_segment(tenant_id, "tenant_id"), "users")


# Lists

def serialize_filters(filters: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Canonical string form of list filters; equal filters give equal keys."""
    if not filters:
        return None
    return json.dumps(filters, sort_keys=True, separators=(",", ":"), default=str)


def list_cache_key(tenant_id: str, list_type: str, filters: Optional[str] = None) -> str:
    """Key of a cached list: ``cache_list:<tenant>:<list_type>[:<filters>]``."""
    parts = [CACHE_LIST_PREFIX, validate_segment(tenant_id, "tenant_id"), validate_segment(list_type, "list_type")]
    if filters:
        parts.append(filters)
    return _join(*parts)


# Enumeration patterns

def cache_namespace_pattern(tenant_id: str, namespace: str) -> str:
    return _join(CACHE_PREFIX, validate_segment(tenant_id, "tenant_id"), validate_segment(namespace, "namespace"), "*")


def cache_tenant_pattern(tenant_id: str) -> str:
    return _join(CACHE_PREFIX, validate_segment(tenant_id, "tenant_id"), "*")


def tag_pattern(tenant_id: str) -> str:
    return _join(CACHE_TAGS_PREFIX, validate_segment(tenant_id, "tenant_id"), "*")


def session_pattern(tenant_id: str) -> str:
    return _join(SESSION_PREFIX, validate_segment(tenant_id, "tenant_id"), "*")


def user_pattern(tenant_id: str) -> str:
    return _join(USER_PREFIX, validate_segment(tenant_id, "tenant_id"), "*")


def organization_pattern(tenant_id: str) -> str:
    return _join(ORGANIZATION_PREFIX, validate_segment(tenant_id, "tenant_id"), "*")


def list_cache_patterns(tenant_id: str, list_type: Optional[str] = None) -> List[str]:
    """Patterns covering every cached list, or every variant of one list type."""
    tenant = validate_segment(tenant_id, "tenant_id")
    if list_type is None:
        return [_join(CACHE_LIST_PREFIX, tenant, "*")]
    base = _join(CACHE_LIST_PREFIX, tenant, validate_segment(list_type, "list_type"))
    return [base, _join(base, "*")]
