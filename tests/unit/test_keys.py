"""Tests for tenant-scoped key derivation."""

import pytest

from neo_cache import keys
from neo_cache.core.exceptions import CacheKeyError

from fakes import _glob_to_regex


class TestKeyDerivation:
    """Derived keys carry the resource prefix and tenant id."""

    def test_cache_key(self):
        assert keys.cache_key("t1", "profiles", "u1") == "cache:t1:profiles:u1"

    def test_cache_key_allows_separator_in_local_key(self):
        assert keys.cache_key("t1", "ns", "a:b") == "cache:t1:ns:a:b"

    def test_auxiliary_keys(self):
        assert keys.cache_tag_key("t1", "profiles") == "cache_tags:t1:profiles"
        assert keys.metrics_key("t1") == "cache_metrics:t1"
        assert keys.session_key("t1", "s1") == "session:t1:s1"
        assert keys.user_sessions_key("t1", "u1") == "user_sessions:t1:u1"
        assert keys.session_activity_key("t1", "s1") == "session_activity:t1:s1"

    def test_facade_keys(self):
        assert keys.user_profile_key("t1", "u1") == "user:t1:profile:u1"
        assert keys.user_permissions_key("t1", "u1") == "user:t1:permissions:u1"
        assert keys.organization_profile_key("t1") == "org:t1:profile"
        assert keys.organization_users_key("t1") == "org:t1:users"

    def test_list_key_with_and_without_filters(self):
        assert keys.list_cache_key("t1", "users") == "cache_list:t1:users"
        filters = keys.serialize_filters({"status": "active", "page": 2})
        assert keys.list_cache_key("t1", "users", filters) == 'cache_list:t1:users:{"page":2,"status":"active"}'

    def test_filters_are_canonical(self):
        assert keys.serialize_filters({"b": 1, "a": 2}) == keys.serialize_filters({"a": 2, "b": 1})
        assert keys.serialize_filters({}) is None
        assert keys.serialize_filters(None) is None

    def test_keys_differ_across_tenants_and_kinds(self):
        derived = {
            keys.cache_key("t1", "ns", "k"),
            keys.cache_key("t2", "ns", "k"),
            keys.session_key("t1", "k"),
            keys.session_activity_key("t1", "k"),
            keys.user_sessions_key("t1", "k"),
            keys.user_profile_key("t1", "k"),
            keys.user_permissions_key("t1", "k"),
        }
        assert len(derived) == 7


class TestSegmentValidation:
    """Tenant ids and namespaces cannot break isolation."""

    @pytest.mark.parametrize("tenant_id", ["", "a:b", "t*", "t?", "t[1]", "t\\1", "t 1"])
    def test_invalid_tenant_rejected(self, tenant_id):
        with pytest.raises(CacheKeyError):
            keys.cache_key(tenant_id, "ns", "k")

    def test_invalid_namespace_rejected(self):
        with pytest.raises(CacheKeyError):
            keys.cache_key("t1", "a:b", "k")

    def test_empty_key_rejected(self):
        with pytest.raises(CacheKeyError):
            keys.session_key("t1", "")

    def test_error_carries_details(self):
        with pytest.raises(CacheKeyError) as exc_info:
            keys.metrics_key("bad:tenant")
        assert exc_info.value.details == {"tenant_id": "bad:tenant"}
        assert exc_info.value.error_code == "CacheKeyError"


class TestPatterns:
    """Enumeration patterns stay inside one tenant."""

    def test_tenant_pattern_does_not_match_prefixed_tenant(self):
        regex = _glob_to_regex(keys.cache_tenant_pattern("t1"))
        assert regex.match("cache:t1:ns:k")
        assert not regex.match("cache:t10:ns:k")

    def test_namespace_pattern(self):
        assert keys.cache_namespace_pattern("t1", "profiles") == "cache:t1:profiles:*"

    def test_user_pattern_for_whole_tenant(self):
        assert keys.user_pattern("t1") == "user:t1:*"

    def test_list_patterns(self):
        assert keys.list_cache_patterns("t1") == ["cache_list:t1:*"]
        assert keys.list_cache_patterns("t1", "users") == ["cache_list:t1:users", "cache_list:t1:users:*"]

    def test_session_pattern_excludes_activity_logs(self):
        regex = _glob_to_regex(keys.session_pattern("t1"))
        assert regex.match("session:t1:s1")
        assert not regex.match("session_activity:t1:s1")
