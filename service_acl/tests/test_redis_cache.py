"""
Unit tests for the Redis decision cache.
"""

import json
import pytest
from unittest.mock import AsyncMock, patch

from redis.exceptions import ConnectionError as RedisConnectionError

from shared.errors import StoreError
from service_acl.app.acl.models import AccessType, Permission, PrincipalType
from service_acl.app.cache.redis_cache import DecisionCache


class TestDecisionCache:
    """Test cases for DecisionCache."""

    @pytest.fixture
    def redis_client(self):
        """Mock Redis client."""
        client = AsyncMock()
        client.get.return_value = None
        client.ping.return_value = True
        return client

    @pytest.fixture
    def cache(self, redis_client):
        """Cache wired to the mock client."""
        cache = DecisionCache("redis://localhost:6379/0", default_ttl=120)
        cache.redis = redis_client
        return cache

    def test_decision_key(self, cache):
        """Keys identify principal, model, property and access type."""
        key = cache._get_decision_key(PrincipalType.APPLICATION, 7, "Album", "name", AccessType.READ)

        assert key == "acl:decision:APP:7:model:Album:name:READ"

    @pytest.mark.asyncio
    async def test_get_miss(self, cache):
        """Missing keys are a miss."""
        assert await cache.get_permission(PrincipalType.USER, "u1", "Album", "name", AccessType.READ) is None

    @pytest.mark.asyncio
    async def test_get_hit(self, cache, redis_client):
        """Cached decisions are returned as permissions."""
        redis_client.get.return_value = json.dumps({"permission": "DENY"})

        permission = await cache.get_permission(PrincipalType.USER, "u1", "Album", "name", AccessType.READ)

        assert permission == Permission.DENY
        redis_client.get.assert_awaited_once_with("acl:decision:USER:u1:model:Album:name:READ")

    @pytest.mark.asyncio
    async def test_get_error_is_miss(self, cache, redis_client):
        """Redis failures are treated as a miss."""
        redis_client.get.side_effect = RedisConnectionError("down")

        assert await cache.get_permission(PrincipalType.USER, "u1", "Album", "name", AccessType.READ) is None

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_miss(self, cache, redis_client):
        """Unreadable entries are treated as a miss."""
        redis_client.get.return_value = "not json"

        assert await cache.get_permission(PrincipalType.USER, "u1", "Album", "name", AccessType.READ) is None

    @pytest.mark.asyncio
    async def test_set_uses_default_ttl(self, cache, redis_client):
        """Decisions are stored with the default TTL."""
        assert await cache.set_permission(
            PrincipalType.USER, "u1", "Album", "name", AccessType.READ, Permission.ALLOW
        ) is True

        key, ttl, payload = redis_client.setex.await_args.args
        assert key == "acl:decision:USER:u1:model:Album:name:READ"
        assert ttl == 120
        assert json.loads(payload)["permission"] == "ALLOW"

    @pytest.mark.asyncio
    async def test_set_clamps_ttl(self, cache, redis_client):
        """TTL is clamped to the allowed range."""
        await cache.set_permission(
            PrincipalType.USER, "u1", "Album", "name", AccessType.READ, Permission.ALLOW, ttl_seconds=86400
        )

        assert redis_client.setex.await_args.args[1] == 3600

    @pytest.mark.asyncio
    async def test_ttl_never_unbounded(self, cache, redis_client):
        """Cached decisions always expire, so stale grants age out."""
        await cache.set_permission(
            PrincipalType.USER, "u1", "Album", "name", AccessType.READ, Permission.ALLOW, ttl_seconds=0
        )

        assert redis_client.setex.await_args.args[1] == 1

    @pytest.mark.asyncio
    async def test_set_error_returns_false(self, cache, redis_client):
        """Write failures are reported, not raised."""
        redis_client.setex.side_effect = RedisConnectionError("down")

        assert await cache.set_permission(
            PrincipalType.USER, "u1", "Album", "name", AccessType.READ, Permission.ALLOW
        ) is False

    @pytest.mark.asyncio
    async def test_not_started(self):
        """An unstarted cache never hits."""
        cache = DecisionCache("redis://localhost:6379/0")

        assert await cache.get_permission(PrincipalType.USER, "u1", "Album", "name", AccessType.READ) is None
        assert await cache.set_permission(
            PrincipalType.USER, "u1", "Album", "name", AccessType.READ, Permission.ALLOW
        ) is False
        assert await cache.health_check() is False

    @pytest.mark.asyncio
    async def test_start_failure_raises(self):
        """An unreachable Redis fails startup."""
        client = AsyncMock()
        client.ping.side_effect = RedisConnectionError("refused")
        cache = DecisionCache("redis://localhost:6379/0")

        with patch("service_acl.app.cache.redis_cache.redis.from_url", return_value=client):
            with pytest.raises(StoreError):
                await cache.start()

    @pytest.mark.asyncio
    async def test_stop_closes_client(self, cache, redis_client):
        """Stopping closes the client."""
        await cache.stop()

        redis_client.aclose.assert_awaited_once()
        assert cache.redis is None
