"""
Redis caching layer for permission decisions.

Only successful decisions are cached. Cache failures are logged and treated
as a miss so the authoritative check still runs.
"""

import json
from datetime import datetime
from typing import Any, Optional, Union

import redis.asyncio as redis
from redis.exceptions import RedisError
from shared.logging import get_logger
from shared.errors import StoreError
from ..acl.models import AccessType, Permission, PrincipalType
from ..persistence.base import plain_value

CACHE_ERRORS = (RedisError, OSError, ValueError, KeyError)


class DecisionCache:
    """Redis-backed cache of ``check_permission`` results."""

    DECISION_PREFIX = "acl:decision:"

    def __init__(self, redis_url: str, default_ttl: int = 300):
        self.redis_url = redis_url
        self.logger = get_logger("acl.cache.redis")
        self.redis: Optional[redis.Redis] = None

        self.default_ttl = default_ttl
        self.max_ttl = 3600
        self.min_ttl = 1

    async def start(self):
        """Start the Redis cache."""
        try:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                health_check_interval=30
            )

            await self.redis.ping()

            self.logger.info("Redis decision cache started")

        except CACHE_ERRORS as e:
            self.logger.error("Failed to start Redis decision cache", error=str(e))
            raise StoreError("Redis decision cache failed to start", {"error": str(e)}) from e

    async def stop(self):
        """Stop the Redis cache."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis decision cache stopped")

    async def get_permission(
        self,
        principal_type: Union[PrincipalType, str],
        principal_id: Any,
        model: str,
        property: str,
        access_type: Union[AccessType, str],
    ) -> Optional[Permission]:
        """Get a cached decision."""
        if self.redis is None:
            return None
        cache_key = self._get_decision_key(principal_type, principal_id, model, property, access_type)
        try:
            cached_data = await self.redis.get(cache_key)
            if not cached_data:
                return None
            data = json.loads(cached_data)
            permission = Permission(data["permission"])
        except CACHE_ERRORS as e:
            self.logger.error("Error reading cached decision", cache_key=cache_key, error=str(e))
            return None

        self.logger.debug("Cache hit for decision", cache_key=cache_key)
        return permission

    async def set_permission(
        self,
        principal_type: Union[PrincipalType, str],
        principal_id: Any,
        model: str,
        property: str,
        access_type: Union[AccessType, str],
        permission: Permission,
        ttl_seconds: Optional[int] = None
    ) -> bool:
        """Cache a decision."""
        if self.redis is None:
            return False
        cache_key = self._get_decision_key(principal_type, principal_id, model, property, access_type)

        if ttl_seconds is None:
            ttl_seconds = self.default_ttl
        ttl_seconds = max(self.min_ttl, min(self.max_ttl, ttl_seconds))

        data = {
            "permission": permission.value,
            "cached_at": datetime.now().isoformat()
        }
        try:
            await self.redis.setex(cache_key, ttl_seconds, json.dumps(data))
        except CACHE_ERRORS as e:
            self.logger.error("Error caching decision", cache_key=cache_key, error=str(e))
            return False

        self.logger.debug("Cached decision", cache_key=cache_key, ttl=ttl_seconds)
        return True

    def _get_decision_key(
        self,
        principal_type: Union[PrincipalType, str],
        principal_id: Any,
        model: str,
        property: str,
        access_type: Union[AccessType, str],
    ) -> str:
        """Generate cache key for a decision."""
        return (
            f"{self.DECISION_PREFIX}{PrincipalType(principal_type).value}:{plain_value(principal_id)}"
            f":model:{model}:{property}:{AccessType(access_type).value}"
        )

    async def health_check(self) -> bool:
        """Check Redis health."""
        if self.redis is None:
            return False
        try:
            return bool(await self.redis.ping())
        except CACHE_ERRORS:
            return False
