# shared/redis_client.py
from typing import Optional

import redis.asyncio as redis
from fastapi import Request

from shared.config import Settings


async def init_redis(settings: Settings) -> redis.Redis:
    """Initialize Redis connection"""
    client = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
        health_check_interval=30,
        socket_connect_timeout=5,
        retry_on_timeout=True,
    )

    # Test connection
    await client.ping()
    return client


async def close_redis(client: Optional[redis.Redis]) -> None:
    """Close Redis connection"""
    if client:
        await client.aclose()


async def get_redis(request: Request) -> redis.Redis:
    """Dependency to get the Redis client created during startup"""
    return request.app.state.redis


class RedisCache:
    """Namespaced key helper around a Redis client"""

    def __init__(self, client: redis.Redis, prefix: str = "cache"):
        self.client = client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        """Generate namespaced key"""
        return f"{self.prefix}:{key}"

    async def get(self, key: str) -> Optional[str]:
        """Get value from cache"""
        return await self.client.get(self._key(key))

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Set value in cache with optional TTL"""
        if ttl:
            await self.client.setex(self._key(key), ttl, value)
        else:
            await self.client.set(self._key(key), value)

    async def delete(self, key: str) -> None:
        """Delete value from cache"""
        await self.client.delete(self._key(key))
