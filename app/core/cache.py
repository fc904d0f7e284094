"""
Redis cache configuration and utilities
Shared key-value store with TTL semantics, visible to every worker process
"""

import redis.asyncio as redis
from typing import Optional, Any, Union
import json
from datetime import timedelta
import logging

from .config import settings

logger = logging.getLogger(__name__)

class RedisCache:
    """Redis cache manager"""

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.REDIS_URL
        self.redis_client: Optional[redis.Redis] = None

    async def connect(self):
        """Initialize Redis connection"""
        self.redis_client = redis.from_url(
            self.url,
            encoding="utf-8",
            decode_responses=settings.REDIS_DECODE_RESPONSES,
            max_connections=settings.REDIS_MAX_CONNECTIONS
        )
        try:
            await self.redis_client.ping()
            logger.info("Redis connection established")
        except Exception as e:
            logger.error("Redis ping failed: %s", e)

    async def disconnect(self):
        """Close Redis connection"""
        if self.redis_client:
            await self.redis_client.aclose()
            self.redis_client = None
            logger.info("Redis connection closed")

    async def _client(self) -> redis.Redis:
        if self.redis_client is None:
            await self.connect()
        return self.redis_client

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        try:
            client = await self._client()
            value = await client.get(key)
            if value is None:
                return None
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return value
        except Exception as e:
            logger.error("Cache get error for %s: %s", key, e)
            return None

    async def set(
        self,
        key: str,
        value: Any,
        expire: Optional[Union[int, timedelta]] = None
    ) -> bool:
        """Set value in cache with optional expiration"""
        try:
            client = await self._client()
            if isinstance(expire, timedelta):
                expire = int(expire.total_seconds())
            return bool(await client.set(key, json.dumps(value), ex=expire))
        except Exception as e:
            logger.error("Cache set error for %s: %s", key, e)
            return False

    async def delete(self, key: str) -> bool:
        """Delete key from cache"""
        try:
            client = await self._client()
            return bool(await client.delete(key))
        except Exception as e:
            logger.error("Cache delete error for %s: %s", key, e)
            return False

    async def exists(self, key: str) -> bool:
        """Check if key exists in cache"""
        try:
            client = await self._client()
            return bool(await client.exists(key))
        except Exception as e:
            logger.error("Cache exists error for %s: %s", key, e)
            return False

    async def ping(self) -> bool:
        """Check the connection"""
        client = await self._client()
        return bool(await client.ping())

# Global cache instance
cache = RedisCache()
