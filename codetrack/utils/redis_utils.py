"""
Redis utility module for centralized Redis configuration and connection logic.

Redis is optional at runtime: without REDIS_URL the ranking engine only
serialises recomputes inside the current process.
"""

import os
import logging
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class RedisUtils:
    """Centralized Redis configuration and connection utilities."""

    @staticmethod
    def get_redis_url() -> Optional[str]:
        """Get Redis URL with security validation for production deployments."""
        redis_url = os.getenv('REDIS_URL')
        if not redis_url:
            return None
        if not RedisUtils._validate_redis_security(redis_url):
            logger.error("REDIS_URL environment variable contains insecure configuration")
            return None
        return redis_url

    @staticmethod
    def _validate_redis_security(redis_url: str) -> bool:
        """Validate that Redis URL meets security requirements."""
        from codetrack.config import Config
        if Config.DEBUG:
            if not redis_url.startswith(('redis://', 'rediss://')):
                logger.warning(f"Unexpected Redis URL scheme in development: {redis_url}")
            return True

        # Production mode - enforce TLS and authentication
        if not redis_url.startswith('rediss://'):
            logger.error("Production Redis must use rediss:// (TLS) protocol")
            return False
        if '@' not in redis_url:
            logger.error("Production Redis must include authentication credentials")
            return False
        return True

    @staticmethod
    async def create_redis_client() -> Optional[redis.Redis]:
        """Create a Redis client, or None when Redis is not configured or unreachable."""
        redis_url = RedisUtils.get_redis_url()
        if not redis_url:
            return None

        try:
            client = redis.from_url(redis_url)
            await client.ping()
            logger.info("Successfully connected to Redis")
            return client
        except (RedisError, OSError) as e:
            logger.error(f"Failed to connect to Redis: {e}")
            return None
