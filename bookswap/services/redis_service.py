"""
Redis service with graceful error handling.
- Never raises exceptions (returns None/False on failure)
- Lazy connection with health checks
- Automatic JSON serialization/deserialization

Used as a read-through cache only; nothing stored here is authoritative.
"""

from typing import Optional, Any
import json
import logging

import redis

from bookswap.config import Settings

logger = logging.getLogger(__name__)


class RedisService:
    def __init__(self, settings: Settings):
        self._settings = settings
        self._client: Optional[redis.Redis] = None

    def _get_client(self) -> Optional[redis.Redis]:
        """Lazy connection with health check"""
        if not self._settings.REDIS_ENABLED:
            return None
        if self._client is None:
            try:
                redis_kwargs = {
                    "host": self._settings.REDIS_HOST,
                    "port": self._settings.REDIS_PORT,
                    "db": self._settings.REDIS_DB,
                    "decode_responses": True,
                    "socket_connect_timeout": 2,
                    "socket_timeout": 2,
                    "health_check_interval": 30,
                }

                if self._settings.REDIS_PASSWORD:
                    redis_kwargs["password"] = self._settings.REDIS_PASSWORD

                client = redis.Redis(**redis_kwargs)
                client.ping()
                self._client = client
            except redis.RedisError as e:
                logger.warning(f"Redis connection failed: {e}")
                self._client = None
        return self._client

    def get(self, key: str) -> Optional[Any]:
        """Get cached value, returns None if not found or error"""
        client = self._get_client()
        if client is None:
            return None
        try:
            value = client.get(key)
            return json.loads(value) if value else None
        except (redis.RedisError, ValueError) as e:
            logger.warning(f"Redis GET failed for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        """Set cache with TTL, returns success status"""
        client = self._get_client()
        if client is None:
            return False
        try:
            client.setex(key, ttl_seconds, json.dumps(value))
            return True
        except (redis.RedisError, TypeError) as e:
            logger.warning(f"Redis SET failed for {key}: {e}")
            return False

    def delete(self, *keys: str) -> bool:
        client = self._get_client()
        if client is None or not keys:
            return False
        try:
            client.delete(*keys)
            return True
        except redis.RedisError as e:
            logger.warning(f"Redis DEL failed for {keys}: {e}")
            return False

    def close(self):
        """Close connection pool on app shutdown"""
        if self._client:
            self._client.close()
            self._client = None
