"""Cache management utilities using Redis."""

import json
import logging
from typing import Any, Optional, Dict

import redis

from config.settings import settings

logger = logging.getLogger(__name__)

SELECTION_PREFIX = "seleccion"
PATTERNS_PREFIX = "patrones"


class CacheManager:
    """Redis-backed JSON cache; every operation degrades to a miss when Redis is down."""

    def __init__(self, url: Optional[str] = None, enabled: Optional[bool] = None):
        self.url = url or settings.redis_url
        self.enabled = settings.cache_enabled if enabled is None else enabled
        self.redis_client = None
        self.is_connected = False

    def _connect(self):
        """Connect to Redis server."""
        try:
            self.redis_client = redis.from_url(
                self.url,
                decode_responses=True,
                socket_timeout=settings.redis_socket_timeout,
                socket_connect_timeout=settings.redis_socket_connect_timeout,
            )
            self.redis_client.ping()
            self.is_connected = True
            logger.info("Connected to Redis cache")
        except redis.RedisError as e:
            logger.warning(f"Redis connection failed: {e}")
            self.is_connected = False
            self.redis_client = None

    def _client(self):
        if not self.enabled:
            return None
        if not self.is_connected:
            self._connect()
        return self.redis_client

    def _mark_down(self, action: str, key: str, error: Exception):
        logger.error(f"Cache {action} failed for '{key}': {error}")
        self.is_connected = False
        self.redis_client = None

    def close(self):
        """Close Redis connection."""
        if self.redis_client is not None:
            try:
                self.redis_client.close()
                logger.info("Redis connection closed")
            except redis.RedisError as e:
                logger.error(f"Error closing Redis connection: {e}")
        self.redis_client = None
        self.is_connected = False

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set JSON value in cache with optional TTL."""
        client = self._client()
        if client is None:
            return False
        try:
            serialized = json.dumps(value, default=str)
            if ttl:
                return bool(client.setex(key, ttl, serialized))
            return bool(client.set(key, serialized))
        except redis.RedisError as e:
            self._mark_down("set", key, e)
            return False

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        client = self._client()
        if client is None:
            return None
        try:
            value = client.get(key)
        except redis.RedisError as e:
            self._mark_down("get", key, e)
            return None
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.warning(f"Discarding non-JSON cache entry '{key}'")
            return None

    def delete(self, key: str) -> bool:
        client = self._client()
        if client is None:
            return False
        try:
            return bool(client.delete(key))
        except redis.RedisError as e:
            self._mark_down("delete", key, e)
            return False

    def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching pattern."""
        client = self._client()
        if client is None:
            return 0
        try:
            keys = list(client.scan_iter(match=pattern))
            return client.delete(*keys) if keys else 0
        except redis.RedisError as e:
            self._mark_down("pattern delete", pattern, e)
            return 0

    def get_cache_info(self) -> Dict[str, Any]:
        """Get cache information and statistics."""
        client = self._client()
        if client is None:
            return {'connected': False, 'enabled': self.enabled}
        try:
            info = client.info()
            return {
                'connected': True,
                'enabled': self.enabled,
                'redis_version': info.get('redis_version'),
                'selection_keys': sum(1 for _ in client.scan_iter(match=f"{SELECTION_PREFIX}:*")),
                'memory_used': info.get('used_memory_human'),
            }
        except redis.RedisError as e:
            self._mark_down("info", "*", e)
            return {'connected': False, 'enabled': self.enabled, 'error': str(e)}


def selection_key(fecha: str, turno: str, contexto: str = "") -> str:
    return f"{SELECTION_PREFIX}:{fecha}:{turno}:{contexto}"


def invalidate_analysis_cache(cache: "CacheManager") -> int:
    """Drop cached selections and pattern reports after new draws arrive."""
    removed = cache.delete_pattern(f"{SELECTION_PREFIX}:*") + cache.delete_pattern(f"{PATTERNS_PREFIX}:*")
    if removed:
        logger.info(f"Invalidated {removed} cached analysis entries")
    return removed


# Global cache manager instance
cache_manager = CacheManager()
