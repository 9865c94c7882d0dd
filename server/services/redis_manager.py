"""
Redis connection manager.

Connections are created lazily so importing this module never touches the
network; the sync client is used for publishing, async clients for
per-connection subscriptions.
"""
import os
import logging
from typing import Optional

import redis
import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class RedisManager:
    """Singleton holder for the shared sync Redis client."""

    _instance: Optional['RedisManager'] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(RedisManager, cls).__new__(cls)
            cls._instance._client = None
        return cls._instance

    @staticmethod
    def _settings() -> dict:
        return {
            "host": os.getenv("REDIS_HOST", "redis"),
            "port": int(os.getenv("REDIS_PORT", "6379")),
            "password": os.getenv("REDIS_PASSWORD") or None,
            "db": int(os.getenv("REDIS_DB", "0")),
            "decode_responses": True,
            "socket_connect_timeout": 5,
        }

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            settings = self._settings()
            self._client = redis.Redis(
                **settings,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
            )
            logger.info(f"Redis client configured for {settings['host']}:{settings['port']}")
        return self._client

    def create_async_client(self) -> aioredis.Redis:
        """New async client; pubsub listeners block on reads, so no socket timeout."""
        return aioredis.Redis(**self._settings())

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False


redis_manager = RedisManager()
