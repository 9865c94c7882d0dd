"""
Redis Pub/Sub for real-time application updates.

Publishing is synchronous through the shared client so it works from both
FastAPI handlers and Celery workers. Subscribing opens one async client per
listener (one per websocket) and yields decoded messages.
"""
import json
import logging
from typing import Any, AsyncIterator, Dict

import redis

from services.redis_manager import redis_manager

logger = logging.getLogger(__name__)


class RedisPubSub:

    def publish(self, channel: str, message: Dict[str, Any]) -> int:
        """Publish a JSON message; returns receiver count, 0 on failure."""
        try:
            return redis_manager.client.publish(channel, json.dumps(message, default=str))
        except (redis.RedisError, OSError) as e:
            logger.error(f"Publish error on {channel}: {e}")
            return 0

    async def listen(self, channel: str) -> AsyncIterator[Any]:
        """Yield messages published on `channel` until the consumer stops iterating."""
        client = redis_manager.create_async_client()
        pubsub = client.pubsub()
        await pubsub.subscribe(channel)
        logger.info(f"Subscribed to Redis channel: {channel}")
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    yield json.loads(message["data"])
                except (json.JSONDecodeError, TypeError):
                    yield message["data"]
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()
            await client.aclose()
            logger.info(f"Unsubscribed from Redis channel: {channel}")

    @staticmethod
    def channel_user_notifications(user_id: str) -> str:
        return f"user.{user_id}.notifications"

    @staticmethod
    def channel_admin_reviews() -> str:
        return "admin.applications"


pubsub = RedisPubSub()
