"""
Redis Service for Leadhub
Handles distributed lead locks and event publishing.
"""
import json
import uuid
from typing import Optional, Dict, Any

import redis

from leadhub.config import settings
from leadhub.obs.logging import get_logger

logger = get_logger(__name__)


# Compare-and-delete so a lock that expired and was re-taken is never released by the old holder
RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class RedisService:
    """Redis service for distributed operations"""

    def __init__(self, redis_url: Optional[str] = None, client=None):
        self.redis_url = redis_url if redis_url is not None else settings.REDIS_URL
        self.client = client
        if self.client is None:
            self._connect()

    def _connect(self):
        """Connect to Redis"""
        try:
            if self.redis_url:
                self.client = redis.from_url(self.redis_url, decode_responses=True)
                self.client.ping()
                logger.info("Connected to Redis successfully")
            else:
                logger.warning("Redis URL not configured, using in-process fallback")
                self.client = None
        except redis.RedisError as e:
            logger.error(f"Failed to connect to Redis: {str(e)}")
            self.client = None

    def is_available(self) -> bool:
        """Check if Redis is available"""
        if not self.client:
            return False
        try:
            self.client.ping()
            return True
        except redis.RedisError:
            return False

    # Distributed Locking
    def acquire_lock(self, key: str, timeout: int = 30) -> Optional[str]:
        """
        Try once to acquire a distributed lock.

        Args:
            key: Lock key
            timeout: Lock expiry in seconds

        Returns:
            Lock token if acquired, None if the lock is held elsewhere

        Raises:
            redis.RedisError: when Redis cannot be reached
        """
        lock_key = f"lock:{key}"
        lock_token = uuid.uuid4().hex

        if self.client.set(lock_key, lock_token, nx=True, ex=timeout):
            logger.debug(f"Lock acquired: {lock_key}")
            return lock_token
        return None

    def release_lock(self, key: str, lock_token: str) -> bool:
        """
        Release a distributed lock

        Returns:
            True if released, False if the token no longer owns the lock
        """
        lock_key = f"lock:{key}"
        try:
            result = self.client.eval(RELEASE_LOCK_SCRIPT, 1, lock_key, lock_token)
        except redis.RedisError as e:
            logger.error(f"Error releasing lock: {str(e)}")
            return False

        if result:
            logger.debug(f"Lock released: {lock_key}")
            return True
        logger.warning(f"Lock not released (token mismatch or expired): {lock_key}")
        return False

    # Pub/Sub
    def publish(self, channel: str, payload: Dict[str, Any]) -> bool:
        """Publish a JSON payload; returns False when Redis is unavailable."""
        if not self.client:
            return False
        try:
            self.client.publish(channel, json.dumps(payload, default=str))
            return True
        except redis.RedisError as e:
            logger.error(f"Failed to publish to {channel}: {str(e)}")
            return False

    def health_check(self) -> Dict[str, Any]:
        """Check Redis health"""
        if not self.redis_url:
            return {"status": "not_configured"}
        if not self.is_available():
            return {"status": "unavailable"}
        try:
            info = self.client.info()
            return {
                "status": "healthy",
                "connected_clients": info.get("connected_clients", 0),
                "used_memory_human": info.get("used_memory_human", "N/A"),
            }
        except redis.RedisError as e:
            return {"status": "unhealthy", "error": str(e)}


_redis_service: Optional[RedisService] = None


def get_redis_service() -> RedisService:
    """Lazily connect so imports never touch the network."""
    global _redis_service
    if _redis_service is None:
        _redis_service = RedisService()
    return _redis_service
