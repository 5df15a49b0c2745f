"""
Per-lead mutual exclusion.

Every workflow mutation runs while holding the lock for its lead, so
concurrent callers touching the same lead are serialized. Redis is used
when configured so that several API processes share one lock; otherwise a
process-local lock registry keeps a single-process deployment correct.
"""
import threading
import time
from contextlib import contextmanager
from typing import Dict, Optional

import redis

from leadhub.config import settings
from leadhub.obs.errors import Unavailable
from leadhub.obs.logging import get_logger
from leadhub.services.redis_service import RedisService, get_redis_service

logger = get_logger(__name__)


class _LocalLock:
    """Process-local lock plus the number of callers holding or waiting on it."""

    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class LeadLockService:
    """Serializes mutations per lead key."""

    def __init__(
        self,
        redis_service: Optional[RedisService] = None,
        timeout: Optional[int] = None,
        wait_seconds: Optional[float] = None,
        retry_delay: float = 0.05,
    ):
        self.redis = redis_service
        self.timeout = timeout or settings.LEAD_LOCK_TIMEOUT_SECONDS
        self.wait_seconds = wait_seconds if wait_seconds is not None else settings.LEAD_LOCK_WAIT_SECONDS
        self.retry_delay = retry_delay
        self._local_locks: Dict[str, _LocalLock] = {}
        self._registry_lock = threading.Lock()

    @contextmanager
    def hold(self, lead_key: str):
        """
        Hold the lock for ``lead_key`` for the duration of the block.

        Raises:
            Unavailable: if the lock cannot be obtained within the wait window
        """
        if self.redis is not None and self.redis.client is not None:
            with self._hold_redis(lead_key):
                yield
        else:
            with self._hold_local(lead_key):
                yield

    @contextmanager
    def _hold_redis(self, lead_key: str):
        key = f"lead:{lead_key}"
        deadline = time.monotonic() + self.wait_seconds
        attempt = 0
        token = None

        while token is None:
            try:
                token = self.redis.acquire_lock(key, timeout=self.timeout)
            except redis.RedisError as e:
                logger.error(f"Lead lock backend error for {lead_key}: {str(e)}", extra={"lead_id": lead_key})
                raise Unavailable("Lead lock backend is unavailable", lead_id=lead_key) from e

            if token is None:
                if time.monotonic() >= deadline:
                    logger.warning(f"Timed out waiting for lead lock: {lead_key}", extra={"lead_id": lead_key})
                    raise Unavailable("Lead is busy, please retry", lead_id=lead_key)
                # Exponential backoff capped at half a second
                time.sleep(min(self.retry_delay * (2 ** attempt), 0.5))
                attempt += 1

        try:
            yield
        finally:
            self.redis.release_lock(key, token)

    @contextmanager
    def _hold_local(self, lead_key: str):
        with self._registry_lock:
            entry = self._local_locks.get(lead_key)
            if entry is None:
                entry = self._local_locks[lead_key] = _LocalLock()
            entry.users += 1

        try:
            if not entry.lock.acquire(timeout=self.wait_seconds):
                logger.warning(f"Timed out waiting for lead lock: {lead_key}", extra={"lead_id": lead_key})
                raise Unavailable("Lead is busy, please retry", lead_id=lead_key)
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            # Drop the entry once nobody holds or waits on it
            with self._registry_lock:
                entry.users -= 1
                if entry.users == 0:
                    del self._local_locks[lead_key]


_lead_lock_service: Optional[LeadLockService] = None


def get_lead_lock_service() -> LeadLockService:
    global _lead_lock_service
    if _lead_lock_service is None:
        redis_service = get_redis_service() if settings.is_redis_configured() else None
        _lead_lock_service = LeadLockService(redis_service=redis_service)
    return _lead_lock_service
