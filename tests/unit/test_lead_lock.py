"""
Tests for per-lead locking, local and redis backed.
"""
import threading
from unittest.mock import MagicMock

import pytest
import redis

from leadhub.obs.errors import Unavailable
from leadhub.services.lead_lock import LeadLockService
from leadhub.services.redis_service import RedisService


class TestLocalLocks:

    def test_same_lead_is_serialized(self):
        locks = LeadLockService(redis_service=None, wait_seconds=0.05)
        held = threading.Event()
        release = threading.Event()

        def holder():
            with locks.hold("lead-1"):
                held.set()
                release.wait(2)

        thread = threading.Thread(target=holder)
        thread.start()
        held.wait(2)
        try:
            with pytest.raises(Unavailable):
                with locks.hold("lead-1"):
                    pass
        finally:
            release.set()
            thread.join(2)

        with locks.hold("lead-1"):
            pass

    def test_different_leads_do_not_block(self):
        locks = LeadLockService(redis_service=None, wait_seconds=0.05)
        with locks.hold("lead-1"):
            with locks.hold("lead-2"):
                pass

    def test_lock_released_when_block_raises(self):
        locks = LeadLockService(redis_service=None, wait_seconds=0.05)
        with pytest.raises(RuntimeError):
            with locks.hold("lead-1"):
                raise RuntimeError("boom")

        with locks.hold("lead-1"):
            pass
        assert locks._local_locks == {}

    def test_registry_empty_after_release(self):
        locks = LeadLockService(redis_service=None, wait_seconds=0.05)
        with locks.hold("lead-1"):
            assert set(locks._local_locks) == {"lead-1"}

        assert locks._local_locks == {}

    def test_registry_does_not_grow_with_distinct_leads(self):
        locks = LeadLockService(redis_service=None, wait_seconds=0.05)
        for n in range(1000):
            with locks.hold(f"lead-{n}"):
                pass

        assert locks._local_locks == {}

    def test_registry_empty_after_timed_out_waiter(self):
        locks = LeadLockService(redis_service=None, wait_seconds=0.05)
        held = threading.Event()
        release = threading.Event()

        def holder():
            with locks.hold("lead-1"):
                held.set()
                release.wait(2)

        thread = threading.Thread(target=holder)
        thread.start()
        held.wait(2)
        try:
            with pytest.raises(Unavailable):
                with locks.hold("lead-1"):
                    pass
            assert locks._local_locks["lead-1"].users == 1
        finally:
            release.set()
            thread.join(2)

        assert locks._local_locks == {}


class TestRedisLocks:

    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.set.return_value = True
        client.eval.return_value = 1
        return client

    def make_locks(self, client, wait_seconds=0.05):
        return LeadLockService(
            redis_service=RedisService(client=client),
            timeout=10,
            wait_seconds=wait_seconds,
            retry_delay=0.01,
        )

    def test_acquire_and_release_with_token(self, client):
        with self.make_locks(client).hold("lead-1"):
            args, kwargs = client.set.call_args
            assert args[0] == "lock:lead:lead-1"
            assert kwargs == {"nx": True, "ex": 10}
            client.eval.assert_not_called()

        token = args[1]
        client.eval.assert_called_once()
        assert client.eval.call_args[0][2:] == ("lock:lead:lead-1", token)

    def test_contention_times_out(self, client):
        client.set.return_value = None

        with pytest.raises(Unavailable):
            with self.make_locks(client).hold("lead-1"):
                pass

        assert client.set.call_count > 1
        client.eval.assert_not_called()

    def test_retries_until_free(self, client):
        client.set.side_effect = [None, None, True]

        with self.make_locks(client, wait_seconds=1).hold("lead-1"):
            pass

        assert client.set.call_count == 3

    def test_backend_error_is_unavailable(self, client):
        client.set.side_effect = redis.ConnectionError("connection refused")

        with pytest.raises(Unavailable):
            with self.make_locks(client).hold("lead-1"):
                pass

    def test_released_when_block_raises(self, client):
        with pytest.raises(ValueError):
            with self.make_locks(client).hold("lead-1"):
                raise ValueError("rollback")

        client.eval.assert_called_once()
