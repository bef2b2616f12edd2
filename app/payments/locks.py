"""
Redis-backed distributed lock.

Payment correctness never depends on this lock: every status change is a
compare-and-set (see payments.guards). The lock only keeps periodic
sweeps from overlapping when one tick runs longer than the beat interval.

Usage:
    from payments.locks import DistributedLock

    try:
        with DistributedLock("sweep:payment-expiration", ttl=300, blocking=False):
            run_sweep()
    except LockAcquisitionError:
        return {"status": "skipped"}
"""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING

from django_redis import get_redis_connection

from payments.exceptions import LockAcquisitionError

if TYPE_CHECKING:
    from typing import Any

    from redis import Redis


class DistributedLock:
    """
    Token-owned Redis lock with a TTL.

    The TTL releases the lock if the holder crashes; the token makes sure a
    holder whose TTL ran out cannot release somebody else's lock.

    Args:
        key: Lock identifier (prefixed with "lock:")
        ttl: Seconds before the lock frees itself
        blocking: Wait up to timeout seconds instead of failing immediately
        timeout: Maximum wait in blocking mode
    """

    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    POLL_INTERVAL = 0.05

    def __init__(self, key: str, ttl: int = 30, blocking: bool = True, timeout: float = 10.0) -> None:
        self.key = f"lock:{key}"
        self.ttl = ttl
        self.blocking = blocking
        self.timeout = timeout
        self._token: str | None = None
        self._redis: Redis | None = None

    def _get_redis(self) -> Redis:
        if self._redis is None:
            self._redis = get_redis_connection("default")
        return self._redis

    def _try_acquire(self) -> bool:
        return bool(self._get_redis().set(self.key, self._token, nx=True, ex=self.ttl))

    def acquire(self) -> bool:
        """
        Acquire the lock.

        Raises:
            LockAcquisitionError: If the lock is held elsewhere (non-blocking)
                or was not freed within timeout (blocking)
        """
        self._token = uuid.uuid4().hex

        if not self.blocking:
            if self._try_acquire():
                return True
            self._token = None
            raise LockAcquisitionError(
                f"Lock '{self.key}' is already held",
                details={"key": self.key},
            )

        deadline = time.monotonic() + self.timeout
        while time.monotonic() < deadline:
            if self._try_acquire():
                return True
            time.sleep(self.POLL_INTERVAL)

        self._token = None
        raise LockAcquisitionError(
            f"Failed to acquire lock '{self.key}' within {self.timeout}s",
            details={"key": self.key, "timeout": self.timeout},
        )

    def release(self) -> bool:
        """Release the lock if this instance still owns it."""
        if self._token is None:
            return False
        released = self._get_redis().eval(self.RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
        return bool(released)

    @property
    def is_held(self) -> bool:
        return self._token is not None

    def __enter__(self) -> DistributedLock:
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb: Any) -> bool:
        self.release()
        return False
