"""
Redis-backed locks for payment operations.

Settlement of a request spans several processor calls (one capture per
hold, then a transfer), so two workers settling the same request at once
could both pass the "no payout yet" check. A short-lived Redis lock keyed
by request id serializes them; the unique constraint on Payout.request is
the backstop if the lock expires mid-operation.

Usage:
    from payments.locks import settlement_lock

    with settlement_lock(request_id):
        ...
"""

from __future__ import annotations

import time
import uuid as uuid_module
from typing import TYPE_CHECKING

from django.conf import settings

from django_redis import get_redis_connection

from payments.exceptions import LockAcquisitionError, SettlementInProgressError

if TYPE_CHECKING:
    from typing import Any

    from redis import Redis


class DistributedLock:
    """
    Redis lock with TTL and token-based ownership.

    The lock key is SET NX with an expiry; release deletes it only if the
    stored token is still ours, so a lock that expired and was taken by
    another worker is never released by the first one.

    Example:
        lock = DistributedLock("settlement:123", ttl=60, blocking=False)
        try:
            with lock:
                settle()
        except LockAcquisitionError:
            handle_contention()

    Args:
        key: Lock identifier (prefixed with "lock:")
        ttl: Seconds until the lock auto-expires
        blocking: Wait for the lock instead of failing immediately
        timeout: Maximum wait in seconds when blocking
    """

    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    POLL_INTERVAL = 0.05

    def __init__(
        self,
        key: str,
        ttl: int = 30,
        blocking: bool = True,
        timeout: float = 10.0,
    ) -> None:
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

    def acquire(self) -> bool:
        """
        Acquire the lock.

        Raises:
            LockAcquisitionError: Lock held elsewhere (non-blocking), or not
                released within timeout (blocking)
        """
        self._token = str(uuid_module.uuid4())
        redis = self._get_redis()

        if not self.blocking:
            if self._try_acquire(redis):
                return True
            self._token = None
            raise LockAcquisitionError(
                f"Lock '{self.key}' is already held",
                details={"key": self.key},
            )

        deadline = time.time() + self.timeout
        while time.time() < deadline:
            if self._try_acquire(redis):
                return True
            time.sleep(self.POLL_INTERVAL)

        self._token = None
        raise LockAcquisitionError(
            f"Failed to acquire lock '{self.key}' within {self.timeout}s",
            details={"key": self.key, "timeout": self.timeout},
        )

    def _try_acquire(self, redis: Redis) -> bool:
        return bool(redis.set(self.key, self._token, nx=True, ex=self.ttl))

    def release(self) -> bool:
        """Release the lock if we still own it. Safe to call twice."""
        if self._token is None:
            return False

        result = self._get_redis().eval(self.RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
        return bool(result)

    @property
    def is_held(self) -> bool:
        return self._token is not None

    def __enter__(self) -> DistributedLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> bool:
        self.release()
        return False


class settlement_lock:
    """
    Non-blocking lock on one request's settlement.

    Raises SettlementInProgressError if another worker is already settling
    the request.
    """

    def __init__(self, request_id: Any, ttl: int | None = None):
        self.request_id = str(request_id)
        self._lock = DistributedLock(
            f"settlement:{self.request_id}",
            ttl=ttl or getattr(settings, "PAYMENTS_SETTLEMENT_LOCK_TTL", 120),
            blocking=False,
        )

    def __enter__(self) -> DistributedLock:
        try:
            return self._lock.__enter__()
        except LockAcquisitionError as e:
            raise SettlementInProgressError(
                f"Request {self.request_id} is already being settled",
                details={"request_id": self.request_id},
            ) from e

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        return self._lock.__exit__(exc_type, exc_val, exc_tb)


__all__ = [
    "DistributedLock",
    "settlement_lock",
]
