"""
Concurrency control for escrow transactions.

Two complementary mechanisms:

1. **Distributed Locks** (DistributedLock)
   - Redis-based mutual exclusion across web and Celery workers
   - TTL prevents deadlocks from crashed processes
   - Used by the scheduled jobs so overlapping runs never work on the
     same transaction at once

2. **Compare-and-swap row locks** (lock_for_transition)
   - ``select_for_update`` on the row, then re-check the expected status
     (and optionally the version the caller last saw)
   - The status guard is what makes duplicate webhooks, overlapping
     cron runs and racing admin actions harmless

Usage:

    from payments.locks import DistributedLock, lock_for_transition

    with DistributedLock(f"transaction:{txn_id}", ttl=60, blocking=False):
        with transaction.atomic():
            txn = lock_for_transition(Transaction, txn_id, [TransactionStatus.DELIVERED])
            txn.release_escrow()
            txn.save()
"""

from __future__ import annotations

import time
import uuid as uuid_module
from collections.abc import Iterable
from typing import TYPE_CHECKING, TypeVar

from django.db import models

from django_redis import get_redis_connection

from payments.exceptions import (
    InvalidStateTransitionError,
    LockAcquisitionError,
    StaleRecordError,
    TransactionNotFoundError,
)

if TYPE_CHECKING:
    from typing import Any

    from redis import Redis

T = TypeVar("T", bound=models.Model)


# =============================================================================
# Distributed Locks
# =============================================================================


class DistributedLock:
    """
    Redis-based distributed lock with TTL.

    Features:
        - Automatic TTL prevents deadlocks from crashed processes
        - Token-based ownership prevents release by another holder
        - Blocking and non-blocking acquisition modes
        - Context manager support

    Example:
        lock = DistributedLock(f"transaction:{txn_id}", ttl=60, blocking=False)
        try:
            with lock:
                check_delivery(txn_id)
        except LockAcquisitionError:
            # Another worker is on it
            return

    Args:
        key: Lock identifier (will be prefixed with "lock:")
        ttl: Lock TTL in seconds (auto-releases after this time)
        blocking: If True, acquire() waits until lock is available
        timeout: Maximum wait time in seconds (only if blocking=True)
    """

    # Atomic check-and-delete
    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

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
            LockAcquisitionError: If lock couldn't be acquired
        """
        self._token = str(uuid_module.uuid4())
        redis = self._get_redis()

        if self.blocking:
            end_time = time.time() + self.timeout
            while time.time() < end_time:
                if redis.set(self.key, self._token, nx=True, ex=self.ttl):
                    return True
                time.sleep(0.05)

            self._token = None
            raise LockAcquisitionError(
                f"Failed to acquire lock '{self.key}' within {self.timeout}s",
                details={"key": self.key, "timeout": self.timeout},
            )

        if not redis.set(self.key, self._token, nx=True, ex=self.ttl):
            self._token = None
            raise LockAcquisitionError(
                f"Lock '{self.key}' is already held",
                details={"key": self.key},
            )
        return True

    def release(self) -> bool:
        """Release the lock if we hold it. Safe to call more than once."""
        if self._token is None:
            return False

        redis = self._get_redis()
        result = redis.eval(self.RELEASE_SCRIPT, 1, self.key, self._token)
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


def transaction_lock(transaction_id: Any, ttl: int = 60) -> DistributedLock:
    """Non-blocking per-transaction lock used by the scheduled jobs."""
    return DistributedLock(f"transaction:{transaction_id}", ttl=ttl, blocking=False)


# =============================================================================
# Compare-and-swap
# =============================================================================


def lock_for_transition(
    model_class: type[T],
    pk: Any,
    expected_states: Iterable[str],
    expected_version: int | None = None,
    state_field: str = "status",
) -> T:
    """
    Lock a row and verify it is still in one of ``expected_states``.

    Must be called inside ``transaction.atomic()``; the row lock is held
    until that block commits or rolls back.

    Args:
        model_class: Django model class
        pk: Primary key of the record
        expected_states: Statuses the caller's transition starts from
        expected_version: Version the caller last read (optional)
        state_field: Name of the status field

    Returns:
        The locked instance, freshly read from the database

    Raises:
        TransactionNotFoundError: If the record doesn't exist
        InvalidStateTransitionError: If the status moved on
        StaleRecordError: If the version doesn't match
    """
    expected_states = list(expected_states)
    model_name = model_class.__name__

    instance = model_class.objects.select_for_update().filter(pk=pk).first()
    if instance is None:
        raise TransactionNotFoundError(
            f"{model_name} {pk} not found",
            details={"pk": str(pk)},
        )

    current_state = getattr(instance, state_field)
    if current_state not in expected_states:
        raise InvalidStateTransitionError(
            f"{model_name} {pk} is {current_state}, expected one of {expected_states}",
            details={
                "pk": str(pk),
                "current_state": current_state,
                "expected_states": expected_states,
            },
        )

    if expected_version is not None and instance.version != expected_version:
        raise StaleRecordError(
            f"{model_name} {pk} has been modified "
            f"(expected version {expected_version}, current {instance.version})",
            details={
                "pk": str(pk),
                "expected_version": expected_version,
                "current_version": instance.version,
            },
        )

    return instance


__all__ = [
    "DistributedLock",
    "lock_for_transition",
    "transaction_lock",
]
