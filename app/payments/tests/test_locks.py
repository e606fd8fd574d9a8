"""
Tests for concurrency control.

Covers the Redis-based DistributedLock (against a mocked connection, see
``mock_redis`` in payments/conftest.py) and the compare-and-swap row
lock used for every transaction status change.
"""

import uuid

import pytest
from django.db import transaction

from core.exceptions import ConflictError
from payments.exceptions import (
    InvalidStateTransitionError,
    LockAcquisitionError,
    StaleRecordError,
    TransactionNotFoundError,
)
from payments.locks import DistributedLock, lock_for_transition, transaction_lock
from payments.models import Transaction
from payments.state_machines import TransactionStatus


class TestDistributedLock:
    """Tests for DistributedLock class."""

    def test_acquire_success(self, mock_redis):
        """Should acquire lock when available."""
        lock = DistributedLock("test:key", ttl=30, blocking=False)
        result = lock.acquire()

        assert result is True
        assert lock.is_held is True
        mock_redis.set.assert_called_once()
        # key, token, nx=True, ex=ttl
        call_args = mock_redis.set.call_args
        assert call_args[0][0] == "lock:test:key"
        assert call_args[1]["nx"] is True
        assert call_args[1]["ex"] == 30

    def test_acquire_generates_unique_token(self, mock_redis):
        lock1 = DistributedLock("test:key1", ttl=30, blocking=False)
        lock2 = DistributedLock("test:key2", ttl=30, blocking=False)

        lock1.acquire()
        lock2.acquire()

        assert lock1._token is not None
        assert lock2._token is not None
        assert lock1._token != lock2._token

    def test_acquire_non_blocking_raises_when_held(self, mock_redis):
        """Non-blocking mode should raise immediately if lock unavailable."""
        mock_redis.set.return_value = False

        lock = DistributedLock("test:key", ttl=30, blocking=False)

        with pytest.raises(LockAcquisitionError) as exc_info:
            lock.acquire()

        assert "already held" in str(exc_info.value)
        assert exc_info.value.details["key"] == "lock:test:key"
        assert lock.is_held is False
        mock_redis.set.assert_called_once()

    def test_acquire_blocking_waits_and_acquires(self, mock_redis):
        """Blocking mode should wait and eventually acquire."""
        mock_redis.set.side_effect = [False, False, True]

        lock = DistributedLock("test:key", ttl=30, blocking=True, timeout=1.0)
        result = lock.acquire()

        assert result is True
        assert mock_redis.set.call_count == 3

    def test_acquire_blocking_timeout_raises_error(self, mock_redis):
        mock_redis.set.return_value = False

        lock = DistributedLock("test:key", ttl=30, blocking=True, timeout=0.1)

        with pytest.raises(LockAcquisitionError) as exc_info:
            lock.acquire()

        assert "within 0.1s" in str(exc_info.value)
        assert exc_info.value.details["timeout"] == 0.1
        assert lock.is_held is False

    def test_release_success(self, mock_redis):
        lock = DistributedLock("test:key", ttl=30, blocking=False)
        lock.acquire()
        result = lock.release()

        assert result is True
        assert lock.is_held is False
        mock_redis.eval.assert_called_once()

    def test_release_only_if_owned(self, mock_redis):
        """Should only release lock if we own it (token matches)."""
        mock_redis.eval.return_value = 0

        lock = DistributedLock("test:key", ttl=30, blocking=False)
        lock.acquire()
        lock._token = "different_token"
        result = lock.release()

        assert result is False

    def test_release_without_acquire_returns_false(self, mock_redis):
        lock = DistributedLock("test:key", ttl=30, blocking=False)
        result = lock.release()

        assert result is False
        mock_redis.eval.assert_not_called()

    def test_context_manager_releases_on_exception(self, mock_redis):
        """Should release lock even if exception occurs inside context."""
        with pytest.raises(ValueError, match="Test error"):
            with DistributedLock("test:key", ttl=30):
                raise ValueError("Test error")

        mock_redis.eval.assert_called_once()

    def test_context_manager_never_enters_when_held(self, mock_redis):
        mock_redis.set.return_value = False
        executed = False

        with pytest.raises(LockAcquisitionError):
            with DistributedLock("test:key", ttl=30, blocking=False):
                executed = True

        assert executed is False
        mock_redis.eval.assert_not_called()

    def test_transaction_lock_is_non_blocking_and_per_transaction(self, mock_redis):
        txn_id = uuid.uuid4()

        lock = transaction_lock(txn_id)

        assert lock.key == f"lock:transaction:{txn_id}"
        assert lock.blocking is False
        assert lock.ttl == 60


@pytest.mark.django_db
class TestLockForTransition:
    """Compare-and-swap guard on transaction status and version."""

    def test_returns_locked_row_in_expected_state(self, paid_transaction):
        with transaction.atomic():
            locked = lock_for_transition(
                Transaction, paid_transaction.pk, [TransactionStatus.PAYMENT_RECEIVED]
            )

        assert locked.pk == paid_transaction.pk
        assert locked.status == TransactionStatus.PAYMENT_RECEIVED

    def test_missing_row_raises_not_found(self, db):
        with transaction.atomic():
            with pytest.raises(TransactionNotFoundError) as exc_info:
                lock_for_transition(Transaction, uuid.uuid4(), [TransactionStatus.PENDING])

        assert exc_info.value.status_code == 404

    def test_status_moved_on_raises_conflict(self, shipped_transaction):
        """
        Given a transaction another actor already moved to SHIPPED
        When a caller expects PAYMENT_RECEIVED
        Then the swap is refused with a 409 conflict
        """
        with transaction.atomic():
            with pytest.raises(InvalidStateTransitionError) as exc_info:
                lock_for_transition(
                    Transaction, shipped_transaction.pk, [TransactionStatus.PAYMENT_RECEIVED]
                )

        assert isinstance(exc_info.value, ConflictError)
        assert exc_info.value.status_code == 409
        assert exc_info.value.details["current_state"] == TransactionStatus.SHIPPED

    def test_stale_version_raises(self, disputed_transaction):
        disputed_transaction.resolution_notes = "reviewing"
        disputed_transaction.save()
        assert disputed_transaction.version == 2

        with transaction.atomic():
            with pytest.raises(StaleRecordError) as exc_info:
                lock_for_transition(
                    Transaction,
                    disputed_transaction.pk,
                    [TransactionStatus.DISPUTED],
                    expected_version=1,
                )

        assert exc_info.value.error_code == "STALE_RECORD"
        assert exc_info.value.details["current_version"] == 2

    def test_matching_version_passes(self, disputed_transaction):
        with transaction.atomic():
            locked = lock_for_transition(
                Transaction,
                disputed_transaction.pk,
                [TransactionStatus.DISPUTED],
                expected_version=disputed_transaction.version,
            )

        assert locked.version == disputed_transaction.version
