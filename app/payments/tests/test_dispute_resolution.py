"""
Tests for DisputeResolutionService.

Tests cover:
- Buyer, seller and split outcomes and the refunds they issue
- Validation failures, none of which reach Stripe
- Stripe refund failures and lost compare-and-swap after a refund
"""

import logging
import uuid
from decimal import Decimal
from unittest.mock import patch

import pytest

from notifications.models import Notification, NotificationKind
from payments.exceptions import StaleRecordError, StripeInvalidRequestError
from payments.models import Transaction
from payments.services import DisputeResolutionService
from payments.state_machines import DisputeStatus, TransactionStatus


def resolve(txn, admin, resolution, **kwargs):
    return DisputeResolutionService.resolve(
        transaction_id=txn.id, admin=admin, resolution=resolution, **kwargs
    )


@pytest.mark.django_db
class TestResolveForBuyer:
    def test_full_refund(self, disputed_transaction, admin, dispute_stripe):
        """
        Given a disputed $229.99 sale
        When the admin resolves for the buyer
        Then the whole charge is refunded and the transaction is REFUNDED
        """
        result = resolve(disputed_transaction, admin, "buyer", notes="Cracked on arrival")

        assert result.success, result.error
        assert result.data.message == "Dispute resolved: buyer"
        txn = Transaction.objects.get(pk=disputed_transaction.pk)
        assert txn.status == TransactionStatus.REFUNDED
        assert txn.dispute_status == DisputeStatus.RESOLVED_BUYER
        assert txn.refunded_amount == Decimal("229.99")
        assert txn.stripe_refund_id == "re_test_dispute"
        assert txn.dispute_resolved_by == admin
        assert txn.resolution_notes == "Cracked on arrival"
        assert txn.funds_held is False
        assert txn.funds_released_at is None

    def test_full_refund_sends_no_amount(self, disputed_transaction, admin, dispute_stripe):
        resolve(disputed_transaction, admin, "buyer")

        kwargs = dispute_stripe.create_refund.call_args.kwargs
        assert kwargs["payment_intent_id"] == disputed_transaction.stripe_payment_intent_id
        assert kwargs["amount_cents"] is None
        assert kwargs["reason"] == "requested_by_customer"
        assert kwargs["idempotency_key"].startswith(
            f"dispute_refund_buyer:{disputed_transaction.id}:22999:"
        )

    def test_both_parties_notified(self, disputed_transaction, admin, buyer, seller, dispute_stripe):
        resolve(disputed_transaction, admin, "buyer")

        buyer_note = Notification.objects.get(recipient=buyer)
        seller_note = Notification.objects.get(recipient=seller)
        assert buyer_note.kind == NotificationKind.DISPUTE_RESOLVED
        assert buyer_note.title == "Dispute Resolved"
        assert "$229.99" in buyer_note.message
        assert "buyer's favor" in seller_note.message
        assert seller_note.link == f"/account/sales/{disputed_transaction.id}"


@pytest.mark.django_db
class TestResolveForSeller:
    def test_releases_funds_without_refund(self, disputed_transaction, admin, dispute_stripe):
        result = resolve(disputed_transaction, admin, "seller")

        assert result.success
        dispute_stripe.create_refund.assert_not_called()
        txn = Transaction.objects.get(pk=disputed_transaction.pk)
        assert txn.status == TransactionStatus.COMPLETED
        assert txn.dispute_status == DisputeStatus.RESOLVED_SELLER
        assert txn.refunded_amount == Decimal("0.00")
        assert txn.funds_held is False
        assert txn.funds_released_at is not None
        assert txn.stripe_refund_id == ""

    def test_refund_amount_ignored(self, disputed_transaction, admin, dispute_stripe):
        result = resolve(disputed_transaction, admin, "seller", refund_amount="50.00")

        assert result.success
        assert result.data.refunded_amount == Decimal("0.00")


@pytest.mark.django_db
class TestSplitResolution:
    @pytest.mark.parametrize(
        "amount,cents,expected_status",
        [
            ("150.00", 15000, DisputeStatus.RESOLVED_SPLIT_BUYER),
            ("50.00", 5000, DisputeStatus.RESOLVED_SPLIT_SELLER),
            ("100.00", 10000, DisputeStatus.RESOLVED_SPLIT_SELLER),
            ("200.00", 20000, DisputeStatus.RESOLVED_SPLIT_BUYER),
        ],
    )
    def test_partial_refund(
        self, disputed_transaction, admin, dispute_stripe, amount, cents, expected_status
    ):
        """More than half the item price counts as buyer-favored."""
        result = resolve(disputed_transaction, admin, "split", refund_amount=amount)

        assert result.success, result.error
        assert dispute_stripe.create_refund.call_args.kwargs["amount_cents"] == cents
        txn = Transaction.objects.get(pk=disputed_transaction.pk)
        assert txn.status == TransactionStatus.COMPLETED
        assert txn.dispute_status == expected_status
        assert txn.refunded_amount == Decimal(amount)
        assert txn.funds_released_at is not None

    def test_split_notifies_amount(self, disputed_transaction, admin, seller, dispute_stripe):
        resolve(disputed_transaction, admin, "split", refund_amount=Decimal("75.00"))

        assert "$75.00" in Notification.objects.get(recipient=seller).message

    @pytest.mark.parametrize("amount", [None, "0", "-5.00", "200.01", "not-a-number"])
    def test_invalid_refund_amount(self, disputed_transaction, admin, dispute_stripe, amount):
        result = resolve(disputed_transaction, admin, "split", refund_amount=amount)

        assert result.error_code == "INVALID_REFUND_AMOUNT"
        assert result.details["max_refundable"] == "200.00"
        dispute_stripe.create_refund.assert_not_called()


@pytest.mark.django_db
class TestResolutionFailures:
    def test_admin_required(self, disputed_transaction, buyer, dispute_stripe):
        result = resolve(disputed_transaction, buyer, "buyer")

        assert result.error_code == "ADMIN_REQUIRED"
        assert result.http_status == 403
        dispute_stripe.create_refund.assert_not_called()

    def test_invalid_resolution(self, disputed_transaction, admin, dispute_stripe):
        result = resolve(disputed_transaction, admin, "coin_flip")

        assert result.error_code == "INVALID_RESOLUTION"

    def test_not_disputed(self, delivered_transaction, admin, dispute_stripe):
        result = resolve(delivered_transaction, admin, "buyer")

        assert result.error_code == "NOT_DISPUTED"
        dispute_stripe.create_refund.assert_not_called()

    def test_missing_transaction(self, admin, dispute_stripe):
        result = DisputeResolutionService.resolve(
            transaction_id=uuid.uuid4(), admin=admin, resolution="buyer"
        )

        assert result.error_code == "TRANSACTION_NOT_FOUND"
        assert result.http_status == 404

    def test_stale_version(self, disputed_transaction, admin, dispute_stripe):
        result = resolve(
            disputed_transaction,
            admin,
            "buyer",
            expected_version=disputed_transaction.version + 1,
        )

        assert result.error_code == "STALE_RECORD"
        assert result.details["current_version"] == disputed_transaction.version
        dispute_stripe.create_refund.assert_not_called()

    def test_stripe_refund_failure_keeps_dispute_open(
        self, disputed_transaction, admin, dispute_stripe
    ):
        """
        Given Stripe rejects the refund
        When the admin resolves for the buyer
        Then Stripe's reason is returned and the transaction stays DISPUTED
        """
        dispute_stripe.create_refund.side_effect = StripeInvalidRequestError(
            "Charge ch_123 has already been refunded.", stripe_code="charge_already_refunded"
        )

        result = resolve(disputed_transaction, admin, "buyer")

        assert result.error_code == "REFUND_FAILED"
        assert result.http_status == 502
        assert "already been refunded" in result.error
        txn = Transaction.objects.get(pk=disputed_transaction.pk)
        assert txn.status == TransactionStatus.DISPUTED
        assert txn.dispute_status == DisputeStatus.OPEN
        assert not Notification.objects.exists()

    def test_lost_race_after_refund_is_logged_critical(
        self, disputed_transaction, admin, dispute_stripe, caplog
    ):
        with patch(
            "payments.services.dispute_resolution.lock_for_transition",
            side_effect=StaleRecordError("moved", details={"current_version": 9}),
        ):
            with caplog.at_level(logging.CRITICAL):
                result = resolve(disputed_transaction, admin, "buyer")

        assert result.error_code == "STALE_RECORD"
        assert "Dispute refund issued but resolution not recorded" in caplog.text
        dispute_stripe.create_refund.assert_called_once()
        assert not Notification.objects.exists()


@pytest.fixture
def redis_locks(mock_redis):
    """Make the mocked Redis honour SET NX and token-checked release."""
    held = {}

    def set_nx(key, token, nx=False, ex=None):
        if nx and key in held:
            return False
        held[key] = token
        return True

    def release(script, numkeys, key, token):
        if held.get(key) != token:
            return 0
        del held[key]
        return 1

    mock_redis.set.side_effect = set_nx
    mock_redis.eval.side_effect = release
    return held


@pytest.mark.django_db
class TestConcurrentResolution:
    def test_second_resolution_rejected_while_refund_in_flight(
        self, disputed_transaction, admin, dispute_stripe, redis_locks
    ):
        """
        Given an admin resolving for the buyer whose refund is still at Stripe
        When a second admin submits a $100 split for the same dispute
        Then the second attempt is rejected and only the full refund is issued
        """
        issue_refund = dispute_stripe.create_refund.side_effect
        second = {}

        def refund_while_second_admin_resolves(**kwargs):
            second["result"] = resolve(
                disputed_transaction, admin, "split", refund_amount="100.00"
            )
            return issue_refund(**kwargs)

        dispute_stripe.create_refund.side_effect = refund_while_second_admin_resolves

        result = resolve(disputed_transaction, admin, "buyer")

        assert result.success, result.error
        assert second["result"].error_code == "RESOLUTION_IN_PROGRESS"
        assert second["result"].http_status == 409
        dispute_stripe.create_refund.assert_called_once()
        assert dispute_stripe.create_refund.call_args.kwargs["amount_cents"] is None
        txn = Transaction.objects.get(pk=disputed_transaction.pk)
        assert txn.status == TransactionStatus.REFUNDED
        assert txn.refunded_amount == Decimal("229.99")
        assert redis_locks == {}

    def test_held_lock_rejects_without_refund(
        self, disputed_transaction, admin, dispute_stripe, mock_redis
    ):
        mock_redis.set.return_value = False

        result = resolve(disputed_transaction, admin, "split", refund_amount="40.00")

        assert result.error_code == "RESOLUTION_IN_PROGRESS"
        dispute_stripe.create_refund.assert_not_called()
        txn = Transaction.objects.get(pk=disputed_transaction.pk)
        assert txn.status == TransactionStatus.DISPUTED

    def test_lock_released_after_validation_failure(
        self, disputed_transaction, admin, dispute_stripe, redis_locks
    ):
        resolve(disputed_transaction, admin, "split", refund_amount="500.00")

        result = resolve(disputed_transaction, admin, "seller")

        assert result.success, result.error
        assert redis_locks == {}
