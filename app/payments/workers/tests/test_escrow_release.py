"""
Tests for the release_funds worker.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from django.utils import timezone
from freezegun import freeze_time

from authentication.tests.factories import AdminUserFactory, UserFactory
from listings.models import ListingStatus
from listings.tests.factories import ListingFactory
from notifications.models import Notification, NotificationKind
from payments.models import Transaction
from payments.state_machines import DisputeStatus, TransactionStatus
from payments.tests.factories import ConnectedAccountFactory, TransactionFactory
from payments.workers import release_funds
from payments.workers.escrow_release import releasable_transactions


def expired_transaction(listing, buyer, **kwargs):
    delivered_at = timezone.now() - timedelta(hours=30)
    defaults = {
        "listing": listing,
        "buyer": buyer,
        "status": TransactionStatus.DELIVERED,
        "stripe_status": "succeeded",
        "delivered_at": delivered_at,
        "escrow_release_at": delivered_at + timedelta(hours=24),
    }
    defaults.update(kwargs)
    return TransactionFactory(**defaults)


@pytest.mark.django_db
class TestReleasableTransactions:
    def test_selects_only_expired_undisputed_holds(
        self, listing, buyer, seller_account, delivered_transaction
    ):
        ready = expired_transaction(listing, buyer)
        expired_transaction(listing, buyer, dispute_status=DisputeStatus.OPEN)
        expired_transaction(listing, buyer, funds_held=False)
        expired_transaction(listing, buyer, status=TransactionStatus.SHIPPED)

        assert list(releasable_transactions()) == [ready]

    def test_hold_boundary(self, delivered_transaction):
        with freeze_time(delivered_transaction.escrow_release_at - timedelta(seconds=1)):
            assert not releasable_transactions().exists()
        with freeze_time(delivered_transaction.escrow_release_at):
            assert releasable_transactions().exists()


@pytest.mark.django_db
class TestReleaseFunds:
    def test_completes_expired_hold(self, listing, buyer, seller, seller_account):
        """
        Given a delivered transaction whose 24h hold ended six hours ago
        When the release job runs
        Then the transaction completes, the listing is sold and the seller is told
        """
        txn = expired_transaction(listing, buyer)

        results = release_funds()

        assert results == {
            "processed": 1,
            "succeeded": 1,
            "failed": 0,
            "skipped": 0,
            "errors": [],
        }
        released = Transaction.objects.get(pk=txn.pk)
        assert released.status == TransactionStatus.COMPLETED
        assert released.funds_held is False
        assert released.funds_released_at is not None
        listing.refresh_from_db()
        assert listing.status == ListingStatus.SOLD

        note = Notification.objects.get(recipient=seller)
        assert note.kind == NotificationKind.FUNDS_RELEASED
        assert note.title == "Funds Released!"
        assert note.message == '$191.03 has been released for "iPhone 15 Pro"'
        assert note.link == f"/account/sales/{txn.id}"

    def test_hold_not_expired(self, delivered_transaction, seller_account):
        results = release_funds()

        assert results["processed"] == 0
        assert Transaction.objects.get(pk=delivered_transaction.pk).status == (
            TransactionStatus.DELIVERED
        )

    def test_runs_after_hold_expires(self, delivered_transaction, seller_account):
        with freeze_time(delivered_transaction.escrow_release_at + timedelta(minutes=1)):
            results = release_funds()

        assert results["succeeded"] == 1

    def test_seller_without_account_fails(self, listing, buyer):
        txn = expired_transaction(listing, buyer)

        results = release_funds()

        assert results["failed"] == 1
        assert results["succeeded"] == 0
        assert str(txn.id) in results["errors"][0]
        assert "has no Stripe account" in results["errors"][0]
        assert Transaction.objects.get(pk=txn.pk).status == TransactionStatus.DELIVERED

    def test_disconnected_seller_fails(self, listing, buyer, seller):
        ConnectedAccountFactory(user=seller, stripe_account_id=None)
        expired_transaction(listing, buyer)

        results = release_funds()

        assert results["failed"] == 1

    def test_admin_seller_needs_no_account(self, buyer):
        listing = ListingFactory(seller=AdminUserFactory())
        txn = expired_transaction(listing, buyer)

        results = release_funds()

        assert results["succeeded"] == 1
        assert Transaction.objects.get(pk=txn.pk).status == TransactionStatus.COMPLETED

    def test_one_failure_does_not_stop_batch(self, listing, buyer, seller_account):
        unpaid_seller_listing = ListingFactory(seller=UserFactory())
        expired_transaction(unpaid_seller_listing, buyer)
        good = expired_transaction(listing, buyer)

        results = release_funds()

        assert results["processed"] == 2
        assert results["failed"] == 1
        assert results["succeeded"] == 1
        assert Transaction.objects.get(pk=good.pk).status == TransactionStatus.COMPLETED

    def test_locked_transaction_skipped(self, listing, buyer, seller_account, mock_redis):
        mock_redis.set.return_value = False
        txn = expired_transaction(listing, buyer)

        results = release_funds()

        assert results["skipped"] == 1
        assert results["failed"] == 0
        assert Transaction.objects.get(pk=txn.pk).status == TransactionStatus.DELIVERED
        assert not Notification.objects.exists()

    def test_rerun_releases_nothing(self, listing, buyer, seller_account):
        expired_transaction(listing, buyer)
        release_funds()

        results = release_funds()

        assert results["processed"] == 0
        assert Notification.objects.count() == 1
