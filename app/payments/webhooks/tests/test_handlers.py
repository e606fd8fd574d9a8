"""
Tests for webhook event handlers.

Tests cover:
- Handler registry and dispatch
- payment_intent.* transitions, duplicates and out-of-order delivery
- charge.refunded bookkeeping
- Connect account events, full and thin
"""

import uuid

import pytest

from listings.models import ListingStatus
from notifications.models import Notification, NotificationKind
from payments.models import ConnectedAccount, Transaction
from payments.state_machines import AccountStatus, TransactionStatus
from payments.tests.factories import (
    ConnectedAccountFactory,
    WebhookEventFactory,
    account_event,
    account_status_result,
    payment_intent_event,
)
from payments.webhooks.handlers import WEBHOOK_HANDLERS, dispatch_webhook


# =============================================================================
# Registry
# =============================================================================


class TestHandlerRegistry:
    @pytest.mark.parametrize(
        "event_type",
        [
            "payment_intent.succeeded",
            "payment_intent.payment_failed",
            "payment_intent.canceled",
            "charge.refunded",
            "account.updated",
            "account.application.authorized",
            "account.application.deauthorized",
            "v2.core.account.updated",
            "v2.core.account[requirements].updated",
            "v2.core.account[configuration.merchant].capability_status_updated",
            "v2.core.account[configuration.recipient].capability_status_updated",
        ],
    )
    def test_handler_registered(self, event_type):
        assert event_type in WEBHOOK_HANDLERS

    def test_thin_events_share_account_handler(self):
        assert (
            WEBHOOK_HANDLERS["v2.core.account.updated"] is WEBHOOK_HANDLERS["account.updated"]
        )

    @pytest.mark.django_db
    def test_unknown_event_acknowledged(self):
        event = WebhookEventFactory(event_type="customer.subscription.created")

        result = dispatch_webhook(event)

        assert result.success
        assert result.data is None


# =============================================================================
# payment_intent.succeeded
# =============================================================================


@pytest.mark.django_db
class TestPaymentIntentSucceeded:
    def test_marks_payment_received(self, pending_transaction, buyer, seller):
        """
        Given a PENDING transaction
        When Stripe reports the PaymentIntent succeeded
        Then funds are held, the listing is reserved and both parties notified
        """
        event = payment_intent_event(
            "payment_intent.succeeded",
            pending_transaction,
            status="succeeded",
            latest_charge="ch_test_123",
        )

        result = dispatch_webhook(event)

        assert result.success, result.error
        txn = Transaction.objects.get(pk=pending_transaction.pk)
        assert txn.status == TransactionStatus.PAYMENT_RECEIVED
        assert txn.stripe_status == "succeeded"
        assert txn.stripe_charge_id == "ch_test_123"
        assert txn.funds_held is True
        assert txn.paid_at is not None
        txn.listing.refresh_from_db()
        assert txn.listing.status == ListingStatus.PENDING

        sale = Notification.objects.get(recipient=seller)
        assert sale.kind == NotificationKind.NEW_SALE
        assert sale.message == 'Buyer Bob purchased "iPhone 15 Pro" for $200.00'
        purchase = Notification.objects.get(recipient=buyer)
        assert purchase.kind == NotificationKind.PURCHASE_CONFIRMED
        assert "$229.99" in purchase.message

    def test_expanded_charge_object(self, pending_transaction):
        event = payment_intent_event(
            "payment_intent.succeeded",
            pending_transaction,
            status="succeeded",
            latest_charge={"id": "ch_expanded", "object": "charge"},
        )

        dispatch_webhook(event)

        assert Transaction.objects.get(pk=pending_transaction.pk).stripe_charge_id == (
            "ch_expanded"
        )

    def test_duplicate_delivery_is_noop(self, pending_transaction):
        first = payment_intent_event("payment_intent.succeeded", pending_transaction)
        second = payment_intent_event("payment_intent.succeeded", pending_transaction)

        dispatch_webhook(first)
        version = Transaction.objects.get(pk=pending_transaction.pk).version
        result = dispatch_webhook(second)

        assert result.success
        txn = Transaction.objects.get(pk=pending_transaction.pk)
        assert txn.version == version
        assert Notification.objects.count() == 2

    def test_late_event_does_not_rewind_shipped(self, shipped_transaction):
        event = payment_intent_event("payment_intent.succeeded", shipped_transaction)

        result = dispatch_webhook(event)

        assert result.success
        assert Transaction.objects.get(pk=shipped_transaction.pk).status == (
            TransactionStatus.SHIPPED
        )
        assert not Notification.objects.exists()

    def test_missing_checkout_transaction_fails_for_retry(self, db):
        event = WebhookEventFactory(
            payload={
                "id": "evt_x",
                "type": "payment_intent.succeeded",
                "data": {
                    "object": {
                        "id": "pi_not_yet_committed",
                        "metadata": {"checkout_source": "marketplace"},
                    }
                },
            }
        )

        result = dispatch_webhook(event)

        assert not result.success
        assert result.error_code == "TRANSACTION_NOT_FOUND"

    def test_foreign_payment_intent_ignored(self, db):
        event = WebhookEventFactory(
            payload={
                "id": "evt_y",
                "type": "payment_intent.succeeded",
                "data": {"object": {"id": "pi_invoice_123", "metadata": {}}},
            }
        )

        result = dispatch_webhook(event)

        assert result.success
        assert result.data is None

    def test_missing_payment_intent_id(self, db):
        event = WebhookEventFactory(
            payload={"id": "evt_z", "type": "payment_intent.succeeded", "data": {"object": {}}}
        )

        result = dispatch_webhook(event)

        assert result.error_code == "INVALID_WEBHOOK_PAYLOAD"


# =============================================================================
# payment_intent.payment_failed / canceled
# =============================================================================


@pytest.mark.django_db
class TestPaymentIntentNotCompleted:
    @pytest.mark.parametrize(
        "event_type,stripe_status",
        [
            ("payment_intent.payment_failed", "requires_payment_method"),
            ("payment_intent.canceled", "canceled"),
        ],
    )
    def test_cancels_pending(self, pending_transaction, event_type, stripe_status):
        event = payment_intent_event(event_type, pending_transaction, status=stripe_status)

        result = dispatch_webhook(event)

        assert result.success
        txn = Transaction.objects.get(pk=pending_transaction.pk)
        assert txn.status == TransactionStatus.CANCELLED
        assert txn.stripe_status == stripe_status
        assert txn.funds_held is False
        txn.listing.refresh_from_db()
        assert txn.listing.status == ListingStatus.ACTIVE

    def test_failure_after_success_is_ignored(self, paid_transaction):
        event = payment_intent_event(
            "payment_intent.payment_failed",
            paid_transaction,
            last_payment_error={"message": "Your card was declined."},
        )

        result = dispatch_webhook(event)

        assert result.success
        assert Transaction.objects.get(pk=paid_transaction.pk).status == (
            TransactionStatus.PAYMENT_RECEIVED
        )


# =============================================================================
# charge.refunded
# =============================================================================


@pytest.mark.django_db
class TestChargeRefunded:
    def charge_event(self, txn, refunded, amount_refunded):
        return WebhookEventFactory(
            event_type="charge.refunded",
            payload={
                "id": f"evt_{uuid.uuid4().hex[:12]}",
                "type": "charge.refunded",
                "data": {
                    "object": {
                        "id": "ch_test_123",
                        "object": "charge",
                        "payment_intent": txn.stripe_payment_intent_id,
                        "refunded": refunded,
                        "amount_refunded": amount_refunded,
                    }
                },
            },
        )

    def test_full_refund_recorded(self, disputed_transaction):
        result = dispatch_webhook(self.charge_event(disputed_transaction, True, 22999))

        assert result.success
        txn = Transaction.objects.get(pk=disputed_transaction.pk)
        assert txn.stripe_status == "refunded"
        assert txn.status == TransactionStatus.DISPUTED

    def test_partial_refund_recorded(self, disputed_transaction):
        dispatch_webhook(self.charge_event(disputed_transaction, False, 5000))

        assert Transaction.objects.get(pk=disputed_transaction.pk).stripe_status == (
            "partially_refunded"
        )


# =============================================================================
# Connect account events
# =============================================================================


@pytest.fixture
def onboarding_account(seller):
    """Seller part-way through onboarding."""
    return ConnectedAccountFactory(
        user=seller,
        stripe_account_id="acct_seller123",
        status=AccountStatus.PENDING,
        charges_enabled=False,
        payouts_enabled=False,
        onboarding_complete=False,
    )


@pytest.mark.django_db
class TestAccountEvents:
    def test_account_updated_syncs_from_stripe(self, seller, onboarding_account, connect_stripe):
        event = account_event("account.updated")

        result = dispatch_webhook(event)

        assert result.success
        connect_stripe.retrieve_account.assert_called_once_with("acct_seller123")
        assert ConnectedAccount.objects.get(user=seller).status == AccountStatus.ACTIVE

    def test_thin_event_uses_related_object(self, onboarding_account, connect_stripe):
        event = account_event(
            "v2.core.account[requirements].updated",
            account_id=None,
            data={},
            related_object={"id": "acct_seller123", "type": "v2.core.account"},
        )

        result = dispatch_webhook(event)

        assert result.success
        connect_stripe.retrieve_account.assert_called_once_with("acct_seller123")

    def test_account_object_id_used_without_account_field(
        self, onboarding_account, connect_stripe
    ):
        event = account_event("account.updated", account_id=None)
        event.payload["data"]["object"]["id"] = "acct_seller123"
        event.save()

        dispatch_webhook(event)

        connect_stripe.retrieve_account.assert_called_once_with("acct_seller123")

    def test_restricted_account_cached(self, seller_account, connect_stripe):
        connect_stripe.retrieve_account.return_value = account_status_result(
            status="restricted",
            charges_enabled=False,
            payouts_enabled=False,
            onboarding_complete=False,
            disabled_reason="requirements.past_due",
        )

        dispatch_webhook(account_event("account.updated"))

        account = ConnectedAccount.objects.get(pk=seller_account.pk)
        assert account.status == AccountStatus.RESTRICTED
        assert not account.can_receive_payouts

    def test_unknown_account_ignored(self, connect_stripe):
        result = dispatch_webhook(account_event("account.updated", account_id="acct_elsewhere"))

        assert result.success
        connect_stripe.retrieve_account.assert_not_called()

    def test_event_without_account(self, connect_stripe):
        event = account_event("v2.core.account.updated", account_id=None, data={})

        result = dispatch_webhook(event)

        assert result.error_code == "INVALID_WEBHOOK_PAYLOAD"

    def test_deauthorized_disconnects(self, seller_account, connect_stripe):
        result = dispatch_webhook(account_event("account.application.deauthorized"))

        assert result.success
        account = ConnectedAccount.objects.get(pk=seller_account.pk)
        assert account.status == AccountStatus.DISCONNECTED
        assert account.stripe_account_id is None

    def test_authorized_is_logged_only(self, seller_account, connect_stripe):
        result = dispatch_webhook(account_event("account.application.authorized"))

        assert result.success
        connect_stripe.retrieve_account.assert_not_called()

