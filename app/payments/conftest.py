"""
Fixtures shared by every payments test package.

Fixtures provide the parties of a sale, transactions in each lifecycle
state and mock Stripe adapters injected into the services.

The distributed lock talks to Redis through django-redis; tests run on the
locmem cache, so the connection is replaced with a mock that always grants
the lock. Tests that need contention set ``mock_redis.set.return_value``.

Usage:
    def test_ship(paid_transaction, seller):
        result = ShipmentService.mark_shipped(paid_transaction.id, seller, "1Z...")
"""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from django.utils import timezone

from authentication.models import User
from authentication.tests.factories import AdminUserFactory, UserFactory
from listings.tests.factories import ListingFactory
from payments.adapters import AccountLinkResult, ConnectedAccountResult, RefundResult
from payments.services import (
    AccountStatusSynchronizer,
    CheckoutService,
    ConnectOnboardingService,
    DisputeResolutionService,
)
from payments.state_machines import DisputeStatus, TransactionStatus
from payments.tests.factories import (
    ConnectedAccountFactory,
    TransactionFactory,
    account_status_result,
    payment_intent_result,
)


@pytest.fixture(autouse=True)
def mock_redis():
    """Mock Redis connection for lock acquisition."""
    with patch("payments.locks.get_redis_connection") as mock_get_conn:
        redis_instance = MagicMock()
        redis_instance.set.return_value = True
        redis_instance.eval.return_value = 1
        mock_get_conn.return_value = redis_instance
        yield redis_instance


# =============================================================================
# Parties
# =============================================================================


@pytest.fixture
def buyer(db):
    return UserFactory(name="Buyer Bob")


@pytest.fixture
def seller(db):
    return UserFactory(name="Seller Sue")


@pytest.fixture
def seller_account(seller):
    """Connect account that can receive destination charges."""
    return ConnectedAccountFactory(user=seller, stripe_account_id="acct_seller123")


@pytest.fixture
def admin(db):
    return AdminUserFactory(name="Admin Ann")


@pytest.fixture
def listing(seller):
    return ListingFactory(seller=seller, title="iPhone 15 Pro")


@pytest.fixture
def pro_listing(db):
    pro_seller = UserFactory(subscription_tier=User.SubscriptionTier.PRO)
    ConnectedAccountFactory(user=pro_seller)
    return ListingFactory(seller=pro_seller, title="MacBook Pro")


# =============================================================================
# Transactions by status
# =============================================================================


@pytest.fixture
def pending_transaction(listing, buyer):
    return TransactionFactory(listing=listing, buyer=buyer)


@pytest.fixture
def paid_transaction(listing, buyer):
    return TransactionFactory(
        listing=listing,
        buyer=buyer,
        status=TransactionStatus.PAYMENT_RECEIVED,
        stripe_status="succeeded",
        paid_at=timezone.now() - timedelta(days=1),
    )


@pytest.fixture
def shipped_transaction(listing, buyer):
    return TransactionFactory(
        listing=listing,
        buyer=buyer,
        status=TransactionStatus.SHIPPED,
        stripe_status="succeeded",
        tracking_number="1Z999AA10123456784",
        carrier="UPS",
        shipped_at=timezone.now() - timedelta(days=2),
    )


@pytest.fixture
def delivered_transaction(listing, buyer):
    delivered_at = timezone.now() - timedelta(hours=2)
    return TransactionFactory(
        listing=listing,
        buyer=buyer,
        status=TransactionStatus.DELIVERED,
        stripe_status="succeeded",
        tracking_number="1Z999AA10123456784",
        carrier="UPS",
        delivered_at=delivered_at,
        escrow_release_at=delivered_at + timedelta(hours=24),
    )


@pytest.fixture
def disputed_transaction(listing, buyer):
    return TransactionFactory(
        listing=listing,
        buyer=buyer,
        status=TransactionStatus.DISPUTED,
        stripe_status="succeeded",
        dispute_status=DisputeStatus.OPEN,
        dispute_reason="Screen is cracked",
        disputed_by=buyer,
        disputed_at=timezone.now() - timedelta(hours=1),
    )


# =============================================================================
# Mock Stripe adapters
# =============================================================================


@pytest.fixture
def checkout_stripe():
    """Mock adapter for CheckoutService; creates a PaymentIntent by default."""
    adapter = MagicMock()
    adapter.create_payment_intent.return_value = payment_intent_result()
    CheckoutService.set_stripe_adapter(adapter)
    yield adapter
    CheckoutService.set_stripe_adapter(None)


@pytest.fixture
def dispute_stripe():
    """Mock adapter for DisputeResolutionService; refunds succeed by default."""
    adapter = MagicMock()
    adapter.create_refund.side_effect = lambda payment_intent_id, amount_cents=None, **kw: (
        RefundResult(
            id="re_test_dispute",
            amount_cents=amount_cents or 0,
            currency="usd",
            status="succeeded",
            payment_intent_id=payment_intent_id,
        )
    )
    DisputeResolutionService.set_stripe_adapter(adapter)
    yield adapter
    DisputeResolutionService.set_stripe_adapter(None)


@pytest.fixture
def connect_stripe():
    """Mock adapter shared by the Connect services."""
    adapter = MagicMock()
    adapter.retrieve_account.return_value = account_status_result()
    adapter.create_connected_account.return_value = ConnectedAccountResult(
        id="acct_new123", email="seller@example.com"
    )
    adapter.create_onboarding_link.return_value = AccountLinkResult(
        url="https://connect.stripe.com/setup/e/acct_new123", expires_at=1704884400
    )
    AccountStatusSynchronizer.set_stripe_adapter(adapter)
    ConnectOnboardingService.set_stripe_adapter(adapter)
    yield adapter
    AccountStatusSynchronizer.set_stripe_adapter(None)
    ConnectOnboardingService.set_stripe_adapter(None)
