"""
Tests for the transaction and Connect API endpoints.

Services are exercised for real; only the Stripe adapter is mocked.
"""

from decimal import Decimal

import pytest
from django.urls import reverse
from rest_framework import status

from authentication.tests.factories import UserFactory
from payments.models import Transaction
from payments.state_machines import DisputeStatus, TransactionStatus
from payments.tests.factories import TransactionFactory

ADDRESS = {
    "name": "Bob Buyer",
    "line1": "1 Market St",
    "city": "San Francisco",
    "state": "CA",
    "zip_code": "94107",
}


@pytest.mark.django_db
class TestCheckoutEndpoint:
    @property
    def url(self):
        return reverse("transactions:transaction-checkout")

    def test_requires_authentication(self, api_client, listing):
        response = api_client.post(self.url, {}, format="json")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_creates_checkout(
        self, authenticated_client_factory, buyer, listing, seller_account, checkout_stripe
    ):
        client = authenticated_client_factory(buyer)

        response = client.post(
            self.url,
            {
                "listing_id": str(listing.id),
                "expected_price": "200.00",
                "shipping_address": ADDRESS,
            },
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["client_secret"] == "pi_test_checkout_secret_abc"
        assert response.data["breakdown"]["total_amount"] == "228.48"
        assert response.data["breakdown"]["seller_payout"] == "191.07"
        assert Transaction.objects.filter(pk=response.data["transaction_id"]).exists()

    def test_price_changed_returns_409(
        self, authenticated_client_factory, buyer, listing, seller_account, checkout_stripe
    ):
        client = authenticated_client_factory(buyer)

        response = client.post(
            self.url,
            {
                "listing_id": str(listing.id),
                "expected_price": "150.00",
                "shipping_address": ADDRESS,
            },
            format="json",
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["success"] is False
        assert response.data["error_code"] == "PRICE_CHANGED"
        assert response.data["details"]["current_price"] == "200.00"

    def test_invalid_zip_rejected_by_serializer(
        self, authenticated_client_factory, buyer, listing, checkout_stripe
    ):
        client = authenticated_client_factory(buyer)

        response = client.post(
            self.url,
            {
                "listing_id": str(listing.id),
                "expected_price": "200.00",
                "shipping_address": {**ADDRESS, "zip_code": "9410"},
            },
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        checkout_stripe.create_payment_intent.assert_not_called()


@pytest.mark.django_db
class TestTransactionList:
    @property
    def url(self):
        return reverse("transactions:transaction-list")

    def test_lists_both_roles_by_default(self, authenticated_client_factory, buyer, listing):
        bought = TransactionFactory(buyer=buyer)
        sold = TransactionFactory(listing__seller=buyer)
        TransactionFactory()

        response = authenticated_client_factory(buyer).get(self.url)

        assert response.status_code == status.HTTP_200_OK
        ids = {row["id"] for row in response.data["results"]}
        assert ids == {str(bought.id), str(sold.id)}

    def test_filter_by_role(self, authenticated_client_factory, buyer):
        bought = TransactionFactory(buyer=buyer)
        TransactionFactory(listing__seller=buyer)

        response = authenticated_client_factory(buyer).get(self.url, {"role": "buyer"})

        assert [row["id"] for row in response.data["results"]] == [str(bought.id)]

    def test_filter_by_status(self, authenticated_client_factory, buyer):
        TransactionFactory(buyer=buyer)
        shipped = TransactionFactory(buyer=buyer, status=TransactionStatus.SHIPPED)

        response = authenticated_client_factory(buyer).get(self.url, {"status": "shipped"})

        assert [row["id"] for row in response.data["results"]] == [str(shipped.id)]

    def test_filter_by_dispute_status(self, authenticated_client_factory, buyer):
        TransactionFactory(buyer=buyer, status=TransactionStatus.SHIPPED)
        disputed = TransactionFactory(
            buyer=buyer,
            status=TransactionStatus.DISPUTED,
            dispute_status=DisputeStatus.OPEN,
        )

        response = authenticated_client_factory(buyer).get(
            self.url, {"dispute_status": DisputeStatus.OPEN}
        )

        assert [row["id"] for row in response.data["results"]] == [str(disputed.id)]

    def test_unknown_role_rejected(self, authenticated_client_factory, buyer):
        response = authenticated_client_factory(buyer).get(self.url, {"role": "admin"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestTransactionDetail:
    def test_party_can_view(self, authenticated_client_factory, pending_transaction, seller):
        url = reverse("transactions:transaction-detail", args=[pending_transaction.id])

        response = authenticated_client_factory(seller).get(url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["listing_title"] == "iPhone 15 Pro"
        assert response.data["seller_name"] == "Seller Sue"
        assert response.data["total_amount"] == "229.99"

    def test_admin_can_view(self, authenticated_client_factory, pending_transaction, admin):
        url = reverse("transactions:transaction-detail", args=[pending_transaction.id])

        response = authenticated_client_factory(admin).get(url)

        assert response.status_code == status.HTTP_200_OK

    def test_outsider_forbidden(self, authenticated_client_factory, pending_transaction):
        url = reverse("transactions:transaction-detail", args=[pending_transaction.id])

        response = authenticated_client_factory(UserFactory()).get(url)

        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestLifecycleActions:
    def test_ship(self, authenticated_client_factory, paid_transaction, seller):
        url = reverse("transactions:transaction-ship", args=[paid_transaction.id])

        response = authenticated_client_factory(seller).post(
            url, {"tracking_number": "1Z999AA10123456784"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == TransactionStatus.SHIPPED
        assert response.data["carrier"] == "UPS"

    def test_buyer_cannot_ship(self, authenticated_client_factory, paid_transaction, buyer):
        url = reverse("transactions:transaction-ship", args=[paid_transaction.id])

        response = authenticated_client_factory(buyer).post(
            url, {"tracking_number": "1Z999AA10123456784"}, format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error_code"] == "NOT_SELLER"

    def test_dispute(self, authenticated_client_factory, delivered_transaction, buyer):
        url = reverse("transactions:transaction-dispute", args=[delivered_transaction.id])

        response = authenticated_client_factory(buyer).post(
            url, {"reason": "Wrong storage size"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == TransactionStatus.DISPUTED
        assert response.data["dispute_reason"] == "Wrong storage size"

    def test_resolve_split(
        self, authenticated_client_factory, disputed_transaction, admin, dispute_stripe
    ):
        url = reverse("transactions:transaction-resolve", args=[disputed_transaction.id])

        response = authenticated_client_factory(admin).post(
            url,
            {
                "resolution": "split",
                "refund_amount": "40.00",
                "expected_version": disputed_transaction.version,
            },
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {
            "success": True,
            "resolution": "split",
            "dispute_status": "RESOLVED_SPLIT_SELLER",
            "refunded_amount": "40.00",
            "message": "Dispute resolved: split",
        }
        txn = Transaction.objects.get(pk=disputed_transaction.pk)
        assert txn.refunded_amount == Decimal("40.00")

    def test_resolve_requires_admin(
        self, authenticated_client_factory, disputed_transaction, seller, dispute_stripe
    ):
        url = reverse("transactions:transaction-resolve", args=[disputed_transaction.id])

        response = authenticated_client_factory(seller).post(
            url, {"resolution": "seller"}, format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error_code"] == "ADMIN_REQUIRED"


@pytest.mark.django_db
class TestConnectEndpoint:
    @property
    def url(self):
        return reverse("payments:connect")

    def test_status_without_account(self, authenticated_client_factory, buyer, connect_stripe):
        response = authenticated_client_factory(buyer).get(self.url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["has_account"] is False

    def test_start_onboarding(self, authenticated_client_factory, seller, connect_stripe):
        response = authenticated_client_factory(seller).post(self.url, {}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {
            "account_id": "acct_new123",
            "url": "https://connect.stripe.com/setup/e/acct_new123",
        }
