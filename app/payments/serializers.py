"""
DRF serializers for payments app.

This module provides serializers for:
- Checkout requests and the fee breakdown returned to the buyer
- Transaction detail for buyers, sellers and admins
- Ship, dispute and resolve actions
- Connect onboarding and status
- Cron job responses

Usage:
    serializer = CheckoutRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
"""

from __future__ import annotations

from rest_framework import serializers

from payments.models import Transaction


# =============================================================================
# Checkout
# =============================================================================


class ShippingAddressSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    line1 = serializers.CharField(max_length=200, required=False, allow_blank=True)
    line2 = serializers.CharField(max_length=200, required=False, allow_blank=True)
    city = serializers.CharField(max_length=100, required=False, allow_blank=True)
    state = serializers.CharField(max_length=50, required=False, allow_blank=True)
    zip_code = serializers.RegexField(
        r"^\d{5}(-\d{4})?$",
        error_messages={"invalid": "Enter a valid US ZIP code."},
    )
    country = serializers.CharField(max_length=2, required=False, default="US")
    phone = serializers.CharField(max_length=30, required=False, allow_blank=True)


class CheckoutRequestSerializer(serializers.Serializer):
    """
    Fields:
        listing_id: Listing being bought
        expected_price: Price the buyer saw; rejected if it moved by more than a cent
        shipping_address: Destination (ZIP drives tax)
    """

    listing_id = serializers.UUIDField()
    expected_price = serializers.DecimalField(max_digits=10, decimal_places=2)
    shipping_address = ShippingAddressSerializer()


class FeeBreakdownSerializer(serializers.Serializer):
    sale_price = serializers.DecimalField(max_digits=10, decimal_places=2)
    tax_rate = serializers.DecimalField(max_digits=7, decimal_places=5)
    tax_amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    shipping_cost = serializers.DecimalField(max_digits=10, decimal_places=2)
    free_shipping = serializers.BooleanField()
    platform_fee_rate = serializers.DecimalField(max_digits=5, decimal_places=4)
    platform_fee = serializers.DecimalField(max_digits=10, decimal_places=2)
    processor_fee = serializers.DecimalField(max_digits=10, decimal_places=2)
    seller_payout = serializers.DecimalField(max_digits=10, decimal_places=2)
    total_amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    application_fee = serializers.DecimalField(max_digits=10, decimal_places=2)


class CheckoutResponseSerializer(serializers.Serializer):
    transaction_id = serializers.UUIDField()
    client_secret = serializers.CharField()
    breakdown = FeeBreakdownSerializer()


# =============================================================================
# Transactions
# =============================================================================


class TransactionSerializer(serializers.ModelSerializer):
    """
    Transaction as seen by its buyer, seller or an admin.
    """

    listing_title = serializers.CharField(source="listing.title", read_only=True)
    buyer_name = serializers.CharField(source="buyer.display_name", read_only=True)
    seller_name = serializers.CharField(source="seller.display_name", read_only=True)

    class Meta:
        model = Transaction
        fields = [
            "id",
            "version",
            "status",
            "listing",
            "listing_title",
            "buyer",
            "buyer_name",
            "seller",
            "seller_name",
            "sale_price",
            "tax_rate",
            "tax_amount",
            "shipping_cost",
            "free_shipping",
            "platform_fee_rate",
            "platform_fee",
            "processor_fee",
            "application_fee",
            "seller_payout",
            "total_amount",
            "refunded_amount",
            "funds_held",
            "escrow_release_at",
            "tracking_number",
            "carrier",
            "dispute_status",
            "dispute_reason",
            "disputed_at",
            "dispute_resolved_at",
            "resolution_notes",
            "shipping_name",
            "shipping_line1",
            "shipping_line2",
            "shipping_city",
            "shipping_state",
            "shipping_zip",
            "shipping_country",
            "paid_at",
            "shipped_at",
            "delivered_at",
            "funds_released_at",
            "completed_at",
            "cancelled_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ShipRequestSerializer(serializers.Serializer):
    tracking_number = serializers.CharField(max_length=64)
    carrier = serializers.CharField(
        max_length=10,
        required=False,
        allow_blank=True,
        allow_null=True,
        help_text="ups, fedex or usps; detected from the tracking number when omitted",
    )


class DisputeRequestSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=2000, allow_blank=True)


class ResolveDisputeRequestSerializer(serializers.Serializer):
    """
    Fields:
        resolution: buyer, seller or split (checked by the service)
        refund_amount: Required for split; at most the item price
        notes: Stored on the transaction
        expected_version: Version the admin reviewed, to reject stale decisions
    """

    resolution = serializers.CharField(max_length=10)
    refund_amount = serializers.DecimalField(
        max_digits=10, decimal_places=2, required=False, allow_null=True
    )
    notes = serializers.CharField(max_length=5000, required=False, allow_blank=True, default="")
    expected_version = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class ResolveDisputeResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    resolution = serializers.CharField()
    dispute_status = serializers.CharField()
    refunded_amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    message = serializers.CharField()


# =============================================================================
# Connect
# =============================================================================


class ConnectOnboardingRequestSerializer(serializers.Serializer):
    return_url = serializers.URLField(required=False)
    refresh_url = serializers.URLField(required=False)


class OnboardingLinkSerializer(serializers.Serializer):
    account_id = serializers.CharField()
    url = serializers.URLField()


class ConnectStatusSerializer(serializers.Serializer):
    has_account = serializers.BooleanField()
    account_id = serializers.CharField(allow_null=True)
    status = serializers.CharField(allow_null=True)
    charges_enabled = serializers.BooleanField()
    payouts_enabled = serializers.BooleanField()
    onboarding_complete = serializers.BooleanField()
    requirements_status = serializers.CharField(allow_blank=True)


# =============================================================================
# Cron
# =============================================================================


class CronJobResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    message = serializers.CharField()
    results = serializers.DictField()
