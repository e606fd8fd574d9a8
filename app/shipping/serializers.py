"""
Serializers for the shipping API query parameters and responses.
"""

from decimal import Decimal

from rest_framework import serializers

from listings.models import DeviceType
from shipping.tracking.types import Carrier, TrackingState


class TaxQuerySerializer(serializers.Serializer):
    zip_code = serializers.CharField(max_length=10)
    amount = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=Decimal("0"),
        required=False,
    )


class TaxQuoteSerializer(serializers.Serializer):
    zip_code = serializers.CharField()
    state = serializers.CharField(allow_null=True)
    tax_rate = serializers.DecimalField(max_digits=7, decimal_places=5)
    tax_rate_percent = serializers.DecimalField(max_digits=7, decimal_places=3)
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, allow_null=True)
    tax_amount = serializers.DecimalField(max_digits=10, decimal_places=2, allow_null=True)
    total = serializers.DecimalField(max_digits=10, decimal_places=2, allow_null=True)
    message = serializers.CharField(required=False)


class RatesQuerySerializer(serializers.Serializer):
    device_type = serializers.ChoiceField(choices=DeviceType.choices)
    price = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=Decimal("0.01"),
    )


class ShippingOptionSerializer(serializers.Serializer):
    name = serializers.CharField()
    price = serializers.DecimalField(max_digits=10, decimal_places=2)
    estimated_days = serializers.CharField()
    carrier = serializers.CharField()
    insurance_value = serializers.DecimalField(max_digits=10, decimal_places=2)


class ShippingRatesSerializer(serializers.Serializer):
    device_type = serializers.CharField()
    weight_class = serializers.CharField()
    free_shipping = serializers.BooleanField()
    default_cost = serializers.DecimalField(max_digits=10, decimal_places=2)
    options = ShippingOptionSerializer(many=True)


class TrackingStatusSerializer(serializers.Serializer):
    carrier = serializers.ChoiceField(choices=Carrier.choices)
    detected_carrier = serializers.ChoiceField(choices=Carrier.choices)
    tracking_number = serializers.CharField()
    status = serializers.ChoiceField(choices=TrackingState.choices)
    delivered_at = serializers.DateTimeField(allow_null=True)
    last_update = serializers.DateTimeField(allow_null=True)
    location = serializers.CharField(allow_blank=True)
    details = serializers.CharField(allow_blank=True)
