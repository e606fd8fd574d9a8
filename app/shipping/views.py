"""
Views for the shipping API.

Endpoints:
    GET /api/v1/shipping/tracking/{tracking_number}/ - Carrier tracking status
    GET /api/v1/shipping/tax/ - Sales tax estimate for a ZIP code
    GET /api/v1/shipping/rates/ - Shipping options for a device
"""

from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiResponse

from core.money import round_money
from shipping.rates import (
    calculate_shipping_options,
    get_default_shipping_cost,
    get_weight_class,
    qualifies_for_free_shipping,
)
from shipping.serializers import (
    RatesQuerySerializer,
    ShippingRatesSerializer,
    TaxQuerySerializer,
    TaxQuoteSerializer,
    TrackingStatusSerializer,
)
from shipping.tax import calculate_tax
from shipping.tracking import CarrierTrackingError, TrackingService, detect_carrier

logger = logging.getLogger(__name__)


class TrackingStatusView(APIView):
    """
    Look up a shipment with its carrier.

    GET /api/v1/shipping/tracking/{tracking_number}/?carrier=ups
    """

    permission_classes = [IsAuthenticated]
    tracking_service_class = TrackingService

    @extend_schema(
        operation_id="get_tracking_status",
        summary="Get tracking status",
        parameters=[
            OpenApiParameter(
                name="carrier",
                type=str,
                location=OpenApiParameter.QUERY,
                description="ups, fedex or usps; detected from the number when omitted",
                required=False,
            ),
        ],
        responses={
            200: TrackingStatusSerializer,
            400: OpenApiResponse(description="Invalid tracking number or carrier"),
            429: OpenApiResponse(description="Carrier rate limit reached"),
            502: OpenApiResponse(description="Carrier lookup failed"),
        },
        tags=["Shipping"],
    )
    def get(self, request, tracking_number):
        carrier = request.query_params.get("carrier") or None
        detected = detect_carrier(tracking_number)

        try:
            tracking = self.tracking_service_class().get_status(tracking_number, carrier)
        except CarrierTrackingError as e:
            logger.warning(
                "Tracking lookup failed",
                extra={"tracking_number": tracking_number, "error_code": e.error_code},
            )
            return Response(
                {
                    "error": "Failed to get tracking status",
                    "error_code": e.error_code,
                    "details": {"reason": e.message, "detected_carrier": detected},
                },
                status=status.HTTP_502_BAD_GATEWAY,
            )

        data = {**tracking.to_dict(), "detected_carrier": detected}
        return Response(TrackingStatusSerializer(data).data)


class TaxQuoteView(APIView):
    """
    Estimate sales tax for a destination ZIP code.

    GET /api/v1/shipping/tax/?zip_code=94105&amount=200.00
    """

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="get_tax_quote",
        summary="Estimate sales tax",
        parameters=[TaxQuerySerializer],
        responses={
            200: TaxQuoteSerializer,
            400: OpenApiResponse(description="Missing or invalid ZIP code or amount"),
        },
        tags=["Shipping"],
    )
    def get(self, request):
        query = TaxQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        zip_code = query.validated_data["zip_code"]
        amount = query.validated_data.get("amount")

        # ValidationError for a malformed ZIP is rendered by the exception handler
        quote = calculate_tax(amount or 0, zip_code)

        data = {
            "zip_code": zip_code,
            "state": quote.state,
            "tax_rate": quote.tax_rate,
            "tax_rate_percent": quote.tax_rate * 100,
            "amount": amount,
            "tax_amount": quote.tax_amount if amount is not None else None,
            "total": round_money(amount + quote.tax_amount) if amount is not None else None,
        }
        if quote.state is None:
            data["message"] = "Could not determine state from ZIP code"

        return Response(TaxQuoteSerializer(data).data)


class ShippingRatesView(APIView):
    """
    Shipping options for a device at a given insured value.

    GET /api/v1/shipping/rates/?device_type=MACBOOK&price=1200.00
    """

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="get_shipping_rates",
        summary="Get shipping options",
        parameters=[RatesQuerySerializer],
        responses={200: ShippingRatesSerializer},
        tags=["Shipping"],
    )
    def get(self, request):
        query = RatesQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        device_type = query.validated_data["device_type"]
        price = query.validated_data["price"]

        free_shipping = qualifies_for_free_shipping(price)
        weight_class, _ = get_weight_class(device_type)
        options = calculate_shipping_options(device_type, price)

        data = {
            "device_type": device_type,
            "weight_class": weight_class,
            "free_shipping": free_shipping,
            "default_cost": 0 if free_shipping else get_default_shipping_cost(device_type, price),
            "options": list(options.values()),
        }
        return Response(ShippingRatesSerializer(data).data)
