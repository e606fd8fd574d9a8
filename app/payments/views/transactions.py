"""
Transaction API: checkout, history and lifecycle actions.

Every action delegates to a service and maps its ServiceResult to a
response; business rules and authorization beyond "logged in" live in
the services.
"""

from __future__ import annotations

from django.db.models import Q
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle

from drf_spectacular.utils import (
    extend_schema,
    extend_schema_view,
    OpenApiResponse,
)

from payments.filters import TransactionFilter
from payments.models import Transaction
from payments.serializers import (
    CheckoutRequestSerializer,
    CheckoutResponseSerializer,
    DisputeRequestSerializer,
    ResolveDisputeRequestSerializer,
    ResolveDisputeResponseSerializer,
    ShipRequestSerializer,
    TransactionSerializer,
)
from payments.services import (
    CheckoutService,
    DisputeResolutionService,
    ShipmentService,
)

UUID_PATTERN = "[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"


class IsTransactionPartyOrAdmin(permissions.BasePermission):
    message = "You do not have access to this transaction"

    def has_object_permission(self, request, view, obj):
        return obj.is_party(request.user) or request.user.is_platform_admin


def _failure_response(result) -> Response:
    return Response(result.to_response(), status=result.http_status)


@extend_schema_view(
    list=extend_schema(
        operation_id="list_transactions",
        summary="List my transactions",
        tags=["Transactions"],
    ),
    retrieve=extend_schema(
        operation_id="get_transaction",
        summary="Get transaction",
        responses={
            200: TransactionSerializer,
            403: OpenApiResponse(description="Not a party to the transaction"),
            404: OpenApiResponse(description="Transaction not found"),
        },
        tags=["Transactions"],
    ),
)
class TransactionViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Escrowed purchases and sales.

    Buyers and sellers see their own transactions; admins can open any
    transaction directly.
    """

    permission_classes = [permissions.IsAuthenticated, IsTransactionPartyOrAdmin]
    serializer_class = TransactionSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_class = TransactionFilter
    lookup_value_regex = UUID_PATTERN

    def get_queryset(self):
        queryset = Transaction.objects.select_related("listing", "buyer", "seller")
        if self.action != "list":
            return queryset

        user = self.request.user
        return queryset.filter(Q(buyer=user) | Q(seller=user))

    def get_throttles(self):
        if self.action == "checkout":
            self.throttle_scope = "checkout"
            return [*super().get_throttles(), ScopedRateThrottle()]
        return super().get_throttles()

    @extend_schema(
        operation_id="create_checkout",
        summary="Start checkout",
        request=CheckoutRequestSerializer,
        responses={
            201: CheckoutResponseSerializer,
            400: OpenApiResponse(description="Listing unavailable, self purchase or bad address"),
            403: OpenApiResponse(description="Buyer is banned"),
            404: OpenApiResponse(description="Listing not found"),
            409: OpenApiResponse(description="Price changed since it was viewed"),
            429: OpenApiResponse(description="Too many checkout attempts"),
            502: OpenApiResponse(description="Payment processor error"),
        },
        tags=["Transactions"],
    )
    @action(detail=False, methods=["post"])
    def checkout(self, request):
        serializer = CheckoutRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = CheckoutService.create_checkout(
            buyer=request.user,
            listing_id=data["listing_id"],
            shipping_address=data["shipping_address"],
            expected_price=data["expected_price"],
        )
        if not result.success:
            return _failure_response(result)

        checkout = result.data
        response = CheckoutResponseSerializer(
            {
                "transaction_id": checkout.transaction.id,
                "client_secret": checkout.client_secret,
                "breakdown": checkout.breakdown,
            }
        )
        return Response(response.data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="ship_transaction",
        summary="Mark as shipped",
        request=ShipRequestSerializer,
        responses={
            200: TransactionSerializer,
            400: OpenApiResponse(description="Wrong status or unknown carrier"),
            403: OpenApiResponse(description="Only the seller can ship"),
            409: OpenApiResponse(description="Status changed concurrently"),
        },
        tags=["Transactions"],
    )
    @action(detail=True, methods=["post"])
    def ship(self, request, pk=None):
        serializer = ShipRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ShipmentService.mark_shipped(
            transaction_id=pk,
            seller=request.user,
            tracking_number=serializer.validated_data["tracking_number"],
            carrier=serializer.validated_data.get("carrier") or None,
        )
        if not result.success:
            return _failure_response(result)
        return Response(TransactionSerializer(result.data).data)

    @extend_schema(
        operation_id="dispute_transaction",
        summary="Open a dispute",
        request=DisputeRequestSerializer,
        responses={
            200: TransactionSerializer,
            400: OpenApiResponse(description="Not disputable or missing reason"),
            403: OpenApiResponse(description="Not a party to the transaction"),
            409: OpenApiResponse(description="Status changed concurrently"),
        },
        tags=["Transactions"],
    )
    @action(detail=True, methods=["post"])
    def dispute(self, request, pk=None):
        serializer = DisputeRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ShipmentService.open_dispute(
            transaction_id=pk,
            user=request.user,
            reason=serializer.validated_data["reason"],
        )
        if not result.success:
            return _failure_response(result)
        return Response(TransactionSerializer(result.data).data)

    @extend_schema(
        operation_id="resolve_dispute",
        summary="Resolve a dispute (admin)",
        request=ResolveDisputeRequestSerializer,
        responses={
            200: ResolveDisputeResponseSerializer,
            400: OpenApiResponse(description="Invalid resolution or refund amount"),
            403: OpenApiResponse(description="Only administrators can resolve disputes"),
            404: OpenApiResponse(description="Transaction not found"),
            409: OpenApiResponse(description="Transaction changed since it was reviewed"),
            502: OpenApiResponse(description="Refund failed at the processor"),
        },
        tags=["Transactions"],
    )
    @action(detail=True, methods=["post"])
    def resolve(self, request, pk=None):
        serializer = ResolveDisputeRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = DisputeResolutionService.resolve(
            transaction_id=pk,
            admin=request.user,
            resolution=data["resolution"],
            refund_amount=data.get("refund_amount"),
            notes=data.get("notes", ""),
            expected_version=data.get("expected_version"),
        )
        if not result.success:
            return _failure_response(result)

        resolved = result.data
        response = ResolveDisputeResponseSerializer(
            {
                "success": True,
                "resolution": resolved.resolution,
                "dispute_status": resolved.dispute_status,
                "refunded_amount": resolved.refunded_amount,
                "message": resolved.message,
            }
        )
        return Response(response.data)
