"""
Seller Stripe Connect onboarding endpoint.
"""

from __future__ import annotations

from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import extend_schema, OpenApiResponse

from payments.serializers import (
    ConnectOnboardingRequestSerializer,
    ConnectStatusSerializer,
    OnboardingLinkSerializer,
)
from payments.services import ConnectOnboardingService


class ConnectAccountView(APIView):
    """
    GET  /api/v1/payments/connect/ - live account status (refreshes the cache)
    POST /api/v1/payments/connect/ - create the account if needed, return an onboarding link
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_connect_status",
        summary="Get payout account status",
        responses={
            200: ConnectStatusSerializer,
            502: OpenApiResponse(description="Stripe unavailable"),
        },
        tags=["Payments"],
    )
    def get(self, request):
        result = ConnectOnboardingService.get_status(request.user)
        if not result.success:
            return Response(result.to_response(), status=result.http_status)
        return Response(ConnectStatusSerializer(result.data.to_dict()).data)

    @extend_schema(
        operation_id="start_connect_onboarding",
        summary="Start payout account onboarding",
        request=ConnectOnboardingRequestSerializer,
        responses={
            200: OnboardingLinkSerializer,
            502: OpenApiResponse(description="Stripe unavailable"),
        },
        tags=["Payments"],
    )
    def post(self, request):
        serializer = ConnectOnboardingRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ConnectOnboardingService.start_onboarding(
            request.user,
            return_url=serializer.validated_data.get("return_url"),
            refresh_url=serializer.validated_data.get("refresh_url"),
        )
        if not result.success:
            return Response(result.to_response(), status=result.http_status)
        return Response(OnboardingLinkSerializer(result.data).data)
