"""
Cron trigger endpoints for the scheduled escrow jobs.

celery-beat runs the same jobs on its own schedule; these endpoints let
an external scheduler trigger a run. Both accept GET and POST and require
``Authorization: Bearer <CRON_SECRET>``.
"""

from __future__ import annotations

import hmac
import logging

from django.conf import settings
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import extend_schema, OpenApiResponse

from payments.serializers import CronJobResponseSerializer
from payments.workers import check_deliveries, release_funds

logger = logging.getLogger(__name__)


class CronJobView(APIView):
    """Base for endpoints that run one job in-process and report its counters."""

    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_classes = []

    job_name = ""

    def run_job(self) -> dict:
        raise NotImplementedError

    def summarize(self, results: dict) -> str:
        raise NotImplementedError

    def _authorize(self, request) -> Response | None:
        secret = settings.CRON_SECRET
        if not secret:
            logger.error("CRON_SECRET not configured", extra={"job": self.job_name})
            return Response({"error": "Server misconfiguration"}, status=500)

        header = request.headers.get("Authorization", "")
        if not hmac.compare_digest(header.encode(), f"Bearer {secret}".encode()):
            logger.warning(
                "Cron request rejected - invalid or missing authorization",
                extra={"job": self.job_name},
            )
            return Response({"error": "Unauthorized"}, status=401)
        return None

    def _run(self, request):
        denied = self._authorize(request)
        if denied is not None:
            return denied

        try:
            results = self.run_job()
        except Exception:
            logger.exception("Cron job failed", extra={"job": self.job_name})
            return Response({"error": "Cron job failed"}, status=500)

        body = {"success": True, "message": self.summarize(results), "results": results}
        return Response(CronJobResponseSerializer(body).data)

    def get(self, request):
        return self._run(request)

    def post(self, request):
        return self._run(request)


@extend_schema(
    summary="Run delivery reconciliation",
    request=None,
    responses={
        200: CronJobResponseSerializer,
        401: OpenApiResponse(description="Missing or wrong cron secret"),
        500: OpenApiResponse(description="CRON_SECRET not configured or job failed"),
    },
    tags=["Cron"],
)
class CheckDeliveriesCronView(CronJobView):
    job_name = "check_deliveries"

    def run_job(self) -> dict:
        return check_deliveries()

    def summarize(self, results: dict) -> str:
        return f"Checked {results['checked']} packages, {results['delivered']} delivered"


@extend_schema(
    summary="Run escrow release",
    request=None,
    responses={
        200: CronJobResponseSerializer,
        401: OpenApiResponse(description="Missing or wrong cron secret"),
        500: OpenApiResponse(description="CRON_SECRET not configured or job failed"),
    },
    tags=["Cron"],
)
class ReleaseFundsCronView(CronJobView):
    job_name = "release_funds"

    def run_job(self) -> dict:
        return release_funds()

    def summarize(self, results: dict) -> str:
        return f"Processed {results['processed']} transactions"
