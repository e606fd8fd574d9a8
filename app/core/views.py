"""
Infrastructure views: health check and the DRF exception handler.
"""

import logging

from django.core.cache import cache
from django.db import connection
from django.http import JsonResponse
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import BaseApplicationError

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Health check endpoint for load balancers and container probes.

    Returns:
        200 with {"status": "healthy", "database": "connected", "cache": ...}
        503 when the database is unreachable. Cache outages only degrade
        the report, since the cache backend ignores connection errors.
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except Exception:
        logger.exception("Health check database probe failed")
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    try:
        cache.set("health_check", "ok", timeout=1)
        if cache.get("health_check") == "ok":
            health_status["cache"] = "connected"
        else:
            health_status["cache"] = "disconnected"
    except Exception:
        health_status["cache"] = "disconnected"

    return JsonResponse(health_status, status=200 if is_healthy else 503)


def api_exception_handler(exc, context):
    """
    DRF exception handler that also renders application errors.

    BaseApplicationError subclasses raised from a view become
    ``exc.to_dict()`` with the subclass's HTTP status; everything else
    falls through to DRF's default handling.
    """
    if isinstance(exc, BaseApplicationError):
        return Response(exc.to_dict(), status=exc.status_code)
    return exception_handler(exc, context)
