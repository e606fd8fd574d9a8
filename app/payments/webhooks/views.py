"""
Webhook endpoint views for Stripe.

Two endpoints, each with its own signing secret:
- stripe_webhook: payment events (STRIPE_WEBHOOK_SECRET)
- stripe_connect_webhook: connected-account events (STRIPE_CONNECT_WEBHOOK_SECRET)

Both:
1. Verify the signature
2. Store the event idempotently (WebhookEvent.stripe_event_id is unique)
3. Queue it for processing
4. Answer {"received": true}

Usage:
    # In urls.py
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    path("webhooks/stripe-connect/", stripe_connect_webhook, name="stripe_connect_webhook"),
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.adapters import StripeAdapter
from payments.exceptions import StripeInvalidRequestError
from payments.models import WebhookEvent
from payments.state_machines import WebhookSource

logger = logging.getLogger(__name__)


def _error(message: str, status: int) -> JsonResponse:
    return JsonResponse({"error": message}, status=status)


def _receive(request: HttpRequest, secret: str, source: str) -> JsonResponse:
    signature = request.headers.get("Stripe-Signature", "")
    if not signature:
        logger.warning(
            "Webhook received without Stripe-Signature header",
            extra={"source": source},
        )
        return _error("Missing signature", 400)

    try:
        event_data = StripeAdapter.verify_webhook_signature(request.body, signature, secret)
    except StripeInvalidRequestError as e:
        logger.warning(
            "Webhook signature verification failed",
            extra={"source": source, "error": e.message},
        )
        return _error("Invalid signature", 400)

    stripe_event_id = event_data.get("id")
    event_type = event_data.get("type")
    if not stripe_event_id or not event_type:
        logger.warning("Webhook missing required fields", extra={"source": source})
        return _error("Invalid event", 400)

    webhook_event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id=stripe_event_id,
        defaults={
            "event_type": event_type,
            "source": source,
            "stripe_account_id": event_data.get("account") or "",
            "payload": event_data,
        },
    )

    logger.info(
        f"Received Stripe webhook: {event_type}",
        extra={
            "stripe_event_id": stripe_event_id,
            "source": source,
            "created": created,
        },
    )

    if not created and webhook_event.is_processed:
        return JsonResponse({"received": True})

    try:
        from payments.tasks import process_webhook_event

        process_webhook_event.delay(str(webhook_event.id))
    except Exception:
        # Stored already; the retry task picks it up once the broker is back
        logger.error(
            "Failed to queue webhook",
            extra={"stripe_event_id": stripe_event_id},
            exc_info=True,
        )

    return JsonResponse({"received": True})


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> JsonResponse:
    """Payment events: payment_intent.* and charge.refunded."""
    secret = settings.STRIPE_WEBHOOK_SECRET
    if not secret:
        logger.error("STRIPE_WEBHOOK_SECRET is not configured")
        return _error("Webhook secret not configured", 400)
    return _receive(request, secret, WebhookSource.PAYMENTS)


@csrf_exempt
@require_POST
def stripe_connect_webhook(request: HttpRequest) -> JsonResponse:
    """Connected-account events, including thin events."""
    secret = settings.STRIPE_CONNECT_WEBHOOK_SECRET
    if not secret:
        logger.error("STRIPE_CONNECT_WEBHOOK_SECRET is not configured")
        return _error("Webhook secret not configured", 500)
    return _receive(request, secret, WebhookSource.CONNECT)
