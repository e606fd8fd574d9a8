"""
Orphaned authorization audit.

Checkout creates the PaymentIntent before it inserts the Transaction. If
the insert fails the buyer holds an authorization with no local record.
This job lists recent checkout PaymentIntents at Stripe and reports the
ones with no Transaction. Each candidate is re-read before it is reported,
so an authorization released in the meantime is dropped. The job never
cancels or retries an intent; an operator decides what to do with each one.

Celery Beat Schedule:
    'payments-audit-orphan-authorizations': every
    AUTHORIZATION_AUDIT_INTERVAL_MINUTES, see the beat schedule migration
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from payments.adapters import PaymentIntentResult, StripeAdapter
from payments.exceptions import LockAcquisitionError, StripeError
from payments.locks import DistributedLock
from payments.models import Transaction
from payments.services.checkout import CHECKOUT_SOURCE

logger = logging.getLogger(__name__)

MAX_INTENTS = 500

AUDIT_LOCK_KEY = "payments:authorization_audit"
AUDIT_LOCK_TTL = 600

# Statuses that never leave money authorized
IGNORED_STATUSES = frozenset({"canceled", "requires_payment_method"})


@shared_task
def audit_orphan_authorizations() -> dict:
    """
    Returns:
        Dict with:
        - status: "completed", "skipped" (another audit running) or "failed"
        - scanned: Checkout PaymentIntents examined
        - orphans: List of {payment_intent_id, status, amount_cents, listing_id, buyer_id}
    """
    now = timezone.now()
    created_after = now - timedelta(hours=settings.AUTHORIZATION_AUDIT_LOOKBACK_HOURS)
    created_before = now - timedelta(minutes=settings.AUTHORIZATION_AUDIT_MIN_AGE_MINUTES)

    try:
        with DistributedLock(AUDIT_LOCK_KEY, ttl=AUDIT_LOCK_TTL, blocking=False):
            intents = StripeAdapter.list_recent_payment_intents(
                created_after=created_after, limit=MAX_INTENTS
            )
            candidates = [
                intent
                for intent in intents
                if intent.metadata.get("checkout_source") == CHECKOUT_SOURCE
                and intent.status not in IGNORED_STATUSES
                and (intent.created or 0) <= int(created_before.timestamp())
            ]
            known = set(
                Transaction.objects.filter(
                    stripe_payment_intent_id__in=[intent.id for intent in candidates]
                ).values_list("stripe_payment_intent_id", flat=True)
            )
    except LockAcquisitionError:
        logger.info("Authorization audit already running, skipping")
        return {"status": "skipped", "scanned": 0, "orphans": []}
    except StripeError as e:
        logger.error(
            "Authorization audit could not list payment intents",
            extra={"error_code": e.error_code},
        )
        return {"status": "failed", "scanned": 0, "orphans": [], "error": e.message}

    orphans = []
    for intent in candidates:
        if intent.id in known:
            continue
        intent = _current_state(intent)
        if intent.status in IGNORED_STATUSES:
            logger.info(
                "Authorization released since listing, not reported",
                extra={"payment_intent_id": intent.id, "status": intent.status},
            )
            continue
        orphan = {
            "payment_intent_id": intent.id,
            "status": intent.status,
            "amount_cents": intent.amount_cents,
            "listing_id": intent.metadata.get("listing_id"),
            "buyer_id": intent.metadata.get("buyer_id"),
        }
        orphans.append(orphan)
        logger.critical("Orphaned payment authorization found", extra=orphan)

    logger.info(
        "Authorization audit complete",
        extra={"scanned": len(candidates), "orphan_count": len(orphans)},
    )
    return {"status": "completed", "scanned": len(candidates), "orphans": orphans}


def _current_state(intent: PaymentIntentResult) -> PaymentIntentResult:
    """Re-read a candidate so an authorization canceled since the listing is not reported."""
    try:
        return StripeAdapter.retrieve_payment_intent(intent.id)
    except StripeError as e:
        logger.warning(
            "Could not re-check payment intent, reporting listed status",
            extra={"payment_intent_id": intent.id, "error_code": e.error_code},
        )
        return intent
