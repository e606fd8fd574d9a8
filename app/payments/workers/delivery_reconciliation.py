"""
Delivery reconciliation: poll carriers for SHIPPED transactions.

When a carrier reports delivery the transaction moves to DELIVERED and
the escrow hold starts from the carrier's delivery time, not from when
this job happened to notice it.

Tasks:
- check_deliveries: Periodic scan (celery-beat) and cron endpoint target

Usage:
    from payments.workers import check_deliveries

    results = check_deliveries()  # in-process, returns the counters
    check_deliveries.delay()      # queued
"""

from __future__ import annotations

import logging
import time

from celery import shared_task
from django.conf import settings
from django.db import transaction as db_transaction

from core.exceptions import BaseApplicationError
from notifications.models import NotificationKind
from notifications.services import NotificationService
from payments.exceptions import InvalidStateTransitionError, LockAcquisitionError
from payments.locks import lock_for_transition, transaction_lock
from payments.models import Transaction
from payments.state_machines import TransactionStatus
from shipping.tracking import TrackingService, TrackingStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

BATCH_SIZE = 200

DELIVERY_LOCK_TTL = 60


def _shipped_transactions():
    return (
        Transaction.objects.filter(status=TransactionStatus.SHIPPED)
        .exclude(tracking_number="")
        .select_related("listing")
        .order_by("shipped_at")[:BATCH_SIZE]
    )


@shared_task
def check_deliveries() -> dict:
    """
    Check tracking for every shipped transaction.

    Per-item failures (carrier outage, missing credentials, rate limit)
    are counted and logged; the item stays SHIPPED and is retried on the
    next run.

    Returns:
        Dict with:
        - checked: Transactions looked at
        - delivered: Moved to DELIVERED this run
        - in_transit: Not delivered yet
        - errors: Lookups or updates that failed
        - skipped: Held by another worker or changed status meanwhile
        - details: Per-transaction tracking summary
    """
    tracking = TrackingService()
    delay = settings.CARRIER_POLL_DELAY_SECONDS
    results = {
        "checked": 0,
        "delivered": 0,
        "in_transit": 0,
        "errors": 0,
        "skipped": 0,
        "details": [],
    }

    transactions = list(_shipped_transactions())
    logger.info(
        "Starting delivery check",
        extra={"shipped_count": len(transactions)},
    )

    for index, txn in enumerate(transactions):
        if index and delay:
            # Stay under carrier rate limits
            time.sleep(delay)

        results["checked"] += 1
        try:
            status = tracking.get_status(txn.tracking_number, txn.carrier or None)
        except BaseApplicationError as e:
            logger.warning(
                "Tracking lookup failed",
                extra={
                    "transaction_id": str(txn.id),
                    "tracking_number": txn.tracking_number,
                    "error_code": e.error_code,
                    "error": e.message,
                },
            )
            results["errors"] += 1
            continue
        except Exception:
            logger.exception(
                "Unexpected tracking failure",
                extra={"transaction_id": str(txn.id)},
            )
            results["errors"] += 1
            continue

        results["details"].append(
            {
                "id": str(txn.id),
                "tracking": txn.tracking_number,
                "carrier": status.carrier,
                "status": status.status,
                "delivered_at": status.delivered_at.isoformat() if status.delivered_at else None,
            }
        )

        if not (status.is_delivered and status.delivered_at):
            results["in_transit"] += 1
            continue

        try:
            outcome = _record_delivery(txn, status)
        except Exception:
            logger.exception(
                "Failed to record delivery",
                extra={"transaction_id": str(txn.id)},
            )
            results["errors"] += 1
            continue

        if outcome == "delivered":
            results["delivered"] += 1
        else:
            results["skipped"] += 1

    logger.info(
        f"Delivery check complete: checked {results['checked']}, "
        f"delivered {results['delivered']}",
        extra={k: v for k, v in results.items() if k != "details"},
    )
    return results


def _record_delivery(txn: Transaction, status: TrackingStatus) -> str:
    """
    Move one transaction to DELIVERED under its lock.

    Returns:
        "delivered", or "skipped" when another worker holds the lock or the
        transaction left SHIPPED in the meantime (e.g. a dispute was opened)
    """
    try:
        with transaction_lock(txn.id, ttl=DELIVERY_LOCK_TTL):
            with db_transaction.atomic():
                locked = lock_for_transition(
                    Transaction, txn.pk, [TransactionStatus.SHIPPED]
                )
                locked.mark_delivered(status.delivered_at)
                locked.save()
    except LockAcquisitionError:
        logger.info(
            "Transaction locked by another worker, skipping",
            extra={"transaction_id": str(txn.id)},
        )
        return "skipped"
    except InvalidStateTransitionError:
        logger.info(
            "Transaction no longer shipped, skipping",
            extra={"transaction_id": str(txn.id)},
        )
        return "skipped"

    logger.info(
        "Transaction delivered",
        extra={
            "transaction_id": str(txn.id),
            "delivered_at": status.delivered_at.isoformat(),
            "escrow_release_at": locked.escrow_release_at.isoformat(),
        },
    )

    hours = settings.ESCROW_RELEASE_HOURS
    title = txn.listing.title
    NotificationService.notify(
        user_id=txn.buyer_id,
        kind=NotificationKind.DELIVERY_CONFIRMED,
        title="Package Delivered!",
        message=(
            f'Your "{title}" has been delivered. '
            f"You have {hours} hours to report any issues."
        ),
        link=txn.buyer_link,
    )
    NotificationService.notify(
        user_id=txn.seller_id,
        kind=NotificationKind.DELIVERY_CONFIRMED,
        title="Delivery Confirmed",
        message=f'"{title}" was delivered. Funds will be released in {hours} hours.',
        link=txn.seller_link,
    )
    return "delivered"
