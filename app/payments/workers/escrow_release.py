"""
Escrow release: complete DELIVERED transactions whose hold has expired.

Destination charges already routed the seller's share at payment time,
so releasing is a bookkeeping step: the transaction completes, funds stop
being held, the listing is marked SOLD and the seller is told.

Tasks:
- release_funds: Periodic scan (celery-beat) and cron endpoint target
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.db import transaction as db_transaction
from django.utils import timezone

from listings.models import Listing, ListingStatus
from notifications.models import NotificationKind
from notifications.services import NotificationService
from payments.exceptions import InvalidStateTransitionError, LockAcquisitionError
from payments.locks import lock_for_transition, transaction_lock
from payments.models import ConnectedAccount, Transaction
from payments.state_machines import TransactionStatus

logger = logging.getLogger(__name__)

BATCH_SIZE = 200

RELEASE_LOCK_TTL = 60


class ReleaseSkipped(Exception):
    """Another worker or a concurrent action got to the transaction first."""


def releasable_transactions():
    """DELIVERED, still held, hold expired, never disputed."""
    return (
        Transaction.objects.filter(
            status=TransactionStatus.DELIVERED,
            funds_held=True,
            escrow_release_at__lte=timezone.now(),
            dispute_status__isnull=True,
        )
        .select_related("seller", "listing")
        .order_by("escrow_release_at")[:BATCH_SIZE]
    )


@shared_task
def release_funds() -> dict:
    """
    Release every transaction whose escrow hold has passed.

    Returns:
        Dict with processed, succeeded, failed, skipped and errors
        (a list of "transaction_id: message" strings)
    """
    results = {
        "processed": 0,
        "succeeded": 0,
        "failed": 0,
        "skipped": 0,
        "errors": [],
    }

    transactions = list(releasable_transactions())
    logger.info(
        "Starting escrow release",
        extra={"ready_count": len(transactions)},
    )

    for txn in transactions:
        results["processed"] += 1
        try:
            _release_one(txn)
        except ReleaseSkipped as e:
            logger.info(
                "Escrow release skipped",
                extra={"transaction_id": str(txn.id), "reason": str(e)},
            )
            results["skipped"] += 1
            continue
        except Exception as e:
            logger.error(
                f"Failed to release funds: {e}",
                extra={"transaction_id": str(txn.id)},
                exc_info=True,
            )
            results["failed"] += 1
            results["errors"].append(f"{txn.id}: {e}")
            continue

        results["succeeded"] += 1

    logger.info(
        f"Escrow release complete: processed {results['processed']} transactions",
        extra={k: v for k, v in results.items() if k != "errors"},
    )
    return results


def _release_one(txn: Transaction) -> None:
    seller = txn.seller
    if not seller.is_platform_admin:
        account = ConnectedAccount.objects.filter(user_id=seller.pk).first()
        if account is None or not account.stripe_account_id:
            raise ValueError(f"Seller {seller.pk} has no Stripe account")
    if not txn.stripe_payment_intent_id:
        raise ValueError(f"Transaction {txn.id} has no payment intent")

    try:
        with transaction_lock(txn.id, ttl=RELEASE_LOCK_TTL):
            with db_transaction.atomic():
                locked = lock_for_transition(
                    Transaction, txn.pk, [TransactionStatus.DELIVERED]
                )
                if not locked.funds_held or locked.dispute_status is not None:
                    raise ReleaseSkipped("dispute opened or funds already released")
                locked.release_escrow()
                locked.save()
                Listing.objects.filter(pk=locked.listing_id).update(
                    status=ListingStatus.SOLD
                )
    except LockAcquisitionError as e:
        raise ReleaseSkipped("locked by another worker") from e
    except InvalidStateTransitionError as e:
        raise ReleaseSkipped("status changed") from e

    logger.info(
        "Funds released",
        extra={
            "transaction_id": str(txn.id),
            "seller_payout": str(locked.seller_payout),
        },
    )
    NotificationService.notify(
        user_id=txn.seller_id,
        kind=NotificationKind.FUNDS_RELEASED,
        title="Funds Released!",
        message=f'${locked.seller_payout:.2f} has been released for "{txn.listing.title}"',
        link=txn.seller_link,
    )
