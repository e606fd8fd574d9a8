"""
Webhook event handlers for Stripe events.

This module provides a handler registry and the handlers for payment
and Connect account events.

Every transaction handler goes through ``lock_for_transition`` with the
status the event expects to find. A duplicate or out-of-order delivery
finds the row already moved and becomes a logged no-op, so Stripe's
at-least-once delivery never double-applies an event.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("custom.event")
    def handle_custom_event(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from typing import Callable

from django.db import transaction

from core.services import ServiceResult
from listings.models import Listing, ListingStatus
from notifications.models import NotificationKind
from notifications.services import NotificationService
from payments.exceptions import InvalidStateTransitionError
from payments.locks import lock_for_transition
from payments.models import Transaction, WebhookEvent
from payments.services.checkout import CHECKOUT_SOURCE
from payments.services.connect import AccountStatusSynchronizer
from payments.state_machines import TransactionStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Decorators can be stacked to route several event types to one handler.

    Args:
        event_type: The Stripe event type (e.g., "payment_intent.succeeded")
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[event_type] = func
        logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to the appropriate handler.

    Unknown event types are acknowledged with success so Stripe stops
    redelivering them.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"stripe_event_id": webhook_event.stripe_event_id},
    )

    return handler(webhook_event)


# =============================================================================
# Helpers
# =============================================================================


def _find_transaction(webhook_event: WebhookEvent, payment_intent_id: str | None):
    """
    Returns:
        (transaction or None, failure result or None)
    """
    if not payment_intent_id:
        logger.error(
            f"{webhook_event.event_type}: Could not extract payment_intent_id",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return None, ServiceResult.failure(
            "Could not extract payment_intent_id from webhook",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )

    txn = (
        Transaction.objects.select_related("buyer", "seller", "listing")
        .filter(stripe_payment_intent_id=payment_intent_id)
        .first()
    )
    if txn is not None:
        return txn, None

    metadata = webhook_event.get_object().get("metadata") or {}
    if metadata.get("checkout_source") != CHECKOUT_SOURCE:
        logger.info(
            "PaymentIntent not created by checkout, ignoring",
            extra={
                "payment_intent_id": payment_intent_id,
                "stripe_event_id": webhook_event.stripe_event_id,
            },
        )
        return None, ServiceResult.success(None)

    # Checkout intent with no row: either the insert has not committed yet
    # or it failed. Failing lets the retry task try again; the authorization
    # audit reports it if it never appears.
    logger.warning(
        "Transaction not found for payment_intent_id",
        extra={
            "payment_intent_id": payment_intent_id,
            "stripe_event_id": webhook_event.stripe_event_id,
        },
    )
    return None, ServiceResult.failure(
        f"Transaction not found for intent: {payment_intent_id}",
        error_code="TRANSACTION_NOT_FOUND",
    )


def _charge_id(value) -> str:
    if isinstance(value, dict):
        return value.get("id") or ""
    return value or ""


# =============================================================================
# Payment Intent Handlers
# =============================================================================


@register_handler("payment_intent.succeeded")
def handle_payment_intent_succeeded(webhook_event: WebhookEvent) -> ServiceResult:
    """
    PENDING -> PAYMENT_RECEIVED.

    Reserves the listing and tells both parties the sale went through.
    """
    data_object = webhook_event.get_object()
    payment_intent_id = webhook_event.get_object_id()

    txn, failure = _find_transaction(webhook_event, payment_intent_id)
    if failure is not None:
        return failure

    logger.info(
        "Processing payment_intent.succeeded",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "payment_intent_id": payment_intent_id,
            "transaction_id": str(txn.id),
        },
    )

    try:
        with transaction.atomic():
            locked = lock_for_transition(Transaction, txn.pk, [TransactionStatus.PENDING])
            locked.mark_payment_received(
                stripe_status=data_object.get("status") or "succeeded",
                charge_id=_charge_id(data_object.get("latest_charge")),
            )
            locked.save()
            Listing.objects.filter(pk=locked.listing_id).update(status=ListingStatus.PENDING)
    except InvalidStateTransitionError:
        logger.info(
            "Transaction already past PENDING, ignoring duplicate event",
            extra={
                "transaction_id": str(txn.id),
                "current_status": txn.status,
                "stripe_event_id": webhook_event.stripe_event_id,
            },
        )
        return ServiceResult.success(txn)

    title = txn.listing.title
    NotificationService.notify(
        user_id=txn.seller_id,
        kind=NotificationKind.NEW_SALE,
        title="New Sale!",
        message=f'{txn.buyer.display_name} purchased "{title}" for ${locked.sale_price:.2f}',
        link=txn.seller_link,
    )
    NotificationService.notify(
        user_id=txn.buyer_id,
        kind=NotificationKind.PURCHASE_CONFIRMED,
        title="Purchase Confirmed",
        message=(
            f'Your purchase of "{title}" for ${locked.total_amount:.2f} is confirmed. '
            f"Waiting for {txn.seller.display_name} to ship."
        ),
        link=txn.buyer_link,
    )
    return ServiceResult.success(locked)


@register_handler("payment_intent.payment_failed")
@register_handler("payment_intent.canceled")
def handle_payment_intent_not_completed(webhook_event: WebhookEvent) -> ServiceResult:
    """
    PENDING -> CANCELLED. The listing stays available.
    """
    data_object = webhook_event.get_object()
    payment_intent_id = webhook_event.get_object_id()

    txn, failure = _find_transaction(webhook_event, payment_intent_id)
    if failure is not None:
        return failure

    last_error = data_object.get("last_payment_error") or {}
    logger.info(
        f"Processing {webhook_event.event_type}",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "payment_intent_id": payment_intent_id,
            "reason": last_error.get("message") or data_object.get("cancellation_reason"),
        },
    )

    try:
        with transaction.atomic():
            locked = lock_for_transition(Transaction, txn.pk, [TransactionStatus.PENDING])
            locked.cancel(stripe_status=data_object.get("status") or "canceled")
            locked.save()
    except InvalidStateTransitionError:
        logger.info(
            "Transaction no longer PENDING, ignoring",
            extra={"transaction_id": str(txn.id), "current_status": txn.status},
        )
        return ServiceResult.success(txn)

    return ServiceResult.success(locked)


# =============================================================================
# Charge Handlers
# =============================================================================


@register_handler("charge.refunded")
def handle_charge_refunded(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Record Stripe's refund status for audit.

    Refund amounts and transaction status are owned by dispute
    resolution, which issued the refund; this only mirrors what Stripe saw.
    """
    data_object = webhook_event.get_object()
    payment_intent_id = data_object.get("payment_intent")

    txn, failure = _find_transaction(webhook_event, payment_intent_id)
    if failure is not None:
        return failure

    stripe_status = "refunded" if data_object.get("refunded") else "partially_refunded"
    with transaction.atomic():
        locked = Transaction.objects.select_for_update().get(pk=txn.pk)
        locked.stripe_status = stripe_status
        locked.save(update_fields=["stripe_status", "updated_at"])

    logger.info(
        "Charge refund recorded",
        extra={
            "transaction_id": str(txn.id),
            "charge_id": data_object.get("id"),
            "amount_refunded": data_object.get("amount_refunded", 0),
            "stripe_status": stripe_status,
        },
    )
    return ServiceResult.success(locked)


# =============================================================================
# Connect Account Handlers
# =============================================================================


def _event_account_id(webhook_event: WebhookEvent) -> str | None:
    """
    Connected account an event concerns.

    Order: the event's ``account`` field, the account object itself, then
    a thin event's ``related_object``.
    """
    payload = webhook_event.payload or {}
    if payload.get("account"):
        return payload["account"]
    data_object = webhook_event.get_object()
    if data_object.get("object") == "account" and data_object.get("id"):
        return data_object["id"]
    related = payload.get("related_object") or {}
    return related.get("id")


@register_handler("account.updated")
@register_handler("v2.core.account.updated")
@register_handler("v2.core.account[requirements].updated")
@register_handler("v2.core.account[configuration.merchant].capability_status_updated")
@register_handler("v2.core.account[configuration.recipient].capability_status_updated")
def handle_account_updated(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Refresh the cached account from Stripe.

    The payload is only used to find the account. Full and thin events
    are handled the same way: fetch, then overwrite.
    """
    account_id = _event_account_id(webhook_event)
    if not account_id:
        logger.error(
            f"{webhook_event.event_type}: Could not extract account_id",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.failure(
            "Could not extract account_id from webhook",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )

    return AccountStatusSynchronizer.sync_account(account_id)


@register_handler("account.application.deauthorized")
def handle_account_deauthorized(webhook_event: WebhookEvent) -> ServiceResult:
    payload = webhook_event.payload or {}
    account_id = payload.get("account") or webhook_event.get_object_id()
    if not account_id:
        return ServiceResult.failure(
            "Could not extract account_id from webhook",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )
    return AccountStatusSynchronizer.disconnect(account_id)


@register_handler("account.application.authorized")
def handle_account_authorized(webhook_event: WebhookEvent) -> ServiceResult:
    logger.info(
        "Connected account authorized the platform",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "account_id": _event_account_id(webhook_event),
        },
    )
    return ServiceResult.success(None)
