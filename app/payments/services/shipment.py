"""
Party-initiated transaction actions: shipping and opening a dispute.

Both follow the same pattern: cheap validation without locks, then a
compare-and-swap in a short atomic block via ``lock_for_transition``,
then notifications after commit.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, PermissionDeniedError
from core.services import BaseService, ServiceResult
from notifications.models import NotificationKind
from notifications.services import NotificationService
from payments.exceptions import (
    InvalidStateTransitionError,
    PaymentValidationError,
    TransactionNotFoundError,
)
from payments.locks import lock_for_transition
from payments.models import Transaction
from payments.state_machines import TransactionStateMachine, TransactionStatus
from shipping.tracking import Carrier, detect_carrier
from shipping.tracking.detection import normalize_tracking_number

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)

SHIPPABLE_CARRIERS = frozenset({Carrier.UPS, Carrier.FEDEX, Carrier.USPS})

STATUS_CHANGED_MESSAGE = "Transaction status has changed. Please refresh and try again."


def _get_transaction(transaction_id) -> Transaction:
    txn = (
        Transaction.objects.select_related("buyer", "seller", "listing")
        .filter(pk=transaction_id)
        .first()
    )
    if txn is None:
        raise TransactionNotFoundError("Transaction not found")
    return txn


class ShipmentService(BaseService):
    """
    Methods:
        mark_shipped: Seller records carrier and tracking (PAYMENT_RECEIVED -> SHIPPED)
        open_dispute: Either party disputes (SHIPPED/DELIVERED -> DISPUTED)
    """

    @classmethod
    def mark_shipped(
        cls,
        transaction_id,
        seller: User,
        tracking_number: str,
        carrier: str | None = None,
    ) -> ServiceResult[Transaction]:
        try:
            txn = _get_transaction(transaction_id)
            if txn.seller_id != seller.id:
                raise PermissionDeniedError(
                    "Only seller can mark as shipped", error_code="NOT_SELLER"
                )
            if txn.status != TransactionStatus.PAYMENT_RECEIVED:
                raise PaymentValidationError(
                    "Invalid transaction status for shipping",
                    error_code="INVALID_TRANSACTION_STATUS",
                    details={"status": txn.status},
                )

            number = normalize_tracking_number(tracking_number)
            if not number:
                raise PaymentValidationError(
                    "Tracking number is required", error_code="TRACKING_NUMBER_REQUIRED"
                )
            resolved = cls._resolve_carrier(number, carrier)

            with cls.atomic():
                locked = lock_for_transition(
                    Transaction, txn.pk, [TransactionStatus.PAYMENT_RECEIVED]
                )
                locked.mark_shipped(tracking_number=number, carrier=resolved.upper())
                locked.save()
        except InvalidStateTransitionError:
            return ServiceResult.failure(
                STATUS_CHANGED_MESSAGE,
                error_code="STATUS_CHANGED",
                status_code=409,
            )
        except BaseApplicationError as e:
            return cls.fail_with(e)

        cls.get_logger().info(
            "Transaction shipped",
            extra={
                "transaction_id": str(locked.id),
                "carrier": locked.carrier,
                "tracking_number": locked.tracking_number,
            },
        )
        NotificationService.notify(
            user_id=txn.buyer_id,
            kind=NotificationKind.ITEM_SHIPPED,
            title="Your Item Has Shipped!",
            message=(
                f'{txn.seller.display_name} shipped "{txn.listing.title}" via '
                f"{locked.carrier}. Tracking: {locked.tracking_number}"
            ),
            link=txn.buyer_link,
        )
        return ServiceResult.success(locked)

    @staticmethod
    def _resolve_carrier(tracking_number: str, carrier: str | None) -> str:
        if carrier:
            value = carrier.strip().lower()
            if value not in SHIPPABLE_CARRIERS:
                raise PaymentValidationError(
                    "Unsupported carrier. Please specify ups, fedex, or usps",
                    error_code="UNSUPPORTED_CARRIER",
                    details={"carrier": carrier},
                )
            return value

        detected = detect_carrier(tracking_number)
        if detected == Carrier.UNKNOWN:
            raise PaymentValidationError(
                "Could not detect carrier. Please specify carrier (ups, fedex, or usps)",
                error_code="CARRIER_UNDETECTED",
            )
        return str(detected)

    @classmethod
    def open_dispute(
        cls,
        transaction_id,
        user: User,
        reason: str,
    ) -> ServiceResult[Transaction]:
        """
        Freeze the escrow clock and flag the transaction for admin review.

        Funds stay held; the escrow release job skips DISPUTED rows.
        """
        dispute_sources = TransactionStateMachine.sources_for(TransactionStatus.DISPUTED)

        try:
            txn = _get_transaction(transaction_id)
            if not txn.is_party(user):
                raise PermissionDeniedError(
                    "Only the buyer or seller can open a dispute",
                    error_code="NOT_A_PARTY",
                )
            if not txn.funds_held:
                raise PaymentValidationError(
                    "Cannot dispute after funds have been released",
                    error_code="FUNDS_RELEASED",
                )
            if txn.status not in dispute_sources:
                raise PaymentValidationError(
                    "This transaction cannot be disputed in its current status",
                    error_code="INVALID_TRANSACTION_STATUS",
                    details={"status": txn.status},
                )
            reason = (reason or "").strip()
            if not reason:
                raise PaymentValidationError(
                    "Dispute reason is required", error_code="DISPUTE_REASON_REQUIRED"
                )

            with cls.atomic():
                locked = lock_for_transition(Transaction, txn.pk, dispute_sources)
                if not locked.funds_held:
                    raise InvalidStateTransitionError("Funds already released")
                locked.open_dispute(opened_by=user, reason=reason)
                locked.save()
        except InvalidStateTransitionError:
            return ServiceResult.failure(
                STATUS_CHANGED_MESSAGE,
                error_code="STATUS_CHANGED",
                status_code=409,
            )
        except BaseApplicationError as e:
            return cls.fail_with(e)

        opened_by_buyer = user.pk == txn.buyer_id
        other_party_id = txn.seller_id if opened_by_buyer else txn.buyer_id
        title = txn.listing.title

        # Stands in for an admin e-mail alert
        logger.error(
            "Dispute opened, admin review required",
            extra={
                "transaction_id": str(locked.id),
                "opened_by": "buyer" if opened_by_buyer else "seller",
                "reason": reason,
                "total_amount": str(locked.total_amount),
            },
        )
        NotificationService.notify(
            user_id=user.pk,
            kind=NotificationKind.DISPUTE_OPENED,
            title="Dispute Opened",
            message=f'Your dispute for "{title}" has been opened. Our team will review it shortly.',
            link=txn.buyer_link if opened_by_buyer else txn.seller_link,
        )
        NotificationService.notify(
            user_id=other_party_id,
            kind=NotificationKind.DISPUTE_OPENED,
            title="Dispute Filed Against Your Transaction",
            message=f'{user.display_name} opened a dispute for "{title}". Reason: {reason}',
            link=txn.seller_link if opened_by_buyer else txn.buyer_link,
        )
        return ServiceResult.success(locked)
