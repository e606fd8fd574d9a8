"""
Admin dispute resolution.

Resolutions:
    buyer  - full refund of the total charged, transaction REFUNDED
    seller - no refund, transaction COMPLETED
    split  - partial refund in (0, sale_price], transaction COMPLETED;
             more than half the item price counts as buyer-favored

The Stripe refund is issued before any local write. If Stripe fails the
transaction stays DISPUTED and the admin sees Stripe's reason, so the
resolution can simply be retried. One resolution runs at a time per
transaction; a concurrent attempt is rejected with RESOLUTION_IN_PROGRESS.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, PermissionDeniedError
from core.money import ZERO, round_money, to_cents, to_decimal
from core.services import BaseService, ServiceResult
from notifications.models import NotificationKind
from notifications.services import NotificationService
from payments.adapters import IdempotencyKeyGenerator, RefundResult, StripeAdapter
from payments.exceptions import (
    DisputeResolutionError,
    InvalidStateTransitionError,
    LockAcquisitionError,
    PaymentValidationError,
    RefundFailedError,
    StaleRecordError,
    StripeError,
    TransactionNotFoundError,
)
from payments.locks import lock_for_transition, transaction_lock
from payments.models import Transaction
from payments.state_machines import DisputeResolution, DisputeStatus, TransactionStatus

if TYPE_CHECKING:
    from authentication.models import User

# Covers a slow Stripe refund plus the local write
RESOLVE_LOCK_TTL = 120


@dataclass
class DisputeResolutionResult:
    transaction: Transaction
    resolution: str
    dispute_status: str
    refunded_amount: Decimal

    @property
    def message(self) -> str:
        return f"Dispute resolved: {self.resolution}"


class DisputeResolutionService(BaseService):
    """
    Resolve DISPUTED transactions on behalf of a platform admin.

    Usage:
        result = DisputeResolutionService.resolve(
            transaction_id=txn.id,
            admin=request.user,
            resolution="split",
            refund_amount=Decimal("50.00"),
        )
    """

    _stripe_adapter: type | None = None

    @classmethod
    def get_stripe_adapter(cls) -> type:
        return cls._stripe_adapter or StripeAdapter

    @classmethod
    def set_stripe_adapter(cls, adapter: type | None) -> None:
        cls._stripe_adapter = adapter

    @classmethod
    def resolve(
        cls,
        transaction_id,
        admin: User,
        resolution: str,
        refund_amount=None,
        notes: str = "",
        expected_version: int | None = None,
    ) -> ServiceResult[DisputeResolutionResult]:
        """
        Args:
            transaction_id: Transaction to resolve
            admin: Acting user; must be a non-banned ADMIN
            resolution: buyer, seller or split
            refund_amount: Required for split
            notes: Free-text resolution notes stored on the transaction
            expected_version: Version the admin was looking at, if known

        The status check, the refund and the local write all run under the
        per-transaction lock, so a second admin resolving the same dispute
        gets a 409 instead of issuing a second refund.
        """
        try:
            if not admin.is_platform_admin:
                raise PermissionDeniedError(
                    "Only administrators can resolve disputes", error_code="ADMIN_REQUIRED"
                )
            if resolution not in DisputeResolution.values:
                raise PaymentValidationError(
                    "Invalid resolution type. Must be: buyer, seller, or split",
                    error_code="INVALID_RESOLUTION",
                )
        except BaseApplicationError as e:
            return cls.fail_with(e)

        try:
            with transaction_lock(transaction_id, ttl=RESOLVE_LOCK_TTL):
                return cls._resolve_locked(
                    transaction_id, admin, resolution, refund_amount, notes, expected_version
                )
        except LockAcquisitionError as e:
            return cls.fail_with(
                LockAcquisitionError(
                    "This dispute is already being resolved. Please refresh and try again.",
                    error_code="RESOLUTION_IN_PROGRESS",
                    details=e.details,
                )
            )

    @classmethod
    def _resolve_locked(
        cls,
        transaction_id,
        admin: User,
        resolution: str,
        refund_amount,
        notes: str,
        expected_version: int | None,
    ) -> ServiceResult[DisputeResolutionResult]:
        logger = cls.get_logger()

        try:
            txn = (
                Transaction.objects.select_related("buyer", "seller", "listing")
                .filter(pk=transaction_id)
                .first()
            )
            if txn is None:
                raise TransactionNotFoundError("Transaction not found")
            if txn.status != TransactionStatus.DISPUTED:
                raise DisputeResolutionError(
                    "Transaction is not in disputed status",
                    error_code="NOT_DISPUTED",
                    details={"status": txn.status},
                )
            if not txn.stripe_payment_intent_id:
                raise DisputeResolutionError(
                    "No payment found for this transaction", error_code="NO_PAYMENT"
                )
            if expected_version is not None and txn.version != expected_version:
                raise StaleRecordError(
                    "Transaction has been modified. Please refresh and try again.",
                    details={
                        "expected_version": expected_version,
                        "current_version": txn.version,
                    },
                )

            amount = cls._refund_amount(txn, resolution, refund_amount)
            dispute_status = cls._dispute_status(txn, resolution, amount)
        except BaseApplicationError as e:
            return cls.fail_with(e)

        refund = None
        if amount > ZERO:
            try:
                refund = cls._issue_refund(txn, resolution, amount)
            except RefundFailedError as e:
                logger.error(
                    "Dispute refund failed",
                    extra={"transaction_id": str(txn.id), "error": e.message},
                )
                return cls.fail_with(e)

        refund_id = refund.id if refund else ""
        try:
            with cls.atomic():
                locked = lock_for_transition(
                    Transaction,
                    txn.pk,
                    [TransactionStatus.DISPUTED],
                    expected_version=expected_version,
                )
                if resolution == DisputeResolution.BUYER:
                    locked.resolve_refunded(
                        dispute_status=dispute_status,
                        resolved_by=admin,
                        refunded_amount=amount,
                        refund_id=refund_id,
                        notes=notes,
                    )
                else:
                    locked.resolve_completed(
                        dispute_status=dispute_status,
                        resolved_by=admin,
                        refunded_amount=amount,
                        refund_id=refund_id,
                        notes=notes,
                        release_funds=True,
                    )
                locked.save()
        except (InvalidStateTransitionError, StaleRecordError) as e:
            if refund_id:
                # Money moved at Stripe but the row changed underneath us
                logger.critical(
                    "Dispute refund issued but resolution not recorded",
                    extra={
                        "transaction_id": str(txn.id),
                        "refund_id": refund_id,
                        "refunded_amount": str(amount),
                    },
                )
            return cls.fail_with(e)

        logger.info(
            "Dispute resolved",
            extra={
                "transaction_id": str(locked.id),
                "resolution": resolution,
                "dispute_status": dispute_status,
                "refunded_amount": str(amount),
                "admin_id": str(admin.pk),
            },
        )
        cls._notify_parties(txn, resolution, amount)

        return ServiceResult.success(
            DisputeResolutionResult(
                transaction=locked,
                resolution=resolution,
                dispute_status=dispute_status,
                refunded_amount=amount,
            )
        )

    @staticmethod
    def _refund_amount(txn: Transaction, resolution: str, refund_amount) -> Decimal:
        if resolution == DisputeResolution.BUYER:
            return txn.total_amount
        if resolution == DisputeResolution.SELLER:
            return ZERO

        try:
            amount = round_money(to_decimal(refund_amount)) if refund_amount is not None else None
        except (InvalidOperation, TypeError, ValueError):
            amount = None
        if amount is None or amount <= ZERO or amount > txn.sale_price:
            raise PaymentValidationError(
                f"Invalid refund amount. Maximum refundable is ${txn.sale_price:.2f} (item price)",
                error_code="INVALID_REFUND_AMOUNT",
                details={"max_refundable": str(txn.sale_price)},
            )
        return amount

    @staticmethod
    def _dispute_status(txn: Transaction, resolution: str, amount: Decimal) -> str:
        if resolution == DisputeResolution.BUYER:
            return DisputeStatus.RESOLVED_BUYER
        if resolution == DisputeResolution.SELLER:
            return DisputeStatus.RESOLVED_SELLER
        if amount > txn.sale_price / 2:
            return DisputeStatus.RESOLVED_SPLIT_BUYER
        return DisputeStatus.RESOLVED_SPLIT_SELLER

    @classmethod
    def _issue_refund(cls, txn: Transaction, resolution: str, amount: Decimal) -> RefundResult:
        """
        Raises:
            RefundFailedError: With Stripe's message, for the admin to act on
        """
        full_refund = resolution == DisputeResolution.BUYER
        try:
            return cls.get_stripe_adapter().create_refund(
                payment_intent_id=txn.stripe_payment_intent_id,
                idempotency_key=IdempotencyKeyGenerator.generate(
                    f"dispute_refund_{resolution}", txn.id, attempt=to_cents(amount)
                ),
                amount_cents=None if full_refund else to_cents(amount),
                reason="requested_by_customer",
                metadata={
                    "transaction_id": str(txn.id),
                    "resolution": resolution,
                },
            )
        except StripeError as e:
            raise RefundFailedError(
                f"Failed to process refund: {e.message}",
                details={"stripe_code": e.stripe_code},
            ) from e

    @staticmethod
    def _notify_parties(txn: Transaction, resolution: str, amount: Decimal) -> None:
        title = txn.listing.title
        if resolution == DisputeResolution.BUYER:
            buyer_message = (
                "Your dispute has been resolved in your favor. "
                f"A full refund of ${amount:.2f} has been issued."
            )
            seller_message = (
                f'The dispute for "{title}" has been resolved in the buyer\'s favor. '
                "A refund has been issued."
            )
        elif resolution == DisputeResolution.SELLER:
            buyer_message = (
                "Your dispute has been resolved. The seller has been cleared "
                "and funds have been released to them."
            )
            seller_message = (
                f'The dispute for "{title}" has been resolved in your favor. '
                "Funds have been released to your account."
            )
        else:
            buyer_message = (
                f"Your dispute has been partially resolved. A refund of ${amount:.2f} has been issued."
            )
            seller_message = (
                f'The dispute for "{title}" has been partially resolved. '
                f"A partial refund of ${amount:.2f} was issued to the buyer."
            )

        NotificationService.notify(
            user_id=txn.buyer_id,
            kind=NotificationKind.DISPUTE_RESOLVED,
            title="Dispute Resolved",
            message=buyer_message,
            link=txn.buyer_link,
        )
        NotificationService.notify(
            user_id=txn.seller_id,
            kind=NotificationKind.DISPUTE_RESOLVED,
            title="Dispute Resolved",
            message=seller_message,
            link=txn.seller_link,
        )
