"""
Payment-specific exceptions for escrow transaction operations.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── TransactionNotFoundError - Transaction or listing lookup failures
    ├── PaymentValidationError - Payment validation failures
    ├── CheckoutError - Purchase preconditions not met
    │   ├── BuyerBannedError - Banned buyer (403)
    │   ├── ListingUnavailableError - Listing not purchasable
    │   ├── SelfPurchaseError - Buyer is the seller
    │   ├── SellerNotPayableError - Seller cannot receive funds
    │   └── PriceChangedError - Listing price moved since it was viewed (409)
    ├── DisputeResolutionError - Dispute cannot be resolved as requested
    └── PaymentProcessingError - Payment processing failures (502)
        ├── RefundFailedError - Processor rejected a refund
        └── StripeError - Base for all Stripe errors
            ├── StripeCardDeclinedError - Card declined (permanent)
            ├── StripeInsufficientFundsError - Insufficient funds (permanent)
            ├── StripeInvalidAccountError - Invalid Stripe account (permanent)
            ├── StripeInvalidRequestError - Invalid request params (permanent)
            ├── StripeRateLimitError - Rate limited (transient, retry)
            ├── StripeAPIUnavailableError - API unavailable (transient, retry)
            └── StripeTimeoutError - Request timeout (transient, retry)

    StaleRecordError - Optimistic locking conflict (inherits ConflictError)
    LockAcquisitionError - Distributed lock timeout (inherits ConflictError)
    InvalidStateTransitionError - Transition not allowed (inherits ConflictError)

Usage:
    from payments.exceptions import PriceChangedError

    if abs(listing.price - expected_price) > PRICE_TOLERANCE:
        raise PriceChangedError(
            "The price has changed. Please refresh and try again.",
            details={"current_price": str(listing.price)},
        )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    All payment-specific exceptions inherit from this class,
    which itself inherits from BaseApplicationError for
    consistent API error responses.
    """

    default_error_code: str = "PAYMENT_ERROR"


class TransactionNotFoundError(PaymentError):
    default_error_code: str = "TRANSACTION_NOT_FOUND"
    status_code: int = 404


class PaymentValidationError(PaymentError):
    """
    Raised when request data fails a payment rule.

    Use for:
    - Missing shipping postal code
    - Refund amount outside the allowed range
    - Missing dispute reason
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class CheckoutError(PaymentError):
    """
    Raised when a purchase precondition fails.

    Checkout runs every precondition before calling Stripe, so any
    CheckoutError means nothing was authorized and nothing was stored.
    """

    default_error_code: str = "CHECKOUT_ERROR"


class BuyerBannedError(CheckoutError):
    default_error_code: str = "BUYER_BANNED"
    status_code: int = 403


class ListingUnavailableError(CheckoutError):
    default_error_code: str = "LISTING_UNAVAILABLE"


class SelfPurchaseError(CheckoutError):
    default_error_code: str = "SELF_PURCHASE"


class SellerNotPayableError(CheckoutError):
    """Seller has no connected account able to receive destination charges."""

    default_error_code: str = "SELLER_NOT_PAYABLE"


class PriceChangedError(CheckoutError):
    """
    Listing price differs from the price the buyer saw by more than a cent.

    Guards against the seller editing the price between page view and
    checkout submission.
    """

    default_error_code: str = "PRICE_CHANGED"
    status_code: int = 409


class DisputeResolutionError(PaymentError):
    default_error_code: str = "DISPUTE_RESOLUTION_ERROR"


class PaymentProcessingError(PaymentError):
    """
    Raised when payment processing fails at the processor.

    Example:
        try:
            StripeAdapter.create_refund(...)
        except StripeError as e:
            raise RefundFailedError(str(e.message), details=e.details)
    """

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"
    status_code: int = 502


class RefundFailedError(PaymentProcessingError):
    """
    Stripe rejected a dispute refund.

    The message carries Stripe's reason unchanged for the resolving admin;
    the transaction stays DISPUTED so the resolution can be retried.
    """

    default_error_code: str = "REFUND_FAILED"


# =============================================================================
# Stripe-Specific Exceptions
# =============================================================================


class StripeError(PaymentProcessingError):
    """
    Base exception for all Stripe-related errors.

    Provides common attributes for Stripe error handling:
    - stripe_code: Stripe's internal error code
    - decline_code: Card decline code (if applicable)
    - is_retryable: Whether the operation can be retried

    Use is_retryable to determine retry behavior:
    - True: Transient error, safe to retry with backoff
    - False: Permanent error, do not retry
    """

    default_error_code: str = "STRIPE_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        decline_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code
        self.decline_code = decline_code


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class StripeCardDeclinedError(StripeError):
    """
    Card was declined by the issuing bank.

    This is a permanent error - do not retry with the same card.
    The decline_code attribute contains the specific reason.
    """

    default_error_code: str = "CARD_DECLINED"
    is_retryable: bool = False


class StripeInsufficientFundsError(StripeError):
    default_error_code: str = "INSUFFICIENT_FUNDS"
    is_retryable: bool = False


class StripeInvalidAccountError(StripeError):
    """
    Invalid Stripe Connect account.

    Raised when a destination or connected account is:
    - Not found
    - Disabled or restricted
    - Not properly onboarded
    """

    default_error_code: str = "INVALID_STRIPE_ACCOUNT"
    is_retryable: bool = False


class StripeInvalidRequestError(StripeError):
    """
    Invalid request parameters sent to Stripe.

    Possible causes:
    - Unknown payment intent ID
    - Refund larger than the captured amount
    - Charge already refunded

    Note:
        This usually indicates a bug in our code, not a user error.
        Log these errors for developer investigation.
    """

    default_error_code: str = "INVALID_STRIPE_REQUEST"
    is_retryable: bool = False


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry with backoff)
# -----------------------------------------------------------------------------


class StripeRateLimitError(StripeError):
    default_error_code: str = "STRIPE_RATE_LIMITED"
    is_retryable: bool = True


class StripeAPIUnavailableError(StripeError):
    """
    Stripe API is temporarily unavailable.

    This covers:
    - Network connectivity issues
    - Stripe server errors (5xx)
    - DNS resolution failures
    """

    default_error_code: str = "STRIPE_UNAVAILABLE"
    is_retryable: bool = True


class StripeTimeoutError(StripeError):
    """
    Stripe API call timed out.

    IMPORTANT: The operation may have succeeded on Stripe's side.
    Retrying with the same idempotency key returns the original result.
    """

    default_error_code: str = "STRIPE_TIMEOUT"
    is_retryable: bool = True


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class StaleRecordError(ConflictError):
    """
    Raised when optimistic locking detects concurrent modification.

    Attributes:
        details: Contains pk, expected_version, and current_version
    """

    default_error_code: str = "STALE_RECORD"


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired.

    Attributes:
        details: Contains key and timeout information
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a transaction cannot move to the requested status.

    Wraps django-fsm's TransitionNotAllowed and compare-and-swap misses
    in the standard error format.

    Attributes:
        details: Contains current_state, target_state and transition name
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Payment domain
    "PaymentError",
    "TransactionNotFoundError",
    "PaymentValidationError",
    "CheckoutError",
    "BuyerBannedError",
    "ListingUnavailableError",
    "SelfPurchaseError",
    "SellerNotPayableError",
    "PriceChangedError",
    "DisputeResolutionError",
    "PaymentProcessingError",
    "RefundFailedError",
    # Stripe-specific
    "StripeError",
    "StripeCardDeclinedError",
    "StripeInsufficientFundsError",
    "StripeInvalidAccountError",
    "StripeInvalidRequestError",
    "StripeRateLimitError",
    "StripeAPIUnavailableError",
    "StripeTimeoutError",
    # Concurrency control
    "StaleRecordError",
    "LockAcquisitionError",
    "InvalidStateTransitionError",
]
