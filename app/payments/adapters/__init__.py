"""
Payment adapters for external services.

All Stripe calls go through StripeAdapter for consistent error handling,
timeouts, idempotency and logging.
"""

from payments.adapters.stripe_adapter import (
    AccountLinkResult,
    AccountStatusResult,
    ConnectedAccountResult,
    CreatePaymentIntentParams,
    IdempotencyKeyGenerator,
    PaymentIntentResult,
    RefundResult,
    StripeAdapter,
)

__all__ = [
    "AccountLinkResult",
    "AccountStatusResult",
    "ConnectedAccountResult",
    "CreatePaymentIntentParams",
    "IdempotencyKeyGenerator",
    "PaymentIntentResult",
    "RefundResult",
    "StripeAdapter",
]
