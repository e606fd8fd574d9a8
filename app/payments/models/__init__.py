"""
Payment domain models.

- Transaction: one escrowed sale from checkout to payout or refund
- ConnectedAccount: a seller's Stripe Connect account and cached status
- WebhookEvent: stored Stripe webhook events for idempotent processing
"""

from payments.models.connected_account import ConnectedAccount
from payments.models.transaction import Transaction
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "ConnectedAccount",
    "Transaction",
    "WebhookEvent",
]
