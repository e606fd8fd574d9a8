"""
State enums and the transaction transition table.

Transaction lifecycle:
    PENDING → PAYMENT_RECEIVED → SHIPPED → DELIVERED → COMPLETED
    SHIPPED/DELIVERED → DISPUTED → COMPLETED | REFUNDED
    PENDING → CANCELLED (before payment only)

Every django-fsm ``@transition`` on Transaction takes its ``source`` from
ALLOWED_TRANSITIONS, so the table below is the single definition of
which moves are legal.
"""

from __future__ import annotations

from django.db import models


class TransactionStatus(models.TextChoices):
    """
    States for the Transaction lifecycle.

    Terminal states: COMPLETED, REFUNDED, CANCELLED
    """

    PENDING = "PENDING", "Pending Payment"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED", "Payment Received"
    SHIPPED = "SHIPPED", "Shipped"
    DELIVERED = "DELIVERED", "Delivered"
    DISPUTED = "DISPUTED", "Disputed"
    COMPLETED = "COMPLETED", "Completed"
    REFUNDED = "REFUNDED", "Refunded"
    CANCELLED = "CANCELLED", "Cancelled"


class DisputeStatus(models.TextChoices):
    """
    Dispute outcome recorded on a Transaction.

    Split refunds above half the item price count as buyer-favored.
    """

    OPEN = "OPEN", "Open"
    RESOLVED_BUYER = "RESOLVED_BUYER", "Resolved for Buyer"
    RESOLVED_SELLER = "RESOLVED_SELLER", "Resolved for Seller"
    RESOLVED_SPLIT_BUYER = "RESOLVED_SPLIT_BUYER", "Split (Buyer Favored)"
    RESOLVED_SPLIT_SELLER = "RESOLVED_SPLIT_SELLER", "Split (Seller Favored)"


class DisputeResolution(models.TextChoices):
    """Resolution kinds an admin can choose."""

    BUYER = "buyer", "Full refund to buyer"
    SELLER = "seller", "No refund"
    SPLIT = "split", "Partial refund"


class AccountStatus(models.TextChoices):
    """
    Cached Stripe Connect account status.

    ACTIVE means charges and payouts are both enabled. DISCONNECTED is
    set only when the seller revokes the platform's access.
    """

    PENDING = "pending", "Pending"
    ACTIVE = "active", "Active"
    RESTRICTED = "restricted", "Restricted"
    DISABLED = "disabled", "Disabled"
    DISCONNECTED = "disconnected", "Disconnected"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (can retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


class WebhookSource(models.TextChoices):
    """Which Stripe endpoint (and signing secret) delivered an event."""

    PAYMENTS = "payments", "Payments"
    CONNECT = "connect", "Connect"


ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    TransactionStatus.PENDING: frozenset(
        {TransactionStatus.PAYMENT_RECEIVED, TransactionStatus.CANCELLED}
    ),
    TransactionStatus.PAYMENT_RECEIVED: frozenset({TransactionStatus.SHIPPED}),
    TransactionStatus.SHIPPED: frozenset(
        {TransactionStatus.DELIVERED, TransactionStatus.DISPUTED}
    ),
    TransactionStatus.DELIVERED: frozenset(
        {TransactionStatus.COMPLETED, TransactionStatus.DISPUTED}
    ),
    TransactionStatus.DISPUTED: frozenset(
        {TransactionStatus.COMPLETED, TransactionStatus.REFUNDED}
    ),
    TransactionStatus.COMPLETED: frozenset(),
    TransactionStatus.REFUNDED: frozenset(),
    TransactionStatus.CANCELLED: frozenset(),
}


class TransactionStateMachine:
    """
    Queries over ALLOWED_TRANSITIONS.

    Usage:
        TransactionStateMachine.can_transition("PENDING", "DELIVERED")  # False
        TransactionStateMachine.sources_for(TransactionStatus.DISPUTED)
        # ["DELIVERED", "SHIPPED"]
    """

    transitions = ALLOWED_TRANSITIONS

    @classmethod
    def can_transition(cls, from_state: str, to_state: str) -> bool:
        return to_state in cls.transitions.get(from_state, frozenset())

    @classmethod
    def sources_for(cls, to_state: str) -> list[str]:
        """States from which ``to_state`` is reachable, sorted for stable migrations."""
        return sorted(
            str(source)
            for source, targets in cls.transitions.items()
            if to_state in targets
        )

    @classmethod
    def is_terminal(cls, state: str) -> bool:
        return not cls.transitions.get(state)

    @classmethod
    def terminal_states(cls) -> list[str]:
        return [str(state) for state, targets in cls.transitions.items() if not targets]


__all__ = [
    "ALLOWED_TRANSITIONS",
    "AccountStatus",
    "DisputeResolution",
    "DisputeStatus",
    "TransactionStateMachine",
    "TransactionStatus",
    "WebhookEventStatus",
    "WebhookSource",
]
