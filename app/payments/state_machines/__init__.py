"""
State machine enums and the transition table for payment models.
"""

from payments.state_machines.states import (
    ALLOWED_TRANSITIONS,
    AccountStatus,
    DisputeResolution,
    DisputeStatus,
    TransactionStateMachine,
    TransactionStatus,
    WebhookEventStatus,
    WebhookSource,
)

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
