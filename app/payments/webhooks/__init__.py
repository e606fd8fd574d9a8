"""
Webhook handling for payment and Connect events from Stripe.

Webhooks are verified, stored idempotently, and processed asynchronously
via Celery tasks.

Usage:
    from payments.webhooks.views import stripe_connect_webhook, stripe_webhook
"""

from payments.webhooks.handlers import dispatch_webhook, register_handler
from payments.webhooks.views import stripe_connect_webhook, stripe_webhook

__all__ = [
    "dispatch_webhook",
    "register_handler",
    "stripe_connect_webhook",
    "stripe_webhook",
]
