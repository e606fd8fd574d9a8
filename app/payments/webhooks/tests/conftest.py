"""
Pytest fixtures for webhook tests.

Parties, transactions and the Redis mock come from payments/conftest.py;
this module adds stored events, raw payloads and the view-level mocks.
"""

import json
from unittest.mock import patch

import pytest
from django.test import RequestFactory, override_settings
from django.utils import timezone

from payments.state_machines import WebhookEventStatus
from payments.tests.factories import WebhookEventFactory

PAYMENTS_SECRET = "whsec_test_payments"
CONNECT_SECRET = "whsec_test_connect"


# =============================================================================
# Webhook Event Fixtures
# =============================================================================


@pytest.fixture
def pending_webhook_event(db):
    return WebhookEventFactory(stripe_event_id="evt_test_pending_123")


@pytest.fixture
def processing_webhook_event(db):
    return WebhookEventFactory(
        stripe_event_id="evt_test_processing_456",
        status=WebhookEventStatus.PROCESSING,
        retry_count=1,
    )


@pytest.fixture
def processed_webhook_event(db):
    return WebhookEventFactory(
        stripe_event_id="evt_test_processed_789",
        status=WebhookEventStatus.PROCESSED,
        processed_at=timezone.now(),
    )


@pytest.fixture
def failed_webhook_event(db):
    return WebhookEventFactory(
        stripe_event_id="evt_test_failed_101",
        status=WebhookEventStatus.FAILED,
        error_message="Previous processing failed",
        retry_count=1,
    )


# =============================================================================
# Raw Payloads
# =============================================================================


@pytest.fixture
def payment_intent_succeeded_payload():
    """Stripe payment_intent.succeeded webhook payload."""
    return {
        "id": "evt_test_new_123",
        "type": "payment_intent.succeeded",
        "data": {
            "object": {
                "id": "pi_test_webhook_123",
                "object": "payment_intent",
                "amount": 22999,
                "currency": "usd",
                "status": "succeeded",
                "metadata": {"checkout_source": "marketplace"},
            }
        },
    }


@pytest.fixture
def account_updated_payload():
    """Stripe account.updated payload as delivered to the Connect endpoint."""
    return {
        "id": "evt_test_account_123",
        "type": "account.updated",
        "account": "acct_seller123",
        "data": {
            "object": {
                "id": "acct_seller123",
                "object": "account",
                "charges_enabled": True,
                "payouts_enabled": True,
            }
        },
    }


# =============================================================================
# Requests and Mocks
# =============================================================================


@pytest.fixture
def webhook_request(db):
    """
    Build a signed-looking POST for a webhook view.

    Usage:
        request = webhook_request("/api/v1/payments/webhooks/stripe/", payload)
    """
    rf = RequestFactory()

    def _build(path: str, payload: dict, signature: str | None = "t=1,v1=test_sig"):
        headers = {"HTTP_STRIPE_SIGNATURE": signature} if signature else {}
        return rf.post(
            path,
            data=json.dumps(payload),
            content_type="application/json",
            **headers,
        )

    return _build


@pytest.fixture
def webhook_secrets():
    with override_settings(
        STRIPE_WEBHOOK_SECRET=PAYMENTS_SECRET,
        STRIPE_CONNECT_WEBHOOK_SECRET=CONNECT_SECRET,
    ):
        yield


@pytest.fixture
def mock_stripe_verify_signature(webhook_secrets):
    """Signature check passes and returns the request body as the event."""
    with patch("payments.webhooks.views.StripeAdapter.verify_webhook_signature") as mock:
        mock.side_effect = lambda body, signature, secret: json.loads(body)
        yield mock


@pytest.fixture
def mock_celery_task():
    """Keep views from running the processing task."""
    with patch("payments.tasks.process_webhook_event.delay") as mock:
        yield mock
