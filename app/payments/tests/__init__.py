"""
Tests for payments app.

This package contains test modules for:
- test_fees.py: Fee breakdown arithmetic per tier
- test_state_transitions.py: Transition table and FSM methods
- test_models.py: Transaction, ConnectedAccount, WebhookEvent model tests
- test_checkout.py, test_shipment.py, test_dispute_resolution.py, test_connect.py: Services
- test_views.py, test_cron.py: API and cron endpoint tests

Webhook and scheduled-job tests live in payments/webhooks/tests and
payments/workers/tests.

Usage:
    pytest payments/
    pytest payments/tests/test_checkout.py
"""
