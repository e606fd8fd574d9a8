"""
URL configuration for the payments app.

Three groups, mounted under /api/v1/ by config/urls.py:
    payments/      urlpatterns            Connect onboarding, Stripe webhooks
    transactions/  transaction_patterns   Checkout and the transaction lifecycle
    cron/          cron_patterns          Scheduled job triggers

Usage:
    # In config/urls.py
    from payments.urls import cron_patterns, transaction_patterns

    api_v1_patterns = [
        path("payments/", include("payments.urls")),
        path("transactions/", include((transaction_patterns, "transactions"))),
        path("cron/", include((cron_patterns, "cron"))),
    ]
"""

from django.urls import path
from rest_framework.routers import DefaultRouter

from payments.views import (
    CheckDeliveriesCronView,
    ConnectAccountView,
    ReleaseFundsCronView,
    TransactionViewSet,
)
from payments.webhooks.views import stripe_connect_webhook, stripe_webhook

app_name = "payments"

urlpatterns = [
    path("connect/", ConnectAccountView.as_view(), name="connect"),
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    path("webhooks/stripe-connect/", stripe_connect_webhook, name="stripe_connect_webhook"),
]

router = DefaultRouter()
router.register(r"", TransactionViewSet, basename="transaction")

transaction_patterns = router.urls

cron_patterns = [
    path("check-deliveries/", CheckDeliveriesCronView.as_view(), name="check-deliveries"),
    path("release-funds/", ReleaseFundsCronView.as_view(), name="release-funds"),
]
