"""
URL configuration for the Django application.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - Authentication endpoints
        token/                     - Email/password login (JWT pair)
        token/refresh/             - Refresh access token
        me/                        - Current user
    /api/v1/transactions/          - Escrow transactions
        checkout/                  - Start checkout (POST)
        {id}/                      - Transaction detail
        {id}/ship/                 - Seller marks shipped (POST)
        {id}/dispute/              - Party opens a dispute (POST)
        {id}/resolve/              - Admin resolves a dispute (POST)
    /api/v1/payments/              - Payment endpoints
        connect/                   - Payout account status / onboarding
        webhooks/stripe/           - Stripe payment webhook (POST)
        webhooks/stripe-connect/   - Stripe Connect webhook (POST)
    /api/v1/cron/                  - Scheduled job triggers (Bearer CRON_SECRET)
        check-deliveries/          - Delivery reconciliation
        release-funds/             - Escrow release
    /api/v1/shipping/              - Shipping endpoints
        tracking/{number}/         - Carrier tracking status
        tax/                       - Sales tax estimate
    /api/v1/notifications/         - Notification inbox
        {id}/read/                 - Mark one as read
        read-all/                  - Mark all as read
        unread-count/              - Badge count

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check
from payments.urls import cron_patterns, transaction_patterns

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Authentication (simplejwt)
    path("auth/", include("authentication.urls")),
    # Escrow transactions
    path("transactions/", include((transaction_patterns, "transactions"))),
    # Payments (Connect onboarding, webhooks)
    path("payments/", include("payments.urls")),
    # Scheduled job triggers
    path("cron/", include((cron_patterns, "cron"))),
    # Shipping
    path("shipping/", include("shipping.urls")),
    # Notifications
    path("notifications/", include("notifications.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Marketplace Admin"
admin.site.site_title = "Marketplace Admin Portal"
admin.site.index_title = "Escrow operations"
