"""
DRF views for payments app.

Endpoints:
    POST /api/v1/transactions/checkout/ - Start a purchase
    GET  /api/v1/transactions/ - Caller's purchases and sales
    GET  /api/v1/transactions/{id}/ - Transaction detail (parties and admins)
    POST /api/v1/transactions/{id}/ship/ - Seller adds tracking
    POST /api/v1/transactions/{id}/dispute/ - Buyer or seller opens a dispute
    POST /api/v1/transactions/{id}/resolve/ - Admin resolves a dispute
    GET  /api/v1/payments/connect/ - Connect account status
    POST /api/v1/payments/connect/ - Start Connect onboarding
    GET|POST /api/v1/cron/check-deliveries/ - Delivery reconciliation job
    GET|POST /api/v1/cron/release-funds/ - Escrow release job
"""

from payments.views.connect import ConnectAccountView
from payments.views.cron import CheckDeliveriesCronView, ReleaseFundsCronView
from payments.views.transactions import TransactionViewSet

__all__ = [
    "CheckDeliveriesCronView",
    "ConnectAccountView",
    "ReleaseFundsCronView",
    "TransactionViewSet",
]
