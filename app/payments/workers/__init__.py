"""
Scheduled jobs for the escrow lifecycle.

This module contains Celery tasks run by celery-beat and, for the first
two, also by the cron HTTP endpoints:
- check_deliveries: Moves SHIPPED transactions to DELIVERED from carrier data
- release_funds: Completes DELIVERED transactions whose escrow hold expired
- audit_orphan_authorizations: Reports PaymentIntents with no Transaction

Usage:
    from payments.workers import check_deliveries, release_funds

    # Run in-process (cron endpoint)
    results = release_funds()

    # Queue
    check_deliveries.delay()
"""

from payments.workers.authorization_audit import audit_orphan_authorizations
from payments.workers.delivery_reconciliation import check_deliveries
from payments.workers.escrow_release import release_funds

__all__ = [
    "audit_orphan_authorizations",
    "check_deliveries",
    "release_funds",
]
