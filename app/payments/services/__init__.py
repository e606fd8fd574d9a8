"""
Payment services for the escrow transaction lifecycle.

This module provides:
- CheckoutService: Prices a listing and creates the destination charge
- ShipmentService: Seller shipping and party-opened disputes
- DisputeResolutionService: Admin refunds and dispute outcomes
- AccountStatusSynchronizer: Keeps cached Connect account state fresh
- ConnectOnboardingService: Seller onboarding links and status

Usage:
    from payments.services import CheckoutService

    result = CheckoutService.create_checkout(
        buyer=request.user,
        listing_id=listing_id,
        shipping_address=address,
        expected_price=expected_price,
    )

    from payments.services import DisputeResolutionService

    result = DisputeResolutionService.resolve(
        transaction_id=txn.id,
        admin=request.user,
        resolution="buyer",
    )
"""

from payments.services.checkout import (
    CHECKOUT_SOURCE,
    CheckoutResult,
    CheckoutService,
    ShippingAddress,
)
from payments.services.connect import (
    AccountStatusSynchronizer,
    ConnectOnboardingService,
    ConnectStatus,
    OnboardingLink,
)
from payments.services.dispute_resolution import (
    DisputeResolutionResult,
    DisputeResolutionService,
)
from payments.services.shipment import ShipmentService

__all__ = [
    "AccountStatusSynchronizer",
    "CHECKOUT_SOURCE",
    "CheckoutResult",
    "CheckoutService",
    "ConnectOnboardingService",
    "ConnectStatus",
    "DisputeResolutionResult",
    "DisputeResolutionService",
    "OnboardingLink",
    "ShipmentService",
    "ShippingAddress",
]
