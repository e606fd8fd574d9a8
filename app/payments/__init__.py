"""
Payments app: the escrow transaction engine.

This app handles:
- Checkout: fee breakdown, PaymentIntent creation, pending Transaction
- Transaction lifecycle (django-fsm) guarded by compare-and-swap updates
- Stripe webhooks for payments and Connect accounts
- Scheduled jobs: delivery reconciliation, escrow release, orphan audit
- Admin dispute resolution with refunds

Related apps:
    - listings: the item being sold
    - shipping: tax, shipping rates and carrier tracking
    - notifications: buyer and seller notifications

Usage:
    from payments.services import CheckoutService

    result = CheckoutService.create_checkout(
        buyer=user,
        listing_id=listing_id,
        shipping_address=address,
        expected_price=Decimal("249.00"),
    )
"""
