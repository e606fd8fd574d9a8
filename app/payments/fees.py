"""
Fee and pricing calculator.

Every intermediate amount is rounded half-up to the cent before it is
used in the next step, so the breakdown always matches the integer-cent
amounts sent to Stripe.

Usage:
    from payments.fees import FeeCalculator, calculate_fee_breakdown

    breakdown = FeeCalculator().calculate(
        sale_price=Decimal("200.00"),
        tier="FREE",
        postal_code="94107",
        device_type="IPHONE",
    )
    breakdown.total_amount
    breakdown.seller_payout
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal

from django.conf import settings

from core.money import ZERO, round_money, to_decimal
from shipping.rates import get_default_shipping_cost, qualifies_for_free_shipping
from shipping.tax import calculate_tax

# Tiers whose processor fee the platform absorbs
PLATFORM_ABSORBS_PROCESSOR_FEE = frozenset({"PRO"})


@dataclass(frozen=True)
class FeeBreakdown:
    """
    Frozen fee breakdown for a single sale.

    Invariants:
        total_amount == sale_price + tax_amount + shipping_cost
        platform_fee + processor_fee + seller_payout == sale_price
    """

    sale_price: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    shipping_cost: Decimal
    free_shipping: bool
    platform_fee_rate: Decimal
    platform_fee: Decimal
    processor_fee: Decimal
    seller_payout: Decimal
    total_amount: Decimal
    application_fee: Decimal

    def to_dict(self) -> dict:
        """JSON-safe dict with decimals rendered as strings."""
        return {
            key: value if isinstance(value, bool) else str(value)
            for key, value in asdict(self).items()
        }

    def to_metadata(self) -> dict[str, str]:
        """Flat string dict for Stripe metadata."""
        return {
            "sale_price": str(self.sale_price),
            "tax_amount": str(self.tax_amount),
            "shipping_cost": str(self.shipping_cost),
            "platform_fee": str(self.platform_fee),
            "processor_fee": str(self.processor_fee),
        }


def get_platform_fee_rate(tier: str) -> Decimal:
    """Platform commission rate for a seller tier; unknown tiers pay the FREE rate."""
    rates = settings.PLATFORM_FEE_RATES
    return to_decimal(rates.get(tier, rates["FREE"]))


def calculate_processor_fee(total_amount) -> Decimal:
    """Stripe's percentage-plus-fixed fee on the amount actually charged."""
    return round_money(
        to_decimal(total_amount) * to_decimal(settings.PROCESSOR_FEE_PERCENT)
        + to_decimal(settings.PROCESSOR_FEE_FIXED)
    )


def calculate_fee_breakdown(
    sale_price,
    tier: str,
    *,
    tax_rate=ZERO,
    tax_amount=ZERO,
    shipping_cost=ZERO,
    free_shipping: bool = False,
) -> FeeBreakdown:
    """
    Compute the full breakdown from already-resolved tax and shipping.

    Args:
        sale_price: Item price
        tier: Seller subscription tier (FREE, PLUS, PRO)
        tax_rate: Rate applied to the item price
        tax_amount: Tax in dollars
        shipping_cost: Shipping charged to the buyer (ignored when free_shipping)
        free_shipping: Whether the sale ships free

    Returns:
        FeeBreakdown
    """
    sale_price = round_money(sale_price)
    tax_amount = round_money(tax_amount)
    shipping_cost = ZERO if free_shipping else round_money(shipping_cost)

    platform_fee_rate = get_platform_fee_rate(tier)
    platform_fee = round_money(sale_price * platform_fee_rate)

    total_amount = round_money(sale_price + tax_amount + shipping_cost)

    if tier in PLATFORM_ABSORBS_PROCESSOR_FEE:
        processor_fee = ZERO
        application_fee = ZERO
    else:
        processor_fee = calculate_processor_fee(total_amount)
        application_fee = platform_fee

    seller_payout = round_money(sale_price - platform_fee - processor_fee)

    return FeeBreakdown(
        sale_price=sale_price,
        tax_rate=to_decimal(tax_rate),
        tax_amount=tax_amount,
        shipping_cost=shipping_cost,
        free_shipping=free_shipping,
        platform_fee_rate=platform_fee_rate,
        platform_fee=platform_fee,
        processor_fee=processor_fee,
        seller_payout=seller_payout,
        total_amount=total_amount,
        application_fee=application_fee,
    )


class FeeCalculator:
    """Resolves tax and shipping for a sale, then computes the breakdown."""

    def calculate(
        self,
        sale_price,
        tier: str,
        postal_code: str,
        device_type: str,
    ) -> FeeBreakdown:
        """
        Raises:
            ValidationError: If the postal code is malformed
        """
        quote = calculate_tax(sale_price, postal_code)
        free_shipping = qualifies_for_free_shipping(sale_price)
        shipping_cost = (
            ZERO if free_shipping else get_default_shipping_cost(device_type, sale_price)
        )
        return calculate_fee_breakdown(
            sale_price,
            tier,
            tax_rate=quote.tax_rate,
            tax_amount=quote.tax_amount,
            shipping_cost=shipping_cost,
            free_shipping=free_shipping,
        )
