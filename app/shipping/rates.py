"""
Shipping cost estimates by device weight class and insured value.

Rates approximate USPS Priority Mail; insurance is always included in the
standard option. Orders at or above FREE_SHIPPING_THRESHOLD ship free.

Usage:
    from shipping.rates import get_default_shipping_cost, qualifies_for_free_shipping

    if not qualifies_for_free_shipping(price):
        cost = get_default_shipping_cost("MACBOOK", price)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings

from core.money import round_money, to_decimal

# Estimated shipping weight in pounds
DEVICE_WEIGHTS: dict[str, Decimal] = {
    "IPHONE": Decimal("0.5"),
    "IPAD": Decimal("1.5"),
    "MACBOOK": Decimal("5"),
    "MAC_MINI": Decimal("3"),
    "MAC_STUDIO": Decimal("6"),
    "MAC_PRO": Decimal("40"),
    "IMAC": Decimal("15"),
    "APPLE_WATCH": Decimal("0.3"),
    "APPLE_TV": Decimal("1"),
    "AIRPODS": Decimal("0.2"),
    "HOMEPOD": Decimal("6"),
    "OTHER": Decimal("2"),
}

# (upper weight bound exclusive, class, base rate); the last entry has no bound
WEIGHT_CLASSES: list[tuple[Decimal | None, str, Decimal]] = [
    (Decimal("1"), "SMALL", Decimal("8.99")),
    (Decimal("5"), "MEDIUM", Decimal("12.99")),
    (Decimal("15"), "LARGE", Decimal("19.99")),
    (Decimal("40"), "HEAVY", Decimal("29.99")),
    (None, "FREIGHT", Decimal("49.99")),
]

# (max insured value inclusive, premium); the last entry has no bound
INSURANCE_TIERS: list[tuple[Decimal | None, Decimal]] = [
    (Decimal("100"), Decimal("2.99")),
    (Decimal("500"), Decimal("4.99")),
    (Decimal("2000"), Decimal("9.99")),
    (None, Decimal("19.99")),
]

EXPEDITED_MULTIPLIER = Decimal("1.4")
OVERNIGHT_MULTIPLIER = Decimal("2")


@dataclass(frozen=True)
class ShippingOption:
    name: str
    price: Decimal
    estimated_days: str
    carrier: str
    insurance_value: Decimal

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "price": str(self.price),
            "estimated_days": self.estimated_days,
            "carrier": self.carrier,
            "insurance_value": str(self.insurance_value),
        }


def get_device_weight(device_type: str) -> Decimal:
    return DEVICE_WEIGHTS.get(device_type, DEVICE_WEIGHTS["OTHER"])


def get_weight_class(device_type: str) -> tuple[str, Decimal]:
    """Return (class name, base rate) for a device type."""
    weight = get_device_weight(device_type)
    for bound, name, rate in WEIGHT_CLASSES:
        if bound is None or weight < bound:
            return name, rate
    raise AssertionError("unreachable: last weight class is unbounded")


def get_insurance_cost(price) -> Decimal:
    value = to_decimal(price)
    for bound, premium in INSURANCE_TIERS:
        if bound is None or value <= bound:
            return premium
    raise AssertionError("unreachable: last insurance tier is unbounded")


def calculate_shipping_options(device_type: str, price) -> dict[str, ShippingOption]:
    """Standard, expedited and overnight options, all insured for ``price``."""
    _, base_rate = get_weight_class(device_type)
    insurance = get_insurance_cost(price)
    insured_value = round_money(price)

    return {
        "standard": ShippingOption(
            name="Standard Shipping",
            price=round_money(base_rate + insurance),
            estimated_days="5-7 business days",
            carrier="USPS Priority Mail",
            insurance_value=insured_value,
        ),
        "expedited": ShippingOption(
            name="Expedited Shipping",
            price=round_money(base_rate * EXPEDITED_MULTIPLIER + insurance),
            estimated_days="2-3 business days",
            carrier="USPS Priority Mail Express",
            insurance_value=insured_value,
        ),
        "overnight": ShippingOption(
            name="Overnight Shipping",
            price=round_money(base_rate * OVERNIGHT_MULTIPLIER + insurance),
            estimated_days="1 business day",
            carrier="UPS Next Day Air",
            insurance_value=insured_value,
        ),
    }


def get_default_shipping_cost(device_type: str, price) -> Decimal:
    """Standard insured shipping cost charged at checkout."""
    return calculate_shipping_options(device_type, price)["standard"].price


def qualifies_for_free_shipping(price, threshold=None) -> bool:
    if threshold is None:
        threshold = settings.FREE_SHIPPING_THRESHOLD
    return to_decimal(price) >= to_decimal(threshold)
