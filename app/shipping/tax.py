"""
Sales tax estimate from the buyer's ZIP code.

The state is derived from the three-digit ZIP prefix and taxed at the
state base rate; local surtaxes are not modeled. Unknown prefixes
(military, territories) are taxed at zero.

Usage:
    from shipping.tax import calculate_tax

    quote = calculate_tax(Decimal("200.00"), "94105")
    quote.tax_rate    # Decimal("0.0725")
    quote.tax_amount  # Decimal("14.50")
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal

from core.exceptions import ValidationError
from core.money import ZERO, round_money, to_decimal

ZIP_CODE_PATTERN = re.compile(r"^\d{5}(-\d{4})?$")

# Inclusive ZIP3 ranges per state
ZIP_PREFIX_RANGES: list[tuple[int, int, str]] = [
    (5, 5, "NY"),
    (10, 27, "MA"),
    (28, 29, "RI"),
    (30, 38, "NH"),
    (39, 49, "ME"),
    (50, 54, "VT"),
    (55, 55, "MA"),
    (56, 59, "VT"),
    (60, 69, "CT"),
    (70, 89, "NJ"),
    (100, 149, "NY"),
    (150, 196, "PA"),
    (197, 199, "DE"),
    (200, 200, "DC"),
    (201, 201, "VA"),
    (202, 205, "DC"),
    (206, 219, "MD"),
    (220, 246, "VA"),
    (247, 268, "WV"),
    (270, 289, "NC"),
    (290, 299, "SC"),
    (300, 319, "GA"),
    (320, 339, "FL"),
    (341, 349, "FL"),
    (350, 369, "AL"),
    (370, 385, "TN"),
    (386, 397, "MS"),
    (398, 399, "GA"),
    (400, 427, "KY"),
    (430, 459, "OH"),
    (460, 479, "IN"),
    (480, 499, "MI"),
    (500, 528, "IA"),
    (530, 549, "WI"),
    (550, 567, "MN"),
    (570, 577, "SD"),
    (580, 588, "ND"),
    (590, 599, "MT"),
    (600, 629, "IL"),
    (630, 658, "MO"),
    (660, 679, "KS"),
    (680, 693, "NE"),
    (700, 714, "LA"),
    (716, 729, "AR"),
    (730, 749, "OK"),
    (750, 799, "TX"),
    (800, 816, "CO"),
    (820, 831, "WY"),
    (832, 838, "ID"),
    (840, 847, "UT"),
    (850, 865, "AZ"),
    (870, 884, "NM"),
    (885, 885, "TX"),
    (889, 898, "NV"),
    (900, 961, "CA"),
    (967, 968, "HI"),
    (970, 979, "OR"),
    (980, 994, "WA"),
    (995, 999, "AK"),
]

# State base sales tax rates
STATE_TAX_RATES: dict[str, Decimal] = {
    "AL": Decimal("0.04"),
    "AK": Decimal("0"),
    "AZ": Decimal("0.056"),
    "AR": Decimal("0.065"),
    "CA": Decimal("0.0725"),
    "CO": Decimal("0.029"),
    "CT": Decimal("0.0635"),
    "DC": Decimal("0.06"),
    "DE": Decimal("0"),
    "FL": Decimal("0.06"),
    "GA": Decimal("0.04"),
    "HI": Decimal("0.04"),
    "IA": Decimal("0.06"),
    "ID": Decimal("0.06"),
    "IL": Decimal("0.0625"),
    "IN": Decimal("0.07"),
    "KS": Decimal("0.065"),
    "KY": Decimal("0.06"),
    "LA": Decimal("0.0445"),
    "MA": Decimal("0.0625"),
    "MD": Decimal("0.06"),
    "ME": Decimal("0.055"),
    "MI": Decimal("0.06"),
    "MN": Decimal("0.06875"),
    "MO": Decimal("0.04225"),
    "MS": Decimal("0.07"),
    "MT": Decimal("0"),
    "NC": Decimal("0.0475"),
    "ND": Decimal("0.05"),
    "NE": Decimal("0.055"),
    "NH": Decimal("0"),
    "NJ": Decimal("0.06625"),
    "NM": Decimal("0.04875"),
    "NV": Decimal("0.0685"),
    "NY": Decimal("0.04"),
    "OH": Decimal("0.0575"),
    "OK": Decimal("0.045"),
    "OR": Decimal("0"),
    "PA": Decimal("0.06"),
    "RI": Decimal("0.07"),
    "SC": Decimal("0.06"),
    "SD": Decimal("0.042"),
    "TN": Decimal("0.07"),
    "TX": Decimal("0.0625"),
    "UT": Decimal("0.061"),
    "VA": Decimal("0.053"),
    "VT": Decimal("0.06"),
    "WA": Decimal("0.065"),
    "WI": Decimal("0.05"),
    "WV": Decimal("0.06"),
    "WY": Decimal("0.04"),
}


@dataclass(frozen=True)
class TaxQuote:
    state: str | None
    tax_rate: Decimal
    tax_amount: Decimal

    def to_dict(self) -> dict:
        return {
            "state": self.state,
            "tax_rate": str(self.tax_rate),
            "tax_amount": str(self.tax_amount),
        }


def is_valid_zip_code(zip_code: str) -> bool:
    return bool(zip_code) and ZIP_CODE_PATTERN.match(zip_code) is not None


def get_state_from_zip(zip_code: str) -> str | None:
    """Two-letter state for a ZIP code, or None if the prefix is unassigned."""
    if not is_valid_zip_code(zip_code):
        return None
    prefix = int(zip_code[:3])
    for low, high, state in ZIP_PREFIX_RANGES:
        if low <= prefix <= high:
            return state
    return None


def get_tax_rate(zip_code: str) -> Decimal:
    state = get_state_from_zip(zip_code)
    if state is None:
        return Decimal("0")
    return STATE_TAX_RATES.get(state, Decimal("0"))


def calculate_tax(price, zip_code: str) -> TaxQuote:
    """
    Tax owed on ``price`` shipped to ``zip_code``.

    Raises:
        ValidationError: If the ZIP code is malformed
    """
    if not is_valid_zip_code(zip_code):
        raise ValidationError(
            "Invalid ZIP code format",
            error_code="INVALID_ZIP_CODE",
            details={"zip_code": zip_code},
        )

    state = get_state_from_zip(zip_code)
    rate = get_tax_rate(zip_code)
    amount = round_money(to_decimal(price) * rate) if rate else ZERO
    return TaxQuote(state=state, tax_rate=rate, tax_amount=amount)
