"""Carrier detection from tracking-number format."""

from __future__ import annotations

import re

from shipping.tracking.types import Carrier

UPS_PATTERN = re.compile(r"^1Z[A-Z0-9]{16}$")
FEDEX_PATTERN = re.compile(r"^(\d{12}|\d{15}|\d{20}|\d{22})$")
USPS_PATTERNS = (
    re.compile(r"^\d{20,22}$"),
    re.compile(r"^(94|93|92|91)\d{18,20}$"),
    re.compile(r"^[A-Z]{2}\d{9}US$"),
)


def normalize_tracking_number(tracking_number: str) -> str:
    """Strip all whitespace and uppercase."""
    return re.sub(r"\s+", "", tracking_number or "").upper()


def detect_carrier(tracking_number: str) -> str:
    """
    Guess the carrier from the tracking number's shape.

    FedEx is tested before USPS, so all-digit 20/22 character numbers
    resolve to FedEx. Pass the carrier explicitly for USPS numbers of
    that length.

    Returns:
        A Carrier value, Carrier.UNKNOWN when no pattern matches
    """
    number = normalize_tracking_number(tracking_number)
    if not number:
        return Carrier.UNKNOWN
    if UPS_PATTERN.match(number):
        return Carrier.UPS
    if FEDEX_PATTERN.match(number):
        return Carrier.FEDEX
    if any(pattern.match(number) for pattern in USPS_PATTERNS):
        return Carrier.USPS
    return Carrier.UNKNOWN
