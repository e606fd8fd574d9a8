"""
Tracking value types shared by the detection helpers, carrier clients
and the tracking service.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from django.db import models

from core.exceptions import ExternalServiceError


class Carrier(models.TextChoices):
    UPS = "ups", "UPS"
    FEDEX = "fedex", "FedEx"
    USPS = "usps", "USPS"
    UNKNOWN = "unknown", "Unknown"


class TrackingState(models.TextChoices):
    PENDING = "pending", "Pending"
    IN_TRANSIT = "in_transit", "In Transit"
    OUT_FOR_DELIVERY = "out_for_delivery", "Out for Delivery"
    DELIVERED = "delivered", "Delivered"
    EXCEPTION = "exception", "Exception"
    UNKNOWN = "unknown", "Unknown"


class CarrierTrackingError(ExternalServiceError):
    """Raised when a carrier lookup cannot produce a status."""

    default_error_code = "CARRIER_TRACKING_ERROR"

    def __init__(
        self,
        message: str,
        carrier: str = Carrier.UNKNOWN,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.carrier = carrier
        super().__init__(message, error_code=error_code, details={"carrier": carrier, **(details or {})})


@dataclass
class TrackingStatus:
    """
    Normalized tracking result.

    Attributes:
        carrier: Carrier value the number was looked up with
        tracking_number: Normalized tracking number
        status: One of TrackingState
        delivered_at: Carrier-reported delivery time (delivered only)
        last_update: Time of the most recent scan
        location: "City, ST, Country" of the most recent scan
        details: Carrier's description of the most recent scan
    """

    carrier: str
    tracking_number: str
    status: str
    delivered_at: datetime | None = None
    last_update: datetime | None = None
    location: str = ""
    details: str = ""
    raw_response: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_delivered(self) -> bool:
        return self.status == TrackingState.DELIVERED

    def to_dict(self) -> dict[str, Any]:
        return {
            "carrier": self.carrier,
            "tracking_number": self.tracking_number,
            "status": self.status,
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
            "last_update": self.last_update.isoformat() if self.last_update else None,
            "location": self.location,
            "details": self.details,
        }
