"""
Tracking service: picks the carrier client and paces calls through a
shared per-carrier rate limiter.
"""

from __future__ import annotations

import logging
import re

from django.conf import settings

from core.exceptions import ValidationError
from core.rate_limit import SharedRateLimiter
from shipping.tracking.clients import BaseCarrierClient, FedExClient, UPSClient, USPSClient
from shipping.tracking.detection import detect_carrier, normalize_tracking_number
from shipping.tracking.types import Carrier, CarrierTrackingError, TrackingStatus

logger = logging.getLogger(__name__)

TRACKING_NUMBER_PATTERN = re.compile(r"^[A-Z0-9]{8,40}$")


class TrackingService:
    """
    Look up shipment status with any supported carrier.

    Clients can be injected for tests:
        service = TrackingService(clients={Carrier.UPS: fake_client})

    Usage:
        status = TrackingService().get_status("9400111899223033005282")
    """

    def __init__(
        self,
        clients: dict[str, BaseCarrierClient] | None = None,
        max_wait: float = 0,
    ):
        self.clients = clients or {
            Carrier.UPS: UPSClient(),
            Carrier.FEDEX: FedExClient(),
            Carrier.USPS: USPSClient(),
        }
        self.max_wait = max_wait

    @staticmethod
    def get_limiter(carrier: str) -> SharedRateLimiter:
        return SharedRateLimiter(
            f"carrier:{carrier}",
            limit=getattr(settings, "CARRIER_RATE_LIMIT_PER_MINUTE", 60),
            window_seconds=60,
        )

    def resolve_carrier(self, tracking_number: str, carrier: str | None = None) -> str:
        """Explicit carrier if it is supported, otherwise detect from the number."""
        if carrier:
            carrier = carrier.lower()
            if carrier not in self.clients:
                raise ValidationError(
                    f"Unsupported carrier: {carrier}",
                    error_code="UNSUPPORTED_CARRIER",
                    details={"carrier": carrier},
                )
            return carrier
        return detect_carrier(tracking_number)

    def get_status(self, tracking_number: str, carrier: str | None = None) -> TrackingStatus:
        """
        Current status of a shipment.

        Raises:
            ValidationError: Malformed tracking number or unsupported carrier
            CarrierTrackingError: Carrier could not be detected or the lookup failed
            RateLimitError: Carrier budget exhausted for this minute
        """
        number = normalize_tracking_number(tracking_number)
        if not TRACKING_NUMBER_PATTERN.match(number):
            raise ValidationError(
                "Invalid tracking number",
                error_code="INVALID_TRACKING_NUMBER",
                details={"tracking_number": tracking_number},
            )

        resolved = self.resolve_carrier(number, carrier)
        if resolved == Carrier.UNKNOWN:
            raise CarrierTrackingError(
                "Could not detect carrier from tracking number",
                error_code="CARRIER_UNKNOWN",
                details={"tracking_number": number},
            )

        self.get_limiter(resolved).acquire(max_wait=self.max_wait)

        status = self.clients[resolved].get_status(number)
        logger.info(
            "Tracking status fetched",
            extra={"carrier": resolved, "tracking_number": number, "status": status.status},
        )
        return status
