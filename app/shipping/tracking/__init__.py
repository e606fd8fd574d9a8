"""
Carrier tracking: number-format detection and UPS/FedEx/USPS lookups.

Usage:
    from shipping.tracking import TrackingService, detect_carrier

    status = TrackingService().get_status("1Z999AA10123456784")
    if status.is_delivered:
        ...
"""

from shipping.tracking.detection import detect_carrier
from shipping.tracking.service import TrackingService
from shipping.tracking.types import Carrier, CarrierTrackingError, TrackingState, TrackingStatus

__all__ = [
    "Carrier",
    "CarrierTrackingError",
    "TrackingService",
    "TrackingState",
    "TrackingStatus",
    "detect_carrier",
]
