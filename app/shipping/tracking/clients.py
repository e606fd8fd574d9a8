"""
HTTP clients for the UPS, FedEx and USPS tracking APIs.

Each client turns a carrier response into a TrackingStatus and raises
CarrierTrackingError for missing credentials, transport failures and
carrier-reported errors. OAuth access tokens are cached in the Django
cache until shortly before they expire.

Configuration (via settings):
- UPS_CLIENT_ID / UPS_CLIENT_SECRET
- FEDEX_CLIENT_ID / FEDEX_CLIENT_SECRET
- USPS_USER_ID
- CARRIER_API_TIMEOUT_SECONDS: request timeout (default: 15)
"""

from __future__ import annotations

import logging
import time
import uuid
import xml.etree.ElementTree as ET
from datetime import datetime
from datetime import timezone as dt_timezone
from typing import Any
from urllib.parse import quote

import requests
from django.conf import settings
from django.core.cache import cache
from django.utils.dateparse import parse_datetime

from shipping.tracking.types import Carrier, CarrierTrackingError, TrackingState, TrackingStatus

# Seconds shaved off a token's lifetime before it is considered stale
TOKEN_EXPIRY_MARGIN = 60


class BaseCarrierClient:
    """
    Shared request, logging and token-caching plumbing.

    Subclasses set ``carrier`` and implement ``get_status``.
    """

    carrier: str = Carrier.UNKNOWN

    def __init__(self, session: requests.Session | None = None):
        self.session = session or requests.Session()

    @property
    def timeout(self) -> float:
        return getattr(settings, "CARRIER_API_TIMEOUT_SECONDS", 15)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    def get_status(self, tracking_number: str) -> TrackingStatus:
        raise NotImplementedError

    def _not_configured(self) -> CarrierTrackingError:
        return CarrierTrackingError(
            f"{self.carrier.upper()} API credentials not configured",
            carrier=self.carrier,
            error_code="CARRIER_NOT_CONFIGURED",
        )

    def _request(self, method: str, url: str, operation: str, **kwargs) -> requests.Response:
        """Send a request, logging its duration and mapping transport errors."""
        logger = self.get_logger()
        log_context = {
            "operation": operation,
            "carrier": self.carrier,
        }

        start_time = time.time()
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            duration_ms = (time.time() - start_time) * 1000
            status_code = e.response.status_code if e.response is not None else None
            logger.warning(
                "Carrier API returned an error status",
                extra={**log_context, "status_code": status_code, "duration_ms": duration_ms},
            )
            raise CarrierTrackingError(
                f"{self.carrier.upper()} API error: {status_code}",
                carrier=self.carrier,
                details={"status_code": status_code},
            ) from e
        except requests.exceptions.RequestException as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "Carrier API request failed",
                extra={**log_context, "duration_ms": duration_ms},
                exc_info=True,
            )
            raise CarrierTrackingError(
                f"Could not reach {self.carrier.upper()} API: {e}",
                carrier=self.carrier,
                error_code="CARRIER_UNAVAILABLE",
            ) from e

        duration_ms = (time.time() - start_time) * 1000
        logger.debug(
            "Carrier API call completed",
            extra={**log_context, "status_code": response.status_code, "duration_ms": duration_ms},
        )
        return response

    def _json(self, response: requests.Response) -> dict[str, Any]:
        try:
            return response.json()
        except ValueError as e:
            raise CarrierTrackingError(
                f"{self.carrier.upper()} API returned invalid JSON",
                carrier=self.carrier,
            ) from e

    def _cached_token(self, fetch) -> str:
        """Return the cached OAuth token, fetching a new one when absent."""
        key = f"carrier_token:{self.carrier}"
        token = cache.get(key)
        if token:
            return token

        token, expires_in = fetch()
        cache.set(key, token, timeout=max(int(expires_in) - TOKEN_EXPIRY_MARGIN, 1))
        return token


class UPSClient(BaseCarrierClient):
    carrier = Carrier.UPS

    TOKEN_URL = "https://onlinetools.ups.com/security/v1/oauth/token"
    TRACK_URL = "https://onlinetools.ups.com/api/track/v1/details/{tracking_number}"

    STATUS_MAP = {
        "D": TrackingState.DELIVERED,
        "I": TrackingState.IN_TRANSIT,
        "O": TrackingState.OUT_FOR_DELIVERY,
        "X": TrackingState.EXCEPTION,
        "P": TrackingState.PENDING,
    }

    def _credentials(self) -> tuple[str, str]:
        client_id = getattr(settings, "UPS_CLIENT_ID", "")
        client_secret = getattr(settings, "UPS_CLIENT_SECRET", "")
        if not client_id or not client_secret:
            raise self._not_configured()
        return client_id, client_secret

    def _fetch_token(self) -> tuple[str, int]:
        client_id, client_secret = self._credentials()
        response = self._request(
            "POST",
            self.TOKEN_URL,
            operation="oauth_token",
            auth=(client_id, client_secret),
            data={"grant_type": "client_credentials"},
        )
        data = self._json(response)
        return data["access_token"], int(data.get("expires_in", 3600))

    def get_status(self, tracking_number: str) -> TrackingStatus:
        self._credentials()
        token = self._cached_token(self._fetch_token)

        response = self._request(
            "GET",
            self.TRACK_URL.format(tracking_number=quote(tracking_number)),
            operation="track",
            headers={
                "Authorization": f"Bearer {token}",
                "transId": uuid.uuid4().hex,
                "transactionSrc": "marketplace",
            },
        )
        data = self._json(response)
        return self.parse_response(tracking_number, data)

    @classmethod
    def parse_response(cls, tracking_number: str, data: dict[str, Any]) -> TrackingStatus:
        try:
            package = data["trackResponse"]["shipment"][0]["package"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise CarrierTrackingError(
                "UPS response did not contain a package",
                carrier=Carrier.UPS,
            ) from e

        activities = package.get("activity") or []
        if not activities:
            return TrackingStatus(
                carrier=Carrier.UPS,
                tracking_number=tracking_number,
                status=TrackingState.PENDING,
                raw_response=data,
            )

        latest = activities[0]
        status_info = latest.get("status") or {}
        status = cls.STATUS_MAP.get(status_info.get("type"), TrackingState.IN_TRANSIT)
        scanned_at = parse_ups_datetime(latest.get("date"), latest.get("time"))
        address = (latest.get("location") or {}).get("address") or {}

        return TrackingStatus(
            carrier=Carrier.UPS,
            tracking_number=tracking_number,
            status=status,
            delivered_at=scanned_at if status == TrackingState.DELIVERED else None,
            last_update=scanned_at,
            location=join_location(
                address.get("city"), address.get("stateProvince"), address.get("country")
            ),
            details=status_info.get("description", ""),
            raw_response=data,
        )


class FedExClient(BaseCarrierClient):
    carrier = Carrier.FEDEX

    TOKEN_URL = "https://apis.fedex.com/oauth/token"
    TRACK_URL = "https://apis.fedex.com/track/v1/trackingnumbers"

    STATUS_MAP = {
        "DL": TrackingState.DELIVERED,
        "IT": TrackingState.IN_TRANSIT,
        "OD": TrackingState.OUT_FOR_DELIVERY,
        "DE": TrackingState.EXCEPTION,
        "SE": TrackingState.EXCEPTION,
        "PU": TrackingState.PENDING,
    }

    def _credentials(self) -> tuple[str, str]:
        client_id = getattr(settings, "FEDEX_CLIENT_ID", "")
        client_secret = getattr(settings, "FEDEX_CLIENT_SECRET", "")
        if not client_id or not client_secret:
            raise self._not_configured()
        return client_id, client_secret

    def _fetch_token(self) -> tuple[str, int]:
        client_id, client_secret = self._credentials()
        response = self._request(
            "POST",
            self.TOKEN_URL,
            operation="oauth_token",
            data={
                "grant_type": "client_credentials",
                "client_id": client_id,
                "client_secret": client_secret,
            },
        )
        data = self._json(response)
        return data["access_token"], int(data.get("expires_in", 3600))

    def get_status(self, tracking_number: str) -> TrackingStatus:
        self._credentials()
        token = self._cached_token(self._fetch_token)

        response = self._request(
            "POST",
            self.TRACK_URL,
            operation="track",
            headers={"Authorization": f"Bearer {token}"},
            json={
                "includeDetailedScans": True,
                "trackingInfo": [{"trackingNumberInfo": {"trackingNumber": tracking_number}}],
            },
        )
        data = self._json(response)
        return self.parse_response(tracking_number, data)

    @classmethod
    def parse_response(cls, tracking_number: str, data: dict[str, Any]) -> TrackingStatus:
        try:
            result = data["output"]["completeTrackResults"][0]["trackResults"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise CarrierTrackingError(
                "FedEx response did not contain a track result",
                carrier=Carrier.FEDEX,
            ) from e

        if result.get("error"):
            raise CarrierTrackingError(
                result["error"].get("message", "FedEx tracking error"),
                carrier=Carrier.FEDEX,
                details={"fedex_code": result["error"].get("code")},
            )

        latest = result.get("latestStatusDetail") or {}
        status = cls.STATUS_MAP.get(latest.get("code"), TrackingState.IN_TRANSIT)

        delivered_at = None
        for entry in result.get("dateAndTimes") or []:
            if entry.get("type") == "ACTUAL_DELIVERY":
                delivered_at = to_utc(parse_datetime(entry.get("dateTime") or ""))
                break

        last_update = None
        scan_events = result.get("scanEvents") or []
        if scan_events:
            last_update = to_utc(parse_datetime(scan_events[0].get("date") or ""))

        scan_location = latest.get("scanLocation") or {}
        return TrackingStatus(
            carrier=Carrier.FEDEX,
            tracking_number=tracking_number,
            status=status,
            delivered_at=delivered_at if status == TrackingState.DELIVERED else None,
            last_update=last_update or delivered_at,
            location=join_location(
                scan_location.get("city"),
                scan_location.get("stateOrProvinceCode"),
                scan_location.get("countryCode"),
            ),
            details=latest.get("description", ""),
            raw_response=data,
        )


class USPSClient(BaseCarrierClient):
    carrier = Carrier.USPS

    TRACK_URL = "https://secure.shippingapis.com/ShippingAPI.dll"

    def get_status(self, tracking_number: str) -> TrackingStatus:
        user_id = getattr(settings, "USPS_USER_ID", "")
        if not user_id:
            raise self._not_configured()

        request_xml = (
            f'<TrackFieldRequest USERID="{user_id}">'
            f'<TrackID ID="{tracking_number}"></TrackID>'
            f"</TrackFieldRequest>"
        )
        response = self._request(
            "GET",
            self.TRACK_URL,
            operation="track",
            params={"API": "TrackV2", "XML": request_xml},
        )
        return self.parse_response(tracking_number, response.text)

    @classmethod
    def parse_response(cls, tracking_number: str, body: str) -> TrackingStatus:
        try:
            root = ET.fromstring(body)
        except ET.ParseError as e:
            raise CarrierTrackingError(
                "USPS API returned invalid XML",
                carrier=Carrier.USPS,
            ) from e

        error = root.find(".//Error/Description")
        if root.tag == "Error" or error is not None:
            message = error.text if error is not None else root.findtext("Description", "")
            raise CarrierTrackingError(
                f"USPS API error: {message}",
                carrier=Carrier.USPS,
            )

        summary = root.find(".//TrackSummary")
        if summary is None:
            return TrackingStatus(
                carrier=Carrier.USPS,
                tracking_number=tracking_number,
                status=TrackingState.PENDING,
            )

        event = summary.findtext("Event", "") or summary.findtext("EventDescription", "")
        status = cls.status_from_event(event)
        scanned_at = parse_usps_datetime(
            summary.findtext("EventDate", ""), summary.findtext("EventTime", "")
        )

        return TrackingStatus(
            carrier=Carrier.USPS,
            tracking_number=tracking_number,
            status=status,
            delivered_at=scanned_at if status == TrackingState.DELIVERED else None,
            last_update=scanned_at,
            location=join_location(
                summary.findtext("EventCity", ""), summary.findtext("EventState", "")
            ),
            details=event,
        )

    @staticmethod
    def status_from_event(event: str) -> str:
        text = (event or "").lower()
        if not text:
            return TrackingState.PENDING
        if "out for delivery" in text:
            return TrackingState.OUT_FOR_DELIVERY
        if "delivered" in text:
            return TrackingState.DELIVERED
        if any(word in text for word in ("in transit", "arrived", "departed")):
            return TrackingState.IN_TRANSIT
        if "exception" in text or "alert" in text:
            return TrackingState.EXCEPTION
        return TrackingState.IN_TRANSIT


def join_location(*parts: str | None) -> str:
    return ", ".join(part for part in parts if part)


def to_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=dt_timezone.utc)
    return value.astimezone(dt_timezone.utc)


def parse_ups_datetime(date_str: str | None, time_str: str | None) -> datetime | None:
    """UPS sends ``YYYYMMDD`` and ``HHMMSS`` separately."""
    if not date_str:
        return None
    try:
        return datetime.strptime(
            f"{date_str}{time_str or '000000'}", "%Y%m%d%H%M%S"
        ).replace(tzinfo=dt_timezone.utc)
    except ValueError:
        return None


def parse_usps_datetime(date_str: str, time_str: str) -> datetime | None:
    """USPS sends ``January 10, 2024`` and ``10:15 am``."""
    if not date_str:
        return None
    if time_str:
        try:
            return datetime.strptime(
                f"{date_str} {time_str.upper()}", "%B %d, %Y %I:%M %p"
            ).replace(tzinfo=dt_timezone.utc)
        except ValueError:
            pass
    try:
        return datetime.strptime(date_str, "%B %d, %Y").replace(tzinfo=dt_timezone.utc)
    except ValueError:
        return None
