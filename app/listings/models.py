"""
Listing model.

Only the attributes the checkout and escrow flows depend on are modeled
here: seller, device type (drives the shipping weight class), price and
sale status.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class DeviceType(models.TextChoices):
    IPHONE = "IPHONE", "iPhone"
    IPAD = "IPAD", "iPad"
    MACBOOK = "MACBOOK", "MacBook"
    MAC_MINI = "MAC_MINI", "Mac mini"
    MAC_STUDIO = "MAC_STUDIO", "Mac Studio"
    MAC_PRO = "MAC_PRO", "Mac Pro"
    IMAC = "IMAC", "iMac"
    APPLE_WATCH = "APPLE_WATCH", "Apple Watch"
    APPLE_TV = "APPLE_TV", "Apple TV"
    AIRPODS = "AIRPODS", "AirPods"
    HOMEPOD = "HOMEPOD", "HomePod"
    OTHER = "OTHER", "Other"


class ListingStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    PENDING = "PENDING", "Sale pending"
    SOLD = "SOLD", "Sold"
    REMOVED = "REMOVED", "Removed"


class Listing(UUIDPrimaryKeyMixin, BaseModel):
    """
    A device offered for sale by a seller.

    Fields:
        seller: Owner of the listing and payee of the sale
        title: Shown in buyer and seller notifications
        device_type: Device category used for shipping estimates
        price: Current asking price in USD
        status: ACTIVE listings are purchasable; PENDING once paid;
            SOLD when escrow is released
        views: View counter maintained by the browsing surface
    """

    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="listings",
    )
    title = models.CharField(max_length=200)
    device_type = models.CharField(
        max_length=20,
        choices=DeviceType.choices,
        default=DeviceType.OTHER,
    )
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    status = models.CharField(
        max_length=20,
        choices=ListingStatus.choices,
        default=ListingStatus.ACTIVE,
        db_index=True,
    )
    views = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["seller", "status"], name="listing_seller_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.title} (${self.price})"

    @property
    def is_purchasable(self) -> bool:
        return self.status == ListingStatus.ACTIVE
