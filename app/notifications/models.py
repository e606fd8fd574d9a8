"""
Notification model.

Notifications are immutable records: title and message are fully
rendered when created, and only ``is_read`` changes afterwards.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel


class NotificationKind(models.TextChoices):
    NEW_SALE = "NEW_SALE", "New sale"
    PURCHASE_CONFIRMED = "PURCHASE_CONFIRMED", "Purchase confirmed"
    ITEM_SHIPPED = "ITEM_SHIPPED", "Item shipped"
    DELIVERY_CONFIRMED = "DELIVERY_CONFIRMED", "Delivery confirmed"
    FUNDS_RELEASED = "FUNDS_RELEASED", "Funds released"
    DISPUTE_OPENED = "DISPUTE_OPENED", "Dispute opened"
    DISPUTE_RESOLVED = "DISPUTE_RESOLVED", "Dispute resolved"
    TRANSACTION_UPDATE = "TRANSACTION_UPDATE", "Transaction update"


class Notification(BaseModel):
    """
    A single notification shown in a user's inbox.

    Fields:
        recipient: User receiving the notification
        kind: NotificationKind value
        title: Rendered title
        message: Rendered body text
        link: Relative front-end path (e.g. /account/sales/<id>)
        data: Extra JSON context such as the transaction id
        is_read: Whether the recipient has read it
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        help_text="User receiving this notification",
    )
    kind = models.CharField(
        max_length=32,
        choices=NotificationKind.choices,
        help_text="Notification type",
    )
    title = models.CharField(max_length=255)
    message = models.TextField(blank=True, default="")
    link = models.CharField(max_length=500, blank=True, default="")
    data = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["recipient", "is_read", "-created_at"],
                name="notif_recipient_unread_idx",
            ),
        ]

    def __str__(self) -> str:
        read_status = "read" if self.is_read else "unread"
        return f"Notification({self.kind}) -> User {self.recipient_id} [{read_status}]"
