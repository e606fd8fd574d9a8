"""
WebhookEvent model for Stripe webhook event tracking.

Every verified event from either Stripe endpoint is stored before it is
handled. The unique stripe_event_id makes redelivered events no-ops.

Usage:
    event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id="evt_1234567890",
        defaults={
            "event_type": "payment_intent.succeeded",
            "source": WebhookSource.PAYMENTS,
            "payload": payload,
        },
    )
    if not created and event.is_processed:
        return Response({"received": True})
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import WebhookEventStatus, WebhookSource


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Stored Stripe webhook event.

    Processing Flow:
        1. Verify signature with the endpoint's secret
        2. get_or_create on stripe_event_id
        3. Already PROCESSED -> acknowledge and stop
        4. PROCESSING -> handler -> PROCESSED or FAILED
        5. FAILED events are retried by the beat task until max retries
    """

    stripe_event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe Event ID (evt_xxx)",
    )
    event_type = models.CharField(max_length=100, db_index=True)
    source = models.CharField(
        max_length=20,
        choices=WebhookSource.choices,
        default=WebhookSource.PAYMENTS,
        help_text="Endpoint that received the event",
    )
    stripe_account_id = models.CharField(
        max_length=255,
        blank=True,
        help_text="Connected account the event concerns (Connect events)",
    )

    payload = models.JSONField(help_text="Full event payload")

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
    )
    processed_at = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(null=True, blank=True)
    retry_count = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
            models.Index(fields=["status", "retry_count"], name="webhook_status_retry_idx"),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.stripe_event_id}, {self.event_type})"

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def is_failed(self) -> bool:
        return self.status == WebhookEventStatus.FAILED

    @property
    def can_retry(self) -> bool:
        return self.is_failed and self.retry_count < settings.WEBHOOK_MAX_RETRIES

    def mark_processing(self) -> None:
        """Does not save."""
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message

    def get_object(self) -> dict:
        """The event's ``data.object`` dict, or {} if the payload is malformed."""
        try:
            obj = self.payload.get("data", {}).get("object", {})
        except AttributeError:
            return {}
        return obj if isinstance(obj, dict) else {}

    def get_object_id(self) -> str | None:
        return self.get_object().get("id")
