"""
Payment admin configuration.

Transactions are read-only here: status changes must go through the
services (dispute resolution, shipment) or the scheduled jobs so the
compare-and-swap guard and notifications run. Admins resolve disputes
through the API.
"""

from django.contrib import admin

from payments.models import ConnectedAccount, Transaction, WebhookEvent
from payments.state_machines import WebhookEventStatus

__all__ = [
    "ConnectedAccountAdmin",
    "TransactionAdmin",
    "WebhookEventAdmin",
]


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    """
    Admin configuration for Transaction.

    Provides visibility into escrow state and the frozen fee breakdown.
    """

    list_display = [
        "id",
        "listing",
        "buyer",
        "seller",
        "status",
        "total_amount",
        "funds_held",
        "escrow_release_at",
        "dispute_status",
        "created_at",
    ]
    list_filter = ["status", "funds_held", "dispute_status", "carrier", "created_at"]
    search_fields = [
        "id",
        "stripe_payment_intent_id",
        "tracking_number",
        "buyer__email",
        "seller__email",
        "listing__title",
    ]
    raw_id_fields = ["buyer", "seller", "listing", "disputed_by", "dispute_resolved_by"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "version", "status", "listing", "buyer", "seller"),
            },
        ),
        (
            "Fee Breakdown",
            {
                "fields": (
                    "sale_price",
                    "tax_rate",
                    "tax_amount",
                    "shipping_cost",
                    "free_shipping",
                    "platform_fee_rate",
                    "platform_fee",
                    "processor_fee",
                    "application_fee",
                    "seller_payout",
                    "total_amount",
                    "refunded_amount",
                ),
            },
        ),
        (
            "Escrow",
            {
                "fields": ("funds_held", "escrow_release_at", "funds_released_at"),
            },
        ),
        (
            "Stripe",
            {
                "fields": (
                    "stripe_payment_intent_id",
                    "stripe_status",
                    "stripe_charge_id",
                    "stripe_refund_id",
                ),
            },
        ),
        (
            "Shipment",
            {
                "fields": (
                    "tracking_number",
                    "carrier",
                    "shipping_name",
                    "shipping_line1",
                    "shipping_line2",
                    "shipping_city",
                    "shipping_state",
                    "shipping_zip",
                    "shipping_country",
                    "shipping_phone",
                ),
            },
        ),
        (
            "Dispute",
            {
                "fields": (
                    "dispute_status",
                    "dispute_reason",
                    "disputed_by",
                    "disputed_at",
                    "dispute_resolved_by",
                    "dispute_resolved_at",
                    "resolution_notes",
                ),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": (
                    "paid_at",
                    "shipped_at",
                    "delivered_at",
                    "completed_at",
                    "cancelled_at",
                    "created_at",
                    "updated_at",
                ),
            },
        ),
    )

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request) -> bool:
        """Transactions are only created by checkout."""
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for transactions (audit trail)."""
        return False


@admin.register(ConnectedAccount)
class ConnectedAccountAdmin(admin.ModelAdmin):
    """
    Admin configuration for ConnectedAccount.

    Provides visibility into Stripe Connect account status.
    """

    list_display = [
        "id",
        "user",
        "stripe_account_id",
        "status",
        "charges_enabled",
        "payouts_enabled",
        "onboarding_complete",
        "last_synced_at",
    ]
    list_filter = ["status", "charges_enabled", "payouts_enabled", "onboarding_complete"]
    search_fields = ["id", "stripe_account_id", "user__email"]
    raw_id_fields = ["user"]
    readonly_fields = ["id", "created_at", "updated_at", "version", "last_synced_at"]
    ordering = ["-created_at"]


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into webhook processing status.
    Webhook events are immutable once received.
    """

    list_display = [
        "id",
        "stripe_event_id",
        "event_type",
        "source",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "source", "event_type", "created_at"]
    search_fields = ["id", "stripe_event_id", "event_type", "stripe_account_id"]
    readonly_fields = [
        "id",
        "created_at",
        "updated_at",
        "stripe_event_id",
        "event_type",
        "source",
        "stripe_account_id",
        "payload",
        "processed_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["requeue_events"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "stripe_event_id", "event_type", "source", "stripe_account_id", "status"),
            },
        ),
        (
            "Processing",
            {
                "fields": ("processed_at", "retry_count"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message",),
                "classes": ("collapse",),
            },
        ),
        (
            "Payload",
            {
                "fields": ("payload",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    @admin.action(description="Re-queue selected events for processing")
    def requeue_events(self, request, queryset):
        from payments.tasks import process_webhook_event

        events = list(queryset.exclude(status=WebhookEventStatus.PROCESSED))
        for event in events:
            process_webhook_event.delay(str(event.id))
        self.message_user(request, f"Queued {len(events)} event(s)")

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for webhook events (audit trail)."""
        return False

    def has_add_permission(self, request) -> bool:
        """Disable adding webhook events through admin."""
        return False
