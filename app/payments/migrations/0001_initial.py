import decimal
import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("listings", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="ConnectedAccount",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True, db_index=True, help_text="Timestamp when this record was created"
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified"),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1, help_text="Incremented on every update for optimistic locking"
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "stripe_account_id",
                    models.CharField(
                        blank=True,
                        help_text="Stripe Account ID (acct_xxx)",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("active", "Active"),
                            ("restricted", "Restricted"),
                            ("disabled", "Disabled"),
                            ("disconnected", "Disconnected"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("charges_enabled", models.BooleanField(default=False)),
                ("payouts_enabled", models.BooleanField(default=False)),
                ("details_submitted", models.BooleanField(default=False)),
                (
                    "onboarding_complete",
                    models.BooleanField(
                        default=False, help_text="Stripe reports charges enabled and details submitted"
                    ),
                ),
                ("disabled_reason", models.CharField(blank=True, max_length=255)),
                (
                    "requirements_due",
                    models.JSONField(blank=True, default=list, help_text="Stripe requirement keys currently due"),
                ),
                ("last_synced_at", models.DateTimeField(blank=True, null=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="connected_account",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Connected Account",
                "verbose_name_plural": "Connected Accounts",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True, db_index=True, help_text="Timestamp when this record was created"
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified"),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "stripe_event_id",
                    models.CharField(help_text="Stripe Event ID (evt_xxx)", max_length=255, unique=True),
                ),
                ("event_type", models.CharField(db_index=True, max_length=100)),
                (
                    "source",
                    models.CharField(
                        choices=[("payments", "Payments"), ("connect", "Connect")],
                        default="payments",
                        help_text="Endpoint that received the event",
                        max_length=20,
                    ),
                ),
                (
                    "stripe_account_id",
                    models.CharField(
                        blank=True,
                        help_text="Connected account the event concerns (Connect events)",
                        max_length=255,
                    ),
                ),
                ("payload", models.JSONField(help_text="Full event payload")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, null=True)),
                ("retry_count", models.PositiveSmallIntegerField(default=0)),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
                    models.Index(fields=["status", "retry_count"], name="webhook_status_retry_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Transaction",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True, db_index=True, help_text="Timestamp when this record was created"
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified"),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1, help_text="Incremented on every update for optimistic locking"
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("sale_price", models.DecimalField(decimal_places=2, help_text="Item price only", max_digits=10)),
                (
                    "tax_rate",
                    models.DecimalField(
                        decimal_places=5,
                        default=decimal.Decimal("0"),
                        help_text="Sales tax rate applied at checkout",
                        max_digits=7,
                    ),
                ),
                (
                    "tax_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Sales tax charged",
                        max_digits=10,
                    ),
                ),
                (
                    "shipping_cost",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Shipping charged to the buyer",
                        max_digits=10,
                    ),
                ),
                ("free_shipping", models.BooleanField(default=False)),
                (
                    "platform_fee_rate",
                    models.DecimalField(decimal_places=4, default=decimal.Decimal("0"), max_digits=5),
                ),
                (
                    "platform_fee",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Platform commission",
                        max_digits=10,
                    ),
                ),
                (
                    "processor_fee",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Processor fee passed to the seller (zero when the platform absorbs it)",
                        max_digits=10,
                    ),
                ),
                (
                    "application_fee",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Application fee retained by the platform on the destination charge",
                        max_digits=10,
                    ),
                ),
                (
                    "seller_payout",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Sale price less platform and processor fees",
                        max_digits=10,
                    ),
                ),
                (
                    "total_amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Sale price plus tax and shipping, charged to the buyer",
                        max_digits=10,
                    ),
                ),
                (
                    "refunded_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Total refunded to the buyer",
                        max_digits=10,
                    ),
                ),
                (
                    "stripe_payment_intent_id",
                    models.CharField(help_text="Stripe PaymentIntent ID (pi_xxx)", max_length=255, unique=True),
                ),
                (
                    "stripe_status",
                    models.CharField(
                        blank=True,
                        help_text="Stripe's own status string, stored verbatim for audit",
                        max_length=50,
                    ),
                ),
                ("stripe_charge_id", models.CharField(blank=True, max_length=255)),
                ("stripe_refund_id", models.CharField(blank=True, max_length=255)),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("PENDING", "Pending Payment"),
                            ("PAYMENT_RECEIVED", "Payment Received"),
                            ("SHIPPED", "Shipped"),
                            ("DELIVERED", "Delivered"),
                            ("DISPUTED", "Disputed"),
                            ("COMPLETED", "Completed"),
                            ("REFUNDED", "Refunded"),
                            ("CANCELLED", "Cancelled"),
                        ],
                        db_index=True,
                        default="PENDING",
                        help_text="Lifecycle status (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "funds_held",
                    models.BooleanField(
                        default=True, help_text="Funds are in escrow and not yet final seller earnings"
                    ),
                ),
                (
                    "escrow_release_at",
                    models.DateTimeField(
                        blank=True,
                        db_index=True,
                        help_text="Earliest time the escrow release job may complete the sale",
                        null=True,
                    ),
                ),
                ("tracking_number", models.CharField(blank=True, max_length=64)),
                ("carrier", models.CharField(blank=True, max_length=20)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("shipped_at", models.DateTimeField(blank=True, null=True)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                ("funds_released_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                (
                    "dispute_status",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("OPEN", "Open"),
                            ("RESOLVED_BUYER", "Resolved for Buyer"),
                            ("RESOLVED_SELLER", "Resolved for Seller"),
                            ("RESOLVED_SPLIT_BUYER", "Split (Buyer Favored)"),
                            ("RESOLVED_SPLIT_SELLER", "Split (Seller Favored)"),
                        ],
                        db_index=True,
                        max_length=30,
                        null=True,
                    ),
                ),
                ("dispute_reason", models.TextField(blank=True)),
                ("disputed_at", models.DateTimeField(blank=True, null=True)),
                ("dispute_resolved_at", models.DateTimeField(blank=True, null=True)),
                ("resolution_notes", models.TextField(blank=True)),
                ("shipping_name", models.CharField(blank=True, max_length=200)),
                ("shipping_line1", models.CharField(blank=True, max_length=200)),
                ("shipping_line2", models.CharField(blank=True, max_length=200)),
                ("shipping_city", models.CharField(blank=True, max_length=100)),
                ("shipping_state", models.CharField(blank=True, max_length=50)),
                ("shipping_zip", models.CharField(max_length=10)),
                ("shipping_country", models.CharField(default="US", max_length=2)),
                ("shipping_phone", models.CharField(blank=True, max_length=30)),
                (
                    "buyer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="purchases",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "seller",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sales",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "listing",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="listings.listing",
                    ),
                ),
                (
                    "disputed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "dispute_resolved_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "escrow_release_at"], name="txn_status_release_idx"),
                    models.Index(fields=["buyer", "status"], name="txn_buyer_status_idx"),
                    models.Index(fields=["seller", "status"], name="txn_seller_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("sale_price__gt", 0)),
                        name="txn_sale_price_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("refunded_amount__gte", 0)),
                        name="txn_refunded_amount_non_negative",
                    ),
                ],
            },
        ),
    ]
