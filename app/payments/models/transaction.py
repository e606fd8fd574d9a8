"""
Transaction model: one escrowed sale of a listing.

The fee breakdown is written once at checkout and never rewritten;
refunds are recorded in ``refunded_amount`` beside it. Status changes go
through the django-fsm transitions below, whose sources come from
``ALLOWED_TRANSITIONS``.

Usage:
    from payments.models import Transaction

    with transaction.atomic():
        txn = lock_for_transition(Transaction, txn_id, [TransactionStatus.SHIPPED])
        txn.mark_delivered(delivered_at)
        txn.save()
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin

from payments.state_machines import (
    DisputeStatus,
    TransactionStateMachine,
    TransactionStatus,
)


def _money_field(help_text: str, **kwargs) -> models.DecimalField:
    return models.DecimalField(max_digits=10, decimal_places=2, help_text=help_text, **kwargs)


class Transaction(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    Escrowed sale from checkout to payout or refund.

    State Flow:
        PENDING -> PAYMENT_RECEIVED -> SHIPPED -> DELIVERED -> COMPLETED
        SHIPPED/DELIVERED -> DISPUTED -> COMPLETED/REFUNDED
        PENDING -> CANCELLED

    Invariants:
        total_amount == sale_price + tax_amount + shipping_cost
        seller_payout == sale_price - platform_fee - processor_fee
    """

    # ==========================================================================
    # Parties
    # ==========================================================================

    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="purchases",
    )
    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="sales",
    )
    listing = models.ForeignKey(
        "listings.Listing",
        on_delete=models.PROTECT,
        related_name="transactions",
    )

    # ==========================================================================
    # Fee breakdown (frozen at checkout)
    # ==========================================================================

    sale_price = _money_field("Item price only")
    tax_rate = models.DecimalField(
        max_digits=7,
        decimal_places=5,
        default=Decimal("0"),
        help_text="Sales tax rate applied at checkout",
    )
    tax_amount = _money_field("Sales tax charged", default=Decimal("0.00"))
    shipping_cost = _money_field("Shipping charged to the buyer", default=Decimal("0.00"))
    free_shipping = models.BooleanField(default=False)
    platform_fee_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        default=Decimal("0"),
    )
    platform_fee = _money_field("Platform commission", default=Decimal("0.00"))
    processor_fee = _money_field(
        "Processor fee passed to the seller (zero when the platform absorbs it)",
        default=Decimal("0.00"),
    )
    application_fee = _money_field(
        "Application fee retained by the platform on the destination charge",
        default=Decimal("0.00"),
    )
    seller_payout = _money_field("Sale price less platform and processor fees")
    total_amount = _money_field("Sale price plus tax and shipping, charged to the buyer")
    refunded_amount = _money_field("Total refunded to the buyer", default=Decimal("0.00"))

    # ==========================================================================
    # Stripe
    # ==========================================================================

    stripe_payment_intent_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe PaymentIntent ID (pi_xxx)",
    )
    stripe_status = models.CharField(
        max_length=50,
        blank=True,
        help_text="Stripe's own status string, stored verbatim for audit",
    )
    stripe_charge_id = models.CharField(max_length=255, blank=True)
    stripe_refund_id = models.CharField(max_length=255, blank=True)

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    status = FSMField(
        default=TransactionStatus.PENDING,
        choices=TransactionStatus.choices,
        db_index=True,
        protected=True,
        help_text="Lifecycle status (managed by FSM)",
    )
    funds_held = models.BooleanField(
        default=True,
        help_text="Funds are in escrow and not yet final seller earnings",
    )
    escrow_release_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Earliest time the escrow release job may complete the sale",
    )

    # ==========================================================================
    # Shipment
    # ==========================================================================

    tracking_number = models.CharField(max_length=64, blank=True)
    carrier = models.CharField(max_length=20, blank=True)

    paid_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    funds_released_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Dispute
    # ==========================================================================

    dispute_status = models.CharField(
        max_length=30,
        choices=DisputeStatus.choices,
        null=True,
        blank=True,
        db_index=True,
    )
    dispute_reason = models.TextField(blank=True)
    disputed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    disputed_at = models.DateTimeField(null=True, blank=True)
    dispute_resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    dispute_resolved_at = models.DateTimeField(null=True, blank=True)
    resolution_notes = models.TextField(blank=True)

    # ==========================================================================
    # Shipping address snapshot
    # ==========================================================================

    shipping_name = models.CharField(max_length=200, blank=True)
    shipping_line1 = models.CharField(max_length=200, blank=True)
    shipping_line2 = models.CharField(max_length=200, blank=True)
    shipping_city = models.CharField(max_length=100, blank=True)
    shipping_state = models.CharField(max_length=50, blank=True)
    shipping_zip = models.CharField(max_length=10)
    shipping_country = models.CharField(max_length=2, default="US")
    shipping_phone = models.CharField(max_length=30, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "escrow_release_at"], name="txn_status_release_idx"),
            models.Index(fields=["buyer", "status"], name="txn_buyer_status_idx"),
            models.Index(fields=["seller", "status"], name="txn_seller_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(sale_price__gt=0),
                name="txn_sale_price_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(refunded_amount__gte=0),
                name="txn_refunded_amount_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Transaction({self.id}, {self.status}, ${self.total_amount})"

    @property
    def has_open_dispute(self) -> bool:
        return self.dispute_status == DisputeStatus.OPEN

    @property
    def is_terminal(self) -> bool:
        return TransactionStateMachine.is_terminal(self.status)

    def is_party(self, user) -> bool:
        return user.pk in (self.buyer_id, self.seller_id)

    @property
    def buyer_link(self) -> str:
        return f"/account/purchases/{self.id}"

    @property
    def seller_link(self) -> str:
        return f"/account/sales/{self.id}"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=TransactionStateMachine.sources_for(TransactionStatus.PAYMENT_RECEIVED),
        target=TransactionStatus.PAYMENT_RECEIVED,
    )
    def mark_payment_received(self, stripe_status: str, charge_id: str = "") -> None:
        """Escrow fields are left untouched; funds stay held."""
        self.stripe_status = stripe_status
        if charge_id:
            self.stripe_charge_id = charge_id
        self.funds_held = True
        self.paid_at = timezone.now()

    @transition(
        field=status,
        source=TransactionStateMachine.sources_for(TransactionStatus.CANCELLED),
        target=TransactionStatus.CANCELLED,
    )
    def cancel(self, stripe_status: str) -> None:
        self.stripe_status = stripe_status
        self.funds_held = False
        self.cancelled_at = timezone.now()

    @transition(
        field=status,
        source=TransactionStateMachine.sources_for(TransactionStatus.SHIPPED),
        target=TransactionStatus.SHIPPED,
    )
    def mark_shipped(self, tracking_number: str, carrier: str) -> None:
        self.tracking_number = tracking_number
        self.carrier = carrier
        self.shipped_at = timezone.now()

    @transition(
        field=status,
        source=TransactionStateMachine.sources_for(TransactionStatus.DELIVERED),
        target=TransactionStatus.DELIVERED,
    )
    def mark_delivered(self, delivered_at: datetime, hold_hours: int | None = None) -> None:
        """Start the escrow hold from the carrier's delivery time."""
        if hold_hours is None:
            hold_hours = settings.ESCROW_RELEASE_HOURS
        self.delivered_at = delivered_at
        self.escrow_release_at = delivered_at + timedelta(hours=hold_hours)

    @transition(
        field=status,
        source=TransactionStateMachine.sources_for(TransactionStatus.DISPUTED),
        target=TransactionStatus.DISPUTED,
    )
    def open_dispute(self, opened_by, reason: str) -> None:
        """Pause the escrow clock; funds remain held."""
        self.dispute_status = DisputeStatus.OPEN
        self.dispute_reason = reason
        self.disputed_by = opened_by
        self.disputed_at = timezone.now()
        self.escrow_release_at = None

    @transition(
        field=status,
        source=[TransactionStatus.DELIVERED],
        target=TransactionStatus.COMPLETED,
    )
    def release_escrow(self) -> None:
        now = timezone.now()
        self.funds_held = False
        self.funds_released_at = now
        self.completed_at = now

    @transition(
        field=status,
        source=[TransactionStatus.DISPUTED],
        target=TransactionStatus.COMPLETED,
    )
    def resolve_completed(
        self,
        dispute_status: str,
        resolved_by,
        refunded_amount: Decimal = Decimal("0.00"),
        refund_id: str = "",
        notes: str = "",
        release_funds: bool = False,
    ) -> None:
        """Seller-favored or split outcome; any refund was already issued."""
        self._record_resolution(dispute_status, resolved_by, refunded_amount, refund_id, notes)
        if release_funds:
            self.funds_released_at = self.dispute_resolved_at

    @transition(
        field=status,
        source=[TransactionStatus.DISPUTED],
        target=TransactionStatus.REFUNDED,
    )
    def resolve_refunded(
        self,
        dispute_status: str,
        resolved_by,
        refunded_amount: Decimal,
        refund_id: str = "",
        notes: str = "",
    ) -> None:
        self._record_resolution(dispute_status, resolved_by, refunded_amount, refund_id, notes)

    def _record_resolution(self, dispute_status, resolved_by, refunded_amount, refund_id, notes):
        now = timezone.now()
        self.dispute_status = dispute_status
        self.dispute_resolved_by = resolved_by
        self.dispute_resolved_at = now
        self.refunded_amount = refunded_amount
        if refund_id:
            self.stripe_refund_id = refund_id
        self.resolution_notes = notes
        self.funds_held = False
        self.completed_at = now
