"""
ConnectedAccount model for Stripe Connect integration.

Caches the seller's Stripe Express account state locally so checkout
can decide payability without calling Stripe.

Usage:
    from payments.models import ConnectedAccount

    account = ConnectedAccount.objects.filter(user=seller).first()
    if account and account.can_receive_payouts:
        destination = account.stripe_account_id
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin

from payments.state_machines import AccountStatus


class ConnectedAccount(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    A seller's Stripe Connect account and its last known status.

    Fields:
        user: Seller who owns the account
        stripe_account_id: Stripe Account ID (acct_xxx); cleared on deauthorization
        status: Cached status (pending, active, restricted, disabled, disconnected)
        onboarding_complete: charges_enabled and details_submitted both true
        last_synced_at: When the cache was last refreshed from Stripe

    Lifecycle:
        1. Seller starts onboarding, account created (pending)
        2. account.updated webhooks refresh the capability flags
        3. Once charges and payouts are enabled the account is active
        4. Deauthorization clears the account ID (disconnected)
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="connected_account",
    )

    stripe_account_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Stripe Account ID (acct_xxx)",
    )

    status = models.CharField(
        max_length=20,
        choices=AccountStatus.choices,
        default=AccountStatus.PENDING,
        db_index=True,
    )

    charges_enabled = models.BooleanField(default=False)
    payouts_enabled = models.BooleanField(default=False)
    details_submitted = models.BooleanField(default=False)
    onboarding_complete = models.BooleanField(
        default=False,
        help_text="Stripe reports charges enabled and details submitted",
    )

    disabled_reason = models.CharField(max_length=255, blank=True)
    requirements_due = models.JSONField(
        default=list,
        blank=True,
        help_text="Stripe requirement keys currently due",
    )
    last_synced_at = models.DateTimeField(null=True, blank=True)

    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Connected Account"
        verbose_name_plural = "Connected Accounts"

    def __str__(self) -> str:
        return f"ConnectedAccount({self.stripe_account_id}, {self.status})"

    @property
    def can_receive_payouts(self) -> bool:
        """A seller is payable once onboarding is complete on a linked account."""
        return bool(self.stripe_account_id) and self.onboarding_complete

    @property
    def is_fully_enabled(self) -> bool:
        return self.charges_enabled and self.payouts_enabled
