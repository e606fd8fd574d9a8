"""
Stripe Connect account services.

The local ConnectedAccount row is a cache of Stripe's state. Every sync
re-fetches the account and overwrites the cache, so duplicate and
out-of-order account.updated deliveries converge on the same result.

Usage:
    # From a webhook handler
    AccountStatusSynchronizer.sync_account("acct_123")

    # From the seller's payouts page
    result = ConnectOnboardingService.start_onboarding(request.user)
    redirect_to(result.data.url)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils import timezone

from core.services import BaseService, ServiceResult
from payments.adapters import (
    AccountStatusResult,
    IdempotencyKeyGenerator,
    StripeAdapter,
)
from payments.exceptions import StripeError, StripeInvalidAccountError
from payments.models import ConnectedAccount
from payments.state_machines import AccountStatus

if TYPE_CHECKING:
    from authentication.models import User


@dataclass
class OnboardingLink:
    account_id: str
    url: str


@dataclass
class ConnectStatus:
    has_account: bool
    account_id: str | None = None
    status: str | None = None
    charges_enabled: bool = False
    payouts_enabled: bool = False
    onboarding_complete: bool = False
    requirements_status: str = ""

    def to_dict(self) -> dict:
        return {
            "has_account": self.has_account,
            "account_id": self.account_id,
            "status": self.status,
            "charges_enabled": self.charges_enabled,
            "payouts_enabled": self.payouts_enabled,
            "onboarding_complete": self.onboarding_complete,
            "requirements_status": self.requirements_status,
        }


class AccountStatusSynchronizer(BaseService):
    """
    Keep ConnectedAccount rows consistent with Stripe.

    Methods:
        sync_account: Re-fetch an account and overwrite the cached fields
        apply_status: Write an already-fetched status onto the local row
        disconnect: Forget an account the seller deauthorized
    """

    _stripe_adapter: type | None = None

    @classmethod
    def get_stripe_adapter(cls) -> type:
        return cls._stripe_adapter or StripeAdapter

    @classmethod
    def set_stripe_adapter(cls, adapter: type | None) -> None:
        cls._stripe_adapter = adapter

    @classmethod
    def sync_account(cls, stripe_account_id: str) -> ServiceResult[ConnectedAccount | None]:
        """
        Returns:
            The refreshed account, or None if the account is not ours
        """
        logger = cls.get_logger()

        if not ConnectedAccount.objects.filter(stripe_account_id=stripe_account_id).exists():
            logger.info(
                "Account not linked to any seller, ignoring",
                extra={"account_id": stripe_account_id},
            )
            return ServiceResult.success(None)

        try:
            status = cls.get_stripe_adapter().retrieve_account(stripe_account_id)
        except StripeInvalidAccountError as e:
            logger.warning(
                "Account no longer accessible",
                extra={"account_id": stripe_account_id, "error_code": e.error_code},
            )
            return cls.fail_with(e)
        except StripeError as e:
            logger.error(
                "Account status fetch failed",
                extra={"account_id": stripe_account_id, "error_code": e.error_code},
            )
            return cls.fail_with(e)

        return ServiceResult.success(cls.apply_status(status))

    @classmethod
    def apply_status(cls, status: AccountStatusResult) -> ConnectedAccount | None:
        with cls.atomic():
            account = (
                ConnectedAccount.objects.select_for_update()
                .filter(stripe_account_id=status.account_id)
                .first()
            )
            if account is None:
                return None

            previous = account.status
            account.status = status.status
            account.charges_enabled = status.charges_enabled
            account.payouts_enabled = status.payouts_enabled
            account.details_submitted = status.details_submitted
            account.onboarding_complete = status.onboarding_complete
            account.disabled_reason = status.disabled_reason
            account.requirements_due = status.currently_due
            account.last_synced_at = timezone.now()
            account.save()

        cls.get_logger().info(
            "Connected account synced",
            extra={
                "account_id": status.account_id,
                "previous_status": previous,
                "status": account.status,
                "onboarding_complete": account.onboarding_complete,
            },
        )
        return account

    @classmethod
    def disconnect(cls, stripe_account_id: str) -> ServiceResult[ConnectedAccount | None]:
        """Clear the account ID so checkout stops routing funds to it."""
        with cls.atomic():
            account = (
                ConnectedAccount.objects.select_for_update()
                .filter(stripe_account_id=stripe_account_id)
                .first()
            )
            if account is None:
                return ServiceResult.success(None)

            account.stripe_account_id = None
            account.status = AccountStatus.DISCONNECTED
            account.charges_enabled = False
            account.payouts_enabled = False
            account.onboarding_complete = False
            account.last_synced_at = timezone.now()
            account.metadata = {**account.metadata, "disconnected_account_id": stripe_account_id}
            account.save()

        cls.get_logger().warning(
            "Connected account deauthorized",
            extra={"account_id": stripe_account_id, "user_id": str(account.user_id)},
        )
        return ServiceResult.success(account)


class ConnectOnboardingService(BaseService):
    """Seller-facing Connect onboarding and status."""

    _stripe_adapter: type | None = None

    @classmethod
    def get_stripe_adapter(cls) -> type:
        return cls._stripe_adapter or StripeAdapter

    @classmethod
    def set_stripe_adapter(cls, adapter: type | None) -> None:
        cls._stripe_adapter = adapter

    @classmethod
    def start_onboarding(
        cls,
        user: User,
        return_url: str | None = None,
        refresh_url: str | None = None,
    ) -> ServiceResult[OnboardingLink]:
        """
        Create an Express account if the seller has none, then an onboarding link.
        """
        logger = cls.get_logger()
        adapter = cls.get_stripe_adapter()
        base_url = settings.FRONTEND_URL.rstrip("/")
        return_url = return_url or f"{base_url}/account/payouts"
        refresh_url = refresh_url or f"{base_url}/account/payouts?refresh=true"

        account, _ = ConnectedAccount.objects.get_or_create(user=user)

        try:
            if not account.stripe_account_id:
                created = adapter.create_connected_account(
                    email=user.email,
                    user_id=str(user.id),
                    display_name=user.display_name,
                    idempotency_key=IdempotencyKeyGenerator.generate(
                        "connect_account", user.id, attempt=account.version
                    ),
                )
                with cls.atomic():
                    account.stripe_account_id = created.id
                    account.status = AccountStatus.PENDING
                    account.onboarding_complete = False
                    account.save()
                logger.info(
                    "Connected account created",
                    extra={"user_id": str(user.id), "account_id": created.id},
                )

            link = adapter.create_onboarding_link(
                account_id=account.stripe_account_id,
                refresh_url=refresh_url,
                return_url=return_url,
            )
        except StripeError as e:
            logger.error(
                "Connect onboarding failed",
                extra={"user_id": str(user.id), "error_code": e.error_code},
            )
            return cls.fail_with(e)

        return ServiceResult.success(
            OnboardingLink(account_id=account.stripe_account_id, url=link.url)
        )

    @classmethod
    def get_status(cls, user: User) -> ServiceResult[ConnectStatus]:
        """Fetch live status from Stripe and refresh the cache on the way."""
        account = ConnectedAccount.objects.filter(user=user).first()
        if account is None or not account.stripe_account_id:
            return ServiceResult.success(ConnectStatus(has_account=False))

        try:
            status = cls.get_stripe_adapter().retrieve_account(account.stripe_account_id)
        except StripeError as e:
            return cls.fail_with(e)

        AccountStatusSynchronizer.apply_status(status)
        return ServiceResult.success(
            ConnectStatus(
                has_account=True,
                account_id=status.account_id,
                status=status.status,
                charges_enabled=status.charges_enabled,
                payouts_enabled=status.payouts_enabled,
                onboarding_complete=status.onboarding_complete,
                requirements_status=status.requirements_status,
            )
        )
