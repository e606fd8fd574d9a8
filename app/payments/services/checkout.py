"""
Checkout orchestration.

Validates a purchase against the current listing, prices it, creates the
Stripe destination charge and records a PENDING Transaction keyed by the
PaymentIntent ID.

Flow:
    1. Preconditions (buyer, listing, seller account, expected price)
    2. Fee breakdown (tax, shipping, platform and processor fees)
    3. Stripe PaymentIntent (outside any database transaction)
    4. Transaction insert in a short atomic block

If step 4 fails after step 3 succeeded the PaymentIntent is orphaned.
It is logged here and picked up by the authorization audit; it is never
retried, since a second attempt would authorize the buyer twice.

Usage:
    result = CheckoutService.create_checkout(
        buyer=request.user,
        listing_id=listing.id,
        shipping_address={"zip_code": "94107", "name": "Ada"},
        expected_price=Decimal("200.00"),
    )
    if result.success:
        result.data.client_secret
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import DatabaseError

from core.exceptions import BaseApplicationError, NotFoundError
from core.money import CENT, to_cents, to_decimal
from core.services import BaseService, ServiceResult
from listings.models import Listing
from payments.adapters import (
    CreatePaymentIntentParams,
    IdempotencyKeyGenerator,
    StripeAdapter,
)
from payments.exceptions import (
    BuyerBannedError,
    ListingUnavailableError,
    PaymentProcessingError,
    PaymentValidationError,
    PriceChangedError,
    SelfPurchaseError,
    SellerNotPayableError,
    StripeError,
)
from payments.fees import FeeBreakdown, FeeCalculator
from payments.models import ConnectedAccount, Transaction

if TYPE_CHECKING:
    from authentication.models import User

CHECKOUT_SOURCE = "marketplace"


@dataclass(frozen=True)
class ShippingAddress:
    """Address snapshot stored on the Transaction."""

    zip_code: str
    name: str = ""
    line1: str = ""
    line2: str = ""
    city: str = ""
    state: str = ""
    country: str = "US"
    phone: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ShippingAddress:
        data = data or {}
        zip_code = (data.get("zip_code") or "").strip()
        if not zip_code:
            raise PaymentValidationError(
                "Shipping address with ZIP code is required",
                error_code="SHIPPING_ADDRESS_REQUIRED",
            )
        return cls(
            zip_code=zip_code,
            name=data.get("name") or "",
            line1=data.get("line1") or "",
            line2=data.get("line2") or "",
            city=data.get("city") or "",
            state=data.get("state") or "",
            country=data.get("country") or "US",
            phone=data.get("phone") or "",
        )

    def as_model_fields(self) -> dict[str, str]:
        return {
            "shipping_name": self.name,
            "shipping_line1": self.line1,
            "shipping_line2": self.line2,
            "shipping_city": self.city,
            "shipping_state": self.state,
            "shipping_zip": self.zip_code,
            "shipping_country": self.country,
            "shipping_phone": self.phone,
        }


@dataclass
class CheckoutResult:
    transaction: Transaction
    client_secret: str
    breakdown: FeeBreakdown


class CheckoutService(BaseService):
    """
    Entry point for buying a listing.

    Every precondition failure is returned before Stripe is called, so a
    rejected checkout leaves no trace at Stripe or in the database.
    """

    _stripe_adapter: type | None = None
    fee_calculator_class = FeeCalculator

    @classmethod
    def get_stripe_adapter(cls) -> type:
        return cls._stripe_adapter or StripeAdapter

    @classmethod
    def set_stripe_adapter(cls, adapter: type | None) -> None:
        """Set the Stripe adapter class (for testing)."""
        cls._stripe_adapter = adapter

    @classmethod
    def create_checkout(
        cls,
        buyer: User,
        listing_id,
        shipping_address: dict[str, Any] | None,
        expected_price,
    ) -> ServiceResult[CheckoutResult]:
        logger = cls.get_logger()

        try:
            address = ShippingAddress.from_dict(shipping_address)
            listing, destination = cls._check_preconditions(buyer, listing_id, expected_price)
            breakdown = cls.fee_calculator_class().calculate(
                sale_price=listing.price,
                tier=listing.seller.subscription_tier,
                postal_code=address.zip_code,
                device_type=listing.device_type,
            )
        except BaseApplicationError as e:
            return cls.fail_with(e)

        try:
            intent = cls.get_stripe_adapter().create_payment_intent(
                CreatePaymentIntentParams(
                    amount_cents=to_cents(breakdown.total_amount),
                    currency=settings.STRIPE_CURRENCY,
                    idempotency_key=IdempotencyKeyGenerator.generate(
                        "checkout", listing.id, attempt=uuid.uuid4().hex[:12]
                    ),
                    metadata={
                        "checkout_source": CHECKOUT_SOURCE,
                        "listing_id": str(listing.id),
                        "buyer_id": str(buyer.id),
                        "seller_id": str(listing.seller_id),
                        **breakdown.to_metadata(),
                    },
                    destination_account=destination,
                    application_fee_cents=(
                        to_cents(breakdown.application_fee) if destination else 0
                    ),
                )
            )
        except StripeError as e:
            logger.warning(
                "Payment authorization failed",
                extra={
                    "listing_id": str(listing.id),
                    "buyer_id": str(buyer.id),
                    "error_code": e.error_code,
                },
            )
            return cls.fail_with(
                PaymentProcessingError(
                    "We couldn't start the payment. Please try again.",
                    error_code=e.error_code,
                )
            )

        try:
            with cls.atomic():
                txn = Transaction.objects.create(
                    buyer=buyer,
                    seller_id=listing.seller_id,
                    listing=listing,
                    sale_price=breakdown.sale_price,
                    tax_rate=breakdown.tax_rate,
                    tax_amount=breakdown.tax_amount,
                    shipping_cost=breakdown.shipping_cost,
                    free_shipping=breakdown.free_shipping,
                    platform_fee_rate=breakdown.platform_fee_rate,
                    platform_fee=breakdown.platform_fee,
                    processor_fee=breakdown.processor_fee,
                    application_fee=breakdown.application_fee if destination else Decimal("0"),
                    seller_payout=breakdown.seller_payout,
                    total_amount=breakdown.total_amount,
                    stripe_payment_intent_id=intent.id,
                    stripe_status=intent.status,
                    funds_held=True,
                    **address.as_model_fields(),
                )
        except DatabaseError:
            logger.critical(
                "Orphaned payment authorization: transaction insert failed",
                extra={
                    "payment_intent_id": intent.id,
                    "listing_id": str(listing.id),
                    "buyer_id": str(buyer.id),
                },
                exc_info=True,
            )
            return ServiceResult.failure(
                "Checkout could not be completed. Please contact support.",
                error_code="CHECKOUT_PERSIST_FAILED",
                details={"payment_intent_id": intent.id},
                status_code=500,
            )

        logger.info(
            "Checkout created",
            extra={
                "transaction_id": str(txn.id),
                "payment_intent_id": intent.id,
                "total_amount": str(breakdown.total_amount),
            },
        )
        return ServiceResult.success(
            CheckoutResult(
                transaction=txn,
                client_secret=intent.client_secret,
                breakdown=breakdown,
            )
        )

    @classmethod
    def _check_preconditions(
        cls, buyer: User, listing_id, expected_price
    ) -> tuple[Listing, str | None]:
        """
        Returns:
            The listing and the destination account (None for admin sellers)
        """
        if buyer.is_banned:
            raise BuyerBannedError("Your account is suspended and cannot make purchases")

        listing = Listing.objects.select_related("seller").filter(pk=listing_id).first()
        if listing is None:
            raise NotFoundError(
                "Listing not found",
                error_code="LISTING_NOT_FOUND",
                details={"listing_id": str(listing_id)},
            )

        if not listing.is_purchasable:
            raise ListingUnavailableError("This listing is no longer available")

        if listing.seller_id == buyer.id:
            raise SelfPurchaseError("You cannot purchase your own listing")

        destination = None
        if not listing.seller.is_platform_admin:
            account = ConnectedAccount.objects.filter(user_id=listing.seller_id).first()
            if account is None or not account.can_receive_payouts:
                raise SellerNotPayableError("Seller has not set up payment processing yet")
            destination = account.stripe_account_id

        if expected_price is None:
            raise PaymentValidationError(
                "Expected price is required", error_code="EXPECTED_PRICE_REQUIRED"
            )
        expected = to_decimal(expected_price)
        if abs(listing.price - expected) > CENT:
            raise PriceChangedError(
                "The price of this item has changed. Please refresh and try again.",
                details={
                    "current_price": str(listing.price),
                    "expected_price": str(expected),
                },
            )

        return listing, destination
