"""
Stripe API adapter for marketplace payment operations.

All Stripe calls go through StripeAdapter so error translation, timeouts,
idempotency and logging stay consistent.

Features:
- Configurable timeout on all API calls
- Stripe SDK errors translated to domain exceptions
- Structured logging with timing metrics
- Idempotency keys on every mutating call

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)
- STRIPE_CURRENCY: Currency for charges (default: usd)

Usage:
    from payments.adapters import StripeAdapter, CreatePaymentIntentParams

    result = StripeAdapter.create_payment_intent(
        CreatePaymentIntentParams(
            amount_cents=21813,
            currency="usd",
            idempotency_key=IdempotencyKeyGenerator.generate("checkout", listing.id),
            destination_account="acct_123",
            application_fee_cents=200,
        )
    )
    result.client_secret
"""

from __future__ import annotations

import hashlib
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import stripe
from django.conf import settings

from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeError,
    StripeInsufficientFundsError,
    StripeInvalidAccountError,
    StripeInvalidRequestError,
    StripeRateLimitError,
)


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CreatePaymentIntentParams:
    """
    Parameters for creating a destination-charge PaymentIntent.

    Attributes:
        amount_cents: Total charged to the buyer, in cents
        currency: ISO 4217 currency code
        idempotency_key: Unique key for idempotent creation
        metadata: Key-value pairs attached to the PaymentIntent
        destination_account: Seller's connected account (None for admin sellers)
        application_fee_cents: Amount the platform keeps from the destination charge
    """

    amount_cents: int
    currency: str
    idempotency_key: str
    metadata: dict[str, str] = field(default_factory=dict)
    destination_account: str | None = None
    application_fee_cents: int = 0

    def __post_init__(self) -> None:
        if self.amount_cents <= 0:
            raise ValueError("amount_cents must be positive")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")
        if not self.currency:
            raise ValueError("currency is required")
        if self.application_fee_cents < 0:
            raise ValueError("application_fee_cents cannot be negative")
        if self.application_fee_cents > self.amount_cents:
            raise ValueError("application_fee_cents cannot exceed amount_cents")
        if self.application_fee_cents and not self.destination_account:
            raise ValueError("application_fee_cents requires a destination_account")


@dataclass
class PaymentIntentResult:
    """
    Result from Stripe PaymentIntent operations.

    Attributes:
        id: PaymentIntent ID (pi_xxx)
        status: Stripe status (requires_payment_method, succeeded, etc.)
        amount_cents: Amount in cents
        currency: Currency code
        client_secret: Secret for client-side confirmation
        latest_charge: Charge ID once the payment succeeds
        created: Unix timestamp of creation
        metadata: Attached metadata
        raw_response: Full Stripe response dict
    """

    id: str
    status: str
    amount_cents: int
    currency: str
    client_secret: str | None = None
    latest_charge: str | None = None
    created: int | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_stripe(cls, intent: Any) -> PaymentIntentResult:
        return cls(
            id=intent.id,
            status=intent.status,
            amount_cents=intent.amount,
            currency=intent.currency,
            client_secret=intent.client_secret,
            latest_charge=intent.latest_charge,
            created=intent.created,
            metadata=dict(intent.metadata or {}),
            raw_response=intent.to_dict(),
        )


@dataclass
class RefundResult:
    """
    Result from Stripe Refund operations.

    Attributes:
        id: Refund ID (re_xxx)
        amount_cents: Refunded amount in cents
        currency: Currency code
        status: Refund status (succeeded, pending, failed)
        payment_intent_id: Original PaymentIntent ID
    """

    id: str
    amount_cents: int
    currency: str
    status: str
    payment_intent_id: str
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class ConnectedAccountResult:
    id: str
    email: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class AccountLinkResult:
    url: str
    expires_at: int | None = None


@dataclass
class AccountStatusResult:
    """
    Authoritative Connect account state, as fetched from Stripe.

    Attributes:
        account_id: Stripe Account ID (acct_xxx)
        status: active when charges and payouts are enabled, restricted when
            Stripe reports a disabled reason, otherwise pending
        onboarding_complete: charges_enabled and details_submitted
        requirements_status: disabled reason, "currently_due" or "" when clear
        currently_due: Requirement keys Stripe is waiting on
    """

    account_id: str
    status: str
    charges_enabled: bool
    payouts_enabled: bool
    details_submitted: bool
    onboarding_complete: bool
    requirements_status: str = ""
    disabled_reason: str = ""
    currently_due: list[str] = field(default_factory=list)

    @classmethod
    def from_account(cls, account: dict[str, Any]) -> AccountStatusResult:
        charges_enabled = bool(account.get("charges_enabled"))
        payouts_enabled = bool(account.get("payouts_enabled"))
        details_submitted = bool(account.get("details_submitted"))
        requirements = account.get("requirements") or {}
        disabled_reason = requirements.get("disabled_reason") or ""
        currently_due = list(requirements.get("currently_due") or [])

        if charges_enabled and payouts_enabled:
            status = "active"
        elif disabled_reason:
            status = "restricted"
        else:
            status = "pending"

        if disabled_reason:
            requirements_status = disabled_reason
        elif currently_due:
            requirements_status = "currently_due"
        else:
            requirements_status = ""

        return cls(
            account_id=account["id"],
            status=status,
            charges_enabled=charges_enabled,
            payouts_enabled=payouts_enabled,
            details_submitted=details_submitted,
            onboarding_complete=charges_enabled and details_submitted,
            requirements_status=requirements_status,
            disabled_reason=disabled_reason,
            currently_due=currently_due,
        )


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for Stripe API calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    Example:
        key = IdempotencyKeyGenerator.generate("refund", transaction.id)
        # "refund:550e8400-e29b-41d4-a716-446655440000:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int | str = 1,
    ) -> str:
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]
        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    All methods are classmethods; no instance state is kept, so the
    adapter is safe to use from Celery workers.

    Usage:
        result = StripeAdapter.create_payment_intent(params)
        refund = StripeAdapter.create_refund(pi_id, idem_key, amount_cents=5000)
        status = StripeAdapter.retrieve_account("acct_123")
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _configure_stripe() -> None:
        stripe.api_key = settings.STRIPE_SECRET_KEY
        timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Payment Intents
    # =========================================================================

    @classmethod
    def create_payment_intent(
        cls,
        params: CreatePaymentIntentParams,
        trace_id: str | None = None,
    ) -> PaymentIntentResult:
        """
        Create a PaymentIntent, as a destination charge when a seller account is given.

        Raises:
            StripeInvalidAccountError: Destination account unusable
            StripeInvalidRequestError: Invalid parameters
            StripeAPIUnavailableError: Stripe service unavailable
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "create_payment_intent",
            "amount_cents": params.amount_cents,
            "currency": params.currency,
            "destination_account": params.destination_account,
            "application_fee_cents": params.application_fee_cents,
            "idempotency_key": params.idempotency_key,
            "trace_id": trace_id,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            create_params: dict[str, Any] = {
                "amount": params.amount_cents,
                "currency": params.currency,
                "automatic_payment_methods": {"enabled": True},
                "metadata": params.metadata,
            }
            if params.destination_account:
                create_params["transfer_data"] = {
                    "destination": params.destination_account,
                }
                create_params["application_fee_amount"] = params.application_fee_cents

            intent = stripe.PaymentIntent.create(
                idempotency_key=params.idempotency_key,
                **create_params,
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "payment_intent_id": intent.id,
                    "status": intent.status,
                    "duration_ms": duration_ms,
                },
            )
            return PaymentIntentResult.from_stripe(intent)

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise  # Never reached

    @classmethod
    def list_recent_payment_intents(
        cls,
        created_after: datetime,
        limit: int = 100,
        trace_id: str | None = None,
    ) -> list[PaymentIntentResult]:
        """
        List PaymentIntents created after ``created_after``.

        Auto-paginates up to ``limit`` results; used by the orphan
        authorization audit.
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        created_timestamp = int(created_after.timestamp())

        log_context = {
            "operation": "list_recent_payment_intents",
            "created_after": created_timestamp,
            "limit": limit,
            "trace_id": trace_id,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            page = stripe.PaymentIntent.list(
                created={"gte": created_timestamp},
                limit=min(limit, 100),
            )

            results: list[PaymentIntentResult] = []
            for intent in page.auto_paging_iter():
                results.append(PaymentIntentResult.from_stripe(intent))
                if len(results) >= limit:
                    break

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={**log_context, "count": len(results), "duration_ms": duration_ms},
            )
            return results

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    @classmethod
    def retrieve_payment_intent(
        cls,
        payment_intent_id: str,
        trace_id: str | None = None,
    ) -> PaymentIntentResult:
        """
        Fetch the current state of one PaymentIntent.

        Raises:
            StripeInvalidRequestError: PaymentIntent not found
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "retrieve_payment_intent",
            "payment_intent_id": payment_intent_id,
            "trace_id": trace_id,
        }

        start_time = time.time()
        logger.debug("Starting Stripe operation", extra=log_context)

        try:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id)

            duration_ms = (time.time() - start_time) * 1000
            logger.debug(
                "Stripe operation completed",
                extra={**log_context, "status": intent.status, "duration_ms": duration_ms},
            )
            return PaymentIntentResult.from_stripe(intent)

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    # =========================================================================
    # Refunds
    # =========================================================================

    @classmethod
    def create_refund(
        cls,
        payment_intent_id: str,
        idempotency_key: str,
        amount_cents: int | None = None,
        reason: str | None = None,
        metadata: dict[str, str] | None = None,
        trace_id: str | None = None,
    ) -> RefundResult:
        """
        Refund a PaymentIntent, in full when ``amount_cents`` is None.

        Raises:
            StripeInvalidRequestError: Refund not possible
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "create_refund",
            "payment_intent_id": payment_intent_id,
            "amount_cents": amount_cents,
            "reason": reason,
            "idempotency_key": idempotency_key,
            "trace_id": trace_id,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            refund_params: dict[str, Any] = {
                "payment_intent": payment_intent_id,
                "metadata": metadata or {},
            }
            if amount_cents is not None:
                refund_params["amount"] = amount_cents
            if reason:
                refund_params["reason"] = reason

            refund = stripe.Refund.create(
                idempotency_key=idempotency_key,
                **refund_params,
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "refund_id": refund.id,
                    "status": refund.status,
                    "duration_ms": duration_ms,
                },
            )

            return RefundResult(
                id=refund.id,
                amount_cents=refund.amount,
                currency=refund.currency,
                status=refund.status,
                payment_intent_id=refund.payment_intent,
                metadata=dict(refund.metadata or {}),
                raw_response=refund.to_dict(),
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    # =========================================================================
    # Connect Accounts
    # =========================================================================

    @classmethod
    def create_connected_account(
        cls,
        email: str,
        user_id: str,
        display_name: str = "",
        idempotency_key: str | None = None,
    ) -> ConnectedAccountResult:
        """Create an Express account with card payments and transfers requested."""
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "create_connected_account",
            "user_id": user_id,
            "idempotency_key": idempotency_key,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            create_params: dict[str, Any] = {
                "type": "express",
                "email": email,
                "metadata": {"user_id": user_id},
                "capabilities": {
                    "card_payments": {"requested": True},
                    "transfers": {"requested": True},
                },
            }
            if display_name:
                create_params["business_profile"] = {"name": display_name}
            if idempotency_key:
                create_params["idempotency_key"] = idempotency_key

            account = stripe.Account.create(**create_params)

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={**log_context, "account_id": account.id, "duration_ms": duration_ms},
            )
            return ConnectedAccountResult(
                id=account.id,
                email=account.email,
                raw_response=account.to_dict(),
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    @classmethod
    def create_onboarding_link(
        cls,
        account_id: str,
        refresh_url: str,
        return_url: str,
    ) -> AccountLinkResult:
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {"operation": "create_onboarding_link", "account_id": account_id}

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            link = stripe.AccountLink.create(
                account=account_id,
                refresh_url=refresh_url,
                return_url=return_url,
                type="account_onboarding",
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={**log_context, "duration_ms": duration_ms},
            )
            return AccountLinkResult(url=link.url, expires_at=link.expires_at)

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    @classmethod
    def retrieve_account(cls, account_id: str) -> AccountStatusResult:
        """
        Fetch authoritative account status.

        Raises:
            StripeInvalidAccountError: Account unknown or no longer connected
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {"operation": "retrieve_account", "account_id": account_id}

        start_time = time.time()
        logger.debug("Starting Stripe operation", extra=log_context)

        try:
            account = stripe.Account.retrieve(account_id)

            duration_ms = (time.time() - start_time) * 1000
            result = AccountStatusResult.from_account(account.to_dict())
            logger.debug(
                "Stripe operation completed",
                extra={**log_context, "status": result.status, "duration_ms": duration_ms},
            )
            return result

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @classmethod
    def verify_webhook_signature(
        cls,
        payload: bytes,
        signature: str,
        secret: str,
    ) -> dict[str, Any]:
        """
        Verify and parse a Stripe webhook event.

        Args:
            payload: Raw request body
            signature: Stripe-Signature header value
            secret: Signing secret of the endpoint that received the event

        Raises:
            StripeInvalidRequestError: Invalid signature or payload
        """
        try:
            event = stripe.Webhook.construct_event(payload, signature, secret)
            return event.to_dict()
        except stripe.SignatureVerificationError as e:
            raise StripeInvalidRequestError(
                "Invalid signature",
                stripe_code="signature_verification_failed",
                details={"error": str(e)},
            )
        except ValueError as e:
            raise StripeInvalidRequestError(
                "Invalid payload",
                stripe_code="invalid_payload",
                details={"error": str(e)},
            )

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe SDK exceptions to domain exceptions.

        Raises:
            StripeCardDeclinedError: Card was declined
            StripeInsufficientFundsError: Insufficient funds
            StripeInvalidAccountError: Invalid Connect account
            StripeInvalidRequestError: Invalid request parameters
            StripeRateLimitError: Rate limited
            StripeAPIUnavailableError: API unavailable or unexpected failure
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )
            if decline_code == "insufficient_funds":
                raise StripeInsufficientFundsError(
                    str(error.user_message or error),
                    stripe_code=error.code,
                    decline_code=decline_code,
                )
            raise StripeCardDeclinedError(
                str(error.user_message or error),
                stripe_code=error.code,
                decline_code=decline_code,
            )

        elif isinstance(error, stripe.PermissionError):
            # Platform no longer has access to the connected account
            logger.warning("Stripe permission error", extra=log_context)
            raise StripeInvalidAccountError(
                error.user_message or str(error),
                stripe_code=error.code or "permission_error",
            )

        elif isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            message = error.user_message or str(error)
            if "account" in message.lower():
                raise StripeInvalidAccountError(message, stripe_code=error.code)
            raise StripeInvalidRequestError(message, stripe_code=error.code)

        elif isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            )

        elif isinstance(error, stripe.APIConnectionError):
            logger.error("Connection error to Stripe", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            )

        elif isinstance(error, stripe.AuthenticationError):
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise StripeInvalidRequestError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            )

        elif isinstance(error, stripe.APIError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            )

        else:
            logger.error(
                f"Unexpected error from Stripe: {type(error).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                f"Unexpected Stripe error: {error}",
                stripe_code="unknown_error",
            )
