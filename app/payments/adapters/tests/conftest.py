"""
Pytest fixtures for Stripe adapter tests.

Sections:
    - Mock Stripe objects
    - Stripe error fixtures
    - Patched Stripe resources
"""

from dataclasses import dataclass
from typing import Any
from unittest.mock import patch

import pytest
import stripe


# =============================================================================
# Mock Stripe Objects
# =============================================================================


@dataclass
class MockStripeObject:
    """Mock Stripe API object with attribute access and to_dict support."""

    data: dict[str, Any]

    def __getattr__(self, name: str) -> Any:
        if name == "data":
            return self.__dict__["data"]
        return self.data.get(name)

    def to_dict(self) -> dict[str, Any]:
        return self.data


@dataclass
class MockStripeList:
    items: list[MockStripeObject]
    has_more: bool = False

    @property
    def data(self) -> list[MockStripeObject]:
        return self.items

    def auto_paging_iter(self):
        return iter(self.items)


@pytest.fixture
def mock_payment_intent():
    def _create(
        id: str = "pi_test123456",
        status: str = "requires_payment_method",
        amount: int = 20000,
        currency: str = "usd",
        client_secret: str = "pi_test123456_secret_abc123",
        latest_charge: str | None = None,
        created: int = 1704880800,
        metadata: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "payment_intent",
                "status": status,
                "amount": amount,
                "currency": currency,
                "client_secret": client_secret,
                "latest_charge": latest_charge,
                "created": created,
                "metadata": metadata or {},
            }
        )

    return _create


@pytest.fixture
def mock_refund():
    def _create(
        id: str = "re_test123456",
        amount: int = 15000,
        currency: str = "usd",
        status: str = "succeeded",
        payment_intent: str = "pi_test123456",
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "refund",
                "amount": amount,
                "currency": currency,
                "status": status,
                "payment_intent": payment_intent,
                "metadata": {},
            }
        )

    return _create


@pytest.fixture
def mock_account():
    def _create(
        id: str = "acct_test123",
        charges_enabled: bool = True,
        payouts_enabled: bool = True,
        details_submitted: bool = True,
        disabled_reason: str | None = None,
        currently_due: list | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "account",
                "email": "seller@example.com",
                "charges_enabled": charges_enabled,
                "payouts_enabled": payouts_enabled,
                "details_submitted": details_submitted,
                "requirements": {
                    "disabled_reason": disabled_reason,
                    "currently_due": currently_due or [],
                },
            }
        )

    return _create


# =============================================================================
# Mock Stripe Error Fixtures
# =============================================================================


@pytest.fixture
def card_error():
    def _create(
        message: str = "Your card was declined.",
        code: str = "card_declined",
        decline_code: str | None = "generic_decline",
    ) -> stripe.CardError:
        error = stripe.CardError(message, None, code)
        error.decline_code = decline_code
        return error

    return _create


@pytest.fixture
def invalid_request_error():
    def _create(
        message: str = "No such payment_intent: 'pi_missing'",
        param: str | None = "payment_intent",
        code: str = "resource_missing",
    ) -> stripe.InvalidRequestError:
        return stripe.InvalidRequestError(message, param, code=code)

    return _create


@pytest.fixture
def rate_limit_error():
    return stripe.RateLimitError("Too many requests hit the API too quickly.")


@pytest.fixture
def api_connection_error():
    return stripe.APIConnectionError("Could not connect to Stripe.")


@pytest.fixture
def api_error():
    return stripe.APIError("Something went wrong on Stripe's end.")


@pytest.fixture
def authentication_error():
    return stripe.AuthenticationError("Invalid API Key provided.")


@pytest.fixture
def signature_verification_error():
    return stripe.SignatureVerificationError(
        "Unable to verify webhook signature.",
        "bad_signature",
    )


# =============================================================================
# Patched Stripe Resources
# =============================================================================


@pytest.fixture
def mock_stripe_http_client():
    with patch("stripe.RequestsClient") as mock:
        yield mock


@pytest.fixture
def mock_stripe_payment_intent(mock_payment_intent, mock_stripe_http_client):
    with patch("stripe.PaymentIntent") as mock:
        mock.create.return_value = mock_payment_intent()
        mock.retrieve.return_value = mock_payment_intent()
        mock.list.return_value = MockStripeList(items=[])
        yield mock


@pytest.fixture
def mock_stripe_refund(mock_refund, mock_stripe_http_client):
    with patch("stripe.Refund") as mock:
        mock.create.return_value = mock_refund()
        yield mock


@pytest.fixture
def mock_stripe_account(mock_account, mock_stripe_http_client):
    with patch("stripe.Account") as mock:
        mock.create.return_value = mock_account(
            charges_enabled=False, payouts_enabled=False, details_submitted=False
        )
        mock.retrieve.return_value = mock_account()
        yield mock


@pytest.fixture
def mock_stripe_account_link(mock_stripe_http_client):
    with patch("stripe.AccountLink") as mock:
        mock.create.return_value = MockStripeObject(
            {"url": "https://connect.stripe.com/setup/e/acct_test123", "expires_at": 1704884400}
        )
        yield mock


@pytest.fixture
def mock_stripe_webhook():
    with patch("stripe.Webhook") as mock:
        mock.construct_event.return_value = MockStripeObject(
            {
                "id": "evt_test123",
                "type": "payment_intent.succeeded",
                "data": {"object": {"id": "pi_test123", "object": "payment_intent"}},
            }
        )
        yield mock


@pytest.fixture
def mock_payment_intent_list(mock_payment_intent):
    def _create(count: int = 3) -> MockStripeList:
        return MockStripeList(items=[mock_payment_intent(id=f"pi_{i}") for i in range(count)])

    return _create
