"""
Pytest fixtures for payment rail tests.

This module provides fixtures for testing the PayPal and Stripe rails
without network access.

Sections:
    - Mock Stripe Response Fixtures
    - Error Response Fixtures
    - Mock PayPal HTTP Fixtures
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import stripe
from django.core.cache import cache

from banking.rails import RailPayoutRequest


@pytest.fixture(autouse=True)
def clear_cache():
    """The PayPal access token is cached between requests."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def rail_request():
    """Single-item payout instruction for $103."""

    def _create(
        payee: str = "artist@example.com",
        amount: Decimal = Decimal("103.00"),
        currency: str = "USD",
        payout_id: str | None = None,
    ) -> RailPayoutRequest:
        return RailPayoutRequest(
            payout_id=payout_id or str(uuid.uuid4()),
            payee=payee,
            amount=amount,
            currency=currency,
            note="Payout PAYOUT-20240601-1A2B3C",
            client_reference_id="PAYOUT-20240601-1A2B3C",
        )

    return _create


# =============================================================================
# Mock Stripe Response Fixtures
# =============================================================================


@dataclass
class MockStripeObject:
    """Mock Stripe API object with to_dict support."""

    data: dict[str, Any]

    def __getattr__(self, name: str) -> Any:
        if name == "data":
            return self.__dict__["data"]
        return self.data.get(name)

    def to_dict(self) -> dict[str, Any]:
        return self.data


@pytest.fixture
def mock_transfer():
    """Create a mock Transfer response."""

    def _create(
        id: str = "tr_test123456",
        amount: int = 10300,
        currency: str = "usd",
        destination: str = "acct_test123",
        metadata: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "transfer",
                "amount": amount,
                "currency": currency,
                "destination": destination,
                "metadata": metadata or {},
            }
        )

    return _create


@pytest.fixture
def mock_stripe_transfer(mock_transfer):
    """Mock stripe.Transfer API."""
    with patch("stripe.Transfer") as mock:
        mock.create.return_value = mock_transfer()
        yield mock


@pytest.fixture(autouse=True)
def mock_stripe_http_client():
    """Mock Stripe HTTP client to prevent real requests."""
    with patch("stripe.RequestsClient") as mock:
        yield mock


# =============================================================================
# Error Response Fixtures
# =============================================================================


@pytest.fixture
def invalid_request_error():
    """Create an InvalidRequestError for a bad destination."""
    return stripe.InvalidRequestError(
        message="No such destination: 'acct_test123'",
        param="destination",
        code="resource_missing",
    )


@pytest.fixture
def rate_limit_error():
    """Create a RateLimitError."""
    return stripe.RateLimitError(message="Too many requests")


@pytest.fixture
def api_connection_error():
    """Create an APIConnectionError."""
    return stripe.APIConnectionError(message="Could not connect to Stripe")


@pytest.fixture
def api_timeout_error():
    """Create an APIConnectionError caused by a timeout."""
    return stripe.APIConnectionError(message="Request timed out")


@pytest.fixture
def api_error():
    """Create an APIError (Stripe server error)."""
    return stripe.APIError(message="An error occurred with our API")


@pytest.fixture
def authentication_error():
    """Create an AuthenticationError."""
    return stripe.AuthenticationError(message="Invalid API Key provided")


# =============================================================================
# Mock PayPal HTTP Fixtures
# =============================================================================


@pytest.fixture
def paypal_response():
    """Create a mock requests.Response."""

    def _create(status_code: int = 200, body: dict | None = None) -> MagicMock:
        response = MagicMock()
        response.status_code = status_code
        response.content = b"{}" if body is None else b"json"
        response.json.return_value = body or {}
        response.text = str(body)
        return response

    return _create


@pytest.fixture
def mock_paypal_request():
    """Mock the HTTP call made by the PayPal rail."""
    with patch("banking.rails.paypal.requests.request") as mock:
        yield mock


@pytest.fixture
def paypal_token(paypal_response):
    """OAuth token response."""
    return paypal_response(200, {"access_token": "A21AAF-token", "expires_in": 32400})
