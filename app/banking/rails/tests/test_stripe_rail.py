"""
Tests for StripeRail.

Tests transfer creation and the translation of Stripe SDK errors into
rail errors, with the Stripe API mocked.
"""

from decimal import Decimal

import pytest
import stripe

from banking.exceptions import (
    PaymentMethodNotConfigured,
    RailRejectedError,
    RailTimeoutError,
    RailUnavailableError,
)
from banking.rails import RailStatus
from banking.rails.stripe_rail import StripeRail, to_cents
from banking.tests.factories import VendorFactory


@pytest.fixture
def rail():
    return StripeRail()


class TestToCents:
    @pytest.mark.parametrize(
        "amount,expected",
        [
            (Decimal("103.00"), 10300),
            (Decimal("0.01"), 1),
            (Decimal("19.99"), 1999),
        ],
    )
    def test_converts_dollars_to_cents(self, amount, expected):
        assert to_cents(amount) == expected


class TestResolvePayee:
    def test_returns_connected_account(self, rail):
        vendor = VendorFactory.build(
            stripe_account_id="acct_test123", stripe_onboarding_complete=True
        )

        assert rail.resolve_payee(vendor) == "acct_test123"

    def test_missing_account_raises(self, rail):
        vendor = VendorFactory.build(stripe_account_id="")

        with pytest.raises(PaymentMethodNotConfigured) as exc_info:
            rail.resolve_payee(vendor)

        assert exc_info.value.details["payment_method"] == "stripe"

    def test_malformed_account_raises(self, rail):
        vendor = VendorFactory.build(stripe_account_id="cus_123", stripe_onboarding_complete=True)

        with pytest.raises(PaymentMethodNotConfigured):
            rail.resolve_payee(vendor)

    def test_incomplete_onboarding_raises(self, rail):
        vendor = VendorFactory.build(
            stripe_account_id="acct_test123", stripe_onboarding_complete=False
        )

        with pytest.raises(PaymentMethodNotConfigured):
            rail.resolve_payee(vendor)


class TestSubmit:
    """Tests for StripeRail.submit()."""

    def test_creates_transfer(self, rail, mock_stripe_transfer, rail_request):
        """A created transfer completes the payout."""
        request = rail_request(payee="acct_test123", payout_id="payout-uuid")

        response = rail.submit(request)

        assert response.status == RailStatus.COMPLETED
        assert response.is_completed is True
        assert response.transfer_id == "tr_test123456"
        assert response.raw_response["object"] == "transfer"

        mock_stripe_transfer.create.assert_called_once()
        call_kwargs = mock_stripe_transfer.create.call_args.kwargs
        assert call_kwargs["amount"] == 10300
        assert call_kwargs["currency"] == "usd"
        assert call_kwargs["destination"] == "acct_test123"
        assert call_kwargs["transfer_group"] == "PAYOUT-20240601-1A2B3C"
        assert call_kwargs["metadata"]["payout_id"] == "payout-uuid"
        assert call_kwargs["idempotency_key"] == "payout:payout-uuid"

    def test_configures_api_key_and_timeout(
        self, rail, mock_stripe_transfer, mock_stripe_http_client, rail_request, settings
    ):
        settings.STRIPE_SECRET_KEY = "sk_test_abc"
        settings.STRIPE_API_TIMEOUT_SECONDS = 12

        rail.submit(rail_request(payee="acct_test123"))

        assert stripe.api_key == "sk_test_abc"
        mock_stripe_http_client.assert_called_once_with(timeout=12)

    def test_invalid_request_raises_rejected(
        self, rail, mock_stripe_transfer, invalid_request_error, rail_request
    ):
        mock_stripe_transfer.create.side_effect = invalid_request_error

        with pytest.raises(RailRejectedError) as exc_info:
            rail.submit(rail_request(payee="acct_test123"))

        assert exc_info.value.rail_code == "resource_missing"
        assert "No such destination" in exc_info.value.message

    def test_authentication_error_raises_rejected(
        self, rail, mock_stripe_transfer, authentication_error, rail_request
    ):
        mock_stripe_transfer.create.side_effect = authentication_error

        with pytest.raises(RailRejectedError) as exc_info:
            rail.submit(rail_request(payee="acct_test123"))

        assert exc_info.value.rail_code == "authentication_error"

    def test_rate_limit_raises_unavailable(
        self, rail, mock_stripe_transfer, rate_limit_error, rail_request
    ):
        mock_stripe_transfer.create.side_effect = rate_limit_error

        with pytest.raises(RailUnavailableError) as exc_info:
            rail.submit(rail_request(payee="acct_test123"))

        assert exc_info.value.rail_code == "rate_limit"
        assert exc_info.value.is_retryable is True

    def test_connection_error_raises_unavailable(
        self, rail, mock_stripe_transfer, api_connection_error, rail_request
    ):
        mock_stripe_transfer.create.side_effect = api_connection_error

        with pytest.raises(RailUnavailableError):
            rail.submit(rail_request(payee="acct_test123"))

    def test_timeout_raises_rail_timeout(
        self, rail, mock_stripe_transfer, api_timeout_error, rail_request
    ):
        mock_stripe_transfer.create.side_effect = api_timeout_error

        with pytest.raises(RailTimeoutError):
            rail.submit(rail_request(payee="acct_test123"))

        assert mock_stripe_transfer.create.call_count == 1

    def test_api_error_raises_unavailable(self, rail, mock_stripe_transfer, api_error, rail_request):
        mock_stripe_transfer.create.side_effect = api_error

        with pytest.raises(RailUnavailableError) as exc_info:
            rail.submit(rail_request(payee="acct_test123"))

        assert exc_info.value.rail_code == "api_error"
