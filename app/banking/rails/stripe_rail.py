"""
Stripe Connect rail.

Pays a vendor by creating a Transfer to its connected account. Transfers
are synchronous: a created transfer means the payout is completed.

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_API_TIMEOUT_SECONDS: API call timeout
"""

from __future__ import annotations

import time
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import stripe
from django.conf import settings

from banking.exceptions import (
    RailRejectedError,
    RailTimeoutError,
    RailUnavailableError,
)

from .base import PayoutRail, RailPayoutRequest, RailResponse, RailStatus

if TYPE_CHECKING:
    from banking.models import Vendor


def to_cents(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value())


class StripeRail(PayoutRail):
    """Transfers to Stripe connected accounts."""

    name = "stripe"

    @staticmethod
    def _configure_stripe() -> None:
        """Configure Stripe client with API key and timeout."""
        stripe.api_key = settings.STRIPE_SECRET_KEY
        timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", settings.PAYOUT_RAIL_TIMEOUT_SECONDS)
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

    def resolve_payee(self, vendor: Vendor | None) -> str:
        account_id = (vendor.stripe_account_id if vendor else "").strip()
        if not account_id:
            raise self._not_configured(vendor, "Vendor has no Stripe account connected")
        if not account_id.startswith("acct_"):
            raise self._not_configured(vendor, f"Invalid Stripe account id: {account_id}")
        if not vendor.stripe_onboarding_complete:
            raise self._not_configured(vendor, "Vendor has not completed Stripe onboarding")
        return account_id

    def submit(self, request: RailPayoutRequest) -> RailResponse:
        self._configure_stripe()
        logger = self.get_logger()

        log_context: dict[str, Any] = {
            "operation": "create_transfer",
            "payout_id": request.payout_id,
            "amount": str(request.amount),
            "destination_account": request.payee,
        }
        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            transfer = stripe.Transfer.create(
                amount=to_cents(request.amount),
                currency=request.currency.lower(),
                destination=request.payee,
                transfer_group=request.client_reference_id,
                description=request.note,
                metadata={
                    "payout_id": request.payout_id,
                    "reference": request.client_reference_id,
                },
                idempotency_key=f"payout:{request.payout_id}",
            )
        except stripe.StripeError as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_stripe_error(e, {**log_context, "duration_ms": duration_ms})
            raise

        logger.info(
            "Stripe operation completed",
            extra={
                **log_context,
                "transfer_id": transfer.id,
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        return RailResponse(
            status=RailStatus.COMPLETED,
            transfer_id=transfer.id,
            raw_response=transfer.to_dict() if hasattr(transfer, "to_dict") else {},
        )

    def _handle_stripe_error(self, error: stripe.StripeError, log_context: dict[str, Any]) -> None:
        """
        Translate Stripe SDK errors into rail errors.

        Raises:
            RailTimeoutError: Connection timed out
            RailUnavailableError: Connection failure, rate limit or Stripe server error
            RailRejectedError: Invalid request, account or credentials
        """
        logger = self.get_logger()
        code = getattr(error, "code", None)

        if isinstance(error, stripe.APIConnectionError):
            logger.error("Connection error to Stripe", extra=log_context, exc_info=True)
            if "timed out" in str(error).lower() or "timeout" in str(error).lower():
                raise RailTimeoutError(
                    "Stripe did not respond in time",
                    rail=self.name,
                    rail_code="timeout",
                ) from error
            raise RailUnavailableError(
                "Could not connect to Stripe",
                rail=self.name,
                rail_code="api_connection_error",
            ) from error

        if isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise RailUnavailableError(
                "Stripe rate limit exceeded",
                rail=self.name,
                rail_code="rate_limit",
            ) from error

        if isinstance(error, stripe.AuthenticationError):
            logger.critical("Stripe authentication failed - check API key", extra=log_context)
            raise RailRejectedError(
                "Stripe authentication failed",
                rail=self.name,
                rail_code="authentication_error",
            ) from error

        if isinstance(error, stripe.InvalidRequestError):
            logger.error("Invalid request to Stripe", extra={**log_context, "stripe_code": code})
            raise RailRejectedError(
                str(getattr(error, "user_message", None) or error),
                rail=self.name,
                rail_code=code or "invalid_request",
            ) from error

        if isinstance(error, stripe.APIError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise RailUnavailableError(
                "Stripe service error",
                rail=self.name,
                rail_code="api_error",
            ) from error

        logger.error(
            f"Unexpected error from Stripe: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise RailRejectedError(
            f"Unexpected Stripe error: {error}",
            rail=self.name,
            rail_code=code or "unknown_error",
        ) from error
