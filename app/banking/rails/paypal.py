"""
PayPal Payouts rail.

Sends each payout as a single-item PayPal payout batch. PayPal accepts the
batch asynchronously, so a successful submission leaves the payout in
processing until the batch item reports SUCCESS.

Configuration (via settings):
- PAYPAL_CLIENT_ID / PAYPAL_CLIENT_SECRET: REST app credentials
- PAYPAL_API_BASE: https://api-m.paypal.com or the sandbox host
- PAYOUT_RAIL_TIMEOUT_SECONDS: Timeout for every request

Requests are never retried here. A timeout is reported as RailTimeoutError
and the payout is failed, because resending could pay the vendor twice.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import requests
from django.conf import settings
from django.core.cache import cache
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email

from banking.exceptions import (
    ExternalRailError,
    RailRejectedError,
    RailTimeoutError,
    RailUnavailableError,
)

from .base import (
    PayoutRail,
    PollStatus,
    RailPayoutRequest,
    RailPollResult,
    RailResponse,
    RailStatus,
)

if TYPE_CHECKING:
    from banking.models import Vendor, VendorPayout

TOKEN_CACHE_KEY = "banking:paypal:access_token"

# PayPal payout item transaction_status values
SUCCESS_STATUSES = {"SUCCESS"}
FAILURE_STATUSES = {"FAILED", "RETURNED", "BLOCKED", "REFUNDED", "REVERSED", "DENIED"}


class PayPalRail(PayoutRail):
    """PayPal Payouts REST client (no SDK)."""

    name = "paypal"

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        api_base: str | None = None,
        timeout: int | None = None,
    ):
        self.client_id = client_id if client_id is not None else settings.PAYPAL_CLIENT_ID
        self.client_secret = (
            client_secret if client_secret is not None else settings.PAYPAL_CLIENT_SECRET
        )
        self.api_base = (api_base or settings.PAYPAL_API_BASE).rstrip("/")
        self.timeout = timeout or settings.PAYOUT_RAIL_TIMEOUT_SECONDS

    # ---------------------------------------------------------
    # Payee
    # ---------------------------------------------------------

    def resolve_payee(self, vendor: Vendor | None) -> str:
        email = (vendor.paypal_email if vendor else "").strip()
        if not email:
            raise self._not_configured(vendor, "Vendor has no PayPal email configured")
        try:
            validate_email(email)
        except DjangoValidationError:
            raise self._not_configured(vendor, f"Invalid PayPal email: {email}")
        return email

    # ---------------------------------------------------------
    # Low-level request handler
    # ---------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        auth: tuple[str, str] | None = None,
        authenticated: bool = True,
    ) -> dict[str, Any]:
        """
        Perform one request and translate failures into rail errors.

        Returns the decoded JSON body ({} when empty).
        """
        headers = {"Accept": "application/json"}
        if authenticated:
            headers["Authorization"] = f"Bearer {self._access_token()}"
        if json is not None:
            headers["Content-Type"] = "application/json"

        log_context = {"operation": f"{method} {path}", "rail": self.name}
        start_time = time.time()
        try:
            response = requests.request(
                method=method,
                url=f"{self.api_base}{path}",
                headers=headers,
                json=json,
                data=data,
                auth=auth,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            self.get_logger().error("PayPal request timed out", extra=log_context)
            raise RailTimeoutError(
                f"PayPal did not respond within {self.timeout} seconds",
                rail=self.name,
            ) from e
        except requests.RequestException as e:
            self.get_logger().error(
                "PayPal request failed", extra=log_context, exc_info=True
            )
            raise RailUnavailableError(
                f"Could not reach PayPal: {e}",
                rail=self.name,
            ) from e

        duration_ms = (time.time() - start_time) * 1000
        log_context = {
            **log_context,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }

        body: dict[str, Any] = {}
        if response.content:
            try:
                body = response.json()
            except ValueError:
                body = {"raw": response.text[:500]}

        if response.status_code == 429 or response.status_code >= 500:
            self.get_logger().error("PayPal unavailable", extra=log_context)
            raise RailUnavailableError(
                body.get("message") or f"PayPal returned HTTP {response.status_code}",
                rail=self.name,
                rail_code=body.get("name") or str(response.status_code),
            )
        if response.status_code >= 400:
            self.get_logger().warning(
                "PayPal rejected request",
                extra={**log_context, "rail_code": body.get("name")},
            )
            raise RailRejectedError(
                body.get("message") or f"PayPal rejected the request (HTTP {response.status_code})",
                rail=self.name,
                rail_code=body.get("name") or str(response.status_code),
                details={"debug_id": body.get("debug_id")} if body.get("debug_id") else None,
            )

        self.get_logger().info("PayPal request completed", extra=log_context)
        return body

    def _access_token(self) -> str:
        """OAuth client-credentials token, cached until shortly before expiry."""
        token = cache.get(TOKEN_CACHE_KEY)
        if token:
            return token
        if not self.client_id or not self.client_secret:
            raise RailRejectedError(
                "PayPal credentials are not configured",
                error_code="RAIL_NOT_CONFIGURED",
                rail=self.name,
            )
        body = self._request(
            "POST",
            "/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.client_secret),
            authenticated=False,
        )
        token = body.get("access_token")
        if not token:
            raise RailUnavailableError("PayPal returned no access token", rail=self.name)
        expires_in = int(body.get("expires_in") or 300)
        cache.set(TOKEN_CACHE_KEY, token, timeout=max(expires_in - 60, 60))
        return token

    # ---------------------------------------------------------
    # Payouts
    # ---------------------------------------------------------

    def submit(self, request: RailPayoutRequest) -> RailResponse:
        payload = {
            "sender_batch_header": {
                "sender_batch_id": request.client_reference_id,
                "email_subject": "You have a payout",
                "email_message": request.note,
            },
            "items": [
                {
                    "recipient_type": "EMAIL",
                    "amount": {
                        "value": f"{request.amount:.2f}",
                        "currency": request.currency,
                    },
                    "receiver": request.payee,
                    "note": request.note,
                    "sender_item_id": f"PAYOUT-{request.payout_id}",
                }
            ],
        }
        body = self._request("POST", "/v1/payments/payouts", json=payload)
        batch_id = (body.get("batch_header") or {}).get("payout_batch_id")
        if not batch_id:
            raise ExternalRailError(
                "PayPal accepted the request but returned no payout batch id",
                rail=self.name,
                details={"response": body},
            )
        return RailResponse(
            status=RailStatus.PROCESSING,
            batch_id=batch_id,
            raw_response=body,
        )

    def fetch_status(self, payout: VendorPayout) -> RailPollResult | None:
        if not payout.rail_batch_id:
            return None
        body = self._request("GET", f"/v1/payments/payouts/{payout.rail_batch_id}")
        items = body.get("items") or []
        if not items:
            batch_status = (body.get("batch_header") or {}).get("batch_status", "")
            return RailPollResult(status=PollStatus.PENDING, rail_status=batch_status)

        item = items[0]
        transaction_status = (item.get("transaction_status") or "").upper()
        errors = item.get("errors") or {}
        if transaction_status in SUCCESS_STATUSES:
            status = PollStatus.SUCCEEDED
        elif transaction_status in FAILURE_STATUSES:
            status = PollStatus.FAILED
        else:
            status = PollStatus.PENDING
        return RailPollResult(
            status=status,
            rail_status=transaction_status,
            transfer_id=item.get("transaction_id") or item.get("payout_item_id") or "",
            error=errors.get("message", "") if isinstance(errors, dict) else str(errors),
        )
