"""
Common interface of the external payment rails.

A rail turns one payout into one instruction to an external system and
reports whether that system accepted it. Rails never touch the ledger or
the payout's state; PayoutProcessor does both based on the RailResponse.

Types:
    RailPayoutRequest: Single-item instruction sent to a rail
    RailResponse: What the rail said when it accepted the instruction
    RailPollResult: Later status of an asynchronous instruction
    PayoutRail: Base class of all rails
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from banking.exceptions import PaymentMethodNotConfigured

if TYPE_CHECKING:
    from banking.models import Vendor, VendorPayout


class RailStatus:
    """Outcome of a successful submission."""

    PROCESSING = "processing"
    COMPLETED = "completed"


class PollStatus:
    """Later status reported by an asynchronous rail."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class RailPayoutRequest:
    """
    One payout instruction.

    Attributes:
        payout_id: VendorPayout id, echoed back by the rail where supported
        payee: Rail-specific payee address (email, connected account id)
        amount: Amount to send
        currency: ISO 4217 code
        note: Message shown to the payee
        client_reference_id: Payout reference used for rail-side idempotency
    """

    payout_id: str
    payee: str
    amount: Decimal
    currency: str
    note: str
    client_reference_id: str

    @classmethod
    def for_payout(cls, payout: VendorPayout, payee: str, note: str = "") -> RailPayoutRequest:
        return cls(
            payout_id=str(payout.id),
            payee=payee,
            amount=payout.amount,
            currency=payout.currency,
            note=note or f"Payout {payout.reference}",
            client_reference_id=payout.reference,
        )


@dataclass(frozen=True)
class RailResponse:
    status: str
    batch_id: str = ""
    transfer_id: str = ""
    raw_response: dict[str, Any] = field(default_factory=dict)

    @property
    def is_completed(self) -> bool:
        return self.status == RailStatus.COMPLETED


@dataclass(frozen=True)
class RailPollResult:
    status: str
    rail_status: str = ""
    transfer_id: str = ""
    error: str = ""


class PayoutRail:
    """
    Base class for payment rails.

    Subclasses set name and implement resolve_payee and submit. Rails that
    answer asynchronously also implement fetch_status.
    """

    name: str = ""

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    def resolve_payee(self, vendor: Vendor | None) -> str:
        """
        Return the vendor's payee address for this rail.

        Raises:
            PaymentMethodNotConfigured: If the vendor has no usable payee details
        """
        raise NotImplementedError

    def submit(self, request: RailPayoutRequest) -> RailResponse:
        """
        Send one payout instruction.

        Raises:
            ExternalRailError: If the rail rejected the instruction or could not be reached
        """
        raise NotImplementedError

    def fetch_status(self, payout: VendorPayout) -> RailPollResult | None:
        """Poll the rail for an asynchronous payout. None when the rail cannot be polled."""
        return None

    def _not_configured(self, vendor: Vendor | None, message: str) -> PaymentMethodNotConfigured:
        return PaymentMethodNotConfigured(
            message,
            details={
                "vendor_name": vendor.vendor_name if vendor else None,
                "payment_method": self.name,
            },
        )
