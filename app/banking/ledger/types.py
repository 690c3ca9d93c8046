"""
Data types for ledger operations.

Types:
    RecordEntryParams: Validated parameters for appending one ledger entry
    CreditBalance: CREDITS balance of a collector
    UnifiedBalance: CREDITS and USD balances of a collector

Helpers:
    to_decimal: Parse an amount, raising ValidationError for non-numeric input
    build_dedup_key: Compose the natural key that makes a recorder idempotent

Usage:
    from banking.ledger.types import RecordEntryParams, build_dedup_key

    params = RecordEntryParams(
        collector_identifier="cust_123",
        transaction_type=TransactionType.CREDIT_EARNED,
        amount=400,
        currency=Currency.CREDITS,
        line_item_id="li_1",
        dedup_key=build_dedup_key("cust_123", "credit_earned", "li_1", "CREDITS"),
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from core.exceptions import ValidationError

from .models import Currency, TransactionType

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: Any, field_name: str = "amount") -> Decimal:
    """
    Parse a monetary value into a Decimal with two decimal places.

    Raises:
        ValidationError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValidationError(
            f"{field_name} must be numeric",
            error_code="INVALID_AMOUNT",
            details={field_name: repr(value)},
        )
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(
            f"{field_name} must be numeric",
            error_code="INVALID_AMOUNT",
            details={field_name: repr(value)},
        )
    if not parsed.is_finite():
        raise ValidationError(
            f"{field_name} must be a finite number",
            error_code="INVALID_AMOUNT",
            details={field_name: repr(value)},
        )
    return parsed.quantize(CENT, rounding=ROUND_HALF_UP)


def build_dedup_key(identifier: str, transaction_type: str, *parts: Any) -> str:
    """
    Compose a dedup key from the collector, transaction type and correlating ids.

    Example:
        build_dedup_key("vendor_a", "payout_withdrawal", payout.id, "USD")
        # "vendor_a:payout_withdrawal:<payout uuid>:USD"
    """
    return ":".join(str(part) for part in (identifier, transaction_type, *parts))


@dataclass
class RecordEntryParams:
    """
    Parameters for appending one ledger entry.

    Validation happens on construction, so a malformed amount or currency
    is rejected before any database work starts.

    Required Attributes:
        collector_identifier: Collector the entry belongs to
        transaction_type: One of TransactionType
        amount: Signed amount (anything Decimal can parse)
        currency: One of Currency

    Optional Attributes:
        dedup_key: Natural key; entries with a dedup key are recorded at most once
        order_id / line_item_id / subscription_id / purchase_id / payout_id:
            correlation keys
        description: Human-readable description
        metadata: Audit context
        tax_year: Tax year the amount is reported under
        created_by: Service or admin recording the entry
    """

    collector_identifier: str
    transaction_type: str
    amount: Any
    currency: str

    dedup_key: str | None = None
    order_id: str | None = None
    line_item_id: str | None = None
    subscription_id: str | None = None
    purchase_id: str | None = None
    payout_id: str | None = None
    description: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    tax_year: int | None = None
    created_by: str = "system"

    def __post_init__(self) -> None:
        if not self.collector_identifier:
            raise ValidationError(
                "collector_identifier is required",
                error_code="MISSING_COLLECTOR_IDENTIFIER",
            )
        if self.currency not in Currency.values:
            raise ValidationError(
                f"Unrecognized currency {self.currency!r}",
                error_code="INVALID_CURRENCY",
                details={"currency": self.currency, "allowed": Currency.values},
            )
        if self.transaction_type not in TransactionType.values:
            raise ValidationError(
                f"Unrecognized transaction type {self.transaction_type!r}",
                error_code="INVALID_TRANSACTION_TYPE",
                details={"transaction_type": self.transaction_type},
            )
        self.amount = to_decimal(self.amount)
        if self.amount == ZERO:
            raise ValidationError(
                "Ledger entries cannot have a zero amount",
                error_code="ZERO_AMOUNT",
                details={"collector_identifier": self.collector_identifier},
            )
        if not self.created_by:
            raise ValidationError(
                "created_by is required",
                error_code="MISSING_CREATED_BY",
            )


@dataclass(frozen=True)
class CreditBalance:
    """
    CREDITS balance of a collector.

    Attributes:
        balance: Spendable credits, clamped at zero for display
        credits_earned: Lifetime credits from earning transaction types
        credits_spent: Sum of all negative CREDITS entries, as a positive number
        raw_balance: Unclamped signed sum of all CREDITS entries
    """

    balance: Decimal
    credits_earned: Decimal
    credits_spent: Decimal
    raw_balance: Decimal

    @property
    def is_clamped(self) -> bool:
        return self.raw_balance < ZERO


@dataclass(frozen=True)
class UnifiedBalance:
    """
    CREDITS and USD balances of a collector.

    usd_balance is the signed sum of all USD entries and is not clamped;
    a refund after a withdrawal can leave a vendor owing the platform.
    """

    credits_balance: Decimal
    usd_balance: Decimal
    total_credits_earned: Decimal
    total_usd_earned: Decimal

    def to_dict(self) -> dict[str, str]:
        return {
            "credits_balance": str(self.credits_balance),
            "usd_balance": str(self.usd_balance),
            "total_credits_earned": str(self.total_credits_earned),
            "total_usd_earned": str(self.total_usd_earned),
        }
