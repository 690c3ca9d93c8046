"""
USD recorders for vendors.

- payout_earned: vendor share of a fulfilled line item (+USD)
- payout_withdrawal: mirror of a payout the rail has acknowledged (-USD)
- refund_deduction: vendor earnings reversed by a storefront refund (-USD)

Usage:
    from banking.recorders.payouts import PayoutLedgerRecorder

    PayoutLedgerRecorder.deposit_payout_earnings(
        line_item_id="li_1",
        order_id="ord_1",
        vendor_name="Street Collector",
        line_item_price=Decimal("412.00"),
    )

    # After the rail accepted the payout
    result = PayoutLedgerRecorder.record_payout_withdrawal(payout)
    result.usd_withdrawn  # Decimal("103.00"), or 0 if already recorded
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.utils import timezone

from core.exceptions import NotFoundError, ValidationError

from banking.exceptions import InvalidStateTransitionError
from banking.ledger import (
    AccountType,
    Currency,
    RecordEntryParams,
    TransactionType,
    build_dedup_key,
    to_decimal,
)
from banking.models import OrderLineItem, Vendor
from banking.state_machines import PayoutStatus

from .base import BaseRecorder, RecordResult
from .payout_rules import (
    calculate_line_item_payout,
    get_exchange_rate,
    resolve_original_price,
    resolve_payout_rule,
)

if TYPE_CHECKING:
    from banking.models import VendorPayout


@dataclass(frozen=True)
class PayoutDepositResult(RecordResult):
    @property
    def usd_deposited(self) -> Decimal:
        return self.amount_recorded


@dataclass(frozen=True)
class WithdrawalResult(RecordResult):
    @property
    def usd_withdrawn(self) -> Decimal:
        return self.amount_recorded


@dataclass(frozen=True)
class RefundDeductionResult(RecordResult):
    @property
    def usd_deducted(self) -> Decimal:
        return self.amount_recorded


def vendor_key(vendor: Vendor) -> str:
    """Dedup prefix for a vendor's entries; stable across renames and login links."""
    return f"vendor:{vendor.id}"


def get_vendor(vendor_name: str) -> Vendor:
    try:
        return Vendor.objects.get(vendor_name=vendor_name)
    except Vendor.DoesNotExist:
        raise NotFoundError(
            f"Vendor not found: {vendor_name}",
            error_code="VENDOR_NOT_FOUND",
            details={"vendor_name": vendor_name},
        )


class PayoutLedgerRecorder(BaseRecorder):
    """Records USD movements on vendor accounts."""

    @classmethod
    def deposit_payout_earnings(
        cls,
        line_item_id: str,
        order_id: str,
        vendor_name: str,
        line_item_price: Any,
        currency: str | None = None,
        product_id: str | None = None,
        shopify_line_item: dict | None = None,
        created_by: str = "system",
    ) -> PayoutDepositResult:
        """
        Credit a vendor with its share of a fulfilled line item.

        The share is computed on the pre-discount price converted to USD.
        Dedup key: (vendor id, payout_earned, line_item_id, USD)

        Raises:
            NotFoundError: If the vendor is not in the vendor directory
            ValidationError: If the price is malformed or the payout is not positive
        """
        if not line_item_id:
            raise ValidationError("line_item_id is required", error_code="MISSING_LINE_ITEM_ID")
        vendor = get_vendor(vendor_name)
        collector_identifier = vendor.collector_identifier

        line_item = OrderLineItem.objects.filter(line_item_id=line_item_id).first()
        if line_item is not None:
            product_id = product_id or line_item.product_id
            currency = currency or line_item.currency
            if shopify_line_item is None and line_item.original_price is not None:
                shopify_line_item = {"original_price": str(line_item.original_price)}
        currency = (currency or "USD").upper()

        paid_price = to_decimal(line_item_price, "line_item_price")
        original_price = resolve_original_price(paid_price, shopify_line_item)
        rate = get_exchange_rate(currency)
        usd_price = original_price * rate
        rule = resolve_payout_rule(vendor, product_id)
        payout_amount = calculate_line_item_payout(usd_price, rule)

        if payout_amount <= 0:
            raise ValidationError(
                "Payout amount is zero or negative",
                error_code="INVALID_PAYOUT_AMOUNT",
                details={
                    "vendor_name": vendor_name,
                    "line_item_id": line_item_id,
                    "payout_amount": str(payout_amount),
                },
            )

        params = RecordEntryParams(
            collector_identifier=collector_identifier,
            transaction_type=TransactionType.PAYOUT_EARNED,
            amount=payout_amount,
            currency=Currency.USD,
            order_id=order_id,
            line_item_id=line_item_id,
            description=f"Payout earnings from fulfilled order {order_id}",
            metadata={
                "vendor_name": vendor_name,
                "product_id": product_id,
                "line_item_price": str(paid_price),
                "original_price": str(original_price),
                "source_currency": currency,
                "exchange_rate": str(rate),
                "payout_setting": rule.to_metadata(),
            },
            tax_year=timezone.now().year,
            created_by=created_by,
            dedup_key=build_dedup_key(
                vendor_key(vendor),
                TransactionType.PAYOUT_EARNED,
                line_item_id,
                Currency.USD,
            ),
        )
        entry, created = cls._record_once(params, AccountType.VENDOR, vendor=vendor)
        return cls._result(PayoutDepositResult, params, entry, created)

    @classmethod
    def record_payout_withdrawal(
        cls,
        payout: VendorPayout,
        created_by: str = "system",
    ) -> WithdrawalResult:
        """
        Mirror a payout into the ledger as a withdrawal.

        Only payouts the rail has acknowledged (processing or completed) can
        be withdrawn. Safe to call again for the same payout; the repair
        path relies on that.

        Dedup key: (payout_id, payout_withdrawal, USD); one withdrawal per
        payout whatever the vendor's identifier is

        Raises:
            InvalidStateTransitionError: If the payout is pending or failed
        """
        if payout.status not in PayoutStatus.rail_acknowledged():
            raise InvalidStateTransitionError(
                f"Payout {payout.reference} is {payout.status}; "
                "only payouts acknowledged by the rail can be withdrawn",
                error_code="PAYOUT_NOT_ACKNOWLEDGED",
                details={"payout_id": str(payout.id), "status": payout.status},
            )

        vendor = payout.vendor or Vendor.objects.filter(vendor_name=payout.vendor_name).first()
        collector_identifier = vendor.collector_identifier if vendor else payout.vendor_name

        params = RecordEntryParams(
            collector_identifier=collector_identifier,
            transaction_type=TransactionType.PAYOUT_WITHDRAWAL,
            amount=-payout.amount,
            currency=Currency.USD,
            payout_id=str(payout.id),
            description=f"Payout {payout.reference} via {payout.get_payment_method_display()}",
            metadata={
                "vendor_name": payout.vendor_name,
                "reference": payout.reference,
                "invoice_number": payout.invoice_number,
                "payment_method": payout.payment_method,
                "rail_batch_id": payout.rail_batch_id,
                "rail_transfer_id": payout.rail_transfer_id,
            },
            tax_year=(payout.processed_at or timezone.now()).year,
            created_by=created_by,
            dedup_key=build_dedup_key(
                str(payout.id),
                TransactionType.PAYOUT_WITHDRAWAL,
                Currency.USD,
            ),
        )
        entry, created = cls._record_once(params, AccountType.VENDOR, vendor=vendor)
        if created:
            cls.get_logger().info(
                "Recorded payout withdrawal",
                extra={
                    "payout_id": str(payout.id),
                    "collector_identifier": collector_identifier,
                    "amount": str(payout.amount),
                },
            )
        return cls._result(WithdrawalResult, params, entry, created)

    @classmethod
    def record_refund_deduction(
        cls,
        vendor_name: str,
        order_id: str,
        amount: Any,
        line_item_id: str | None = None,
        refund_id: str | None = None,
        reason: str = "",
        created_by: str = "system",
    ) -> RefundDeductionResult:
        """
        Deduct refunded earnings from a vendor.

        amount is the magnitude to deduct; the entry is always negative. When
        the storefront supplies a refund_id the deduction is recorded at most
        once per refund.

        Raises:
            NotFoundError: If the vendor is not in the vendor directory
            ValidationError: If amount is not positive or order_id is missing
        """
        if not order_id:
            raise ValidationError("order_id is required", error_code="MISSING_ORDER_ID")
        magnitude = to_decimal(amount)
        if magnitude <= 0:
            raise ValidationError(
                "Refund deduction amount must be positive",
                error_code="INVALID_AMOUNT",
                details={"amount": str(amount)},
            )
        vendor = get_vendor(vendor_name)
        collector_identifier = vendor.collector_identifier

        dedup_key = None
        if refund_id:
            dedup_key = build_dedup_key(
                vendor_key(vendor),
                TransactionType.REFUND_DEDUCTION,
                refund_id,
                Currency.USD,
            )

        params = RecordEntryParams(
            collector_identifier=collector_identifier,
            transaction_type=TransactionType.REFUND_DEDUCTION,
            amount=-magnitude,
            currency=Currency.USD,
            order_id=order_id,
            line_item_id=line_item_id,
            description=reason or f"Refund deduction for order {order_id}",
            metadata={"vendor_name": vendor_name, "refund_id": refund_id, "reason": reason},
            tax_year=timezone.now().year,
            created_by=created_by,
            dedup_key=dedup_key,
        )
        entry, created = cls._record_once(params, AccountType.VENDOR, vendor=vendor)
        return cls._result(RefundDeductionResult, params, entry, created)
