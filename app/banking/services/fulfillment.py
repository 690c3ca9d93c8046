"""
Fulfillment event intake.

When the storefront reports a line item as fulfilled, the customer earns
purchase credits and the vendor earns its payout share. The two sides are
recorded independently: a vendor missing from the directory does not cost
the customer their credits, and the reverse.

Usage:
    from banking.services import FulfillmentEvent, FulfillmentHandler

    result = FulfillmentHandler.handle_line_item_fulfilled(
        FulfillmentEvent(
            line_item_id="li_1",
            order_id="ord_1",
            price=Decimal("40.00"),
            vendor_name="Street Collector",
            customer_identifier="collector@example.com",
        )
    )
    result.credits.success, result.payout.success
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from django.db import DatabaseError, transaction

from core.exceptions import BaseApplicationError, ValidationError
from core.services import BaseService, ServiceResult

from banking.exceptions import LedgerWriteError
from banking.ledger import to_decimal
from banking.models import FulfillmentStatus, OrderLineItem
from banking.recorders import CreditRecorder, PayoutLedgerRecorder

# Storage failures are retried by the caller; business failures are reported
STORAGE_ERRORS = (LedgerWriteError, DatabaseError)


@dataclass
class FulfillmentEvent:
    """A line item whose fulfillment status became "fulfilled"."""

    line_item_id: str
    order_id: str
    price: Any
    vendor_name: str
    customer_identifier: str = ""
    order_name: str = ""
    product_id: str = ""
    currency: str = "USD"
    original_price: Any = None
    shopify_line_item: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FulfillmentEvent:
        known = cls.__dataclass_fields__
        return cls(**{key: value for key, value in data.items() if key in known})


@dataclass
class FulfillmentResult:
    line_item_id: str
    credits: ServiceResult = field(default_factory=lambda: ServiceResult.success(None))
    payout: ServiceResult = field(default_factory=lambda: ServiceResult.success(None))

    @property
    def success(self) -> bool:
        return bool(self.credits) and bool(self.payout)

    def to_dict(self) -> dict[str, Any]:
        return {
            "line_item_id": self.line_item_id,
            "success": self.success,
            "credits": self.credits.to_response(),
            "payout": self.payout.to_response(),
        }


class FulfillmentHandler(BaseService):
    """Turns fulfillment events into ledger earnings."""

    @classmethod
    def handle_line_item_fulfilled(cls, event: FulfillmentEvent) -> FulfillmentResult:
        """
        Mirror the line item and record both earnings.

        Safe to replay: both recorders are idempotent on the line item.

        Business failures (unknown vendor, zero payout) are reported in the
        result. A storage failure on either side is re-raised once both
        sides have been attempted, so the caller can retry the event.

        Raises:
            ValidationError: If the event itself is malformed
            LedgerWriteError: If the ledger could not store an entry
            DatabaseError: If the database failed outside the ledger store
        """
        line_item = cls.upsert_line_item(event)
        result = FulfillmentResult(line_item_id=line_item.line_item_id)
        storage_error = None
        log_context = {
            "line_item_id": event.line_item_id,
            "order_id": event.order_id,
            "vendor_name": event.vendor_name,
        }

        if event.customer_identifier:
            try:
                deposit = CreditRecorder.deposit_purchase_credits(
                    collector_identifier=event.customer_identifier,
                    line_item_id=event.line_item_id,
                    price=line_item.price,
                    order_id=event.order_id,
                )
                result.credits = ServiceResult.success(
                    {
                        "entry_id": deposit.entry_id,
                        "credits_deposited": str(deposit.credits_deposited),
                        "new_balance": str(deposit.new_balance),
                        "already_recorded": deposit.already_recorded,
                    }
                )
            except STORAGE_ERRORS as e:
                result.credits = cls.handle_exception(e, "Credit deposit for fulfilled line item")
                storage_error = e
            except BaseApplicationError as e:
                result.credits = cls.handle_exception(e, "Credit deposit for fulfilled line item")
        else:
            cls.get_logger().info("Fulfilled line item has no customer; no credits", extra=log_context)

        try:
            earning = PayoutLedgerRecorder.deposit_payout_earnings(
                line_item_id=event.line_item_id,
                order_id=event.order_id,
                vendor_name=event.vendor_name,
                line_item_price=line_item.price,
                currency=line_item.currency,
                product_id=line_item.product_id or None,
                shopify_line_item=event.shopify_line_item,
            )
            result.payout = ServiceResult.success(
                {
                    "entry_id": earning.entry_id,
                    "usd_deposited": str(earning.usd_deposited),
                    "new_balance": str(earning.new_balance),
                    "already_recorded": earning.already_recorded,
                }
            )
        except STORAGE_ERRORS as e:
            result.payout = cls.handle_exception(e, "Payout earning for fulfilled line item")
            storage_error = storage_error or e
        except BaseApplicationError as e:
            result.payout = cls.handle_exception(e, "Payout earning for fulfilled line item")

        cls.get_logger().info(
            "Fulfillment event processed",
            extra={
                **log_context,
                "credits_recorded": bool(result.credits),
                "payout_recorded": bool(result.payout),
            },
        )
        if storage_error is not None:
            raise storage_error
        return result

    @classmethod
    def upsert_line_item(cls, event: FulfillmentEvent) -> OrderLineItem:
        """Create or refresh the local mirror of the line item, marked fulfilled."""
        if not event.line_item_id or not event.order_id:
            raise ValidationError(
                "line_item_id and order_id are required",
                error_code="INVALID_FULFILLMENT_EVENT",
                details={"line_item_id": event.line_item_id, "order_id": event.order_id},
            )
        if not event.vendor_name:
            raise ValidationError(
                "vendor_name is required",
                error_code="INVALID_FULFILLMENT_EVENT",
                details={"line_item_id": event.line_item_id},
            )
        price = to_decimal(event.price, "price")
        if price < Decimal("0"):
            raise ValidationError(
                "price cannot be negative",
                error_code="INVALID_AMOUNT",
                details={"price": str(price)},
            )
        original_price = (
            to_decimal(event.original_price, "original_price")
            if event.original_price is not None
            else None
        )

        with transaction.atomic():
            line_item, _ = OrderLineItem.objects.update_or_create(
                line_item_id=event.line_item_id,
                defaults={
                    "order_id": event.order_id,
                    "order_name": event.order_name,
                    "vendor_name": event.vendor_name,
                    "product_id": event.product_id,
                    "customer_identifier": event.customer_identifier,
                    "price": price,
                    "original_price": original_price,
                    "currency": (event.currency or "USD").upper(),
                    "fulfillment_status": FulfillmentStatus.FULFILLED,
                },
            )
        return line_item
