"""
Pending payout calculation for the admin payout console.

A line item is pending for its vendor once it is active and fulfilled and
no VendorPayoutItem covers it yet. Its payout is the vendor's share of the
pre-discount price in USD, resolved the same way fulfillment earnings are.

Usage:
    from banking.services import PayoutCalculator

    pending = PayoutCalculator.get_pending_line_items("Street Collector")
    summary = PayoutCalculator.calculate_vendor_payout("Street Collector")
    print(summary.total_payout_amount, summary.pending_line_items)
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from core.services import BaseService

from banking.models import (
    FulfillmentStatus,
    LineItemStatus,
    OrderLineItem,
    Vendor,
    VendorPayoutItem,
)
from banking.recorders.payout_rules import (
    calculate_line_item_payout,
    get_exchange_rate,
    resolve_payout_rule,
)
from banking.recorders.payouts import get_vendor


@dataclass
class LineItemPayout:
    line_item_id: str
    order_id: str
    order_name: str
    product_id: str
    price: Decimal
    payout_amount: Decimal
    rule_amount: Decimal
    is_percentage: bool
    fulfillment_status: str
    is_paid: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for key in ("price", "payout_amount", "rule_amount"):
            data[key] = str(data[key])
        return data


@dataclass
class OrderPayout:
    order_id: str
    order_name: str
    order_date: datetime | None = None
    line_items: list[LineItemPayout] = field(default_factory=list)

    @property
    def payout_amount(self) -> Decimal:
        return sum((item.payout_amount for item in self.line_items), Decimal("0"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "order_name": self.order_name,
            "order_date": self.order_date.isoformat() if self.order_date else None,
            "payout_amount": str(self.payout_amount),
            "line_items": [item.to_dict() for item in self.line_items],
        }


@dataclass
class VendorPayoutSummary:
    """
    What a vendor is owed for fulfilled line items.

    Attributes:
        total_line_items: Active line items of the vendor
        fulfilled_line_items: Active and fulfilled
        paid_line_items: Fulfilled and covered by a payout item
        pending_line_items: Fulfilled and not yet paid
        total_payout_amount: Payout of the line items listed in orders
    """

    vendor_name: str
    total_line_items: int = 0
    fulfilled_line_items: int = 0
    paid_line_items: int = 0
    pending_line_items: int = 0
    total_revenue: Decimal = Decimal("0")
    total_payout_amount: Decimal = Decimal("0")
    orders: list[OrderPayout] = field(default_factory=list)

    @property
    def total_orders(self) -> int:
        return len(self.orders)

    def to_dict(self) -> dict[str, Any]:
        return {
            "vendor_name": self.vendor_name,
            "total_orders": self.total_orders,
            "total_line_items": self.total_line_items,
            "fulfilled_line_items": self.fulfilled_line_items,
            "paid_line_items": self.paid_line_items,
            "pending_line_items": self.pending_line_items,
            "total_revenue": str(self.total_revenue),
            "total_payout_amount": str(self.total_payout_amount),
            "orders": [order.to_dict() for order in self.orders],
        }


class PayoutCalculator(BaseService):
    """Read-only payout amounts for line items; nothing here touches the ledger."""

    @classmethod
    def line_item_payout(
        cls,
        line_item: OrderLineItem,
        vendor: Vendor | None,
        is_paid: bool = False,
    ) -> LineItemPayout:
        """Vendor share of one line item, on its pre-discount price in USD."""
        price = line_item.original_price if line_item.original_price is not None else line_item.price
        rule = resolve_payout_rule(vendor, line_item.product_id)
        usd_price = price * get_exchange_rate(line_item.currency)
        return LineItemPayout(
            line_item_id=line_item.line_item_id,
            order_id=line_item.order_id,
            order_name=line_item.order_name,
            product_id=line_item.product_id,
            price=line_item.price,
            payout_amount=calculate_line_item_payout(usd_price, rule),
            rule_amount=rule.payout_amount,
            is_percentage=rule.is_percentage,
            fulfillment_status=line_item.fulfillment_status,
            is_paid=is_paid,
        )

    @classmethod
    def eligible_line_items(cls, vendor_name: str):
        """Active, fulfilled line items of a vendor, paid or not."""
        return OrderLineItem.objects.filter(
            vendor_name=vendor_name,
            status=LineItemStatus.ACTIVE,
            fulfillment_status=FulfillmentStatus.FULFILLED,
        ).order_by("created_at")

    @classmethod
    def get_pending_line_items(cls, vendor_name: str) -> list[LineItemPayout]:
        """
        Fulfilled line items of a vendor that no payout covers yet.

        Raises:
            NotFoundError: If the vendor is not in the vendor directory
        """
        vendor = get_vendor(vendor_name)
        paid_ids = VendorPayoutItem.objects.values_list("line_item_id", flat=True)
        pending = cls.eligible_line_items(vendor_name).exclude(line_item_id__in=paid_ids)
        return [cls.line_item_payout(item, vendor) for item in pending]

    @classmethod
    def calculate_vendor_payout(
        cls,
        vendor_name: str,
        order_id: str | None = None,
        include_paid: bool = False,
    ) -> VendorPayoutSummary:
        """
        Summarise a vendor's fulfilled line items by order.

        Args:
            vendor_name: Vendor to summarise
            order_id: Restrict the summary to a single order
            include_paid: List paid line items too; the payout total then
                covers them as well

        Raises:
            NotFoundError: If the vendor is not in the vendor directory
        """
        vendor = get_vendor(vendor_name)
        active = OrderLineItem.objects.filter(vendor_name=vendor_name, status=LineItemStatus.ACTIVE)
        if order_id:
            active = active.filter(order_id=order_id)
        fulfilled = list(
            active.filter(fulfillment_status=FulfillmentStatus.FULFILLED).order_by("created_at")
        )
        paid_ids = set(
            VendorPayoutItem.objects.filter(
                line_item_id__in=[item.line_item_id for item in fulfilled]
            ).values_list("line_item_id", flat=True)
        )

        summary = VendorPayoutSummary(
            vendor_name=vendor_name,
            total_line_items=active.count(),
            fulfilled_line_items=len(fulfilled),
            paid_line_items=len(paid_ids),
            pending_line_items=len(fulfilled) - len(paid_ids),
        )
        orders: dict[str, OrderPayout] = {}
        for item in fulfilled:
            is_paid = item.line_item_id in paid_ids
            if is_paid and not include_paid:
                continue
            order = orders.setdefault(
                item.order_id,
                OrderPayout(
                    order_id=item.order_id,
                    order_name=item.order_name,
                    order_date=item.created_at,
                ),
            )
            order.line_items.append(cls.line_item_payout(item, vendor, is_paid=is_paid))
            summary.total_revenue += item.price

        summary.orders = list(orders.values())
        summary.total_payout_amount = sum(
            (order.payout_amount for order in summary.orders), Decimal("0")
        )
        return summary
