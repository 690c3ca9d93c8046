"""
Pre-flight checks for the admin payout console.

Each check returns a ValidationResult instead of raising, so the console can
show every problem with a batch at once before anything is sent to a rail.

Usage:
    from banking.services import PayoutValidator

    result = PayoutValidator.validate_payout(line_item_ids=["li_1", "li_2"])
    if not result.valid:
        return Response({"errors": result.errors}, status=400)
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any

from core.services import BaseService

from banking.models import FulfillmentStatus, LineItemStatus, OrderLineItem, VendorPayoutItem


@dataclass
class ValidationResult:
    valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def from_messages(cls, errors: list[str], warnings: list[str] | None = None) -> ValidationResult:
        return cls(valid=not errors, errors=errors, warnings=warnings or [])

    def merge(self, other: ValidationResult) -> ValidationResult:
        return ValidationResult.from_messages(
            self.errors + other.errors,
            self.warnings + other.warnings,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _joined(ids) -> str:
    return ", ".join(sorted(ids))


class PayoutValidator(BaseService):
    """Read-only checks run before a payout batch is created."""

    @classmethod
    def validate_fulfillment_status(cls, line_item_ids: list[str]) -> ValidationResult:
        """Every line item must exist and be fulfilled."""
        items = list(
            OrderLineItem.objects.filter(line_item_id__in=line_item_ids).values(
                "line_item_id", "fulfillment_status"
            )
        )
        if not items:
            return ValidationResult.from_messages(["No line items found"])

        errors = []
        unfulfilled = [
            item["line_item_id"]
            for item in items
            if item["fulfillment_status"] != FulfillmentStatus.FULFILLED
        ]
        if unfulfilled:
            errors.append(f"The following line items are not fulfilled: {_joined(unfulfilled)}")

        missing = set(line_item_ids) - {item["line_item_id"] for item in items}
        if missing:
            errors.append(f"The following line items were not found: {_joined(missing)}")

        return ValidationResult.from_messages(errors)

    @classmethod
    def check_duplicate_payments(cls, line_item_ids: list[str]) -> ValidationResult:
        """No line item may already be attached to a payout."""
        paid = list(
            VendorPayoutItem.objects.filter(line_item_id__in=line_item_ids).values(
                "line_item_id", "manually_marked_paid"
            )
        )
        if not paid:
            return ValidationResult()

        warnings = []
        manually_marked = sum(1 for item in paid if item["manually_marked_paid"])
        if manually_marked:
            warnings.append(
                f"{manually_marked} of these items were manually marked as paid previously"
            )
        errors = [
            "The following line items have already been paid: "
            f"{_joined(item['line_item_id'] for item in paid)}"
        ]
        return ValidationResult.from_messages(errors, warnings)

    @classmethod
    def validate_payout_amounts(cls, line_items: list[dict[str, Any]]) -> ValidationResult:
        """
        Sanity-check payout amounts against line item prices.

        Args:
            line_items: Dicts with ``price`` and ``payout_amount``

        A payout above the price is only a warning since flat-rate rules
        can legitimately exceed a discounted price.
        """
        errors = []
        warnings = []
        for item in line_items:
            price = Decimal(str(item["price"]))
            payout_amount = Decimal(str(item["payout_amount"]))
            if payout_amount < 0:
                errors.append(f"Line item has negative payout amount: {payout_amount}")
            if payout_amount > price:
                warnings.append(f"Line item payout ({payout_amount}) exceeds price ({price})")
            if price == 0:
                warnings.append("Line item has zero price")
        return ValidationResult.from_messages(errors, warnings)

    @classmethod
    def ensure_data_integrity(cls, line_item_ids: list[str]) -> ValidationResult:
        """Line items must exist, be active and belong to a single vendor."""
        items = list(
            OrderLineItem.objects.filter(line_item_id__in=line_item_ids).values(
                "line_item_id", "status", "vendor_name"
            )
        )
        errors = []

        missing = set(line_item_ids) - {item["line_item_id"] for item in items}
        if missing:
            errors.append(f"Missing line items: {_joined(missing)}")

        inactive = [item["line_item_id"] for item in items if item["status"] != LineItemStatus.ACTIVE]
        if inactive:
            errors.append(f"Inactive line items found: {_joined(inactive)}")

        vendors = {item["vendor_name"] for item in items if item["vendor_name"]}
        if len(vendors) > 1:
            errors.append(f"Line items belong to different vendors: {_joined(vendors)}")

        return ValidationResult.from_messages(errors)

    @classmethod
    def validate_payout(
        cls,
        line_item_ids: list[str] | None = None,
        order_ids: list[str] | None = None,
        vendor_name: str | None = None,
        check_duplicates: bool = True,
        check_fulfillment_status: bool = True,
    ) -> ValidationResult:
        """
        Run the selected checks for explicit line items and/or a vendor's
        active line items in the given orders.
        """
        result = ValidationResult()

        groups = []
        if line_item_ids:
            groups.append(list(line_item_ids))
        if order_ids and vendor_name:
            groups.append(
                list(
                    OrderLineItem.objects.filter(
                        order_id__in=order_ids,
                        vendor_name=vendor_name,
                        status=LineItemStatus.ACTIVE,
                    ).values_list("line_item_id", flat=True)
                )
            )

        for ids in groups:
            if check_fulfillment_status:
                result = result.merge(cls.validate_fulfillment_status(ids))
            if check_duplicates:
                result = result.merge(cls.check_duplicate_payments(ids))

        if not result.valid:
            cls.get_logger().info(
                "Payout validation failed",
                extra={"vendor_name": vendor_name, "errors": result.errors},
            )
        return result
