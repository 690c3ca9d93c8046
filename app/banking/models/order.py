"""
Storefront mirror models consumed by the banking core.

- OrderLineItem: line items reported by the fulfillment event source
- CreditSubscription: monthly credit subscriptions
"""

from __future__ import annotations

from datetime import timedelta

from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

# Billing cycle length for credit subscriptions
SUBSCRIPTION_BILLING_DAYS = 30


class FulfillmentStatus(models.TextChoices):
    UNFULFILLED = "unfulfilled", "Unfulfilled"
    PARTIAL = "partial", "Partially Fulfilled"
    FULFILLED = "fulfilled", "Fulfilled"


class LineItemStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    REMOVED = "removed", "Removed"


class OrderLineItem(UUIDPrimaryKeyMixin, BaseModel):
    """
    A storefront order line item.

    Written by FulfillmentHandler when a fulfillment event arrives and read
    by the payout validator before an admin pays a vendor.
    """

    line_item_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Storefront line item ID",
    )
    order_id = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Storefront order ID",
    )
    order_name = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Human-readable order number (#1001)",
    )
    vendor_name = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Vendor the line item is paid out to",
    )
    product_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Storefront product ID",
    )
    customer_identifier = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Collector identifier of the buying customer",
    )
    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Price paid, after discounts, in the line item currency",
    )
    original_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Price before discounts, when known",
    )
    currency = models.CharField(
        max_length=3,
        default="USD",
        help_text="ISO 4217 currency code of the price",
    )
    fulfillment_status = models.CharField(
        max_length=20,
        choices=FulfillmentStatus.choices,
        default=FulfillmentStatus.UNFULFILLED,
        db_index=True,
        help_text="Storefront fulfillment status",
    )
    status = models.CharField(
        max_length=20,
        choices=LineItemStatus.choices,
        default=LineItemStatus.ACTIVE,
        help_text="Removed line items are never paid out",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["vendor_name", "fulfillment_status"],
                name="line_item_vendor_fulfil_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_name or self.order_id} / {self.line_item_id}"


class CreditSubscription(UUIDPrimaryKeyMixin, BaseModel):
    """A collector's monthly credit subscription."""

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        CANCELLED = "cancelled", "Cancelled"

    subscription_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="External subscription ID",
    )
    collector_identifier = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Collector receiving the monthly credits",
    )
    monthly_credits = models.PositiveIntegerField(
        help_text="Credits deposited each billing cycle",
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ACTIVE,
        help_text="Only active subscriptions are credited",
    )
    next_billing_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="When the next credit deposit is due",
    )

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.subscription_id} ({self.collector_identifier})"

    def advance_billing(self, now) -> None:
        """Push next_billing_at one billing cycle forward (from now if never billed)."""
        base = self.next_billing_at or now
        self.next_billing_at = base + timedelta(days=SUBSCRIPTION_BILLING_DAYS)
        self.save(update_fields=["next_billing_at", "updated_at"])
