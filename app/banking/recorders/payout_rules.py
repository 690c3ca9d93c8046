"""
Payout rule resolution for vendor earnings.

A vendor's share of a line item is resolved in this order:
    1. ProductPayoutRule for (vendor, product_id)
    2. Vendor.default_payout_percentage
    3. settings.DEFAULT_PAYOUT_PERCENTAGE (25%)

The share is applied to the original (pre-discount) price converted to USD.

Usage:
    from banking.recorders.payout_rules import (
        calculate_line_item_payout,
        normalize_to_usd,
        resolve_original_price,
        resolve_payout_rule,
    )

    original = resolve_original_price(Decimal("90.00"), shopify_line_item)
    usd_price = normalize_to_usd(original, "GBP")
    rule = resolve_payout_rule(vendor, product_id="prod_1")
    payout = calculate_line_item_payout(usd_price, rule)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from django.conf import settings

from banking.ledger.types import CENT, to_decimal
from banking.models import ExchangeRate, ProductPayoutRule

if TYPE_CHECKING:
    from banking.models import Vendor

logger = logging.getLogger(__name__)

# Storefront currency aliases; the rate table stores ILS
CURRENCY_ALIASES = {"NIS": "ILS"}


class RuleSource:
    PRODUCT = "product"
    VENDOR = "vendor"
    PLATFORM_DEFAULT = "platform_default"


@dataclass(frozen=True)
class PayoutRule:
    """
    A resolved payout rule.

    Attributes:
        payout_amount: Percentage (0-100) or flat USD amount
        is_percentage: Whether payout_amount is a percentage
        source: Where the rule came from (product, vendor, platform_default)
    """

    payout_amount: Decimal
    is_percentage: bool
    source: str

    def to_metadata(self) -> dict[str, Any]:
        return {
            "payout_amount": str(self.payout_amount),
            "is_percentage": self.is_percentage,
            "source": self.source,
        }


def resolve_payout_rule(vendor: Vendor | None, product_id: str | None = None) -> PayoutRule:
    """Pick the most specific payout rule for a vendor's product."""
    if vendor is not None and product_id:
        override = ProductPayoutRule.objects.filter(vendor=vendor, product_id=product_id).first()
        if override is not None:
            return PayoutRule(
                payout_amount=override.payout_amount,
                is_percentage=override.is_percentage,
                source=RuleSource.PRODUCT,
            )

    if vendor is not None and vendor.default_payout_percentage is not None:
        return PayoutRule(
            payout_amount=vendor.default_payout_percentage,
            is_percentage=True,
            source=RuleSource.VENDOR,
        )

    return PayoutRule(
        payout_amount=Decimal(settings.DEFAULT_PAYOUT_PERCENTAGE),
        is_percentage=True,
        source=RuleSource.PLATFORM_DEFAULT,
    )


def calculate_line_item_payout(price: Decimal, rule: PayoutRule) -> Decimal:
    """
    Apply a payout rule to a USD price.

    Percentage rules take a share of the price; flat rules pay the flat
    amount regardless of price. The result is rounded half up to cents.
    """
    if rule.is_percentage:
        amount = price * rule.payout_amount / Decimal(100)
    else:
        amount = rule.payout_amount
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def resolve_original_price(price: Any, shopify_line_item: dict | None = None) -> Decimal:
    """
    Price before discounts, which is what vendors are paid on.

    Uses the storefront payload's original_price when present, otherwise
    adds the line item's discount allocations back onto its price. Falls
    back to the paid price when no payload is available.
    """
    paid = to_decimal(price, "price")
    if not shopify_line_item:
        return paid

    if shopify_line_item.get("original_price"):
        return to_decimal(shopify_line_item["original_price"], "original_price")

    base = to_decimal(shopify_line_item.get("price") or paid, "price")
    allocations = shopify_line_item.get("discount_allocations") or []
    total_discount = sum(
        (to_decimal(allocation.get("amount") or 0, "discount") for allocation in allocations),
        Decimal("0"),
    )
    return base + total_discount


def get_exchange_rate(currency: str) -> Decimal:
    """
    Rate converting one unit of currency into USD.

    Looks up the ExchangeRate table first, then the configured fallback
    rates, and finally assumes parity.
    """
    code = (currency or "USD").upper()
    code = CURRENCY_ALIASES.get(code, code)
    if code == "USD":
        return Decimal("1")

    stored = (
        ExchangeRate.objects.filter(from_currency=code, to_currency="USD")
        .values_list("rate", flat=True)
        .first()
    )
    if stored:
        return Decimal(stored)

    fallback_rates = settings.BANKING_FALLBACK_EXCHANGE_RATES
    fallback = fallback_rates.get(code) or fallback_rates.get(currency.upper())
    if fallback is not None:
        return Decimal(str(fallback))

    logger.warning(
        "No exchange rate for currency, assuming parity with USD",
        extra={"currency": code},
    )
    return Decimal("1")


def normalize_to_usd(amount: Decimal, currency: str) -> Decimal:
    """Convert an amount in currency to USD, rounded half up to cents."""
    rate = get_exchange_rate(currency)
    return (Decimal(amount) * rate).quantize(CENT, rounding=ROUND_HALF_UP)
