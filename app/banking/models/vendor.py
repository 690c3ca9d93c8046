"""
Vendor directory and payout rule models.

- Vendor: artist/vendor profile with payee details and tax pass-through fields
- ProductPayoutRule: per-product override of the vendor's share
- ExchangeRate: conversion rates used to normalize line item prices to USD
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


class Vendor(UUIDPrimaryKeyMixin, BaseModel):
    """
    A vendor selling through the storefront.

    The vendor's collector identifier (the key of its ledger entries) is
    fixed on first save: its auth_id if it already has one, otherwise its
    vendor_name. Linking a login later never moves the ledger history.

    Fields:
        vendor_name: Storefront vendor name (matches line item vendor)
        auth_id: Identity of the vendor's login, when linked
        ledger_identifier: Collector identifier of the vendor's ledger entries
        paypal_email: Payee address for PayPal payouts
        stripe_account_id: Connected account for Stripe transfers
        stripe_onboarding_complete: Whether Stripe may receive transfers
        default_payout_percentage: Vendor-wide share, overrides the platform default
        tax_id / tax_country / is_company / address: invoice pass-through fields
    """

    vendor_name = models.CharField(
        max_length=255,
        unique=True,
        help_text="Vendor name as it appears on storefront line items",
    )
    auth_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Login identity of the vendor",
    )
    ledger_identifier = models.CharField(
        max_length=255,
        unique=True,
        editable=False,
        help_text="Collector identifier of the vendor's ledger entries, fixed on first save",
    )
    contact_email = models.EmailField(
        blank=True,
        default="",
        help_text="Where payout notifications are sent",
    )
    paypal_email = models.EmailField(
        blank=True,
        default="",
        help_text="PayPal payee address",
    )
    stripe_account_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Stripe Connected Account ID (acct_xxx)",
    )
    stripe_onboarding_complete = models.BooleanField(
        default=False,
        help_text="Whether the connected account can receive transfers",
    )
    default_payout_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Vendor-wide payout percentage; platform default when empty",
    )
    tax_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Tax identification number (pass-through for invoices)",
    )
    tax_country = models.CharField(
        max_length=2,
        blank=True,
        default="",
        help_text="ISO 3166 country code for tax reporting",
    )
    is_company = models.BooleanField(
        default=False,
        help_text="Whether the vendor invoices as a company",
    )
    address = models.TextField(
        blank=True,
        default="",
        help_text="Postal address printed on invoices",
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Inactive vendors are excluded from payout batches",
    )

    class Meta:
        ordering = ["vendor_name"]

    def __str__(self) -> str:
        return self.vendor_name

    def save(self, *args, **kwargs):
        if not self.ledger_identifier:
            self.ledger_identifier = self.auth_id or self.vendor_name
        super().save(*args, **kwargs)

    @property
    def collector_identifier(self) -> str:
        return self.ledger_identifier or self.auth_id or self.vendor_name

    def tax_fields(self) -> dict:
        return {
            "tax_id": self.tax_id,
            "tax_country": self.tax_country,
            "is_company": self.is_company,
            "address": self.address,
        }


class ProductPayoutRule(UUIDPrimaryKeyMixin, BaseModel):
    """
    Per-product payout override.

    is_percentage=True means payout_amount is a percentage of the
    pre-discount price; otherwise it is a flat USD amount per unit.
    """

    vendor = models.ForeignKey(
        Vendor,
        on_delete=models.CASCADE,
        related_name="payout_rules",
        help_text="Vendor the product belongs to",
    )
    product_id = models.CharField(
        max_length=255,
        help_text="Storefront product ID",
    )
    payout_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Percentage or flat USD amount, depending on is_percentage",
    )
    is_percentage = models.BooleanField(
        default=True,
        help_text="Whether payout_amount is a percentage",
    )

    class Meta:
        ordering = ["vendor", "product_id"]
        constraints = [
            models.UniqueConstraint(
                fields=["vendor", "product_id"],
                name="unique_payout_rule_per_product",
            ),
            models.CheckConstraint(
                condition=models.Q(payout_amount__gte=0),
                name="payout_rule_amount_non_negative",
            ),
        ]

    def __str__(self) -> str:
        suffix = "%" if self.is_percentage else " USD"
        return f"{self.vendor} / {self.product_id}: {self.payout_amount}{suffix}"


class ExchangeRate(UUIDPrimaryKeyMixin, BaseModel):
    """Conversion rate from one currency to another (1 from = rate to)."""

    from_currency = models.CharField(
        max_length=3,
        help_text="ISO 4217 source currency code",
    )
    to_currency = models.CharField(
        max_length=3,
        default="USD",
        help_text="ISO 4217 target currency code",
    )
    rate = models.DecimalField(
        max_digits=12,
        decimal_places=6,
        help_text="Units of to_currency per unit of from_currency",
    )

    class Meta:
        ordering = ["from_currency", "to_currency"]
        constraints = [
            models.UniqueConstraint(
                fields=["from_currency", "to_currency"],
                name="unique_exchange_rate_pair",
            ),
        ]

    def __str__(self) -> str:
        return f"1 {self.from_currency} = {self.rate} {self.to_currency}"
