"""
Ledger models for collector balances.

This module defines the two tables that hold all monetary truth:
- CollectorAccount: one row per customer or vendor with a financial history
- LedgerEntry: append-only, signed amounts in CREDITS or USD

There is no balance column anywhere. A balance is the sum of a collector's
entries for one currency (see banking.ledger.balance).

Usage:
    from banking.ledger.models import LedgerEntry, TransactionType, Currency

    LedgerEntry.objects.filter(
        collector_identifier="cust_123",
        currency=Currency.CREDITS,
    )
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from banking.exceptions import ImmutableEntryError


class AccountType(models.TextChoices):
    """Kinds of collector accounts."""

    CUSTOMER = "customer", "Customer"
    VENDOR = "vendor", "Vendor"


class AccountStatus(models.TextChoices):
    """Collector accounts are never deleted, only deactivated."""

    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class Currency(models.TextChoices):
    """
    Ledger currencies.

    CREDITS is the internal reward currency (10 credits = $1 notional).
    USD is real money a vendor can withdraw.
    """

    CREDITS = "CREDITS", "Credits"
    USD = "USD", "US Dollars"


class TransactionType(models.TextChoices):
    """
    Economic event recorded by a ledger entry.

    Values:
        CREDIT_EARNED: Purchase reward credits (+CREDITS)
        SUBSCRIPTION_CREDIT: Monthly subscription credits (+CREDITS)
        CREDIT_PAYMENT: Credits spent on a purchase (-CREDITS)
        NFC_SCAN_REWARD: Reward for scanning an artwork's NFC tag (+CREDITS)
        SERIES_COMPLETION_REWARD: Reward for completing a series (+CREDITS)
        PAYOUT_EARNED: Vendor share of a fulfilled line item (+USD)
        PAYOUT_WITHDRAWAL: Vendor payout sent through a rail (-USD)
        REFUND_DEDUCTION: Vendor earnings reversed by a refund (-USD)
        PERK_REDEMPTION: Reserved; perk redemptions carry no ledger amount
        ADJUSTMENT: Admin correction (+/-, either currency)
    """

    CREDIT_EARNED = "credit_earned", "Credit Earned"
    SUBSCRIPTION_CREDIT = "subscription_credit", "Subscription Credit"
    CREDIT_PAYMENT = "credit_payment", "Credit Payment"
    NFC_SCAN_REWARD = "nfc_scan_reward", "NFC Scan Reward"
    SERIES_COMPLETION_REWARD = "series_completion_reward", "Series Completion Reward"
    PAYOUT_EARNED = "payout_earned", "Payout Earned"
    PAYOUT_WITHDRAWAL = "payout_withdrawal", "Payout Withdrawal"
    REFUND_DEDUCTION = "refund_deduction", "Refund Deduction"
    PERK_REDEMPTION = "perk_redemption", "Perk Redemption"
    ADJUSTMENT = "adjustment", "Adjustment"

    @classmethod
    def earning_types(cls) -> list[str]:
        """Transaction types whose positive entries count as lifetime earnings."""
        return [
            cls.CREDIT_EARNED,
            cls.SUBSCRIPTION_CREDIT,
            cls.PAYOUT_EARNED,
            cls.NFC_SCAN_REWARD,
            cls.SERIES_COMPLETION_REWARD,
        ]


class CollectorAccount(UUIDPrimaryKeyMixin, BaseModel):
    """
    Registry row for a party with a financial history.

    Created lazily by LedgerStore.ensure_account on the first financial
    event for the identifier.

    Fields:
        collector_identifier: Stable opaque key (customer id, vendor auth id or name)
        account_type: customer or vendor
        vendor: Back-reference to the vendor directory for vendor accounts
        account_status: active or inactive
    """

    collector_identifier = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stable opaque key of the customer or vendor",
    )
    account_type = models.CharField(
        max_length=20,
        choices=AccountType.choices,
        help_text="Whether this account belongs to a customer or a vendor",
    )
    vendor = models.ForeignKey(
        "banking.Vendor",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="collector_accounts",
        help_text="Vendor directory entry for vendor accounts",
    )
    account_status = models.CharField(
        max_length=20,
        choices=AccountStatus.choices,
        default=AccountStatus.ACTIVE,
        db_index=True,
        help_text="Inactive accounts keep their history but accept no new entries",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["account_type", "account_status"],
                name="collector_acct_type_status_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.collector_identifier} ({self.account_type})"

    @property
    def is_active(self) -> bool:
        return self.account_status == AccountStatus.ACTIVE

    def deactivate(self) -> None:
        self.account_status = AccountStatus.INACTIVE
        self.save(update_fields=["account_status", "updated_at"])

    def reactivate(self) -> None:
        self.account_status = AccountStatus.ACTIVE
        self.save(update_fields=["account_status", "updated_at"])

    def delete(self, *args, **kwargs):
        raise ImmutableEntryError(
            "Collector accounts are never deleted; deactivate instead",
            details={"collector_identifier": self.collector_identifier},
        )


class LedgerEntryQuerySet(models.QuerySet):
    """QuerySet that refuses bulk mutation of ledger rows."""

    def update(self, **kwargs):
        raise ImmutableEntryError("Ledger entries cannot be updated")

    def delete(self):
        raise ImmutableEntryError("Ledger entries cannot be deleted")


class LedgerEntry(UUIDPrimaryKeyMixin, models.Model):
    """
    One immutable, signed monetary fact.

    Entries are never updated or deleted. A cancellation is a new entry
    with the opposite sign that references the original in metadata.

    Constraints:
        - amount is never zero
        - dedup_key is unique when set; this is what makes recorders
          idempotent under concurrent delivery of the same event

    Example:
        LedgerEntry.objects.create(
            collector_identifier="cust_123",
            transaction_type=TransactionType.CREDIT_EARNED,
            amount=Decimal("400"),
            currency=Currency.CREDITS,
            line_item_id="li_1",
            dedup_key="cust_123:credit_earned:li_1:CREDITS",
        )
    """

    collector_identifier = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Collector this entry belongs to",
    )
    transaction_type = models.CharField(
        max_length=50,
        choices=TransactionType.choices,
        help_text="Economic event this entry records",
    )
    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Signed amount; positive adds to the balance, negative subtracts",
    )
    currency = models.CharField(
        max_length=10,
        choices=Currency.choices,
        help_text="CREDITS or USD; balances never mix currencies",
    )

    # ==========================================================================
    # Correlation keys
    # ==========================================================================

    order_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Storefront order this entry relates to",
    )
    line_item_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Storefront line item this entry relates to",
    )
    subscription_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Credit subscription this entry relates to",
    )
    purchase_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Purchase paid with credits",
    )
    payout_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        db_index=True,
        help_text="Vendor payout mirrored by this entry",
    )

    # ==========================================================================
    # Audit
    # ==========================================================================

    description = models.TextField(
        blank=True,
        default="",
        help_text="Human-readable description of this entry",
    )
    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Audit context only; balance math never reads it",
    )
    tax_year = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Tax year the amount is reported under",
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this entry was recorded",
    )
    created_by = models.CharField(
        max_length=255,
        default="system",
        help_text="Service or admin that recorded this entry",
    )
    dedup_key = models.CharField(
        max_length=512,
        null=True,
        blank=True,
        unique=True,
        help_text="Natural key that makes the recording operation idempotent",
    )

    objects = LedgerEntryQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "Ledger entries"
        indexes = [
            models.Index(
                fields=["collector_identifier", "currency"],
                name="ledger_collector_currency_idx",
            ),
            models.Index(
                fields=["transaction_type", "currency"],
                name="ledger_type_currency_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(amount=0),
                name="ledger_entry_amount_nonzero",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.get_transaction_type_display()}: {self.amount} {self.currency}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableEntryError(
                "Ledger entries cannot be updated",
                details={"entry_id": str(self.id)},
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableEntryError(
            "Ledger entries cannot be deleted",
            details={"entry_id": str(self.id)},
        )
