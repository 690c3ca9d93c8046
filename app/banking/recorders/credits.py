"""
CREDITS recorders for collectors.

- Purchase reward: 10 credits per USD of the line item price
- Subscription credit: monthly credits, at most once per subscription per day
- Credit payment: spend credits on a purchase, never below zero
- NFC scan and series completion rewards

Usage:
    from banking.recorders.credits import CreditRecorder

    result = CreditRecorder.deposit_purchase_credits(
        collector_identifier="cust_123",
        line_item_id="li_1",
        order_id="ord_1",
        price=Decimal("40.00"),
    )
    result.credits_deposited  # Decimal("400")
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from core.exceptions import ValidationError

from banking.exceptions import InsufficientBalance
from banking.ledger import (
    AccountType,
    CollectorAccount,
    Currency,
    RecordEntryParams,
    TransactionType,
    balance_calculator,
    build_dedup_key,
    ledger_store,
    to_decimal,
)
from banking.models import CreditSubscription

from .base import BaseRecorder, RecordResult

WHOLE_CREDIT = Decimal("1")


@dataclass(frozen=True)
class CreditDepositResult(RecordResult):
    @property
    def credits_deposited(self) -> Decimal:
        return self.amount_recorded


@dataclass(frozen=True)
class CreditSpendResult(RecordResult):
    @property
    def credits_spent(self) -> Decimal:
        return self.amount_recorded


def credits_for_price(price: Any) -> Decimal:
    """Credits earned for a USD price, rounded half up to whole credits."""
    amount = to_decimal(price, "price")
    return (amount * settings.CREDITS_PER_DOLLAR).quantize(WHOLE_CREDIT, rounding=ROUND_HALF_UP)


def _positive(value: Any, field_name: str) -> Decimal:
    amount = to_decimal(value, field_name)
    if amount <= 0:
        raise ValidationError(
            f"{field_name} must be positive",
            error_code="INVALID_AMOUNT",
            details={field_name: str(value)},
        )
    return amount


def _nothing_to_record(collector_identifier: str) -> CreditDepositResult:
    return CreditDepositResult(
        entry_id=None,
        amount_recorded=Decimal("0"),
        new_balance=balance_calculator.calculate_balance(collector_identifier).balance,
        currency=Currency.CREDITS,
    )


class CreditRecorder(BaseRecorder):
    """
    Records CREDITS movements for customers.

    Deposits are idempotent against their natural key. Spends are always
    fresh entries and are checked against the balance at the moment of
    the write.
    """

    @classmethod
    def deposit_purchase_credits(
        cls,
        collector_identifier: str,
        line_item_id: str,
        price: Any,
        order_id: str | None = None,
        created_by: str = "system",
    ) -> CreditDepositResult:
        """
        Reward a purchase with credits.

        Dedup key: (identifier, credit_earned, line_item_id)

        Raises:
            ValidationError: If price is not numeric or is negative
        """
        if not line_item_id:
            raise ValidationError("line_item_id is required", error_code="MISSING_LINE_ITEM_ID")
        price = to_decimal(price, "price")
        if price < 0:
            raise ValidationError(
                "price cannot be negative",
                error_code="INVALID_AMOUNT",
                details={"price": str(price)},
            )
        credits = credits_for_price(price)
        if credits == 0:
            return _nothing_to_record(collector_identifier)

        params = RecordEntryParams(
            collector_identifier=collector_identifier,
            transaction_type=TransactionType.CREDIT_EARNED,
            amount=credits,
            currency=Currency.CREDITS,
            order_id=order_id,
            line_item_id=line_item_id,
            description=f"Credits earned from order {order_id or line_item_id}",
            metadata={
                "price": str(price),
                "credits_per_dollar": settings.CREDITS_PER_DOLLAR,
            },
            tax_year=timezone.now().year,
            created_by=created_by,
            dedup_key=build_dedup_key(
                collector_identifier, TransactionType.CREDIT_EARNED, line_item_id
            ),
        )
        entry, created = cls._record_once(params, AccountType.CUSTOMER)
        return cls._result(CreditDepositResult, params, entry, created)

    @classmethod
    def deposit_subscription_credits(
        cls,
        collector_identifier: str,
        subscription_id: str,
        credits: Any = None,
        created_by: str = "system",
    ) -> CreditDepositResult:
        """
        Deposit a subscription's monthly credits.

        Dedup key: (identifier, subscription_credit, subscription_id, calendar day).
        A new deposit also advances the subscription's next billing date by
        30 days; a duplicate deposit leaves it alone.

        Args:
            credits: Amount to deposit; defaults to the subscription's monthly_credits
        """
        subscription = CreditSubscription.objects.filter(subscription_id=subscription_id).first()
        if credits is None:
            if subscription is None:
                raise ValidationError(
                    f"Subscription {subscription_id} not found and no credit amount given",
                    error_code="SUBSCRIPTION_NOT_FOUND",
                    details={"subscription_id": subscription_id},
                )
            credits = subscription.monthly_credits
        amount = _positive(credits, "credits")

        now = timezone.now()
        params = RecordEntryParams(
            collector_identifier=collector_identifier,
            transaction_type=TransactionType.SUBSCRIPTION_CREDIT,
            amount=amount,
            currency=Currency.CREDITS,
            subscription_id=subscription_id,
            description=f"Subscription credits for {subscription_id}",
            tax_year=now.year,
            created_by=created_by,
            dedup_key=build_dedup_key(
                collector_identifier,
                TransactionType.SUBSCRIPTION_CREDIT,
                subscription_id,
                timezone.localdate(now).isoformat(),
            ),
        )
        with transaction.atomic():
            entry, created = cls._record_once(params, AccountType.CUSTOMER)
            if created and subscription is not None:
                subscription.advance_billing(now)
        return cls._result(CreditDepositResult, params, entry, created)

    @classmethod
    def spend_credits(
        cls,
        collector_identifier: str,
        amount: Any,
        purchase_id: str | None = None,
        order_id: str | None = None,
        description: str = "",
        created_by: str = "system",
    ) -> CreditSpendResult:
        """
        Spend credits on a purchase.

        The collector account row is locked and the balance re-read inside
        the same transaction, so two concurrent spends cannot both pass the
        check against the same balance.

        Raises:
            ValidationError: If amount is not a positive number
            InsufficientBalance: If the balance is below amount (nothing is recorded)
        """
        amount = _positive(amount, "amount")

        with transaction.atomic():
            ledger_store.ensure_account(collector_identifier, AccountType.CUSTOMER)
            CollectorAccount.objects.select_for_update().get(
                collector_identifier=collector_identifier
            )
            available = balance_calculator.calculate_balance(collector_identifier).balance
            if available < amount:
                cls.get_logger().info(
                    "Credit spend rejected",
                    extra={
                        "collector_identifier": collector_identifier,
                        "required": str(amount),
                        "available": str(available),
                    },
                )
                raise InsufficientBalance(collector_identifier, required=amount, available=available)

            params = RecordEntryParams(
                collector_identifier=collector_identifier,
                transaction_type=TransactionType.CREDIT_PAYMENT,
                amount=-amount,
                currency=Currency.CREDITS,
                purchase_id=purchase_id,
                order_id=order_id,
                description=description or f"Credits spent on purchase {purchase_id or ''}".strip(),
                tax_year=timezone.now().year,
                created_by=created_by,
            )
            entry = ledger_store.record_entry(params)

        return cls._result(CreditSpendResult, params, entry, True)

    @classmethod
    def record_nfc_scan_reward(
        cls,
        collector_identifier: str,
        line_item_id: str,
        credits: Any,
        created_by: str = "system",
    ) -> CreditDepositResult:
        """
        Reward the first scan of an artwork's NFC tag.

        Dedup key: (identifier, nfc_scan_reward, line_item_id)
        """
        return cls._deposit_reward(
            collector_identifier,
            TransactionType.NFC_SCAN_REWARD,
            credits,
            natural_key=line_item_id,
            line_item_id=line_item_id,
            description=f"NFC scan reward for {line_item_id}",
            created_by=created_by,
        )

    @classmethod
    def record_series_completion_reward(
        cls,
        collector_identifier: str,
        series_id: str,
        credits: Any,
        created_by: str = "system",
    ) -> CreditDepositResult:
        """Dedup key: (identifier, series_completion_reward, series_id)"""
        return cls._deposit_reward(
            collector_identifier,
            TransactionType.SERIES_COMPLETION_REWARD,
            credits,
            natural_key=series_id,
            description=f"Series completion reward for {series_id}",
            metadata={"series_id": series_id},
            created_by=created_by,
        )

    @classmethod
    def _deposit_reward(
        cls,
        collector_identifier: str,
        transaction_type: str,
        credits: Any,
        natural_key: str,
        line_item_id: str | None = None,
        description: str = "",
        metadata: dict | None = None,
        created_by: str = "system",
    ) -> CreditDepositResult:
        if not natural_key:
            raise ValidationError(
                f"A correlating id is required for {transaction_type}",
                error_code="MISSING_CORRELATION_ID",
            )
        params = RecordEntryParams(
            collector_identifier=collector_identifier,
            transaction_type=transaction_type,
            amount=_positive(credits, "credits"),
            currency=Currency.CREDITS,
            line_item_id=line_item_id,
            description=description,
            metadata=metadata or {},
            tax_year=timezone.now().year,
            created_by=created_by,
            dedup_key=build_dedup_key(collector_identifier, transaction_type, natural_key),
        )
        entry, created = cls._record_once(params, AccountType.CUSTOMER)
        return cls._result(CreditDepositResult, params, entry, created)
